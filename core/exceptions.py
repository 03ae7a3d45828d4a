"""
CORE App - Settlement error taxonomy

Raised by the delivery lifecycle and dispute services. Each error carries a
stable ``code`` and the HTTP status the API layer answers with.
"""


class SettlementError(Exception):
    """Base class for every rule violation in the settlement core."""

    code = 'SETTLEMENT_ERROR'
    status_code = 400

    def __init__(self, message: str = '', **context):
        super().__init__(message or self.code)
        self.message = message or self.code
        self.context = context

    def as_dict(self) -> dict:
        payload = {'error': self.code, 'message': self.message}
        if self.context:
            payload.update(self.context)
        return payload


class NotFound(SettlementError):
    """Referenced delivery request or driver does not exist."""
    code = 'NOT_FOUND'
    status_code = 404


class InvalidState(SettlementError):
    """Lifecycle status does not allow the requested transition."""
    code = 'INVALID_STATE'
    status_code = 409


class NotAssigned(SettlementError):
    """Acting driver is not the one assigned to the request."""
    code = 'NOT_ASSIGNED'
    status_code = 403


class AlreadyArrived(SettlementError):
    code = 'ALREADY_ARRIVED'
    status_code = 409


class AlreadyCompleted(SettlementError):
    code = 'ALREADY_COMPLETED'
    status_code = 409


class DisputeValidationError(SettlementError):
    """Malformed dispute input. All problems are collected in ``errors``."""

    code = 'INVALID_DISPUTE'
    status_code = 400

    def __init__(self, message: str = '', errors=None):
        self.errors = list(errors or [])
        super().__init__(message or 'Invalid disputed items', details=self.errors)
