"""
DISPUTES App - Confirmation, lock & dispute services for OTW

Flow:
1. Customer confirms the delivered items -> items snapshot is frozen
2. Verified receipt + confirmation -> delivery request is locked
3. Customer disputes items -> validated against the snapshot
4. Staff resolves the dispute
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional

from django.db import transaction
from django.utils import timezone

from core.exceptions import DisputeValidationError, InvalidState
from logistics.models import DeliveryRequest
from receipts.models import ReceiptVerification, VERIFIED_STATUSES
from .models import DisputeResolution, DisputeStatus, OrderConfirmation
from .order_confirmation import (
    build_items_snapshot, should_mark_needs_info_for_dispute, snapshot_total,
    validate_disputed_items_against_snapshot,
)

logger = logging.getLogger(__name__)

LOCK_REASON = "RECEIPT+CONFIRMATION"
EVIDENCE_URL_PATTERN = re.compile(r'^https?://.+\.(jpg|jpeg|png|gif|pdf|mp4|mov)$', re.IGNORECASE)

RESOLUTION_STATUS = {
    DisputeResolution.APPROVED.value: DisputeStatus.RESOLVED_APPROVED,
    DisputeResolution.DENIED.value: DisputeStatus.RESOLVED_DENIED,
    DisputeResolution.NEEDS_INFO.value: DisputeStatus.NEEDS_INFO,
}


@dataclass
class LockEvaluation:
    locked: bool
    receipt_status: Optional[str]
    receipt_verified: bool
    customer_confirmed: bool
    locked_at: object = None
    lock_reason: str = ''

    @property
    def refund_policy(self) -> str:
        return 'LOCKED_REQUIRES_REVIEW' if self.locked else 'AUTO_ALLOWED'


def _confirmation_for(delivery_request) -> Optional[OrderConfirmation]:
    return OrderConfirmation.objects.filter(delivery_request=delivery_request).first()


def _latest_verified_receipt(delivery_request) -> Optional[ReceiptVerification]:
    return (
        ReceiptVerification.objects
        .filter(delivery_request=delivery_request, status__in=VERIFIED_STATUSES)
        .order_by('-created_at')
        .first()
    )


def evaluate_lock(delivery_request) -> LockEvaluation:
    """
    A request is locked when its latest receipt is APPROVED/FLAGGED and the
    customer has confirmed the items.
    """
    latest = (
        ReceiptVerification.objects
        .filter(delivery_request=delivery_request)
        .order_by('-created_at')
        .first()
    )
    confirmation = _confirmation_for(delivery_request)

    receipt_verified = latest is not None and latest.status in VERIFIED_STATUSES
    customer_confirmed = bool(
        confirmation and confirmation.customer_confirmed and confirmation.confirmed_at is not None
    )

    return LockEvaluation(
        locked=receipt_verified and customer_confirmed,
        receipt_status=latest.status if latest else None,
        receipt_verified=receipt_verified,
        customer_confirmed=customer_confirmed,
        locked_at=delivery_request.locked_at,
        lock_reason=delivery_request.lock_reason,
    )


def apply_lock(delivery_request, reason: str = LOCK_REASON, now=None):
    delivery_request.locked_at = now or timezone.now()
    delivery_request.lock_reason = reason
    delivery_request.save(update_fields=['locked_at', 'lock_reason'])
    logger.info(f"[DISPUTE] Request {str(delivery_request.pk)[:8]} locked ({reason})")
    return delivery_request


def confirm_items(delivery_request, customer, items_snapshot=None, now=None) -> OrderConfirmation:
    """
    Customer confirms what was delivered.

    The first confirmation freezes the snapshot: from the submitted list
    when given, otherwise from the receipt lines stored on the request.
    Later confirmations keep that snapshot. Confirming with a verified
    receipt locks the request.

    Raises:
        DisputeValidationError: nothing to confirm
        InvalidState: submitted items differ from the frozen snapshot
    """
    now = now or timezone.now()

    with transaction.atomic():
        delivery_request = DeliveryRequest.objects.select_for_update().get(pk=delivery_request.pk)
        confirmation = (
            OrderConfirmation.objects.select_for_update()
            .filter(delivery_request=delivery_request)
            .first()
        )
        verified = _latest_verified_receipt(delivery_request)

        if confirmation is not None and confirmation.items_snapshot:
            snapshot = confirmation.items_snapshot
            if items_snapshot is not None and build_items_snapshot(items_snapshot) != snapshot:
                logger.warning(
                    f"[DISPUTE] Snapshot change refused for request {str(delivery_request.pk)[:8]}"
                )
                raise InvalidState(
                    "Items are already confirmed for this order",
                    confirmation_id=str(confirmation.pk)
                )
            if not confirmation.customer_confirmed:
                confirmation.customer_confirmed = True
                confirmation.confirmed_at = now
            if verified is not None:
                confirmation.receipt_verification = verified
            confirmation.save(update_fields=[
                'customer_confirmed', 'confirmed_at', 'receipt_verification', 'updated_at',
            ])
        else:
            source = items_snapshot if items_snapshot is not None else delivery_request.receipt_items
            snapshot = build_items_snapshot(source)
            if not snapshot:
                raise DisputeValidationError(
                    "No source items found to confirm",
                    errors=["Upload a receipt or add items before confirming."]
                )

            defaults = {
                'customer': customer,
                'items_snapshot': snapshot,
                'total_snapshot': snapshot_total(snapshot),
                'customer_confirmed': True,
                'confirmed_at': now,
            }
            if verified is not None:
                defaults['receipt_verification'] = verified

            confirmation, _ = OrderConfirmation.objects.update_or_create(
                delivery_request=delivery_request,
                defaults=defaults,
            )

        lock = evaluate_lock(delivery_request)
        if lock.locked and not delivery_request.is_locked:
            apply_lock(delivery_request, now=now)

    logger.info(
        f"[DISPUTE] Items confirmed for request {str(delivery_request.pk)[:8]} "
        f"({len(snapshot)} items, locked: {lock.locked})"
    )
    return confirmation


def _check_locked_dispute(confirmation, normalized, dispute_notes, evidence_urls):
    """Extra rules for disputes raised against a locked order."""
    errors = []
    if not dispute_notes:
        errors.append("dispute_notes is required for a locked order")
    if not evidence_urls:
        errors.append("evidence_urls is required for a locked order")
    invalid = [url for url in evidence_urls if not EVIDENCE_URL_PATTERN.match(url)]
    if invalid:
        errors.append("evidence_urls must point to image, video or PDF files")
    if errors:
        raise DisputeValidationError("Order is receipt-locked", errors=errors)

    if confirmation is not None and confirmation.disputed_items == normalized:
        raise InvalidState("A dispute for this item has already been submitted")


def file_dispute(
    delivery_request,
    customer,
    disputed_items,
    dispute_notes: str = '',
    evidence_urls=None,
    now=None,
) -> OrderConfirmation:
    """
    Record an item-level dispute.

    Status is NEEDS_INFO when the customer never confirmed the order or
    evidence is required but missing, otherwise OPEN.

    Raises:
        DisputeValidationError: no snapshot, unmatched/over-quantity items,
            or missing notes/evidence on a locked order
        InvalidState: identical dispute already filed on a locked order
    """
    now = now or timezone.now()
    dispute_notes = (dispute_notes or '').strip()
    evidence_urls = list(dict.fromkeys(evidence_urls or []))

    with transaction.atomic():
        delivery_request = DeliveryRequest.objects.select_for_update().get(pk=delivery_request.pk)
        confirmation = _confirmation_for(delivery_request)

        if confirmation is not None and confirmation.items_snapshot:
            snapshot = build_items_snapshot(confirmation.items_snapshot)
        else:
            snapshot = build_items_snapshot(delivery_request.receipt_items)
        if not snapshot:
            raise DisputeValidationError(
                "No confirmed items found",
                errors=["Confirm items before filing a dispute."]
            )

        validation = validate_disputed_items_against_snapshot(snapshot, disputed_items)
        if not validation.valid:
            logger.warning(
                f"[DISPUTE] Rejected dispute on {str(delivery_request.pk)[:8]}: {validation.errors}"
            )
            raise DisputeValidationError("Invalid disputed items", errors=validation.errors)

        if evaluate_lock(delivery_request).locked:
            _check_locked_dispute(confirmation, validation.normalized, dispute_notes, evidence_urls)

        customer_confirmed = bool(confirmation and confirmation.customer_confirmed)
        if not validation.normalized:
            dispute_status = DisputeStatus.DRAFT
        elif should_mark_needs_info_for_dispute(customer_confirmed, validation.normalized, evidence_urls):
            dispute_status = DisputeStatus.NEEDS_INFO
        else:
            dispute_status = DisputeStatus.OPEN

        defaults = {
            'items_snapshot': snapshot,
            'total_snapshot': snapshot_total(snapshot),
            'dispute_status': dispute_status,
            'disputed_items': validation.normalized,
            'dispute_notes': dispute_notes,
            'evidence_urls': evidence_urls,
            'disputed_at': now,
        }
        verified = _latest_verified_receipt(delivery_request)
        if verified is not None:
            defaults['receipt_verification'] = verified

        if confirmation is None:
            confirmation = OrderConfirmation.objects.create(
                delivery_request=delivery_request,
                customer=customer,
                **defaults
            )
        else:
            for name, value in defaults.items():
                setattr(confirmation, name, value)
            confirmation.save()

    logger.info(
        f"[DISPUTE] Dispute on request {str(delivery_request.pk)[:8]}: {dispute_status} "
        f"({len(validation.normalized)} items, {len(evidence_urls)} evidence)"
    )
    return confirmation


def resolve_dispute(
    confirmation: OrderConfirmation,
    resolution: str,
    notes: str = '',
    refund_amount=None,
    resolved_by=None,
    now=None,
) -> OrderConfirmation:
    """
    Staff decision on a dispute.

    APPROVED / DENIED close the dispute (and need disputed items);
    NEEDS_INFO sends it back to the customer. A refund amount is only kept
    for APPROVED.

    Raises:
        DisputeValidationError: unknown resolution or nothing to resolve
    """
    resolution = str(resolution)
    if resolution not in RESOLUTION_STATUS:
        raise DisputeValidationError("Invalid resolution", errors=[f"Unknown resolution {resolution!r}"])
    if not confirmation.disputed_items and resolution != DisputeResolution.NEEDS_INFO:
        raise DisputeValidationError(
            "Cannot resolve dispute without disputed items",
            errors=["disputed_items is empty"]
        )

    closing = resolution != DisputeResolution.NEEDS_INFO
    confirmation.dispute_status = RESOLUTION_STATUS[resolution]
    confirmation.resolution_notes = (notes or '').strip()
    confirmation.refund_amount = refund_amount if resolution == DisputeResolution.APPROVED else None
    confirmation.resolved_at = (now or timezone.now()) if closing else None
    confirmation.resolved_by = resolved_by if closing else None
    confirmation.save(update_fields=[
        'dispute_status', 'resolution_notes', 'refund_amount',
        'resolved_at', 'resolved_by', 'updated_at',
    ])

    logger.info(
        f"[DISPUTE] Confirmation {str(confirmation.pk)[:8]} resolved: {confirmation.dispute_status}"
    )
    return confirmation
