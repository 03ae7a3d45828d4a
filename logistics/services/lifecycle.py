"""
LOGISTICS App - Delivery Lifecycle State Machine for OTW

REQUESTED → ASSIGNED → PICKED_UP → EN_ROUTE → DELIVERED
(CANCELED reachable from any non-terminal state)

Every operation is one all-or-nothing transaction on the injected store.
Any precondition failure raises a core.exceptions error inside the
transaction, so nothing is written: no half-closed time log, no orphan
earnings.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from django.conf import settings
from django.utils import timezone

from core.exceptions import (
    AlreadyArrived, AlreadyCompleted, InvalidState, NotAssigned, NotFound,
)
from finance.pay_service import PayBreakdown, active_minutes_between, calculate_driver_pay
from logistics.models import DeliveryRequestStatus, TERMINAL_STATUSES
from logistics.services.store import DeliveryStore, DjangoDeliveryStore

logger = logging.getLogger(__name__)

COMPLETABLE_STATUSES = (DeliveryRequestStatus.PICKED_UP, DeliveryRequestStatus.EN_ROUTE)


@dataclass
class CompletionResult:
    """What ``complete_delivery_request`` hands back to the caller."""
    request: object
    earnings: object
    pay: PayBreakdown
    active_minutes: int


def _default_store(store: Optional[DeliveryStore]) -> DeliveryStore:
    return store if store is not None else DjangoDeliveryStore()


def _short(request_id) -> str:
    return str(request_id)[:8]


def _load_request(tx, request_id):
    request = tx.get_request_for_update(request_id)
    if request is None:
        logger.warning(f"[LIFECYCLE] Request {request_id} not found")
        raise NotFound("Request not found")
    return request


def _ensure_assigned(request, driver_id):
    if request.assigned_driver_id is None or str(request.assigned_driver_id) != str(driver_id):
        logger.warning(
            f"[LIFECYCLE] Driver {driver_id} is not assigned to request {_short(request.id)}"
        )
        raise NotAssigned("Not assigned to this driver")


def accept_delivery_request(request_id, driver_id, store: Optional[DeliveryStore] = None, now=None):
    """
    Assign a REQUESTED delivery to a driver (race condition safe).

    The request row is locked for the duration of the transaction. When two
    drivers race, the loser sees status ASSIGNED and gets InvalidState.

    Raises:
        NotFound: request or driver does not exist
        InvalidState: request is no longer REQUESTED
    """
    store = _default_store(store)
    now = now or timezone.now()

    with store.atomic() as tx:
        request = _load_request(tx, request_id)

        driver = tx.get_driver(driver_id)
        if driver is None:
            raise NotFound("Driver not found")

        if request.status != DeliveryRequestStatus.REQUESTED:
            logger.warning(
                f"[LIFECYCLE] Accept refused for {_short(request.id)}: status is {request.status}"
            )
            raise InvalidState("Request is not available for acceptance", status=request.status)

        tx.update_request(
            request,
            status=DeliveryRequestStatus.ASSIGNED,
            assigned_driver_id=driver.pk,
            assigned_at=now,
        )
        tx.create_assignment(request, driver.pk, now)

    logger.info(f"[LIFECYCLE] Request {_short(request.id)} accepted by driver {driver.pk}")
    return request


def mark_driver_arrived(request_id, driver_id, store: Optional[DeliveryStore] = None, now=None):
    """
    Driver reached the pickup: ASSIGNED → PICKED_UP and open a time log.

    Calling twice fails with AlreadyArrived and never opens a second log.

    Raises:
        NotFound, NotAssigned, AlreadyArrived, InvalidState
    """
    store = _default_store(store)
    now = now or timezone.now()

    with store.atomic() as tx:
        request = _load_request(tx, request_id)
        _ensure_assigned(request, driver_id)

        if request.arrived_at is not None:
            raise AlreadyArrived("Driver already marked arrived")
        if tx.find_open_time_log(request.pk, request.assigned_driver_id) is not None:
            raise AlreadyArrived("Active time log already exists")
        if request.status != DeliveryRequestStatus.ASSIGNED:
            raise InvalidState("Request is not in assigned state", status=request.status)

        tx.update_request(request, status=DeliveryRequestStatus.PICKED_UP, arrived_at=now)
        tx.create_time_log(request.pk, request.assigned_driver_id, now)

    logger.info(f"[LIFECYCLE] Driver {driver_id} arrived for request {_short(request.id)}")
    return request


def mark_driver_departed(request_id, driver_id, store: Optional[DeliveryStore] = None, now=None):
    """
    Driver left the pickup with the order: PICKED_UP → EN_ROUTE.

    The time log opened on arrival stays open until completion.

    Raises:
        NotFound, NotAssigned, InvalidState
    """
    store = _default_store(store)
    now = now or timezone.now()

    with store.atomic() as tx:
        request = _load_request(tx, request_id)
        _ensure_assigned(request, driver_id)

        if request.status != DeliveryRequestStatus.PICKED_UP:
            raise InvalidState("Request is not in picked-up state", status=request.status)

        tx.update_request(request, status=DeliveryRequestStatus.EN_ROUTE, departed_at=now)

    logger.info(f"[LIFECYCLE] Request {_short(request.id)} en route")
    return request


def complete_delivery_request(
    request_id,
    driver_id,
    store: Optional[DeliveryStore] = None,
    now=None,
) -> CompletionResult:
    """
    Deliver the order and settle the driver's pay, in one transaction.

    Steps:
    1. Close the open time log (active minutes rounded up)
    2. Decide bonus eligibility (5 stars, no complaint, bonus enabled)
    3. Run the pay calculator (Service Miles, or hourly when none)
    4. Create exactly one pending DriverEarnings row
    5. Mark the request DELIVERED and bump the driver's completedJobs

    Raises:
        NotFound: request or driver missing
        NotAssigned: driver_id is not the assigned driver
        InvalidState: not arrived yet, wrong status, or no open time log
        AlreadyCompleted: completed_at already set or earnings exist
    """
    store = _default_store(store)
    now = now or timezone.now()

    with store.atomic() as tx:
        request = _load_request(tx, request_id)

        driver = tx.get_driver(driver_id, for_update=True)
        if driver is None:
            raise NotFound("Driver not found")

        _ensure_assigned(request, driver.pk)

        if request.arrived_at is None:
            raise InvalidState("Cannot complete before arriving", status=request.status)
        if request.completed_at is not None:
            raise AlreadyCompleted("Already completed")
        if request.status not in COMPLETABLE_STATUSES:
            raise InvalidState("Request is not in a completable state", status=request.status)

        open_log = tx.find_open_time_log(request.pk, driver.pk)
        if open_log is None:
            raise InvalidState("No active time log found for pay calculation")
        if tx.earnings_exist(request.pk):
            raise AlreadyCompleted("Earnings already created for this request")

        active_minutes = active_minutes_between(open_log.start_time, now)
        tx.close_time_log(open_log, now, active_minutes)

        bonus_eligible = (
            request.customer_rating == 5
            and not request.complaint_flag
            and bool(driver.bonus_enabled)
        )

        pay = calculate_driver_pay(
            service_miles=request.service_miles_final or 0,
            driver_tier=driver.tier,
            tips_cents=0,
            bonus_eligible=bonus_eligible,
            bonus_5star_cents=driver.bonus_5star_cents,
            wait_miles=request.wait_miles,
            cash_handling=request.cash_handling,
            business_account=request.business_account,
            active_minutes=active_minutes,
            hourly_rate_cents=driver.hourly_rate_cents,
            rate_table=settings.DRIVER_PAY_RATES,
        )

        earnings = tx.create_earnings(request.pk, driver.pk, pay.total_pay_cents, pay.to_dict())

        tx.update_request(request, status=DeliveryRequestStatus.DELIVERED, completed_at=now)
        tx.increment_completed_jobs(driver)

    logger.info(
        f"[LIFECYCLE] Request {_short(request.id)} delivered by driver {driver.pk} | "
        f"{active_minutes} min | pay {pay.total_pay_cents}¢ (bonus: {bonus_eligible})"
    )
    return CompletionResult(request=request, earnings=earnings, pay=pay, active_minutes=active_minutes)


def cancel_delivery_request(
    request_id,
    driver_id=None,
    store: Optional[DeliveryStore] = None,
    now=None,
):
    """
    Cancel a non-terminal request.

    An open time log is closed so the minutes are frozen, but no earnings
    are ever created for a canceled trip. The driver assignment is cleared.
    When ``driver_id`` is given the caller must be the assigned driver.
    Refunds belong to the payments side.

    Raises:
        NotFound, NotAssigned, InvalidState (already DELIVERED/CANCELED)
    """
    store = _default_store(store)
    now = now or timezone.now()

    with store.atomic() as tx:
        request = _load_request(tx, request_id)

        if driver_id is not None:
            _ensure_assigned(request, driver_id)
        if request.status in TERMINAL_STATUSES:
            raise InvalidState("Request is already closed", status=request.status)

        previous_driver_id = request.assigned_driver_id
        if previous_driver_id is not None:
            open_log = tx.find_open_time_log(request.pk, previous_driver_id)
            if open_log is not None:
                tx.close_time_log(open_log, now, active_minutes_between(open_log.start_time, now))

        tx.update_request(
            request,
            status=DeliveryRequestStatus.CANCELED,
            canceled_at=now,
            assigned_driver_id=None,
        )

    logger.info(
        f"[LIFECYCLE] Request {_short(request.id)} canceled "
        f"(previous driver: {previous_driver_id or '-'})"
    )
    return request
