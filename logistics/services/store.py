"""
LOGISTICS App - Delivery store (unit of work) for OTW

The lifecycle state machine never talks to the ORM directly. It receives a
store and runs each operation inside ``store.atomic()``, which yields the
transaction handle every read and write goes through. Anything raised
inside the block rolls the whole operation back.

DjangoDeliveryStore is the production implementation: transaction.atomic
plus SELECT ... FOR UPDATE on the delivery request row so concurrent
accepts serialise and exactly one driver wins.
"""

import logging
from contextlib import contextmanager

from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction

from core.exceptions import AlreadyCompleted
from core.models import DriverProfile
from finance.models import DriverEarnings, DriverEarningStatus
from logistics.models import DeliveryRequest, DriverAssignment, DriverTimeLog

logger = logging.getLogger(__name__)


class DeliveryStore:
    """
    Repository + unit-of-work contract used by the lifecycle.

    Implementations must make every write inside ``atomic()`` visible
    all-or-nothing, and ``get_request_for_update`` must lock the row
    (or otherwise serialise writers) until the block exits.
    """

    @contextmanager
    def atomic(self):
        raise NotImplementedError

    # Delivery requests
    def get_request_for_update(self, request_id):
        raise NotImplementedError

    def update_request(self, request, **fields):
        raise NotImplementedError

    def create_assignment(self, request, driver_id, assigned_at):
        raise NotImplementedError

    # Drivers
    def get_driver(self, driver_id, for_update: bool = False):
        raise NotImplementedError

    def increment_completed_jobs(self, driver):
        raise NotImplementedError

    # Time logs
    def find_open_time_log(self, request_id, driver_id):
        raise NotImplementedError

    def create_time_log(self, request_id, driver_id, start_time):
        raise NotImplementedError

    def close_time_log(self, time_log, end_time, active_minutes: int):
        raise NotImplementedError

    # Earnings
    def earnings_exist(self, request_id) -> bool:
        raise NotImplementedError

    def create_earnings(self, request_id, driver_id, amount_cents: int, breakdown: dict):
        raise NotImplementedError


class DjangoDeliveryStore(DeliveryStore):
    """ORM-backed store. ``atomic()`` yields the store itself."""

    def __init__(self, using: str = 'default'):
        self.using = using

    @contextmanager
    def atomic(self):
        with transaction.atomic(using=self.using):
            yield self

    # ------------------------------------------------------------------
    # Delivery requests
    # ------------------------------------------------------------------

    def get_request_for_update(self, request_id):
        try:
            return (
                DeliveryRequest.objects.using(self.using)
                .select_for_update()
                .get(pk=request_id)
            )
        except (DeliveryRequest.DoesNotExist, ValidationError, ValueError):
            return None

    def update_request(self, request, **fields):
        for name, value in fields.items():
            setattr(request, name, value)
        request.save(using=self.using, update_fields=list(fields))
        return request

    def create_assignment(self, request, driver_id, assigned_at):
        return DriverAssignment.objects.using(self.using).create(
            delivery_request_id=request.pk,
            driver_id=driver_id,
            assigned_at=assigned_at,
        )

    # ------------------------------------------------------------------
    # Drivers
    # ------------------------------------------------------------------

    def get_driver(self, driver_id, for_update: bool = False):
        qs = DriverProfile.objects.using(self.using)
        if for_update:
            qs = qs.select_for_update()
        try:
            return qs.get(pk=driver_id)
        except (DriverProfile.DoesNotExist, ValidationError, ValueError):
            return None

    def increment_completed_jobs(self, driver):
        metrics = dict(driver.performance_metrics or {})
        completed = metrics.get('completedJobs')
        metrics['completedJobs'] = (completed if isinstance(completed, int) else 0) + 1
        driver.performance_metrics = metrics
        driver.save(using=self.using, update_fields=['performance_metrics'])
        return driver

    # ------------------------------------------------------------------
    # Time logs
    # ------------------------------------------------------------------

    def find_open_time_log(self, request_id, driver_id):
        return (
            DriverTimeLog.objects.using(self.using)
            .select_for_update()
            .filter(delivery_request_id=request_id, driver_id=driver_id, end_time__isnull=True)
            .first()
        )

    def create_time_log(self, request_id, driver_id, start_time):
        return DriverTimeLog.objects.using(self.using).create(
            delivery_request_id=request_id,
            driver_id=driver_id,
            start_time=start_time,
        )

    def close_time_log(self, time_log, end_time, active_minutes: int):
        time_log.end_time = end_time
        time_log.active_minutes = active_minutes
        time_log.save(using=self.using, update_fields=['end_time', 'active_minutes'])
        return time_log

    # ------------------------------------------------------------------
    # Earnings
    # ------------------------------------------------------------------

    def earnings_exist(self, request_id) -> bool:
        return DriverEarnings.objects.using(self.using).filter(request_id=request_id).exists()

    def create_earnings(self, request_id, driver_id, amount_cents: int, breakdown: dict):
        try:
            # Savepoint so the unique violation surfaces as a domain error
            with transaction.atomic(using=self.using):
                return DriverEarnings.objects.using(self.using).create(
                    request_id=request_id,
                    driver_id=driver_id,
                    amount_cents=amount_cents,
                    status=DriverEarningStatus.PENDING,
                    breakdown=breakdown,
                )
        except IntegrityError:
            logger.warning(f"[LIFECYCLE] Duplicate earnings rejected for request {request_id}")
            raise AlreadyCompleted("Earnings already created for this request")
