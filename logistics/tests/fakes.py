"""
In-memory DeliveryStore for lifecycle tests (no database).

atomic() serialises callers with a lock (stand-in for the row lock) and
restores a snapshot of every table when the block raises.
"""

import copy
import threading
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Optional

from core.exceptions import AlreadyCompleted
from logistics.services.store import DeliveryStore


@dataclass
class FakeRequest:
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    status: str = 'REQUESTED'
    assigned_driver_id: Optional[str] = None
    assigned_at: object = None
    arrived_at: object = None
    departed_at: object = None
    completed_at: object = None
    canceled_at: object = None
    customer_rating: Optional[int] = None
    complaint_flag: bool = False
    service_miles_final: Optional[int] = None
    wait_miles: int = 0
    cash_handling: bool = False
    business_account: bool = False

    @property
    def pk(self):
        return self.id


@dataclass
class FakeDriver:
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    tier: str = 'STANDARD'
    hourly_rate_cents: int = 2000
    bonus_enabled: bool = True
    bonus_5star_cents: int = 500
    performance_metrics: dict = field(default_factory=dict)

    @property
    def pk(self):
        return self.id


@dataclass
class FakeTimeLog:
    request_id: str
    driver_id: str
    start_time: object
    end_time: object = None
    active_minutes: Optional[int] = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))


@dataclass
class FakeEarnings:
    request_id: str
    driver_id: str
    amount_cents: int
    breakdown: dict
    status: str = 'pending'
    id: str = field(default_factory=lambda: str(uuid.uuid4()))


class InMemoryDeliveryStore(DeliveryStore):

    def __init__(self):
        self.requests = {}
        self.drivers = {}
        self.assignments = []
        self.time_logs = []
        self.earnings = []
        self.fail_on = None  # name of a write method that should blow up
        self._lock = threading.RLock()

    # Fixtures -----------------------------------------------------------

    def add_request(self, **kwargs) -> FakeRequest:
        request = FakeRequest(**kwargs)
        self.requests[request.id] = request
        return request

    def add_driver(self, **kwargs) -> FakeDriver:
        driver = FakeDriver(**kwargs)
        self.drivers[driver.id] = driver
        return driver

    def open_logs(self, request_id):
        return [log for log in self.time_logs if log.request_id == request_id and log.end_time is None]

    # Unit of work -------------------------------------------------------

    def _tables(self):
        return ('requests', 'drivers', 'assignments', 'time_logs', 'earnings')

    @contextmanager
    def atomic(self):
        with self._lock:
            snapshot = {name: copy.deepcopy(getattr(self, name)) for name in self._tables()}
            try:
                yield self
            except Exception:
                for name, value in snapshot.items():
                    setattr(self, name, value)
                raise

    def _maybe_fail(self, operation):
        if self.fail_on == operation:
            raise RuntimeError(f"simulated failure in {operation}")

    # Repository ---------------------------------------------------------

    def get_request_for_update(self, request_id):
        return self.requests.get(str(request_id))

    def update_request(self, request, **fields):
        self._maybe_fail('update_request')
        for name, value in fields.items():
            setattr(request, name, value)
        return request

    def create_assignment(self, request, driver_id, assigned_at):
        self._maybe_fail('create_assignment')
        row = {'request_id': request.id, 'driver_id': driver_id, 'assigned_at': assigned_at}
        self.assignments.append(row)
        return row

    def get_driver(self, driver_id, for_update: bool = False):
        return self.drivers.get(str(driver_id))

    def increment_completed_jobs(self, driver):
        self._maybe_fail('increment_completed_jobs')
        metrics = dict(driver.performance_metrics)
        metrics['completedJobs'] = metrics.get('completedJobs', 0) + 1
        driver.performance_metrics = metrics
        return driver

    def find_open_time_log(self, request_id, driver_id):
        for log in self.time_logs:
            if log.request_id == request_id and log.driver_id == driver_id and log.end_time is None:
                return log
        return None

    def create_time_log(self, request_id, driver_id, start_time):
        self._maybe_fail('create_time_log')
        log = FakeTimeLog(request_id=request_id, driver_id=driver_id, start_time=start_time)
        self.time_logs.append(log)
        return log

    def close_time_log(self, time_log, end_time, active_minutes: int):
        self._maybe_fail('close_time_log')
        time_log.end_time = end_time
        time_log.active_minutes = active_minutes
        return time_log

    def earnings_exist(self, request_id) -> bool:
        return any(row.request_id == request_id for row in self.earnings)

    def create_earnings(self, request_id, driver_id, amount_cents: int, breakdown: dict):
        self._maybe_fail('create_earnings')
        if self.earnings_exist(request_id):
            raise AlreadyCompleted("Earnings already created for this request")
        row = FakeEarnings(
            request_id=request_id,
            driver_id=driver_id,
            amount_cents=amount_cents,
            breakdown=breakdown,
        )
        self.earnings.append(row)
        return row
