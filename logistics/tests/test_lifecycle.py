"""
OTW Lifecycle Tests (in-memory store)
======================================

Tests for:
1. accept (including the two-driver race)
2. arrive / depart guards
3. complete: time log close, pay, single earnings row
4. all-or-nothing rollback
5. cancel
"""

import threading
from datetime import datetime, timedelta, timezone as dt_timezone

from django.test import SimpleTestCase

from core.exceptions import (
    AlreadyArrived, AlreadyCompleted, InvalidState, NotAssigned, NotFound,
)
from logistics.models import DeliveryRequestStatus
from logistics.services.lifecycle import (
    accept_delivery_request, cancel_delivery_request, complete_delivery_request,
    mark_driver_arrived, mark_driver_departed,
)
from logistics.tests.fakes import InMemoryDeliveryStore

T0 = datetime(2026, 3, 1, 12, 0, tzinfo=dt_timezone.utc)


class LifecycleTestMixin:

    def setUp(self):
        self.store = InMemoryDeliveryStore()
        self.driver = self.store.add_driver(tier='STANDARD', bonus_5star_cents=500)
        self.other_driver = self.store.add_driver(tier='ELITE')
        self.request = self.store.add_request(service_miles_final=12)

    def _accept(self, driver=None, at=T0):
        return accept_delivery_request(self.request.id, (driver or self.driver).id, store=self.store, now=at)

    def _arrive(self, driver=None, at=T0 + timedelta(minutes=5)):
        return mark_driver_arrived(self.request.id, (driver or self.driver).id, store=self.store, now=at)

    def _complete(self, driver=None, at=T0 + timedelta(minutes=35)):
        return complete_delivery_request(self.request.id, (driver or self.driver).id, store=self.store, now=at)

    def _current(self):
        return self.store.requests[self.request.id]


class TestAccept(LifecycleTestMixin, SimpleTestCase):

    def test_accept_assigns_driver(self):
        request = self._accept()
        self.assertEqual(request.status, DeliveryRequestStatus.ASSIGNED)
        self.assertEqual(request.assigned_driver_id, self.driver.id)
        self.assertEqual(request.assigned_at, T0)
        self.assertEqual(len(self.store.assignments), 1)

    def test_accept_unknown_request(self):
        with self.assertRaises(NotFound):
            accept_delivery_request('missing', self.driver.id, store=self.store)

    def test_accept_unknown_driver(self):
        with self.assertRaises(NotFound):
            accept_delivery_request(self.request.id, 'ghost', store=self.store)
        self.assertEqual(self._current().status, DeliveryRequestStatus.REQUESTED)

    def test_second_accept_loses_with_invalid_state(self):
        """Two drivers racing: exactly one wins, the other sees InvalidState."""
        self._accept()
        with self.assertRaises(InvalidState):
            self._accept(driver=self.other_driver)

        self.assertEqual(self._current().assigned_driver_id, self.driver.id)
        self.assertEqual(len(self.store.assignments), 1)

    def test_concurrent_accepts_have_one_winner(self):
        barrier = threading.Barrier(2)
        outcomes = []

        def attempt(driver):
            barrier.wait()
            try:
                accept_delivery_request(self.request.id, driver.id, store=self.store)
                outcomes.append('won')
            except InvalidState:
                outcomes.append('lost')

        threads = [threading.Thread(target=attempt, args=(d,)) for d in (self.driver, self.other_driver)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(sorted(outcomes), ['lost', 'won'])
        self.assertEqual(len(self.store.assignments), 1)


class TestArriveAndDepart(LifecycleTestMixin, SimpleTestCase):

    def test_arrive_opens_time_log(self):
        self._accept()
        request = self._arrive()
        self.assertEqual(request.status, DeliveryRequestStatus.PICKED_UP)
        self.assertEqual(request.arrived_at, T0 + timedelta(minutes=5))
        logs = self.store.open_logs(self.request.id)
        self.assertEqual(len(logs), 1)
        self.assertEqual(logs[0].start_time, T0 + timedelta(minutes=5))

    def test_arrive_twice_fails_without_second_log(self):
        self._accept()
        self._arrive()
        with self.assertRaises(AlreadyArrived):
            self._arrive()
        self.assertEqual(len(self.store.time_logs), 1)

    def test_arrive_by_other_driver_is_refused(self):
        self._accept()
        with self.assertRaises(NotAssigned):
            self._arrive(driver=self.other_driver)
        self.assertEqual(self.store.time_logs, [])

    def test_arrive_before_accept_is_refused(self):
        with self.assertRaises(NotAssigned):
            self._arrive()

    def test_depart_moves_to_en_route(self):
        self._accept()
        self._arrive()
        request = mark_driver_departed(self.request.id, self.driver.id, store=self.store)
        self.assertEqual(request.status, DeliveryRequestStatus.EN_ROUTE)
        self.assertEqual(len(self.store.open_logs(self.request.id)), 1)

    def test_depart_before_arrival_is_invalid(self):
        self._accept()
        with self.assertRaises(InvalidState):
            mark_driver_departed(self.request.id, self.driver.id, store=self.store)


class TestComplete(LifecycleTestMixin, SimpleTestCase):

    def _ready(self):
        self._accept()
        self._arrive(at=T0)

    def test_complete_settles_pay_once(self):
        self._ready()
        result = self._complete(at=T0 + timedelta(minutes=30, seconds=1))

        self.assertEqual(result.request.status, DeliveryRequestStatus.DELIVERED)
        self.assertEqual(result.request.completed_at, T0 + timedelta(minutes=30, seconds=1))
        # 30m01s rounds up
        self.assertEqual(result.active_minutes, 31)
        self.assertEqual(self.store.time_logs[0].active_minutes, 31)
        self.assertIsNotNone(self.store.time_logs[0].end_time)

        self.assertEqual(len(self.store.earnings), 1)
        self.assertEqual(self.store.earnings[0].status, 'pending')
        # 12 Service Miles at STANDARD 175
        self.assertEqual(result.pay.mile_pay_cents, 2100)
        self.assertEqual(self.store.earnings[0].amount_cents, 2100)
        self.assertEqual(self.driver.performance_metrics['completedJobs'], 1)

    def test_complete_from_en_route(self):
        self._ready()
        mark_driver_departed(self.request.id, self.driver.id, store=self.store)
        result = self._complete()
        self.assertEqual(result.request.status, DeliveryRequestStatus.DELIVERED)

    def test_complete_twice_creates_one_earnings_row(self):
        self._ready()
        self._complete()
        with self.assertRaises(AlreadyCompleted):
            self._complete()
        self.assertEqual(len(self.store.earnings), 1)
        self.assertEqual(self.driver.performance_metrics['completedJobs'], 1)

    def test_complete_before_arrival_is_invalid(self):
        self._accept()
        with self.assertRaises(InvalidState):
            self._complete()
        self.assertEqual(self.store.earnings, [])

    def test_complete_by_other_driver_is_refused(self):
        self._ready()
        with self.assertRaises(NotAssigned):
            self._complete(driver=self.other_driver)

    def test_existing_earnings_blocks_completion(self):
        self._ready()
        self.store.create_earnings(self.request.id, self.driver.id, 100, {})
        with self.assertRaises(AlreadyCompleted):
            self._complete()
        self.assertEqual(len(self.store.open_logs(self.request.id)), 1)

    def test_five_star_bonus_applied(self):
        self.request.customer_rating = 5
        self._ready()
        result = self._complete()
        self.assertEqual(result.pay.bonus_pay_cents, 500)
        self.assertEqual(result.pay.total_pay_cents, 2600)

    def test_complaint_cancels_bonus(self):
        self.request.customer_rating = 5
        self.request.complaint_flag = True
        self._ready()
        result = self._complete()
        self.assertEqual(result.pay.bonus_pay_cents, 0)

    def test_bonus_disabled_driver_gets_no_bonus(self):
        self.request.customer_rating = 5
        self.driver.bonus_enabled = False
        self._ready()
        self.assertEqual(self._complete().pay.bonus_pay_cents, 0)

    def test_request_adders_reach_the_calculator(self):
        self.request.wait_miles = 5
        self.request.cash_handling = True
        self.request.business_account = True
        self._ready()
        pay = self._complete().pay
        self.assertEqual(pay.wait_bonus_cents, 150)
        self.assertEqual(pay.cash_bonus_cents, 750)
        self.assertEqual(pay.business_bonus_cents, 500)
        self.assertEqual(pay.total_pay_cents, 2100 + 150 + 750 + 500)

    def test_hourly_pay_without_service_miles(self):
        self.request.service_miles_final = None
        self._ready()
        result = self._complete(at=T0 + timedelta(minutes=90))
        self.assertEqual(result.pay.mile_pay_cents, 0)
        self.assertEqual(result.pay.hourly_pay_cents, 3000)
        self.assertEqual(result.pay.total_pay_cents, 3000)

    def test_failure_rolls_back_everything(self):
        self._ready()
        self.store.fail_on = 'increment_completed_jobs'

        with self.assertRaises(RuntimeError):
            self._complete()

        current = self._current()
        self.assertEqual(current.status, DeliveryRequestStatus.PICKED_UP)
        self.assertIsNone(current.completed_at)
        self.assertEqual(self.store.earnings, [])
        self.assertEqual(len(self.store.open_logs(self.request.id)), 1)

        # Retry after the fault clears succeeds exactly once
        self.store.fail_on = None
        self._complete()
        self.assertEqual(len(self.store.earnings), 1)


class TestCancel(LifecycleTestMixin, SimpleTestCase):

    def test_cancel_requested(self):
        request = cancel_delivery_request(self.request.id, store=self.store, now=T0)
        self.assertEqual(request.status, DeliveryRequestStatus.CANCELED)
        self.assertEqual(request.canceled_at, T0)

    def test_cancel_closes_time_log_without_pay(self):
        self._accept()
        self._arrive(at=T0)
        request = cancel_delivery_request(
            self.request.id, self.driver.id, store=self.store, now=T0 + timedelta(minutes=10)
        )
        self.assertEqual(request.status, DeliveryRequestStatus.CANCELED)
        self.assertIsNone(request.assigned_driver_id)
        self.assertEqual(self.store.time_logs[0].active_minutes, 10)
        self.assertEqual(self.store.earnings, [])

    def test_cancel_delivered_is_invalid(self):
        self._accept()
        self._arrive()
        self._complete()
        with self.assertRaises(InvalidState):
            cancel_delivery_request(self.request.id, store=self.store)

    def test_cancel_by_unassigned_driver_is_refused(self):
        self._accept()
        with self.assertRaises(NotAssigned):
            cancel_delivery_request(self.request.id, self.other_driver.id, store=self.store)
