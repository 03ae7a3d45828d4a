"""
E2E Tests for OTW Delivery Flow (ORM-backed store)

Tests the complete flow: request → accept → arrive → depart → complete → earnings
"""

from datetime import timedelta
from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction
from django.test import TestCase
from django.utils import timezone

from core.exceptions import AlreadyCompleted, InvalidState, NotFound
from core.models import DriverProfile
from finance.models import DriverEarnings, DriverEarningStatus
from logistics.models import DeliveryRequest, DeliveryRequestStatus, DriverAssignment, DriverTimeLog
from logistics.services.lifecycle import (
    accept_delivery_request, cancel_delivery_request, complete_delivery_request,
    mark_driver_arrived, mark_driver_departed,
)
from logistics.services.store import DjangoDeliveryStore

User = get_user_model()


class E2EDeliveryFlowTest(TestCase):
    """
    End-to-end tests for the delivery lifecycle against the database.
    """

    def setUp(self):
        """Set up test data."""
        self.customer = User.objects.create_user(username='customer', password='testpass123')
        driver_user = User.objects.create_user(username='driver', password='testpass123')
        self.driver = DriverProfile.objects.create(
            user=driver_user,
            display_name='Test Driver',
            tier='STANDARD',
            bonus_5star_cents=500,
        )
        self.request = DeliveryRequest.objects.create(
            customer=self.customer,
            service_miles_final=12,
            customer_rating=5,
        )
        self.t0 = timezone.now()

    def _run_to_delivered(self):
        accept_delivery_request(self.request.id, self.driver.id, now=self.t0)
        mark_driver_arrived(self.request.id, self.driver.id, now=self.t0 + timedelta(minutes=5))
        mark_driver_departed(self.request.id, self.driver.id, now=self.t0 + timedelta(minutes=15))
        return complete_delivery_request(
            self.request.id, self.driver.id, now=self.t0 + timedelta(minutes=35)
        )

    def test_full_delivery_flow(self):
        """
        Flow: Accept → Arrive → Depart → Complete → one pending earnings row
        """
        result = self._run_to_delivered()

        self.request.refresh_from_db()
        self.driver.refresh_from_db()

        self.assertEqual(self.request.status, DeliveryRequestStatus.DELIVERED)
        self.assertIsNotNone(self.request.completed_at)
        self.assertEqual(DriverAssignment.objects.filter(delivery_request=self.request).count(), 1)

        log = DriverTimeLog.objects.get(delivery_request=self.request)
        self.assertIsNotNone(log.end_time)
        self.assertEqual(log.active_minutes, 30)

        earnings = DriverEarnings.objects.get(request=self.request)
        self.assertEqual(earnings.pk, result.earnings.pk)
        self.assertEqual(earnings.status, DriverEarningStatus.PENDING)
        # 12 miles * 175 + 500 five-star bonus
        self.assertEqual(earnings.amount_cents, 2600)
        self.assertEqual(earnings.breakdown['mile_pay_cents'], 2100)
        self.assertEqual(self.driver.completed_jobs, 1)

    def test_complete_twice_creates_single_earnings(self):
        """Second completion is refused and leaves exactly one earnings row."""
        self._run_to_delivered()

        with self.assertRaises(AlreadyCompleted):
            complete_delivery_request(self.request.id, self.driver.id)

        self.assertEqual(DriverEarnings.objects.filter(request=self.request).count(), 1)
        self.driver.refresh_from_db()
        self.assertEqual(self.driver.completed_jobs, 1)

    def test_failure_rolls_back_everything(self):
        """An error after the time log is closed leaves no trace at all."""
        accept_delivery_request(self.request.id, self.driver.id, now=self.t0)
        mark_driver_arrived(self.request.id, self.driver.id, now=self.t0 + timedelta(minutes=5))

        with patch.object(DjangoDeliveryStore, 'increment_completed_jobs', side_effect=RuntimeError('boom')):
            with self.assertRaises(RuntimeError):
                complete_delivery_request(self.request.id, self.driver.id)

        self.request.refresh_from_db()
        self.assertEqual(self.request.status, DeliveryRequestStatus.PICKED_UP)
        self.assertIsNone(self.request.completed_at)
        self.assertFalse(DriverEarnings.objects.filter(request=self.request).exists())
        self.assertTrue(
            DriverTimeLog.objects.filter(delivery_request=self.request, end_time__isnull=True).exists()
        )

    def test_unknown_request_id_is_not_found(self):
        with self.assertRaises(NotFound):
            accept_delivery_request('not-a-uuid', self.driver.id)

    def test_cancel_after_arrival_closes_log_without_earnings(self):
        accept_delivery_request(self.request.id, self.driver.id, now=self.t0)
        mark_driver_arrived(self.request.id, self.driver.id, now=self.t0 + timedelta(minutes=5))

        cancel_delivery_request(self.request.id, now=self.t0 + timedelta(minutes=9))

        self.request.refresh_from_db()
        self.assertEqual(self.request.status, DeliveryRequestStatus.CANCELED)
        self.assertIsNone(self.request.assigned_driver_id)
        self.assertEqual(DriverTimeLog.objects.get(delivery_request=self.request).active_minutes, 4)
        self.assertFalse(DriverEarnings.objects.exists())

        with self.assertRaises(InvalidState):
            cancel_delivery_request(self.request.id)


class DatabaseConstraintTest(TestCase):
    """The schema itself refuses double pay and double open logs."""

    def setUp(self):
        customer = User.objects.create_user(username='c', password='x')
        self.driver = DriverProfile.objects.create(
            user=User.objects.create_user(username='d', password='x')
        )
        self.request = DeliveryRequest.objects.create(customer=customer)

    def test_earnings_are_unique_per_request(self):
        DriverEarnings.objects.create(driver=self.driver, request=self.request, amount_cents=100)
        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                DriverEarnings.objects.create(driver=self.driver, request=self.request, amount_cents=200)

    def test_store_maps_duplicate_earnings_to_domain_error(self):
        store = DjangoDeliveryStore()
        store.create_earnings(self.request.pk, self.driver.pk, 100, {})
        with self.assertRaises(AlreadyCompleted):
            store.create_earnings(self.request.pk, self.driver.pk, 100, {})

    def test_single_open_time_log_per_driver_and_request(self):
        now = timezone.now()
        DriverTimeLog.objects.create(delivery_request=self.request, driver=self.driver, start_time=now)
        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                DriverTimeLog.objects.create(delivery_request=self.request, driver=self.driver, start_time=now)

    def test_closed_logs_do_not_count_as_open(self):
        now = timezone.now()
        DriverTimeLog.objects.create(
            delivery_request=self.request, driver=self.driver,
            start_time=now, end_time=now, active_minutes=0,
        )
        DriverTimeLog.objects.create(delivery_request=self.request, driver=self.driver, start_time=now)
        self.assertEqual(DriverTimeLog.objects.filter(end_time__isnull=True).count(), 1)

    def test_new_driver_profile_defaults(self):
        self.assertEqual(self.driver.tier, 'PROBATION')
        self.assertEqual(self.driver.hourly_rate_cents, 2000)
        self.assertEqual(self.driver.bonus_5star_cents, 500)
        self.assertTrue(self.driver.bonus_enabled)
        self.assertEqual(self.driver.completed_jobs, 0)
