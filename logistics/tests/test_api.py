"""
OTW Delivery Request API Tests
===============================

Tests for:
1. Role-scoped listing
2. Driver lifecycle actions and error payloads
3. Cancel permissions
"""

from django.contrib.auth import get_user_model
from django.test import TestCase
from rest_framework import status
from rest_framework.test import APIClient

from core.models import DriverProfile
from finance.models import DriverEarnings
from logistics.models import DeliveryRequest, DeliveryRequestStatus

User = get_user_model()


class DeliveryRequestAPITest(TestCase):

    def setUp(self):
        self.client = APIClient()
        self.customer = User.objects.create_user(username='customer', password='testpass123')
        self.stranger = User.objects.create_user(username='stranger', password='testpass123')

        self.driver_user = User.objects.create_user(username='driver', password='testpass123')
        self.driver = DriverProfile.objects.create(user=self.driver_user, tier='STANDARD')

        self.other_driver_user = User.objects.create_user(username='driver2', password='testpass123')
        self.other_driver = DriverProfile.objects.create(user=self.other_driver_user, tier='ELITE')

        self.delivery_request = DeliveryRequest.objects.create(customer=self.customer, service_miles_final=4)

    def _url(self, action=None):
        base = f'/api/requests/{self.delivery_request.id}/'
        return f'{base}{action}/' if action else base

    # ==========================================
    # Listing
    # ==========================================

    def test_anonymous_is_rejected(self):
        response = self.client.get('/api/requests/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_customer_sees_own_requests_only(self):
        DeliveryRequest.objects.create(customer=self.stranger)
        self.client.force_authenticate(self.customer)

        response = self.client.get('/api/requests/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        ids = [row['id'] for row in response.data['results']]
        self.assertEqual(ids, [str(self.delivery_request.id)])

    def test_driver_sees_open_requests(self):
        self.client.force_authenticate(self.driver_user)
        response = self.client.get('/api/requests/')
        self.assertEqual(response.data['count'], 1)

    # ==========================================
    # Driver actions
    # ==========================================

    def test_full_lifecycle_through_api(self):
        self.client.force_authenticate(self.driver_user)

        for action in ('accept', 'arrive', 'depart'):
            response = self.client.post(self._url(action))
            self.assertEqual(response.status_code, status.HTTP_200_OK, action)

        response = self.client.post(self._url('complete'))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['request']['status'], DeliveryRequestStatus.DELIVERED)
        self.assertEqual(response.data['pay']['mile_pay_cents'], 4 * 175)
        self.assertTrue(DriverEarnings.objects.filter(pk=response.data['earnings_id']).exists())
        self.assertTrue(response.data['request']['is_terminal'])
        self.assertEqual(len(response.data['request']['time_logs']), 1)
        self.assertIsNotNone(response.data['request']['time_logs'][0]['end_time'])

    def test_detail_shows_open_time_log(self):
        self.client.force_authenticate(self.driver_user)
        self.client.post(self._url('accept'))
        self.client.post(self._url('arrive'))

        response = self.client.get(self._url())

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['is_terminal'])
        [time_log] = response.data['time_logs']
        self.assertEqual(time_log['driver'], self.driver.pk)
        self.assertIsNone(time_log['end_time'])
        self.assertIsNone(time_log['active_minutes'])

    def test_customer_cannot_accept(self):
        self.client.force_authenticate(self.customer)
        response = self.client.post(self._url('accept'))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_second_driver_gets_invalid_state(self):
        self.client.force_authenticate(self.driver_user)
        self.client.post(self._url('accept'))

        self.client.force_authenticate(self.other_driver_user)
        response = self.client.post(self._url('accept'))

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['error'], 'INVALID_STATE')

    def test_arrive_by_other_driver_is_not_assigned(self):
        self.client.force_authenticate(self.driver_user)
        self.client.post(self._url('accept'))

        self.client.force_authenticate(self.other_driver_user)
        response = self.client.post(self._url('arrive'))

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data['error'], 'NOT_ASSIGNED')

    def test_double_arrive_conflicts(self):
        self.client.force_authenticate(self.driver_user)
        self.client.post(self._url('accept'))
        self.client.post(self._url('arrive'))

        response = self.client.post(self._url('arrive'))

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['error'], 'ALREADY_ARRIVED')

    # ==========================================
    # Cancel
    # ==========================================

    def test_customer_cancels_own_request(self):
        self.client.force_authenticate(self.customer)
        response = self.client.post(self._url('cancel'))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], DeliveryRequestStatus.CANCELED)

    def test_stranger_cannot_cancel(self):
        self.client.force_authenticate(self.stranger)
        response = self.client.post(self._url('cancel'))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_unassigned_driver_cannot_cancel(self):
        self.client.force_authenticate(self.driver_user)
        self.client.post(self._url('accept'))

        self.client.force_authenticate(self.other_driver_user)
        response = self.client.post(self._url('cancel'))

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.delivery_request.refresh_from_db()
        self.assertEqual(self.delivery_request.status, DeliveryRequestStatus.ASSIGNED)
