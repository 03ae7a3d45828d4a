"""
OTW Disputes Tests
===================

Tests for:
1. Items snapshot builder
2. Dispute validation against the snapshot
3. Confirm / lock / dispute / resolve services
4. Confirmation & dispute API
"""

from decimal import Decimal

from django.contrib.auth import get_user_model
from django.test import SimpleTestCase, TestCase
from rest_framework import status
from rest_framework.test import APIClient

from core.exceptions import DisputeValidationError, InvalidState
from logistics.models import DeliveryRequest
from receipts.models import ReceiptStatus, ReceiptVerification
from disputes.models import DisputeStatus, OrderConfirmation
from disputes.order_confirmation import (
    build_items_snapshot, default_item_key, requires_evidence_for_dispute,
    should_mark_needs_info_for_dispute, snapshot_total,
    validate_disputed_items_against_snapshot,
)
from disputes.services import (
    LOCK_REASON, confirm_items, evaluate_lock, file_dispute, resolve_dispute,
)

User = get_user_model()

RECEIPT_ITEMS = [
    {'name': 'Burrito Bowl', 'quantity': 2, 'price': 10.75},
    {'name': 'Chips & Guac', 'quantity': 1, 'price': 4.95},
]

EVIDENCE = ['https://cdn.example.com/evidence/bag.jpg']


def claim(lookup, qty=1, reason='DAMAGED', **extra):
    return {'item_id_or_name': lookup, 'qty_disputed': qty, 'reason': reason, **extra}


# ==========================================
# Snapshot builder
# ==========================================

class TestItemsSnapshot(SimpleTestCase):

    def test_default_item_key(self):
        self.assertEqual(default_item_key('Chips & Guac', 1), 'chips-guac-2')
        self.assertEqual(default_item_key('Burrito Bowl', 0), 'burrito-bowl-1')
        self.assertEqual(default_item_key('!!!', 4), 'item-5')

    def test_receipt_lines(self):
        snapshot = build_items_snapshot(RECEIPT_ITEMS)

        self.assertEqual(snapshot, [
            {'item_key': 'burrito-bowl-1', 'name': 'Burrito Bowl', 'qty': 2, 'unit_price': 10.75},
            {'item_key': 'chips-guac-2', 'name': 'Chips & Guac', 'qty': 1, 'unit_price': 4.95},
        ])

    def test_field_aliases(self):
        snapshot = build_items_snapshot([
            {'itemName': 'Taco', 'count': '2', 'unitPrice': '3.505', 'note': ' extra salsa '},
            {'itemKey': 'sku-9', 'description': 'Soda', 'amount': 1.5},
        ])

        self.assertEqual(snapshot[0], {
            'item_key': 'taco-1', 'name': 'Taco', 'qty': 2, 'unit_price': 3.51, 'notes': 'extra salsa',
        })
        self.assertEqual(snapshot[1], {'item_key': 'sku-9', 'name': 'Soda', 'qty': 1, 'unit_price': 1.5})

    def test_unusable_entries_dropped(self):
        snapshot = build_items_snapshot([{'qty': 3}, 'Burger', {'name': 'Fries', 'qty': 0, 'price': -2}])

        # index of the original list is kept for the default key
        self.assertEqual(snapshot, [{'item_key': 'fries-3', 'name': 'Fries', 'qty': 1}])
        self.assertEqual(build_items_snapshot(None), [])
        self.assertEqual(build_items_snapshot({'name': 'Burger'}), [])

    def test_snapshot_total(self):
        snapshot = build_items_snapshot(RECEIPT_ITEMS + [{'name': 'Water'}])

        self.assertEqual(snapshot_total(snapshot), Decimal('26.45'))
        self.assertIsNone(snapshot_total([{'item_key': 'a-1', 'name': 'A', 'qty': 1}]))


# ==========================================
# Dispute validation
# ==========================================

class TestDisputeValidation(SimpleTestCase):

    def setUp(self):
        self.snapshot = build_items_snapshot([
            {'name': 'Burger', 'qty': 1},
            {'name': 'Fries', 'qty': 2},
        ])

    def test_unknown_item(self):
        result = validate_disputed_items_against_snapshot(self.snapshot, [claim('Pizza')])

        self.assertFalse(result.valid)
        self.assertEqual(result.errors, ['disputed_items[0] "Pizza" does not match any confirmed item'])
        self.assertEqual(result.normalized, [])

    def test_full_quantity_by_key(self):
        result = validate_disputed_items_against_snapshot(self.snapshot, [
            claim('burger-1', 1, 'MISSING'),
            claim('fries-2', 2, 'BAD_QUALITY', details='  cold  '),
        ])

        self.assertTrue(result.valid)
        self.assertEqual(result.errors, [])
        self.assertEqual(result.normalized, [
            {'item_key': 'burger-1', 'name': 'Burger', 'qty_disputed': 1, 'reason': 'MISSING'},
            {'item_key': 'fries-2', 'name': 'Fries', 'qty_disputed': 2, 'reason': 'BAD_QUALITY', 'details': 'cold'},
        ])

    def test_match_by_name(self):
        result = validate_disputed_items_against_snapshot(self.snapshot, [claim('  FRIES ')])

        self.assertTrue(result.valid)
        self.assertEqual(result.normalized[0]['item_key'], 'fries-2')

    def test_over_quantity(self):
        result = validate_disputed_items_against_snapshot(self.snapshot, [claim('Fries', 3)])

        self.assertFalse(result.valid)
        self.assertEqual(result.errors, ['disputed_items[0] qty_disputed exceeds confirmed quantity'])

    def test_all_errors_collected(self):
        result = validate_disputed_items_against_snapshot(self.snapshot, [
            claim('Burger'),
            claim('Pizza'),
            claim('Fries', 5),
            claim('Fries', 1, 'LATE'),
            'not a claim',
        ])

        self.assertFalse(result.valid)
        self.assertEqual(len(result.errors), 4)
        self.assertTrue(result.errors[0].startswith('disputed_items[1]'))
        self.assertTrue(result.errors[3].startswith('disputed_items[4]'))
        self.assertEqual(len(result.normalized), 1)

    def test_bad_quantity_type(self):
        result = validate_disputed_items_against_snapshot(self.snapshot, [claim('Burger', True), claim('Burger', 0)])

        self.assertEqual(len(result.errors), 2)

    def test_claims_on_same_item_share_quantity(self):
        result = validate_disputed_items_against_snapshot(self.snapshot, [
            claim('burger-1', 1, 'MISSING'),
            claim('Burger', 1, 'DAMAGED'),
        ])

        self.assertFalse(result.valid)
        self.assertEqual(result.errors, ['disputed_items[1] qty_disputed exceeds confirmed quantity'])
        self.assertEqual(len(result.normalized), 1)

    def test_split_claims_within_quantity(self):
        result = validate_disputed_items_against_snapshot(self.snapshot, [
            claim('fries-2', 1, 'MISSING'),
            claim('Fries', 1, 'DAMAGED'),
        ])

        self.assertTrue(result.valid)
        self.assertEqual(sum(item['qty_disputed'] for item in result.normalized), 2)

    def test_fuzzy_name(self):
        snapshot = build_items_snapshot(RECEIPT_ITEMS)

        result = validate_disputed_items_against_snapshot(snapshot, [claim('Burito Bowl')])

        self.assertTrue(result.valid)
        self.assertEqual(result.normalized[0]['item_key'], 'burrito-bowl-1')

    def test_ambiguous_fuzzy_name_rejected(self):
        snapshot = build_items_snapshot([
            {'name': 'Burrito Bowl', 'qty': 1},
            {'name': 'Burrito Bowls', 'qty': 1},
        ])

        result = validate_disputed_items_against_snapshot(snapshot, [claim('Burito Bowl')])

        self.assertFalse(result.valid)

    def test_evidence_rules(self):
        self.assertTrue(requires_evidence_for_dispute([{'reason': 'MISSING'}]))
        self.assertTrue(requires_evidence_for_dispute([{'reason': 'DAMAGED'}, {'reason': 'WRONG_ITEM'}]))
        self.assertFalse(requires_evidence_for_dispute([{'reason': 'BAD_QUALITY'}]))
        self.assertFalse(requires_evidence_for_dispute([]))

    def test_needs_info(self):
        self.assertTrue(should_mark_needs_info_for_dispute(False, [], []))
        self.assertTrue(should_mark_needs_info_for_dispute(False, [{'reason': 'DAMAGED'}], EVIDENCE))
        self.assertTrue(should_mark_needs_info_for_dispute(True, [{'reason': 'MISSING'}], []))
        self.assertFalse(should_mark_needs_info_for_dispute(True, [{'reason': 'MISSING'}], EVIDENCE))
        self.assertFalse(should_mark_needs_info_for_dispute(True, [{'reason': 'DAMAGED'}], []))


# ==========================================
# Services
# ==========================================

class DisputeServiceTestCase(TestCase):

    def setUp(self):
        self.customer = User.objects.create_user(username='customer', password='testpass123')
        self.staff = User.objects.create_user(username='ops', password='testpass123', is_staff=True)
        self.delivery_request = DeliveryRequest.objects.create(
            customer=self.customer,
            expected_vendor='Chipotle',
            receipt_items=RECEIPT_ITEMS,
        )

    def _verified_receipt(self, receipt_status=ReceiptStatus.APPROVED):
        return ReceiptVerification.objects.create(
            delivery_request=self.delivery_request,
            status=receipt_status,
            proof_score=90,
            item_match_score=100,
            locked=True,
        )

    def _lock(self):
        self._verified_receipt()
        confirm_items(self.delivery_request, self.customer)
        self.delivery_request.refresh_from_db()


class TestConfirmItems(DisputeServiceTestCase):

    def test_confirm_without_receipt(self):
        confirmation = confirm_items(self.delivery_request, self.customer)

        self.assertTrue(confirmation.customer_confirmed)
        self.assertIsNotNone(confirmation.confirmed_at)
        self.assertEqual(len(confirmation.items_snapshot), 2)
        self.assertEqual(confirmation.total_snapshot, Decimal('26.45'))
        self.assertIsNone(confirmation.receipt_verification)

        self.delivery_request.refresh_from_db()
        self.assertFalse(self.delivery_request.is_locked)
        self.assertFalse(evaluate_lock(self.delivery_request).locked)

    def test_confirm_with_verified_receipt_locks(self):
        verification = self._verified_receipt(ReceiptStatus.FLAGGED)

        confirmation = confirm_items(self.delivery_request, self.customer)

        self.assertEqual(confirmation.receipt_verification, verification)
        self.delivery_request.refresh_from_db()
        self.assertTrue(self.delivery_request.is_locked)
        self.assertEqual(self.delivery_request.lock_reason, LOCK_REASON)

        lock = evaluate_lock(self.delivery_request)
        self.assertTrue(lock.locked)
        self.assertEqual(lock.receipt_status, ReceiptStatus.FLAGGED)
        self.assertEqual(lock.refund_policy, 'LOCKED_REQUIRES_REVIEW')

    def test_rejected_receipt_does_not_lock(self):
        self._verified_receipt(ReceiptStatus.REJECTED)

        confirm_items(self.delivery_request, self.customer)

        lock = evaluate_lock(self.delivery_request)
        self.assertFalse(lock.locked)
        self.assertFalse(lock.receipt_verified)
        self.assertTrue(lock.customer_confirmed)
        self.assertEqual(lock.refund_policy, 'AUTO_ALLOWED')

    def test_submitted_items_win(self):
        confirmation = confirm_items(
            self.delivery_request, self.customer,
            items_snapshot=[{'name': 'Quesadilla', 'qty': 1, 'unit_price': 9.5}]
        )

        self.assertEqual(confirmation.items_snapshot, [
            {'item_key': 'quesadilla-1', 'name': 'Quesadilla', 'qty': 1, 'unit_price': 9.5},
        ])

    def test_nothing_to_confirm(self):
        self.delivery_request.receipt_items = []
        self.delivery_request.save()

        with self.assertRaises(DisputeValidationError):
            confirm_items(self.delivery_request, self.customer)
        self.assertFalse(OrderConfirmation.objects.exists())

    def test_reconfirm_keeps_snapshot(self):
        first = confirm_items(self.delivery_request, self.customer)
        self.delivery_request.receipt_items = [{'name': 'Burrito Bowl', 'quantity': 5, 'price': 10.75}]
        self.delivery_request.save()

        second = confirm_items(self.delivery_request, self.customer)

        self.assertEqual(OrderConfirmation.objects.count(), 1)
        self.assertEqual(second.items_snapshot, first.items_snapshot)
        self.assertEqual(second.total_snapshot, Decimal('26.45'))
        self.assertEqual(second.confirmed_at, first.confirmed_at)

    def test_resubmitting_same_items(self):
        items = [{'name': 'Quesadilla', 'qty': 1, 'unit_price': 9.5}]
        confirm_items(self.delivery_request, self.customer, items_snapshot=items)

        confirmation = confirm_items(self.delivery_request, self.customer, items_snapshot=items)

        self.assertEqual(confirmation.items_snapshot[0]['qty'], 1)

    def test_locked_snapshot_cannot_be_inflated(self):
        self._verified_receipt()
        confirm_items(self.delivery_request, self.customer)

        with self.assertRaises(InvalidState):
            confirm_items(
                self.delivery_request, self.customer,
                items_snapshot=[{'name': 'Burrito Bowl', 'qty': 10, 'unit_price': 50}]
            )

        confirmation = OrderConfirmation.objects.get(delivery_request=self.delivery_request)
        self.assertEqual(confirmation.items_snapshot[0]['qty'], 2)
        self.assertEqual(confirmation.total_snapshot, Decimal('26.45'))

        with self.assertRaises(DisputeValidationError):
            file_dispute(
                self.delivery_request, self.customer,
                [claim('Burrito Bowl', 10, 'DAMAGED')],
                dispute_notes='Crushed', evidence_urls=EVIDENCE,
            )

    def test_dispute_snapshot_is_kept_on_confirm(self):
        file_dispute(self.delivery_request, self.customer, [claim('Chips & Guac')])

        with self.assertRaises(InvalidState):
            confirm_items(
                self.delivery_request, self.customer,
                items_snapshot=[{'name': 'Chips & Guac', 'qty': 4}]
            )

        confirmation = confirm_items(self.delivery_request, self.customer)
        self.assertTrue(confirmation.customer_confirmed)
        self.assertEqual(len(confirmation.items_snapshot), 2)


class TestFileDispute(DisputeServiceTestCase):

    def test_unconfirmed_order_needs_info(self):
        confirmation = file_dispute(
            self.delivery_request, self.customer,
            [claim('Chips & Guac', 1, 'DAMAGED')],
            evidence_urls=EVIDENCE,
        )

        self.assertEqual(confirmation.dispute_status, DisputeStatus.NEEDS_INFO)
        self.assertEqual(confirmation.customer, self.customer)
        self.assertFalse(confirmation.customer_confirmed)
        self.assertEqual(confirmation.disputed_items[0]['item_key'], 'chips-guac-2')

    def test_confirmed_damaged_is_open(self):
        confirm_items(self.delivery_request, self.customer)

        confirmation = file_dispute(
            self.delivery_request, self.customer,
            [claim('Burrito Bowl', 1, 'DAMAGED')],
            dispute_notes=' lid broken ',
        )

        self.assertEqual(confirmation.dispute_status, DisputeStatus.OPEN)
        self.assertEqual(confirmation.dispute_notes, 'lid broken')
        self.assertIsNotNone(confirmation.disputed_at)
        self.assertTrue(confirmation.has_dispute)

    def test_missing_without_evidence_needs_info(self):
        confirm_items(self.delivery_request, self.customer)

        confirmation = file_dispute(
            self.delivery_request, self.customer,
            [claim('Burrito Bowl', 2, 'MISSING')]
        )

        self.assertEqual(confirmation.dispute_status, DisputeStatus.NEEDS_INFO)

    def test_evidence_urls_deduplicated(self):
        confirm_items(self.delivery_request, self.customer)

        confirmation = file_dispute(
            self.delivery_request, self.customer,
            [claim('Burrito Bowl', 1, 'MISSING')],
            evidence_urls=EVIDENCE + EVIDENCE,
        )

        self.assertEqual(confirmation.evidence_urls, EVIDENCE)
        self.assertEqual(confirmation.dispute_status, DisputeStatus.OPEN)

    def test_invalid_items_saves_nothing(self):
        confirm_items(self.delivery_request, self.customer)

        with self.assertRaises(DisputeValidationError) as ctx:
            file_dispute(
                self.delivery_request, self.customer,
                [claim('Pizza'), claim('Burrito Bowl', 3)]
            )

        self.assertEqual(ctx.exception.errors, [
            'disputed_items[0] "Pizza" does not match any confirmed item',
            'disputed_items[1] qty_disputed exceeds confirmed quantity',
        ])
        confirmation = OrderConfirmation.objects.get(delivery_request=self.delivery_request)
        self.assertEqual(confirmation.dispute_status, DisputeStatus.NONE)

    def test_no_items_anywhere(self):
        self.delivery_request.receipt_items = []
        self.delivery_request.save()

        with self.assertRaises(DisputeValidationError):
            file_dispute(self.delivery_request, self.customer, [claim('Burger')])


class TestLockedDispute(DisputeServiceTestCase):

    def setUp(self):
        super().setUp()
        self._lock()

    def test_notes_and_evidence_required(self):
        with self.assertRaises(DisputeValidationError) as ctx:
            file_dispute(self.delivery_request, self.customer, [claim('Burrito Bowl')])

        self.assertEqual(len(ctx.exception.errors), 2)

    def test_evidence_must_be_media(self):
        with self.assertRaises(DisputeValidationError) as ctx:
            file_dispute(
                self.delivery_request, self.customer,
                [claim('Burrito Bowl')],
                dispute_notes='Crushed',
                evidence_urls=['https://cdn.example.com/notes.exe'],
            )

        self.assertEqual(ctx.exception.errors, ['evidence_urls must point to image, video or PDF files'])

    def test_locked_dispute_accepted_once(self):
        items = [claim('Burrito Bowl', 1, 'MISSING')]
        urls = ['https://cdn.example.com/evidence/bag.PNG']

        confirmation = file_dispute(
            self.delivery_request, self.customer, items,
            dispute_notes='Only one bowl in the bag', evidence_urls=urls,
        )
        self.assertEqual(confirmation.dispute_status, DisputeStatus.OPEN)

        with self.assertRaises(InvalidState):
            file_dispute(
                self.delivery_request, self.customer, items,
                dispute_notes='Still missing', evidence_urls=urls,
            )


class TestResolveDispute(DisputeServiceTestCase):

    def setUp(self):
        super().setUp()
        confirm_items(self.delivery_request, self.customer)
        self.confirmation = file_dispute(
            self.delivery_request, self.customer,
            [claim('Chips & Guac', 1, 'DAMAGED')],
        )

    def test_approve_keeps_refund(self):
        confirmation = resolve_dispute(
            self.confirmation, 'APPROVED', notes='Refund chips',
            refund_amount=Decimal('4.95'), resolved_by=self.staff,
        )

        confirmation.refresh_from_db()
        self.assertEqual(confirmation.dispute_status, DisputeStatus.RESOLVED_APPROVED)
        self.assertEqual(confirmation.refund_amount, Decimal('4.95'))
        self.assertEqual(confirmation.resolved_by, self.staff)
        self.assertIsNotNone(confirmation.resolved_at)

    def test_deny_drops_refund(self):
        confirmation = resolve_dispute(self.confirmation, 'DENIED', refund_amount=Decimal('4.95'))

        self.assertEqual(confirmation.dispute_status, DisputeStatus.RESOLVED_DENIED)
        self.assertIsNone(confirmation.refund_amount)

    def test_needs_info_stays_open(self):
        confirmation = resolve_dispute(self.confirmation, 'NEEDS_INFO', resolved_by=self.staff)

        self.assertEqual(confirmation.dispute_status, DisputeStatus.NEEDS_INFO)
        self.assertIsNone(confirmation.resolved_at)
        self.assertIsNone(confirmation.resolved_by)

    def test_unknown_resolution(self):
        with self.assertRaises(DisputeValidationError):
            resolve_dispute(self.confirmation, 'MAYBE')

    def test_nothing_disputed(self):
        self.confirmation.disputed_items = []
        self.confirmation.save()

        with self.assertRaises(DisputeValidationError):
            resolve_dispute(self.confirmation, 'APPROVED')


# ==========================================
# API
# ==========================================

class TestDisputeAPI(DisputeServiceTestCase):

    def setUp(self):
        super().setUp()
        self.client = APIClient()
        self.client.force_authenticate(user=self.customer)
        self.confirm_url = f'/api/requests/{self.delivery_request.id}/confirm-items/'
        self.dispute_url = f'/api/requests/{self.delivery_request.id}/dispute/'

    def test_confirm_items(self):
        response = self.client.post(self.confirm_url, {'customer_confirmed': True}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['ok'])
        self.assertFalse(response.data['locked'])
        self.assertEqual(len(response.data['confirmation']['items_snapshot']), 2)

    def test_confirm_requires_true(self):
        response = self.client.post(self.confirm_url, {'customer_confirmed': False}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_confirm_other_customers_request(self):
        stranger = User.objects.create_user(username='stranger', password='testpass123')
        self.client.force_authenticate(user=stranger)

        response = self.client.post(self.confirm_url, {'customer_confirmed': True}, format='json')

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_confirm_locks_with_verified_receipt(self):
        self._verified_receipt()

        response = self.client.post(self.confirm_url, {'customer_confirmed': True}, format='json')

        self.assertTrue(response.data['locked'])
        self.assertEqual(response.data['refund_policy'], 'LOCKED_REQUIRES_REVIEW')

    def test_confirm_cannot_replace_snapshot(self):
        self.client.post(self.confirm_url, {'customer_confirmed': True}, format='json')

        response = self.client.post(self.confirm_url, {
            'customer_confirmed': True,
            'items_snapshot': [{'name': 'Burrito Bowl', 'qty': 10, 'unit_price': '50.00'}],
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['error'], 'INVALID_STATE')

    def test_dispute(self):
        self.client.post(self.confirm_url, {'customer_confirmed': True}, format='json')

        response = self.client.post(self.dispute_url, {
            'disputed_items': [claim('Chips & Guac', 1, 'BAD_QUALITY')],
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['dispute_status'], DisputeStatus.OPEN)

    def test_dispute_invalid_item(self):
        response = self.client.post(self.dispute_url, {
            'disputed_items': [claim('Pizza')],
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'INVALID_DISPUTE')
        self.assertEqual(len(response.data['details']), 1)

    def test_dispute_requires_items(self):
        response = self.client.post(self.dispute_url, {'disputed_items': []}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_resolve_staff_only(self):
        confirmation = file_dispute(self.delivery_request, self.customer, [claim('Burrito Bowl')])
        url = f'/api/disputes/{confirmation.id}/resolve/'

        response = self.client.post(url, {'resolution': 'DENIED'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(user=self.staff)
        response = self.client.post(url, {'resolution': 'DENIED', 'notes': 'Photo shows bowl'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['dispute_status'], DisputeStatus.RESOLVED_DENIED)
