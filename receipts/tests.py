"""
OTW Receipts Tests
===================

Tests for:
1. Proof-scoring engine (sub-scores, weighting, verdict, lock)
2. Receipt text parser
3. Verification service & OCR task
4. Receipt verify API
"""

from decimal import Decimal
from unittest.mock import patch, MagicMock

import requests
from django.contrib.auth import get_user_model
from django.test import SimpleTestCase, TestCase, override_settings
from rest_framework import status
from rest_framework.test import APIClient

from core.exceptions import InvalidState
from core.models import DriverProfile
from logistics.models import DeliveryRequest
from receipts.models import ReceiptStatus, ReceiptVerification
from receipts.ocr_service import OcrClient, OcrError
from receipts.parser import parse_receipt_text
from receipts.proof_score import (
    compute_proof_score, image_quality_from_confidence, item_match_score,
    normalize_confidence, total_match_score, vendor_match_score,
)
from receipts.services import queue_receipt_image, verify_receipt
from receipts.tasks import process_receipt_verification

User = get_user_model()

EXPECTED_ITEMS = [
    {'name': 'Burrito Bowl', 'quantity': 2, 'price': 10.75},
    {'name': 'Chips & Guac', 'quantity': 1, 'price': 4.95},
]

RECEIPT_TEXT = """
CHIPOTLE MEXICAN GRILL
1250 Main Street
Springfield IL 62701
Tel 555-0100
2 Burrito Bowl 10.75
1 Chips & Guac 4.95
SUBTOTAL 26.45
TAX 2.12
TOTAL $28.57
VISA 28.57
Thank you for visiting
"""


# ==========================================
# Proof scoring
# ==========================================

class TestSubScores(SimpleTestCase):

    def test_confidence_scales(self):
        self.assertEqual(normalize_confidence(0.93), Decimal('93.00'))
        self.assertEqual(normalize_confidence(87), Decimal('87'))
        self.assertEqual(normalize_confidence(-1), 0)
        self.assertEqual(normalize_confidence(250), 0)
        self.assertEqual(normalize_confidence(None), 0)

    def test_image_quality_rounds_half_up(self):
        self.assertEqual(image_quality_from_confidence(0.925), 93)
        self.assertEqual(image_quality_from_confidence(None), 0)

    def test_vendor_match(self):
        self.assertEqual(vendor_match_score("Wendy's Store #4411", "Wendy's"), 100)
        self.assertEqual(vendor_match_score('Chipotle #22', 'CHIPOTLE'), 100)
        self.assertEqual(vendor_match_score(None, 'Chipotle'), 0)
        self.assertLess(vendor_match_score('Taco Bell', 'Chipotle'), 30)

    def test_total_bands(self):
        self.assertEqual(total_match_score(Decimal('20.00'), Decimal('20.99')), 100)
        self.assertEqual(total_match_score(24, 20), 75)
        self.assertEqual(total_match_score(30, 20), 50)
        self.assertEqual(total_match_score(50, 20), 25)
        self.assertIsNone(total_match_score(None, 20))

    def test_item_match_exact(self):
        self.assertEqual(item_match_score(EXPECTED_ITEMS, EXPECTED_ITEMS), 100)

    def test_item_match_empty_lists(self):
        self.assertEqual(item_match_score([], EXPECTED_ITEMS), 0)
        self.assertEqual(item_match_score(EXPECTED_ITEMS, []), 0)

    def test_item_match_partial(self):
        # Burrito Bowl exact (100), Chips & Guac unmatched (0)
        extracted = [{'name': 'Burrito Bowl', 'quantity': 2, 'price': 10.75}]
        self.assertEqual(item_match_score(extracted, EXPECTED_ITEMS), 50)

    def test_item_without_price_is_not_penalised(self):
        self.assertEqual(item_match_score([{'name': 'Latte', 'quantity': 1, 'price': 5}], ['Latte']), 100)


class TestComputeProofScore(SimpleTestCase):

    def test_perfect_receipt_is_approved_and_locked(self):
        result = compute_proof_score(
            merchant_name='Chipotle',
            total_amount=Decimal('26.45'),
            items=EXPECTED_ITEMS,
            expected_vendor='Chipotle',
            expected_total=Decimal('26.45'),
            expected_items=EXPECTED_ITEMS,
        )
        self.assertEqual(result.item_match_score, 100)
        self.assertEqual(result.proof_score, 100)
        self.assertEqual(result.status, ReceiptStatus.APPROVED)
        self.assertTrue(result.locked)

    def test_weights_renormalise_over_present_factors(self):
        # confidence 90 (0.4) + image 90 (0.1) only -> 90
        result = compute_proof_score(confidence_score=0.9)
        self.assertEqual(result.proof_score, 90)
        self.assertIsNone(result.tamper_score)

    def test_missing_expected_total_drops_its_weight(self):
        result = compute_proof_score(merchant_name='Chipotle', expected_vendor='Chipotle', total_amount=10)
        self.assertEqual(result.proof_score, 100)

    def test_tamper_score_counts_when_supplied(self):
        result = compute_proof_score(confidence_score=100, tamper_score=0)
        # (100*0.4 + 100*0.1 + 0*0.1) / 0.6
        self.assertEqual(result.proof_score, 83)
        self.assertEqual(result.tamper_score, 0)

    def test_nothing_present_scores_zero(self):
        result = compute_proof_score()
        self.assertEqual(result.proof_score, 0)
        self.assertEqual(result.status, ReceiptStatus.REJECTED)
        self.assertFalse(result.locked)

    def test_poor_item_match_downgrades_approval(self):
        result = compute_proof_score(
            merchant_name='Chipotle',
            expected_vendor='Chipotle',
            items=[{'name': 'Quesadilla', 'quantity': 3, 'price': 9}],
            expected_items=EXPECTED_ITEMS,
        )
        self.assertEqual(result.proof_score, 100)
        self.assertLess(result.item_match_score, 50)
        self.assertEqual(result.status, ReceiptStatus.FLAGGED)
        self.assertFalse(result.locked)

    def test_flagged_band(self):
        # vendor 100 (0.2) + total 25 (0.2) -> 62.5 -> 63
        result = compute_proof_score(
            merchant_name='Chipotle', expected_vendor='Chipotle',
            total_amount=100, expected_total=20,
            items=EXPECTED_ITEMS, expected_items=EXPECTED_ITEMS,
        )
        self.assertEqual(result.proof_score, 63)
        self.assertEqual(result.status, ReceiptStatus.FLAGGED)
        self.assertTrue(result.locked)

    def test_garbage_inputs_never_raise(self):
        result = compute_proof_score(
            merchant_name=None, total_amount='n/a', confidence_score=float('nan'),
            items='not a list', expected_items={'bad': 'shape'}, tamper_score='x',
        )
        self.assertEqual(result.proof_score, 0)


# ==========================================
# Parser
# ==========================================

class TestParseReceiptText(SimpleTestCase):

    def test_parses_vendor_location_items_total(self):
        parsed = parse_receipt_text(RECEIPT_TEXT)

        self.assertEqual(parsed['vendor_name'], 'CHIPOTLE MEXICAN GRILL')
        self.assertEqual(parsed['location'], '1250 Main Street, Springfield IL 62701')
        self.assertEqual(parsed['total'], Decimal('28.57'))
        self.assertEqual(parsed['items'], [
            {'name': 'Burrito Bowl', 'quantity': 2, 'price': Decimal('10.75')},
            {'name': 'Chips & Guac', 'quantity': 1, 'price': Decimal('4.95')},
        ])

    def test_quantity_defaults_to_one(self):
        parsed = parse_receipt_text("Corner Deli\nTurkey Club 8.99")
        self.assertEqual(parsed['items'][0]['quantity'], 1)

    def test_empty_text(self):
        self.assertEqual(parse_receipt_text(''), {'vendor_name': '', 'location': '', 'items': [], 'total': None})


# ==========================================
# Service & task
# ==========================================

class ReceiptServiceTestMixin:

    def setUp(self):
        self.customer = User.objects.create_user(username='customer', password='testpass123')
        self.driver_user = User.objects.create_user(username='driver', password='testpass123')
        self.driver = DriverProfile.objects.create(user=self.driver_user, tier='STANDARD')
        self.delivery_request = DeliveryRequest.objects.create(
            customer=self.customer,
            assigned_driver=self.driver,
            status='PICKED_UP',
            expected_vendor='Chipotle',
            expected_total=Decimal('28.57'),
            expected_items=EXPECTED_ITEMS,
        )


class TestVerifyReceipt(ReceiptServiceTestMixin, TestCase):

    def test_verify_from_raw_text(self):
        verification = verify_receipt(self.delivery_request, raw_text=RECEIPT_TEXT, confidence_score=0.95)

        verification.refresh_from_db()
        self.assertEqual(verification.merchant_name, 'CHIPOTLE MEXICAN GRILL')
        self.assertEqual(verification.extracted_total, Decimal('28.57'))
        self.assertEqual(verification.item_match_score, 100)
        self.assertEqual(verification.status, ReceiptStatus.APPROVED)
        self.assertTrue(verification.locked)

        self.delivery_request.refresh_from_db()
        self.assertEqual(self.delivery_request.receipt_items[0]['name'], 'Burrito Bowl')

    def test_locked_receipt_cannot_be_resubmitted(self):
        verify_receipt(self.delivery_request, raw_text=RECEIPT_TEXT, confidence_score=0.95)

        with self.assertRaises(InvalidState):
            verify_receipt(self.delivery_request, merchant_name='Other')

    def test_rejected_receipt_can_be_resubmitted(self):
        first = verify_receipt(self.delivery_request, merchant_name='Taco Bell', total_amount=Decimal('99.00'))
        self.assertEqual(first.status, ReceiptStatus.REJECTED)

        second = verify_receipt(self.delivery_request, raw_text=RECEIPT_TEXT, confidence_score=0.95)
        self.assertEqual(second.status, ReceiptStatus.APPROVED)

    @override_settings(RECEIPT_TAMPER_DETECTOR='receipts.tests.always_tampered')
    def test_configured_tamper_detector_is_used(self):
        verification = verify_receipt(self.delivery_request, merchant_name='Chipotle')
        self.assertEqual(verification.tamper_score, 0)
        # vendor 100 (0.2) + tamper 0 (0.1) -> 67
        self.assertEqual(verification.proof_score, 67)


def always_tampered(verification):
    return 0


class TestReceiptTask(ReceiptServiceTestMixin, TestCase):

    def _pending(self):
        return ReceiptVerification.objects.create(
            delivery_request=self.delivery_request,
            image_url='https://cdn.example.com/r.jpg',
        )

    @patch.object(OcrClient, 'extract')
    def test_task_extracts_and_scores(self, mock_extract):
        mock_extract.return_value = {'text': RECEIPT_TEXT, 'confidence': 0.9}
        verification = self._pending()

        outcome = process_receipt_verification(str(verification.pk))

        verification.refresh_from_db()
        self.assertEqual(outcome, ReceiptStatus.APPROVED)
        self.assertEqual(verification.status, ReceiptStatus.APPROVED)
        self.assertEqual(verification.confidence_score, 0.9)
        mock_extract.assert_called_once_with('https://cdn.example.com/r.jpg')

    @patch.object(OcrClient, 'extract', side_effect=requests.ConnectionError('ocr down'))
    def test_network_failure_keeps_pending(self, mock_extract):
        verification = self._pending()

        with self.assertRaises(requests.ConnectionError):
            process_receipt_verification(str(verification.pk))

        verification.refresh_from_db()
        self.assertEqual(verification.status, ReceiptStatus.PENDING)
        self.assertIn('ocr down', verification.error_message)

    @patch.object(OcrClient, 'extract', side_effect=OcrError('garbage'))
    def test_unusable_answer_is_recorded(self, mock_extract):
        verification = self._pending()

        self.assertEqual(process_receipt_verification(str(verification.pk)), ReceiptStatus.PENDING)
        verification.refresh_from_db()
        self.assertEqual(verification.error_message, 'garbage')

    def test_missing_verification(self):
        self.assertIsNone(process_receipt_verification('00000000-0000-0000-0000-000000000000'))

    @patch('receipts.tasks.process_receipt_verification.delay')
    def test_queue_dispatches_after_commit(self, mock_delay):
        with self.captureOnCommitCallbacks(execute=True):
            verification = queue_receipt_image(self.delivery_request, 'https://cdn.example.com/r.jpg')

        self.assertEqual(verification.status, ReceiptStatus.PENDING)
        mock_delay.assert_called_once_with(str(verification.pk))


class TestOcrClient(SimpleTestCase):

    @patch('receipts.ocr_service.requests.post')
    def test_extract_posts_image_url(self, mock_post):
        mock_post.return_value = MagicMock(status_code=200)
        mock_post.return_value.json.return_value = {'text': 'HELLO', 'confidence': 0.8}

        client = OcrClient(base_url='https://ocr.example.com/', token='secret', timeout=5)
        result = client.extract('https://cdn.example.com/r.jpg')

        self.assertEqual(result, {'text': 'HELLO', 'confidence': 0.8})
        args, kwargs = mock_post.call_args
        self.assertEqual(args[0], 'https://ocr.example.com/extract')
        self.assertEqual(kwargs['headers']['Authorization'], 'Bearer secret')
        self.assertEqual(kwargs['json'], {'image_url': 'https://cdn.example.com/r.jpg'})
        self.assertEqual(kwargs['timeout'], 5)

    def test_unconfigured_client_refuses(self):
        with self.assertRaises(OcrError):
            OcrClient(base_url='', token='').extract('https://cdn.example.com/r.jpg')


# ==========================================
# API
# ==========================================

class TestReceiptVerifyAPI(ReceiptServiceTestMixin, TestCase):

    def setUp(self):
        super().setUp()
        self.client = APIClient()
        self.url = f'/api/requests/{self.delivery_request.id}/receipt/verify/'

    def test_assigned_driver_submits_extraction(self):
        self.client.force_authenticate(self.driver_user)
        response = self.client.post(self.url, {
            'merchant_name': 'Chipotle',
            'total_amount': '28.57',
            'confidence_score': 0.9,
            'items': EXPECTED_ITEMS,
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], ReceiptStatus.APPROVED)
        self.assertEqual(response.data['item_match_score'], 100)

    @patch('receipts.tasks.process_receipt_verification.delay')
    def test_image_only_is_queued(self, mock_delay):
        self.client.force_authenticate(self.driver_user)
        response = self.client.post(self.url, {'image_url': 'https://cdn.example.com/r.jpg'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_202_ACCEPTED)
        self.assertEqual(response.data['status'], ReceiptStatus.PENDING)

    def test_customer_cannot_submit(self):
        self.client.force_authenticate(self.customer)
        response = self.client.post(self.url, {'merchant_name': 'Chipotle'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_empty_payload_is_rejected(self):
        self.client.force_authenticate(self.driver_user)
        response = self.client.post(self.url, {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_locked_receipt_conflicts(self):
        verify_receipt(self.delivery_request, raw_text=RECEIPT_TEXT, confidence_score=0.95)
        self.client.force_authenticate(self.driver_user)

        response = self.client.post(self.url, {'merchant_name': 'Chipotle'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['error'], 'INVALID_STATE')
