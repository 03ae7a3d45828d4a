"""
RECEIPTS App - Receipt verification service for OTW

Persists a ReceiptVerification for a delivery request and scores it against
what the request expected (vendor, total, items).
"""

import logging
from decimal import Decimal
from typing import Optional

from django.conf import settings
from django.db import transaction
from django.utils.module_loading import import_string

from core.exceptions import InvalidState
from .models import ReceiptStatus, ReceiptVerification
from .parser import parse_receipt_text
from .proof_score import ProofScoreResult, compute_proof_score

logger = logging.getLogger(__name__)


def latest_verification(delivery_request) -> Optional[ReceiptVerification]:
    return (
        ReceiptVerification.objects
        .filter(delivery_request=delivery_request)
        .order_by('-created_at')
        .first()
    )


def ensure_receipt_editable(delivery_request):
    """Refuse a new receipt once the latest one has been locked."""
    latest = latest_verification(delivery_request)
    if latest is not None and latest.locked:
        raise InvalidState("Receipt is locked", verification_id=str(latest.pk))


def get_tamper_detector():
    """Configured tamper-detection callable, or None."""
    path = getattr(settings, 'RECEIPT_TAMPER_DETECTOR', '')
    return import_string(path) if path else None


def serialize_items(items) -> list:
    """Receipt lines as JSON-safe dicts (prices become floats)."""
    serialized = []
    for item in items or []:
        price = item.get('price')
        serialized.append({
            'name': str(item.get('name') or ''),
            'quantity': int(item.get('quantity') or 1),
            'price': float(price) if price is not None else None,
        })
    return serialized


def apply_extraction(verification: ReceiptVerification, text: str, confidence=None) -> ReceiptVerification:
    """
    Fill the verification from raw OCR text.

    Fields already provided by the caller win over what the parser finds.
    """
    parsed = parse_receipt_text(text)

    verification.raw_text = text or ''
    if confidence is not None:
        verification.confidence_score = confidence
    if not verification.merchant_name:
        verification.merchant_name = parsed['vendor_name'][:255]
    if not verification.location:
        verification.location = parsed['location'][:255]
    if verification.extracted_total is None:
        verification.extracted_total = parsed['total']
    if not verification.extracted_items:
        verification.extracted_items = serialize_items(parsed['items'])

    verification.save()
    return verification


def score_verification(verification: ReceiptVerification, tamper_score=None) -> ProofScoreResult:
    """Run the proof-scoring engine and persist the verdict on the verification."""
    delivery_request = verification.delivery_request

    if tamper_score is None:
        detector = get_tamper_detector()
        if detector is not None:
            tamper_score = detector(verification)

    result = compute_proof_score(
        merchant_name=verification.merchant_name or None,
        total_amount=verification.extracted_total,
        confidence_score=verification.confidence_score,
        items=verification.extracted_items,
        expected_vendor=delivery_request.expected_vendor or None,
        expected_total=delivery_request.expected_total,
        expected_items=delivery_request.expected_items,
        tamper_score=tamper_score,
    )

    with transaction.atomic():
        verification.proof_score = result.proof_score
        verification.item_match_score = result.item_match_score
        verification.vendor_match_score = result.vendor_match_score
        verification.image_quality = result.image_quality
        verification.tamper_score = result.tamper_score
        verification.status = result.status
        verification.locked = result.locked
        verification.error_message = ''
        verification.save()

        delivery_request.receipt_items = verification.extracted_items
        delivery_request.save(update_fields=['receipt_items'])

    logger.info(
        f"[RECEIPT] Verification {str(verification.pk)[:8]} for request "
        f"{str(delivery_request.pk)[:8]}: {result.status} "
        f"(score {result.proof_score}, items {result.item_match_score}, locked: {result.locked})"
    )
    return result


def verify_receipt(
    delivery_request,
    merchant_name: str = '',
    total_amount: Optional[Decimal] = None,
    confidence_score=None,
    items=None,
    raw_text: str = '',
    image_url: str = '',
    tamper_score=None,
) -> ReceiptVerification:
    """
    Record and score an already-extracted receipt.

    When only ``raw_text`` is given the parser fills vendor, items and total.

    Raises:
        InvalidState: the latest receipt for this request is locked
    """
    ensure_receipt_editable(delivery_request)

    with transaction.atomic():
        verification = ReceiptVerification.objects.create(
            delivery_request=delivery_request,
            image_url=image_url or '',
            merchant_name=(merchant_name or '')[:255],
            extracted_total=total_amount,
            confidence_score=confidence_score,
            extracted_items=serialize_items(items),
        )
        if raw_text:
            apply_extraction(verification, raw_text)
        score_verification(verification, tamper_score=tamper_score)

    return verification


def queue_receipt_image(delivery_request, image_url: str) -> ReceiptVerification:
    """
    Create a PENDING verification and hand the image to the OCR task.

    Raises:
        InvalidState: the latest receipt for this request is locked
    """
    from .tasks import process_receipt_verification

    ensure_receipt_editable(delivery_request)

    verification = ReceiptVerification.objects.create(
        delivery_request=delivery_request,
        image_url=image_url,
        status=ReceiptStatus.PENDING,
    )
    transaction.on_commit(lambda: process_receipt_verification.delay(str(verification.pk)))

    logger.info(f"[RECEIPT] Verification {str(verification.pk)[:8]} queued for OCR")
    return verification
