"""
RECEIPTS App - Celery Tasks

OCR → parse → score pipeline for uploaded receipt images.
"""

from celery import shared_task
import logging
import requests

logger = logging.getLogger(__name__)


@shared_task(
    bind=True,
    max_retries=3,
    default_retry_delay=30,
    retry_backoff=True
)
def process_receipt_verification(self, verification_id: str):
    """
    Extract and score a PENDING receipt verification.

    Network failures talking to the OCR service are recorded on the
    verification and retried with back-off; the verification stays PENDING
    until a retry succeeds.

    Returns:
        The verification status, or None if it no longer exists
    """
    from receipts.models import ReceiptStatus, ReceiptVerification
    from receipts.ocr_service import OcrClient, OcrError
    from receipts.services import apply_extraction, score_verification

    verification = (
        ReceiptVerification.objects
        .select_related('delivery_request')
        .filter(pk=verification_id)
        .first()
    )
    if verification is None:
        logger.warning(f"[RECEIPT] Verification {verification_id} not found")
        return None
    if verification.status != ReceiptStatus.PENDING:
        logger.info(f"[RECEIPT] Verification {verification_id} already {verification.status}")
        return verification.status

    try:
        extraction = OcrClient().extract(verification.image_url)
    except requests.RequestException as e:
        verification.error_message = str(e)[:1000]
        verification.save(update_fields=['error_message', 'updated_at'])
        logger.error(f"[RECEIPT] OCR failed for {verification_id}, retrying: {e}")
        raise self.retry(exc=e)
    except OcrError as e:
        verification.error_message = str(e)
        verification.save(update_fields=['error_message', 'updated_at'])
        logger.error(f"[RECEIPT] OCR unusable for {verification_id}: {e}")
        return verification.status

    apply_extraction(verification, extraction['text'], extraction['confidence'])
    result = score_verification(verification)
    return result.status
