"""
RECEIPTS App - Receipt verification for OTW

Handles: OCR extraction of vendor receipts and their proof score.
"""

import uuid
from django.db import models


class ReceiptStatus(models.TextChoices):
    """Receipt verification verdict."""
    PENDING = 'PENDING', 'Pending'
    APPROVED = 'APPROVED', 'Approved'
    FLAGGED = 'FLAGGED', 'Flagged for review'
    REJECTED = 'REJECTED', 'Rejected'


VERIFIED_STATUSES = (ReceiptStatus.APPROVED, ReceiptStatus.FLAGGED)


class ReceiptVerification(models.Model):
    """
    One evaluation of a receipt for a delivery request.

    A request may collect several verifications over time; the most recent
    one is authoritative. Once ``locked`` the receipt can no longer be
    re-submitted.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    delivery_request = models.ForeignKey(
        'logistics.DeliveryRequest',
        on_delete=models.CASCADE,
        related_name='receipt_verifications',
        verbose_name="Delivery request"
    )

    # Extraction
    image_url = models.URLField(max_length=500, blank=True)
    raw_text = models.TextField(blank=True)
    merchant_name = models.CharField(max_length=255, blank=True)
    location = models.CharField(max_length=255, blank=True)
    extracted_total = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    confidence_score = models.FloatField(null=True, blank=True)
    extracted_items = models.JSONField(default=list, blank=True)

    # Score
    proof_score = models.PositiveSmallIntegerField(null=True, blank=True)
    item_match_score = models.PositiveSmallIntegerField(null=True, blank=True)
    vendor_match_score = models.PositiveSmallIntegerField(null=True, blank=True)
    image_quality = models.PositiveSmallIntegerField(null=True, blank=True)
    tamper_score = models.PositiveSmallIntegerField(null=True, blank=True)
    status = models.CharField(
        max_length=20,
        choices=ReceiptStatus.choices,
        default=ReceiptStatus.PENDING,
        verbose_name="Status"
    )
    locked = models.BooleanField(default=False)
    error_message = models.TextField(blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Receipt verification"
        verbose_name_plural = "Receipt verifications"
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['delivery_request', 'created_at'], name='receipt_request_created_idx'),
            models.Index(fields=['status'], name='receipt_status_idx'),
        ]

    def __str__(self):
        return f"Receipt {str(self.id)[:8]} - {self.status} ({self.proof_score})"

    @property
    def is_verified(self) -> bool:
        return self.status in VERIFIED_STATUSES
