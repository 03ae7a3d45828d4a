"""
DISPUTES App - Order confirmation & disputes for OTW

Handles: the customer's confirmation of what was delivered (the items
snapshot) and any item-level dispute raised against it.
"""

import uuid
from django.conf import settings
from django.db import models


class DisputeStatus(models.TextChoices):
    """Dispute status enumeration."""
    NONE = 'NONE', 'No dispute'
    DRAFT = 'DRAFT', 'Draft'
    OPEN = 'OPEN', 'Open'
    NEEDS_INFO = 'NEEDS_INFO', 'Needs information'
    RESOLVED_APPROVED = 'RESOLVED_APPROVED', 'Resolved - approved'
    RESOLVED_DENIED = 'RESOLVED_DENIED', 'Resolved - denied'


class DisputeReason(models.TextChoices):
    """Why an item is disputed."""
    MISSING = 'MISSING', 'Missing'
    WRONG_ITEM = 'WRONG_ITEM', 'Wrong item'
    BAD_QUALITY = 'BAD_QUALITY', 'Bad quality'
    DAMAGED = 'DAMAGED', 'Damaged'


class DisputeResolution(models.TextChoices):
    """Staff decision on a dispute."""
    APPROVED = 'APPROVED', 'Approved'
    DENIED = 'DENIED', 'Denied'
    NEEDS_INFO = 'NEEDS_INFO', 'Needs information'


class OrderConfirmation(models.Model):
    """
    Customer confirmation of a delivered order.

    Key Business Logic:
    - items_snapshot is built server-side once and is the reference for disputes
    - confirming with a verified receipt locks the delivery request
    - disputed_items holds the validated, normalised claims
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    delivery_request = models.OneToOneField(
        'logistics.DeliveryRequest',
        on_delete=models.CASCADE,
        related_name='order_confirmation',
        verbose_name="Delivery request"
    )
    customer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='order_confirmations',
        verbose_name="Customer"
    )
    receipt_verification = models.ForeignKey(
        'receipts.ReceiptVerification',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='order_confirmations'
    )

    # Confirmation
    items_snapshot = models.JSONField(default=list, blank=True)
    total_snapshot = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    customer_confirmed = models.BooleanField(default=False)
    confirmed_at = models.DateTimeField(null=True, blank=True)

    # Dispute
    dispute_status = models.CharField(
        max_length=20,
        choices=DisputeStatus.choices,
        default=DisputeStatus.NONE,
        verbose_name="Dispute status"
    )
    disputed_items = models.JSONField(default=list, blank=True)
    dispute_notes = models.TextField(blank=True)
    evidence_urls = models.JSONField(default=list, blank=True)
    disputed_at = models.DateTimeField(null=True, blank=True)

    # Resolution
    resolution_notes = models.TextField(blank=True)
    refund_amount = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    resolved_at = models.DateTimeField(null=True, blank=True)
    resolved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='resolved_disputes'
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Order confirmation"
        verbose_name_plural = "Order confirmations"
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['dispute_status'], name='confirmation_dispute_idx'),
        ]

    def __str__(self):
        return f"Confirmation {str(self.delivery_request_id)[:8]} - {self.dispute_status}"

    @property
    def has_dispute(self) -> bool:
        return self.dispute_status != DisputeStatus.NONE
