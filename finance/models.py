"""
FINANCE App - Driver Earnings for OTW

Handles: one compensation record per completed delivery request.
"""

import uuid
from django.db import models


class DriverEarningStatus(models.TextChoices):
    """Earning status enumeration (transitions owned by the payout process)."""
    PENDING = 'pending', 'Pending'
    AVAILABLE = 'available', 'Available'
    PAID = 'paid', 'Paid'


class DriverEarnings(models.Model):
    """
    Driver compensation for a single completed request.

    Exactly zero or one row per request: the unique constraint on
    ``request`` is the last line of defence against double pay.
    The itemized PayBreakdown is frozen in ``breakdown`` for audit.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    driver = models.ForeignKey(
        'core.DriverProfile',
        on_delete=models.PROTECT,
        related_name='earnings',
        verbose_name="Driver"
    )
    request = models.OneToOneField(
        'logistics.DeliveryRequest',
        on_delete=models.PROTECT,
        related_name='earnings',
        verbose_name="Delivery request"
    )

    amount_cents = models.PositiveIntegerField(verbose_name="Amount (cents)")
    status = models.CharField(
        max_length=20,
        choices=DriverEarningStatus.choices,
        default=DriverEarningStatus.PENDING,
        verbose_name="Status"
    )
    breakdown = models.JSONField(default=dict, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = "Driver earnings"
        verbose_name_plural = "Driver earnings"
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['driver', 'status'], name='earnings_driver_status_idx'),
        ]

    def __str__(self):
        return f"{self.driver_id} | {self.amount_cents}¢ | {self.status}"

    @property
    def amount_dollars(self) -> str:
        return f"{self.amount_cents / 100:.2f}"
