"""
LOGISTICS App - Delivery requests & driver time for OTW

Handles: Delivery requests, driver assignments, driver time logs
"""

import uuid
from django.conf import settings
from django.db import models
from django.db.models import Q


class DeliveryRequestStatus(models.TextChoices):
    """Delivery request status enumeration."""
    REQUESTED = 'REQUESTED', 'Requested'
    ASSIGNED = 'ASSIGNED', 'Driver assigned'
    PICKED_UP = 'PICKED_UP', 'Picked up'
    EN_ROUTE = 'EN_ROUTE', 'En route'
    DELIVERED = 'DELIVERED', 'Delivered'
    CANCELED = 'CANCELED', 'Canceled'


TERMINAL_STATUSES = (DeliveryRequestStatus.DELIVERED, DeliveryRequestStatus.CANCELED)


class DeliveryRequest(models.Model):
    """
    A single delivery job.

    Mutated only through logistics.services.lifecycle. Never deleted:
    DELIVERED and CANCELED are terminal.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    # Actors
    customer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='delivery_requests',
        verbose_name="Customer"
    )
    assigned_driver = models.ForeignKey(
        'core.DriverProfile',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='assigned_requests',
        verbose_name="Assigned driver"
    )

    # Status
    status = models.CharField(
        max_length=20,
        choices=DeliveryRequestStatus.choices,
        default=DeliveryRequestStatus.REQUESTED,
        verbose_name="Status"
    )

    # Pay inputs (frozen at quote time)
    service_miles_final = models.PositiveIntegerField(
        null=True,
        blank=True,
        verbose_name="Service Miles (final)"
    )
    wait_miles = models.PositiveIntegerField(default=0, verbose_name="Wait-time Service Miles")
    cash_handling = models.BooleanField(default=False)
    business_account = models.BooleanField(default=False)

    # Feedback
    customer_rating = models.PositiveSmallIntegerField(
        null=True,
        blank=True,
        verbose_name="Customer rating (1-5)"
    )
    complaint_flag = models.BooleanField(default=False)

    # Receipt expectations (what the driver should come back with)
    expected_vendor = models.CharField(max_length=255, blank=True)
    expected_total = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        null=True,
        blank=True,
        verbose_name="Expected receipt total ($)"
    )
    expected_items = models.JSONField(default=list, blank=True)
    receipt_items = models.JSONField(default=list, blank=True)

    # Refund lock (receipt verified + customer confirmed)
    locked_at = models.DateTimeField(null=True, blank=True)
    lock_reason = models.CharField(max_length=100, blank=True)

    # Timestamps
    created_at = models.DateTimeField(auto_now_add=True)
    assigned_at = models.DateTimeField(null=True, blank=True)
    arrived_at = models.DateTimeField(null=True, blank=True)
    departed_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    canceled_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        verbose_name = "Delivery request"
        verbose_name_plural = "Delivery requests"
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status', 'created_at'], name='delivery_status_created_idx'),
            models.Index(fields=['assigned_driver', 'status'], name='delivery_driver_status_idx'),
        ]

    def __str__(self):
        return f"Request {str(self.id)[:8]} - {self.status}"

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def is_locked(self) -> bool:
        return self.locked_at is not None


class DriverAssignment(models.Model):
    """Audit row written every time a driver wins a request."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    delivery_request = models.ForeignKey(
        DeliveryRequest,
        on_delete=models.CASCADE,
        related_name='assignments'
    )
    driver = models.ForeignKey(
        'core.DriverProfile',
        on_delete=models.CASCADE,
        related_name='assignments'
    )
    assigned_at = models.DateTimeField()

    class Meta:
        verbose_name = "Driver assignment"
        verbose_name_plural = "Driver assignments"
        ordering = ['-assigned_at']

    def __str__(self):
        return f"{self.driver_id} → {str(self.delivery_request_id)[:8]}"


class DriverTimeLog(models.Model):
    """
    Active-work interval for a (driver, request) pair.

    end_time NULL means the log is open. active_minutes is frozen on close.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    delivery_request = models.ForeignKey(
        DeliveryRequest,
        on_delete=models.CASCADE,
        related_name='time_logs'
    )
    driver = models.ForeignKey(
        'core.DriverProfile',
        on_delete=models.CASCADE,
        related_name='time_logs'
    )
    start_time = models.DateTimeField()
    end_time = models.DateTimeField(null=True, blank=True)
    active_minutes = models.PositiveIntegerField(null=True, blank=True)

    class Meta:
        verbose_name = "Driver time log"
        verbose_name_plural = "Driver time logs"
        ordering = ['-start_time']
        constraints = [
            # At most one open log per (driver, request)
            models.UniqueConstraint(
                fields=['driver', 'delivery_request'],
                condition=Q(end_time__isnull=True),
                name='unique_open_time_log_per_driver_request',
            ),
        ]

    def __str__(self):
        state = 'open' if self.end_time is None else f"{self.active_minutes} min"
        return f"{self.driver_id} @ {str(self.delivery_request_id)[:8]} ({state})"

    @property
    def is_open(self) -> bool:
        return self.end_time is None
