"""
CORE App - Driver profiles for OTW

Handles: driver tier, pay parameters and rolling performance counters.
Identity itself is the standard Django auth user.
"""

import uuid
from django.conf import settings
from django.db import models


def default_hourly_rate_cents():
    return settings.DEFAULT_DRIVER_HOURLY_RATE_CENTS


def default_bonus_5star_cents():
    return settings.DEFAULT_BONUS_5STAR_CENTS


class DriverTier(models.TextChoices):
    """Driver tier enumeration (drives the per-mile pay rate)."""
    PROBATION = 'PROBATION', 'Probation'
    STANDARD = 'STANDARD', 'Standard'
    ELITE = 'ELITE', 'Elite'
    CONCIERGE = 'CONCIERGE', 'Concierge'


class DriverProfile(models.Model):
    """
    Driver account attached to an auth user.

    Key Business Logic:
    - tier selects the cents-per-Service-Mile rate at payout time
    - hourly_rate_cents is used when a trip has no Service Miles
    - bonus_enabled gates the 5-star bonus even for perfect ratings
    - performance_metrics['completedJobs'] is bumped on every completion
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='driver_profile',
        verbose_name="User"
    )
    display_name = models.CharField(max_length=150, blank=True)

    tier = models.CharField(
        max_length=20,
        choices=DriverTier.choices,
        default=DriverTier.PROBATION,
        verbose_name="Tier"
    )
    hourly_rate_cents = models.PositiveIntegerField(
        default=default_hourly_rate_cents,
        verbose_name="Hourly rate (cents)"
    )
    bonus_enabled = models.BooleanField(default=True)
    bonus_5star_cents = models.PositiveIntegerField(
        default=default_bonus_5star_cents,
        verbose_name="5-star bonus (cents)"
    )

    performance_metrics = models.JSONField(default=dict, blank=True)

    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = "Driver profile"
        verbose_name_plural = "Driver profiles"
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.display_name or self.user} ({self.tier})"

    @property
    def completed_jobs(self) -> int:
        value = (self.performance_metrics or {}).get('completedJobs', 0)
        return value if isinstance(value, int) else 0
