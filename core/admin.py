"""
Django Admin configuration for CORE app.
"""

from django.contrib import admin
from .models import DriverProfile, DriverTier


@admin.register(DriverProfile)
class DriverProfileAdmin(admin.ModelAdmin):
    """Driver profiles with pay parameters and rolling counters."""

    list_display = (
        'display_name',
        'user',
        'tier',
        'hourly_rate_cents',
        'bonus_enabled',
        'bonus_5star_cents',
        'completed_jobs',
        'is_active',
        'created_at',
    )
    list_filter = ('tier', 'bonus_enabled', 'is_active')
    search_fields = ('display_name', 'user__username', 'user__email')
    ordering = ('-created_at',)
    readonly_fields = ('performance_metrics', 'created_at')

    fieldsets = (
        (None, {
            'fields': ('user', 'display_name', 'is_active')
        }),
        ('Pay', {
            'fields': ('tier', 'hourly_rate_cents', 'bonus_enabled', 'bonus_5star_cents'),
        }),
        ('Performance', {
            'fields': ('performance_metrics', 'created_at'),
            'classes': ('collapse',)
        }),
    )

    actions = ['promote_to_standard', 'disable_bonus']

    def completed_jobs(self, obj):
        return obj.completed_jobs
    completed_jobs.short_description = "Completed jobs"

    @admin.action(description="Promote selected drivers to STANDARD")
    def promote_to_standard(self, request, queryset):
        updated = queryset.filter(tier=DriverTier.PROBATION).update(tier=DriverTier.STANDARD)
        self.message_user(request, f"{updated} driver(s) promoted.")

    @admin.action(description="Disable 5-star bonus")
    def disable_bonus(self, request, queryset):
        updated = queryset.update(bonus_enabled=False)
        self.message_user(request, f"5-star bonus disabled for {updated} driver(s).")
