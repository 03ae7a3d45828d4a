"""
Django Admin configuration for FINANCE app.
"""

from django.contrib import admin
from .models import DriverEarnings


@admin.register(DriverEarnings)
class DriverEarningsAdmin(admin.ModelAdmin):
    """Admin for driver earnings (created by the lifecycle only)."""

    list_display = (
        'short_id',
        'driver',
        'request_link',
        'formatted_amount',
        'status',
        'created_at'
    )
    list_filter = ('status', 'created_at')
    search_fields = ('id', 'driver__display_name', 'request__id')
    ordering = ('-created_at',)
    date_hierarchy = 'created_at'

    readonly_fields = (
        'id',
        'driver',
        'request',
        'amount_cents',
        'breakdown',
        'created_at'
    )

    fieldsets = (
        ('Earnings', {
            'fields': ('id', 'driver', 'request', 'status')
        }),
        ('Amounts', {
            'fields': ('amount_cents', 'breakdown')
        }),
        ('History', {
            'fields': ('created_at',)
        }),
    )

    def short_id(self, obj):
        return str(obj.id)[:8]
    short_id.short_description = "ID"

    def formatted_amount(self, obj):
        return f"${obj.amount_dollars}"
    formatted_amount.short_description = "Amount"

    def request_link(self, obj):
        return str(obj.request_id)[:8]
    request_link.short_description = "Request"

    def has_add_permission(self, request):
        """Earnings are created by the delivery lifecycle only."""
        return False

    def has_delete_permission(self, request, obj=None):
        """Earnings cannot be deleted for audit trail."""
        return False
