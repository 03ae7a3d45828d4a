"""
Django Admin configuration for DISPUTES app.
"""

from django.contrib import admin
from .models import OrderConfirmation, DisputeStatus, DisputeResolution
from .services import resolve_dispute


@admin.register(OrderConfirmation)
class OrderConfirmationAdmin(admin.ModelAdmin):
    """Order confirmations and the disputes raised on them."""

    list_display = (
        'short_id',
        'delivery_request',
        'customer',
        'customer_confirmed',
        'dispute_status',
        'disputed_count',
        'refund_amount',
        'updated_at'
    )
    list_filter = ('dispute_status', 'customer_confirmed', 'created_at')
    search_fields = ('id', 'delivery_request__id', 'customer__username')
    ordering = ('-updated_at',)

    readonly_fields = (
        'id',
        'delivery_request',
        'customer',
        'receipt_verification',
        'items_snapshot',
        'total_snapshot',
        'confirmed_at',
        'disputed_items',
        'evidence_urls',
        'disputed_at',
        'resolved_at',
        'resolved_by',
        'created_at',
        'updated_at',
    )

    fieldsets = (
        ('Confirmation', {
            'fields': ('id', 'delivery_request', 'customer', 'receipt_verification',
                       'customer_confirmed', 'confirmed_at', 'items_snapshot', 'total_snapshot')
        }),
        ('Dispute', {
            'fields': ('dispute_status', 'disputed_items', 'dispute_notes', 'evidence_urls', 'disputed_at')
        }),
        ('Resolution', {
            'fields': ('resolution_notes', 'refund_amount', 'resolved_at', 'resolved_by')
        }),
        ('History', {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )

    actions = ['deny_disputes', 'request_more_info']

    def short_id(self, obj):
        return str(obj.id)[:8]
    short_id.short_description = "ID"

    def disputed_count(self, obj):
        return len(obj.disputed_items or [])
    disputed_count.short_description = "Items"

    def _resolve(self, request, queryset, resolution):
        count = 0
        for confirmation in queryset.exclude(disputed_items=[]).exclude(dispute_status=DisputeStatus.NONE):
            resolve_dispute(confirmation, resolution, resolved_by=request.user)
            count += 1
        return count

    @admin.action(description="Deny selected disputes")
    def deny_disputes(self, request, queryset):
        count = self._resolve(request, queryset, DisputeResolution.DENIED)
        self.message_user(request, f"{count} dispute(s) denied.")

    @admin.action(description="Ask customer for more information")
    def request_more_info(self, request, queryset):
        count = self._resolve(request, queryset, DisputeResolution.NEEDS_INFO)
        self.message_user(request, f"{count} dispute(s) set to needs info.")
