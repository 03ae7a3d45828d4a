"""
Django Admin configuration for RECEIPTS app.
"""

from django.contrib import admin
from .models import ReceiptVerification, ReceiptStatus
from .services import score_verification


@admin.register(ReceiptVerification)
class ReceiptVerificationAdmin(admin.ModelAdmin):
    """Receipt verifications with their proof score breakdown."""

    list_display = (
        'short_id',
        'delivery_request',
        'merchant_name',
        'extracted_total',
        'proof_score',
        'item_match_score',
        'status',
        'locked',
        'created_at'
    )
    list_filter = ('status', 'locked', 'created_at')
    search_fields = ('id', 'delivery_request__id', 'merchant_name')
    ordering = ('-created_at',)
    date_hierarchy = 'created_at'

    readonly_fields = (
        'id',
        'proof_score',
        'item_match_score',
        'vendor_match_score',
        'image_quality',
        'tamper_score',
        'status',
        'locked',
        'created_at',
        'updated_at',
    )

    fieldsets = (
        ('Receipt', {
            'fields': ('id', 'delivery_request', 'image_url', 'status', 'locked')
        }),
        ('Extraction', {
            'fields': ('merchant_name', 'location', 'extracted_total', 'confidence_score',
                       'extracted_items', 'raw_text'),
        }),
        ('Score', {
            'fields': ('proof_score', 'item_match_score', 'vendor_match_score',
                       'image_quality', 'tamper_score', 'error_message'),
        }),
        ('History', {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )

    actions = ['rescore']

    def short_id(self, obj):
        return str(obj.id)[:8]
    short_id.short_description = "ID"

    @admin.action(description="Re-run proof scoring")
    def rescore(self, request, queryset):
        count = 0
        for verification in queryset.select_related('delivery_request').exclude(status=ReceiptStatus.PENDING):
            score_verification(verification)
            count += 1
        self.message_user(request, f"{count} receipt(s) rescored.")
