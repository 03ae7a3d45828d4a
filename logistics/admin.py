"""
Django Admin configuration for LOGISTICS app.
"""

from django.contrib import admin
from .models import DeliveryRequest, DriverAssignment, DriverTimeLog


class DriverTimeLogInline(admin.TabularInline):
    model = DriverTimeLog
    extra = 0
    readonly_fields = ('driver', 'start_time', 'end_time', 'active_minutes')
    can_delete = False


@admin.register(DeliveryRequest)
class DeliveryRequestAdmin(admin.ModelAdmin):
    """
    Admin for DeliveryRequest.

    Lifecycle fields are read-only here: status changes must go through
    logistics.services.lifecycle so time logs and earnings stay consistent.
    """

    list_display = (
        'short_id',
        'status',
        'customer',
        'assigned_driver',
        'service_miles_final',
        'customer_rating',
        'complaint_flag',
        'is_locked',
        'created_at'
    )
    list_filter = ('status', 'complaint_flag', 'business_account', 'created_at')
    search_fields = ('id', 'customer__username', 'assigned_driver__display_name', 'expected_vendor')
    ordering = ('-created_at',)
    date_hierarchy = 'created_at'
    inlines = [DriverTimeLogInline]

    readonly_fields = (
        'id',
        'status',
        'assigned_driver',
        'created_at',
        'assigned_at',
        'arrived_at',
        'departed_at',
        'completed_at',
        'canceled_at',
        'locked_at',
        'lock_reason',
    )

    fieldsets = (
        ('Identification', {
            'fields': ('id', 'status', 'customer', 'assigned_driver')
        }),
        ('Pay inputs', {
            'fields': ('service_miles_final', 'wait_miles', 'cash_handling', 'business_account')
        }),
        ('Feedback', {
            'fields': ('customer_rating', 'complaint_flag')
        }),
        ('Receipt', {
            'fields': ('expected_vendor', 'expected_total', 'expected_items', 'receipt_items',
                       'locked_at', 'lock_reason'),
            'classes': ('collapse',)
        }),
        ('Timestamps', {
            'fields': ('created_at', 'assigned_at', 'arrived_at', 'departed_at',
                       'completed_at', 'canceled_at'),
            'classes': ('collapse',)
        }),
    )

    def short_id(self, obj):
        return str(obj.id)[:8]
    short_id.short_description = "ID"

    def is_locked(self, obj):
        return obj.is_locked
    is_locked.boolean = True
    is_locked.short_description = "Locked"


@admin.register(DriverAssignment)
class DriverAssignmentAdmin(admin.ModelAdmin):
    list_display = ('delivery_request', 'driver', 'assigned_at')
    ordering = ('-assigned_at',)
    readonly_fields = ('delivery_request', 'driver', 'assigned_at')


@admin.register(DriverTimeLog)
class DriverTimeLogAdmin(admin.ModelAdmin):
    list_display = ('delivery_request', 'driver', 'start_time', 'end_time', 'active_minutes')
    list_filter = ('start_time',)
    ordering = ('-start_time',)
    readonly_fields = ('delivery_request', 'driver', 'start_time', 'end_time', 'active_minutes')
