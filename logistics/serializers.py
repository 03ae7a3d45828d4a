"""
Logistics App Serializers - Delivery requests & driver time
"""

from rest_framework import serializers
from .models import DeliveryRequest, DriverTimeLog


class DriverTimeLogSerializer(serializers.ModelSerializer):

    class Meta:
        model = DriverTimeLog
        fields = ['id', 'driver', 'start_time', 'end_time', 'active_minutes']
        read_only_fields = fields


class DeliveryRequestSerializer(serializers.ModelSerializer):
    """Full serializer for DeliveryRequest (read-only: writes go through the lifecycle)."""

    driver_name = serializers.CharField(source='assigned_driver.display_name', read_only=True, default=None)
    is_locked = serializers.BooleanField(read_only=True)
    is_terminal = serializers.BooleanField(read_only=True)
    time_logs = DriverTimeLogSerializer(many=True, read_only=True)

    class Meta:
        model = DeliveryRequest
        fields = [
            'id', 'customer', 'status', 'assigned_driver', 'driver_name',
            'service_miles_final', 'wait_miles', 'cash_handling', 'business_account',
            'customer_rating', 'complaint_flag',
            'expected_vendor', 'expected_total', 'expected_items',
            'is_terminal', 'is_locked', 'locked_at', 'lock_reason', 'time_logs',
            'created_at', 'assigned_at', 'arrived_at', 'departed_at',
            'completed_at', 'canceled_at',
        ]
        read_only_fields = fields


class PayBreakdownSerializer(serializers.Serializer):
    """Itemized pay returned after completion."""

    service_miles = serializers.IntegerField()
    active_minutes = serializers.IntegerField()
    rate_cents_per_service_mile = serializers.IntegerField()
    hourly_rate_cents = serializers.IntegerField()
    mile_pay_cents = serializers.IntegerField()
    hourly_pay_cents = serializers.IntegerField()
    wait_bonus_cents = serializers.IntegerField()
    cash_bonus_cents = serializers.IntegerField()
    business_bonus_cents = serializers.IntegerField()
    bonus_pay_cents = serializers.IntegerField()
    tips_cents = serializers.IntegerField()
    total_pay_cents = serializers.IntegerField()
