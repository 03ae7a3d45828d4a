"""
Disputes App Serializers - Order confirmation & disputes
"""

from rest_framework import serializers
from .models import DisputeReason, DisputeResolution, OrderConfirmation


class SnapshotItemInputSerializer(serializers.Serializer):
    item_key = serializers.CharField(required=False, allow_blank=True, max_length=100)
    name = serializers.CharField(max_length=255)
    qty = serializers.IntegerField(min_value=1)
    unit_price = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0, required=False)
    notes = serializers.CharField(required=False, allow_blank=True, max_length=500)


class ConfirmItemsSerializer(serializers.Serializer):
    customer_confirmed = serializers.BooleanField()
    items_snapshot = SnapshotItemInputSerializer(many=True, required=False)

    def validate_customer_confirmed(self, value):
        if value is not True:
            raise serializers.ValidationError("customer_confirmed must be true.")
        return value


class DisputedItemInputSerializer(serializers.Serializer):
    item_id_or_name = serializers.CharField(max_length=255)
    qty_disputed = serializers.IntegerField(min_value=1)
    reason = serializers.ChoiceField(choices=DisputeReason.choices)
    details = serializers.CharField(required=False, allow_blank=True, max_length=1000)


class DisputeSerializer(serializers.Serializer):
    disputed_items = DisputedItemInputSerializer(many=True, allow_empty=False)
    dispute_notes = serializers.CharField(required=False, allow_blank=True, max_length=5000)
    evidence_urls = serializers.ListField(
        child=serializers.URLField(max_length=500),
        required=False,
        max_length=20
    )


class ResolveDisputeSerializer(serializers.Serializer):
    resolution = serializers.ChoiceField(choices=DisputeResolution.choices)
    notes = serializers.CharField(required=False, allow_blank=True, max_length=5000)
    refund_amount = serializers.DecimalField(
        max_digits=10, decimal_places=2, min_value=0, required=False, allow_null=True
    )


class OrderConfirmationSerializer(serializers.ModelSerializer):

    class Meta:
        model = OrderConfirmation
        fields = [
            'id', 'delivery_request', 'receipt_verification',
            'items_snapshot', 'total_snapshot', 'customer_confirmed', 'confirmed_at',
            'dispute_status', 'disputed_items', 'dispute_notes', 'evidence_urls', 'disputed_at',
            'resolution_notes', 'refund_amount', 'resolved_at',
            'created_at', 'updated_at',
        ]
        read_only_fields = fields
