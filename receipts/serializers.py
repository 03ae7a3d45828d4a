"""
Receipts App Serializers - Receipt verification
"""

from rest_framework import serializers
from .models import ReceiptVerification


class ReceiptItemSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255)
    quantity = serializers.IntegerField(min_value=1, default=1)
    price = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0)


class ReceiptVerifyInputSerializer(serializers.Serializer):
    """
    Either an image for async OCR, or an extraction already made client-side.
    """

    image_url = serializers.URLField(required=False, max_length=500)
    raw_text = serializers.CharField(required=False, allow_blank=True)
    merchant_name = serializers.CharField(required=False, allow_blank=True, max_length=255)
    total_amount = serializers.DecimalField(
        max_digits=10, decimal_places=2, min_value=0, required=False, allow_null=True
    )
    confidence_score = serializers.FloatField(min_value=0, max_value=100, required=False, allow_null=True)
    items = ReceiptItemSerializer(many=True, required=False)

    def validate(self, attrs):
        extraction_keys = ('raw_text', 'merchant_name', 'total_amount', 'items')
        has_extraction = any(attrs.get(key) not in (None, '', []) for key in extraction_keys)
        if not has_extraction and not attrs.get('image_url'):
            raise serializers.ValidationError(
                "Provide image_url or the extracted receipt (raw_text, merchant_name, total_amount, items)."
            )
        return attrs


class ReceiptVerificationSerializer(serializers.ModelSerializer):

    class Meta:
        model = ReceiptVerification
        fields = [
            'id', 'delivery_request', 'image_url',
            'merchant_name', 'location', 'extracted_total', 'confidence_score', 'extracted_items',
            'proof_score', 'item_match_score', 'vendor_match_score', 'image_quality', 'tamper_score',
            'status', 'locked', 'error_message', 'created_at', 'updated_at',
        ]
        read_only_fields = fields
