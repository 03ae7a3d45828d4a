"""
Receipts App Views - Receipt verification API
"""

import logging

from django.shortcuts import get_object_or_404
from rest_framework import status, permissions
from rest_framework.response import Response
from rest_framework.views import APIView

from core.exceptions import SettlementError
from logistics.models import DeliveryRequest
from logistics.views import get_driver_profile, settlement_error_response
from .serializers import ReceiptVerificationSerializer, ReceiptVerifyInputSerializer
from .services import queue_receipt_image, verify_receipt

logger = logging.getLogger(__name__)


class ReceiptVerifyView(APIView):
    """
    POST /api/requests/{id}/receipt/verify/

    Submitted by the assigned driver (or staff). With only ``image_url`` the
    receipt is queued for OCR and the response is 202 with a PENDING
    verification; otherwise it is scored immediately (201).
    """

    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, pk):
        delivery_request = get_object_or_404(DeliveryRequest, pk=pk)

        if not request.user.is_staff:
            driver = get_driver_profile(request.user)
            if driver is None or delivery_request.assigned_driver_id != driver.pk:
                return Response(
                    {'error': 'NOT_ASSIGNED', 'message': 'Only the assigned driver can submit a receipt'},
                    status=status.HTTP_403_FORBIDDEN
                )

        serializer = ReceiptVerifyInputSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        extraction_keys = ('raw_text', 'merchant_name', 'total_amount', 'items')
        image_only = not any(data.get(key) not in (None, '', []) for key in extraction_keys)

        try:
            if image_only:
                verification = queue_receipt_image(delivery_request, data['image_url'])
                response_status = status.HTTP_202_ACCEPTED
            else:
                verification = verify_receipt(
                    delivery_request,
                    merchant_name=data.get('merchant_name', ''),
                    total_amount=data.get('total_amount'),
                    confidence_score=data.get('confidence_score'),
                    items=data.get('items'),
                    raw_text=data.get('raw_text', ''),
                    image_url=data.get('image_url', ''),
                )
                response_status = status.HTTP_201_CREATED
        except SettlementError as e:
            return settlement_error_response(e)

        return Response(ReceiptVerificationSerializer(verification).data, status=response_status)
