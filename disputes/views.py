"""
Disputes App Views - Order confirmation & dispute API
"""

import logging

from django.shortcuts import get_object_or_404
from rest_framework import status, permissions
from rest_framework.response import Response
from rest_framework.views import APIView

from core.exceptions import SettlementError
from logistics.models import DeliveryRequest
from logistics.views import settlement_error_response
from .models import OrderConfirmation
from .serializers import (
    ConfirmItemsSerializer, DisputeSerializer, OrderConfirmationSerializer,
    ResolveDisputeSerializer,
)
from .services import confirm_items, evaluate_lock, file_dispute, resolve_dispute

logger = logging.getLogger(__name__)


def _customer_request(user, pk):
    """The caller's own delivery request (404 for anybody else's)."""
    return get_object_or_404(DeliveryRequest, pk=pk, customer=user)


def _plain_items(items):
    """Validated serializer rows -> JSON-safe dicts."""
    rows = []
    for item in items or []:
        row = dict(item)
        if row.get('unit_price') is not None:
            row['unit_price'] = float(row['unit_price'])
        rows.append(row)
    return rows


class ConfirmItemsView(APIView):
    """
    POST /api/requests/{id}/confirm-items/

    The customer confirms what was delivered. Without ``items_snapshot`` the
    receipt lines on the request are used.
    """

    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, pk):
        delivery_request = _customer_request(request.user, pk)

        serializer = ConfirmItemsSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        items = serializer.validated_data.get('items_snapshot')

        try:
            confirmation = confirm_items(
                delivery_request,
                request.user,
                items_snapshot=_plain_items(items) if items is not None else None,
            )
        except SettlementError as e:
            return settlement_error_response(e)

        lock = evaluate_lock(confirmation.delivery_request)
        return Response({
            'ok': True,
            'confirmation_id': str(confirmation.pk),
            'locked': lock.locked,
            'refund_policy': lock.refund_policy,
            'confirmation': OrderConfirmationSerializer(confirmation).data,
        })


class DisputeView(APIView):
    """
    POST /api/requests/{id}/dispute/

    Item-level dispute by the customer. Returns the resulting dispute status
    (OPEN or NEEDS_INFO).
    """

    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, pk):
        delivery_request = _customer_request(request.user, pk)

        serializer = DisputeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            confirmation = file_dispute(
                delivery_request,
                request.user,
                disputed_items=[dict(item) for item in data['disputed_items']],
                dispute_notes=data.get('dispute_notes', ''),
                evidence_urls=data.get('evidence_urls', []),
            )
        except SettlementError as e:
            return settlement_error_response(e)

        return Response({
            'ok': True,
            'dispute_status': confirmation.dispute_status,
            'confirmation': OrderConfirmationSerializer(confirmation).data,
        }, status=status.HTTP_201_CREATED)


class ResolveDisputeView(APIView):
    """POST /api/disputes/{confirmation_id}/resolve/ (staff only)."""

    permission_classes = [permissions.IsAdminUser]

    def post(self, request, confirmation_id):
        confirmation = get_object_or_404(OrderConfirmation, pk=confirmation_id)

        serializer = ResolveDisputeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            confirmation = resolve_dispute(
                confirmation,
                data['resolution'],
                notes=data.get('notes', ''),
                refund_amount=data.get('refund_amount'),
                resolved_by=request.user,
            )
        except SettlementError as e:
            return settlement_error_response(e)

        return Response({
            'ok': True,
            'confirmation_id': str(confirmation.pk),
            'dispute_status': confirmation.dispute_status,
        })
