"""
Logistics App Views - Delivery request lifecycle API
"""

import logging

from rest_framework import viewsets, status, permissions
from rest_framework.decorators import action
from rest_framework.response import Response
from django.db.models import Q

from core.exceptions import SettlementError
from .models import DeliveryRequest, DeliveryRequestStatus
from .serializers import DeliveryRequestSerializer, PayBreakdownSerializer
from .services.lifecycle import (
    accept_delivery_request, cancel_delivery_request, complete_delivery_request,
    mark_driver_arrived, mark_driver_departed,
)

logger = logging.getLogger(__name__)


def get_driver_profile(user):
    """Driver profile of the authenticated user, or None."""
    return getattr(user, 'driver_profile', None)


class IsDriver(permissions.BasePermission):
    """Only users with an active driver profile."""

    message = 'Only drivers can perform this action.'

    def has_permission(self, request, view):
        if not request.user.is_authenticated:
            return False
        profile = get_driver_profile(request.user)
        return profile is not None and profile.is_active


def settlement_error_response(exc: SettlementError) -> Response:
    return Response(exc.as_dict(), status=exc.status_code)


class DeliveryRequestViewSet(viewsets.ReadOnlyModelViewSet):
    """
    Delivery requests visible to the caller, plus driver lifecycle actions.

    POST /api/requests/{id}/accept/
    POST /api/requests/{id}/arrive/
    POST /api/requests/{id}/depart/
    POST /api/requests/{id}/complete/
    POST /api/requests/{id}/cancel/
    """

    serializer_class = DeliveryRequestSerializer
    permission_classes = [permissions.IsAuthenticated]
    lookup_value_regex = r"[0-9a-fA-F-]{36}"

    def get_queryset(self):
        user = self.request.user
        qs = DeliveryRequest.objects.select_related('assigned_driver').prefetch_related('time_logs')

        if user.is_staff:
            return qs
        driver = get_driver_profile(user)
        if driver is not None:
            return qs.filter(
                Q(assigned_driver=driver) | Q(status=DeliveryRequestStatus.REQUESTED)
            )
        return qs.filter(customer=user)

    def _run(self, operation, pk):
        driver = get_driver_profile(self.request.user)
        try:
            delivery_request = operation(pk, driver.pk)
        except SettlementError as e:
            return settlement_error_response(e)
        return Response(DeliveryRequestSerializer(delivery_request).data)

    @action(detail=True, methods=['post'], permission_classes=[IsDriver])
    def accept(self, request, pk=None):
        """Accept a REQUESTED delivery (first driver wins)."""
        return self._run(accept_delivery_request, pk)

    @action(detail=True, methods=['post'], permission_classes=[IsDriver])
    def arrive(self, request, pk=None):
        """Driver reached the pickup; starts the time log."""
        return self._run(mark_driver_arrived, pk)

    @action(detail=True, methods=['post'], permission_classes=[IsDriver])
    def depart(self, request, pk=None):
        return self._run(mark_driver_departed, pk)

    @action(detail=True, methods=['post'], permission_classes=[IsDriver])
    def complete(self, request, pk=None):
        """Deliver and settle pay. Returns the request and the pay breakdown."""
        driver = get_driver_profile(request.user)
        try:
            result = complete_delivery_request(pk, driver.pk)
        except SettlementError as e:
            return settlement_error_response(e)

        return Response({
            'request': DeliveryRequestSerializer(result.request).data,
            'earnings_id': str(result.earnings.pk),
            'pay': PayBreakdownSerializer(result.pay.to_dict()).data,
        })

    @action(detail=True, methods=['post'])
    def cancel(self, request, pk=None):
        """
        Cancel a request.

        Customers may cancel their own requests, the assigned driver may
        cancel theirs, staff may cancel anything.
        """
        user = request.user
        driver = get_driver_profile(user)

        try:
            if user.is_staff:
                delivery_request = cancel_delivery_request(pk)
            elif DeliveryRequest.objects.filter(pk=pk, customer=user).exists():
                delivery_request = cancel_delivery_request(pk)
            elif driver is not None:
                delivery_request = cancel_delivery_request(pk, driver.pk)
            else:
                return Response(
                    {'error': 'NOT_FOUND', 'message': 'Request not found'},
                    status=status.HTTP_404_NOT_FOUND
                )
        except SettlementError as e:
            return settlement_error_response(e)

        return Response(DeliveryRequestSerializer(delivery_request).data)
