"""
Logistics App URLs
"""

from django.urls import path, include
from rest_framework.routers import DefaultRouter

from .views import DeliveryRequestViewSet

router = DefaultRouter()
router.register(r'requests', DeliveryRequestViewSet, basename='delivery-request')

urlpatterns = [
    path('', include(router.urls)),
]
