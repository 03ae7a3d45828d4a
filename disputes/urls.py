"""
Disputes App URL Configuration
"""

from django.urls import path
from .views import ConfirmItemsView, DisputeView, ResolveDisputeView

app_name = 'disputes'

urlpatterns = [
    path('requests/<uuid:pk>/confirm-items/', ConfirmItemsView.as_view(), name='confirm-items'),
    path('requests/<uuid:pk>/dispute/', DisputeView.as_view(), name='dispute'),
    path('disputes/<uuid:confirmation_id>/resolve/', ResolveDisputeView.as_view(), name='resolve-dispute'),
]
