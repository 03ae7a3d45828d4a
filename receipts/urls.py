"""
Receipts App URL Configuration
"""

from django.urls import path
from .views import ReceiptVerifyView

app_name = 'receipts'

urlpatterns = [
    path('requests/<uuid:pk>/receipt/verify/', ReceiptVerifyView.as_view(), name='receipt-verify'),
]
