"""
OTW Main URL Configuration
"""

from django.contrib import admin
from django.urls import path, include
from rest_framework.decorators import api_view
from rest_framework.response import Response
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView


# ===========================================
# ADMIN SITE CUSTOMIZATION
# ===========================================
admin.site.site_header = "OTW Settlement Console"
admin.site.site_title = "OTW Admin"
admin.site.index_title = "Deliveries, receipts & disputes"


@api_view(['GET'])
def api_root(request):
    """API Root endpoint with available routes."""
    return Response({
        'name': 'OTW Settlement API',
        'version': '1.0.0',
        'endpoints': {
            'auth': {
                'token': '/api/auth/token/',
                'refresh': '/api/auth/token/refresh/',
            },
            'requests': {
                'list': '/api/requests/',
                'accept': '/api/requests/{id}/accept/',
                'arrive': '/api/requests/{id}/arrive/',
                'depart': '/api/requests/{id}/depart/',
                'complete': '/api/requests/{id}/complete/',
                'cancel': '/api/requests/{id}/cancel/',
            },
            'receipts': '/api/requests/{id}/receipt/verify/',
            'confirmation': '/api/requests/{id}/confirm-items/',
            'dispute': '/api/requests/{id}/dispute/',
            'resolve': '/api/disputes/{confirmation_id}/resolve/',
        }
    })


urlpatterns = [
    # Admin
    path('admin/', admin.site.urls),

    # Auth (JWT)
    path('api/auth/token/', TokenObtainPairView.as_view(), name='token_obtain_pair'),
    path('api/auth/token/refresh/', TokenRefreshView.as_view(), name='token_refresh'),

    # API Root
    path('api/', api_root, name='api-root'),

    # App URLs
    path('api/', include('logistics.urls')),
    path('api/', include('receipts.urls')),
    path('api/', include('disputes.urls')),
]
