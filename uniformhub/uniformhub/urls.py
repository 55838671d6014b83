"""
URL configuration for the uniformhub project.
"""
from django.contrib import admin
from django.http import JsonResponse
from django.urls import path, include
from django.views.decorators.http import require_http_methods
from rest_framework.routers import DefaultRouter
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from order_fulfillment.views import OrderViewSet
from vendor_management.api_views import VendorViewSet, PurchaseOrderViewSet
from shipping.views import ShipmentViewSet, ShippingProviderViewSet, CompanyShippingProviderViewSet


@require_http_methods(["GET"])
def api_root(request):
    """API root view with available endpoints."""
    return JsonResponse({
        'message': 'Uniform Hub API',
        'version': '1.0.0',
        'endpoints': {
            'authentication': {
                'token': '/api/token/',
                'token_refresh': '/api/token/refresh/',
            },
            'orders': {
                'orders': '/api/orders/',
                'pending_approvals': '/api/orders/pending-approvals/',
            },
            'vendor_management': {
                'vendors': '/api/vendors/',
                'purchase_orders': '/api/purchase-orders/',
            },
            'shipping': {
                'shipments': '/api/shipments/',
                'serviceability': '/api/shipments/serviceability/',
                'providers': '/api/shipping-providers/',
                'provider_health': '/api/shipping-providers/health/',
                'company_providers': '/api/company-shipping-providers/',
            },
        }
    })


router = DefaultRouter()

# Orders API
router.register(r'orders', OrderViewSet, basename='order')

# Vendor Management API
router.register(r'vendors', VendorViewSet, basename='vendor')
router.register(r'purchase-orders', PurchaseOrderViewSet, basename='purchase-order')

# Shipping API
router.register(r'shipments', ShipmentViewSet, basename='shipment')
router.register(r'shipping-providers', ShippingProviderViewSet, basename='shipping-provider')
router.register(r'company-shipping-providers', CompanyShippingProviderViewSet, basename='company-shipping-provider')

urlpatterns = [
    path("admin/", admin.site.urls),

    # API endpoints
    path('api/', api_root, name='api-root'),  # exact match for /api/ must come first
    path('api/', include(router.urls)),
    path('api/token/', TokenObtainPairView.as_view(), name='token_obtain_pair'),
    path('api/token/refresh/', TokenRefreshView.as_view(), name='token_refresh'),
]
