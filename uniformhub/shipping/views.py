"""
Shipment views.
"""

from django.db.models import Q
from rest_framework import viewsets, status
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated

from order_fulfillment.exceptions import BusinessException, ValidationException
from order_fulfillment.models import Order
from order_fulfillment.responses import error_response, success_response
from users.permissions import IsCompanyAdminOrSuperAdmin
from .models import Shipment, ShippingProvider, CompanyShippingProvider
from .permissions import CanManageShipments, check_order_scope
from .registry import ProviderRegistry
from .serializers import (
    ShipmentSerializer, ShipmentListSerializer, ShipmentCreateSerializer, ManualShipmentSerializer,
    ManualStatusSerializer, CancelShipmentSerializer, ServiceabilitySerializer,
    ShippingProviderSerializer, CompanyShippingProviderSerializer,
)
from .services import ShipmentReconciler


def _scoped_order(user, order_number):
    try:
        order = Order.objects.get(order_number=order_number)
    except Order.DoesNotExist:
        raise ValidationException(f"Order {order_number} does not exist", {"order_number": order_number})
    check_order_scope(user, order)
    return order


class ShipmentViewSet(viewsets.ReadOnlyModelViewSet):
    """
    ViewSet for shipments.

    ``create`` books through the company's provider; ``manual`` records a
    shipment dispatched outside any integration.
    """

    queryset = Shipment.objects.all()
    lookup_field = 'shipment_number'
    filterset_fields = ['shipment_mode', 'shipment_status', 'provider', 'vendor', 'order']
    search_fields = ['shipment_number', 'tracking_number', 'order__order_number']
    ordering_fields = ['created_at', 'last_synced_at']

    def get_permissions(self):
        if self.action in ['list', 'retrieve', 'serviceability']:
            return [IsAuthenticated()]
        return [CanManageShipments()]

    def get_serializer_class(self):
        if self.action == 'list':
            return ShipmentListSerializer
        elif self.action == 'create':
            return ShipmentCreateSerializer
        elif self.action == 'manual':
            return ManualShipmentSerializer
        elif self.action == 'manual_status':
            return ManualStatusSerializer
        elif self.action == 'cancel':
            return CancelShipmentSerializer
        elif self.action == 'serviceability':
            return ServiceabilitySerializer
        return ShipmentSerializer

    def get_queryset(self):
        user = self.request.user
        queryset = Shipment.objects.select_related('order').prefetch_related('events')
        if user.is_super_admin:
            return queryset

        scope = Q(order__employee=user)
        if user.company_id and user.is_company_admin:
            scope |= Q(order__company_id=user.company_id)
        if user.is_site_admin:
            scope |= Q(order__location__in=user.managed_locations.all())
        if user.is_vendor_user and user.vendor_id:
            scope |= Q(vendor_id=user.vendor_id)
        return queryset.filter(scope)

    def _shipment_response(self, shipment_number, status_code=status.HTTP_200_OK):
        shipment = Shipment.objects.prefetch_related('events').get(shipment_number=shipment_number)
        return success_response(ShipmentSerializer(shipment).data, status_code)

    def create(self, request, *args, **kwargs):
        """Book a shipment through the provider API."""
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            _scoped_order(request.user, data['order_number'])
            shipment_number = ShipmentReconciler.create_shipment(
                data['order_number'],
                actor=request.user,
                provider_code=data.get('provider_code') or None,
                courier_code=data.get('courier_code') or None,
            )
        except BusinessException as e:
            return error_response(e)
        return self._shipment_response(shipment_number, status.HTTP_201_CREATED)

    @action(detail=False, methods=['post'])
    def manual(self, request):
        """Record a manually dispatched shipment."""
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            _scoped_order(request.user, data['order_number'])
            shipment_number = ShipmentReconciler.create_manual_shipment(
                data['order_number'],
                data['tracking_number'],
                data['courier_name'],
                actor=request.user,
                tracking_url=data.get('tracking_url', ''),
            )
        except BusinessException as e:
            return error_response(e)
        return self._shipment_response(shipment_number, status.HTTP_201_CREATED)

    @action(detail=True, methods=['post'], url_path='manual-status')
    def manual_status(self, request, shipment_number=None):
        shipment = self.get_object()
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            check_order_scope(request.user, shipment.order)
            ShipmentReconciler.update_manual_status(
                shipment_number, serializer.validated_data['status'], actor=request.user
            )
        except BusinessException as e:
            return error_response(e)
        return self._shipment_response(shipment_number)

    @action(detail=True, methods=['post'])
    def reconcile(self, request, shipment_number=None):
        """Pull the latest tracking state from the carrier."""
        shipment = self.get_object()

        try:
            check_order_scope(request.user, shipment.order)
            outcome = ShipmentReconciler.reconcile_tracking(shipment_number)
        except BusinessException as e:
            return error_response(e)
        return success_response(outcome)

    @action(detail=True, methods=['post'])
    def cancel(self, request, shipment_number=None):
        shipment = self.get_object()
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            check_order_scope(request.user, shipment.order)
            ShipmentReconciler.cancel_shipment(
                shipment_number, actor=request.user, reason=serializer.validated_data.get('reason', '')
            )
        except BusinessException as e:
            return error_response(e)
        return self._shipment_response(shipment_number)

    @action(detail=False, methods=['post'])
    def serviceability(self, request):
        """Couriers serving a route, from the company's provider."""
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        company_code = data.get('company_code') or request.user.company_id
        if not request.user.is_super_admin and company_code != request.user.company_id:
            company_code = request.user.company_id
        if not company_code:
            return error_response(ValidationException("company_code is required", {"company_code": "required"}))

        try:
            result = ShipmentReconciler.check_serviceability(
                company_code, data['from_pincode'], data['to_pincode'], data['weight'],
                provider_code=data.get('provider_code') or None,
            )
        except BusinessException as e:
            return error_response(e)
        return success_response({
            'serviceable': result.serviceable,
            'couriers': [
                {
                    'courier_code': courier.courier_code,
                    'courier_name': courier.courier_name,
                    'rate': courier.rate,
                    'estimated_days': courier.estimated_days,
                }
                for courier in result.couriers
            ],
        })


class ShippingProviderViewSet(viewsets.ReadOnlyModelViewSet):
    """Known provider integrations, plus a per-company health check."""

    queryset = ShippingProvider.objects.filter(is_active=True)
    serializer_class = ShippingProviderSerializer
    lookup_field = 'provider_code'
    permission_classes = [IsAuthenticated]

    @action(detail=False, methods=['get'], permission_classes=[IsCompanyAdminOrSuperAdmin])
    def health(self, request):
        company_code = request.query_params.get('company_code') or request.user.company_id
        if not request.user.is_super_admin:
            company_code = request.user.company_id
        if not company_code:
            return error_response(ValidationException("company_code is required", {"company_code": "required"}))

        try:
            result = ProviderRegistry.health_check(company_code, request.query_params.get('provider_code') or None)
        except BusinessException as e:
            return error_response(e)
        return success_response({
            'company_code': company_code,
            'healthy': result.healthy,
            'latency_ms': result.latency_ms,
            'message': result.message,
        })


class CompanyShippingProviderViewSet(viewsets.ModelViewSet):
    """Company provider configuration; credentials are accepted but never returned."""

    serializer_class = CompanyShippingProviderSerializer
    permission_classes = [IsCompanyAdminOrSuperAdmin]
    filterset_fields = ['company', 'provider', 'is_enabled', 'is_default']

    def get_queryset(self):
        queryset = CompanyShippingProvider.objects.select_related('provider')
        if self.request.user.is_super_admin:
            return queryset
        return queryset.filter(company_id=self.request.user.company_id)

    def perform_create(self, serializer):
        if not self.request.user.is_super_admin:
            serializer.save(company_id=self.request.user.company_id)
        else:
            serializer.save()
