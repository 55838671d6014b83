"""
Order views for uniform orders.
"""

from django.db.models import Q
from rest_framework import viewsets, mixins, status
from rest_framework.decorators import action

from users.permissions import IsApprover
from ..exceptions import BusinessException
from ..models import Order
from ..responses import error_response, success_response
from ..services import OrderService, OrderSplitter, ApprovalService
from ..serializers import (
    OrderCreateSerializer, OrderListSerializer, OrderDetailSerializer, ApproveSerializer, RejectSerializer,
)
from ..permissions import IsOrderParticipant


class OrderViewSet(mixins.CreateModelMixin, viewsets.ReadOnlyModelViewSet):
    """
    ViewSet for uniform orders.

    Employees submit carts; site and company admins approve or reject the
    resulting vendor sub-orders.
    """

    queryset = Order.objects.all()
    lookup_field = 'order_number'
    permission_classes = [IsOrderParticipant]
    filterset_fields = ['status', 'pr_status', 'company', 'location', 'vendor', 'parent_order']
    search_fields = ['order_number', 'pr_number']
    ordering_fields = ['created_at', 'total_amount']

    def get_serializer_class(self):
        """Return appropriate serializer based on action."""
        if self.action == 'create':
            return OrderCreateSerializer
        elif self.action in ['list', 'pending_approvals']:
            return OrderListSerializer
        elif self.action == 'approve':
            return ApproveSerializer
        elif self.action == 'reject':
            return RejectSerializer
        else:
            return OrderDetailSerializer

    def get_queryset(self):
        """Filter queryset to the orders the user can see."""
        user = self.request.user

        if not user.is_authenticated:
            return Order.objects.none()

        queryset = Order.objects.select_related('employee').prefetch_related('items')
        if user.is_super_admin:
            return queryset

        scope = Q(employee=user)
        if user.is_company_admin and user.company_id:
            scope |= Q(company_id=user.company_id)
        if user.is_site_admin:
            scope |= Q(location__in=user.managed_locations.all())
        if user.is_vendor_user and user.vendor_id:
            scope |= Q(vendor_id=user.vendor_id)
        return queryset.filter(scope)

    def create(self, request, *args, **kwargs):
        """
        Submit a cart for the requesting employee.

        By default the cart is split into vendor sub-orders in the same
        transaction; pass ``?split=false`` to keep it as a DRAFT.
        """
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        items = serializer.validated_data['items']
        notes = serializer.validated_data.get('notes', '')

        try:
            if request.query_params.get('split', 'true').lower() == 'false':
                order = OrderService.create_order(request.user, items, created_by=request.user, notes=notes)
                sub_orders = []
            else:
                order, sub_orders = OrderService.submit_order(
                    request.user, items, created_by=request.user, notes=notes
                )
        except BusinessException as e:
            return error_response(e)

        return success_response({
            'order': OrderDetailSerializer(order).data,
            'sub_orders': sub_orders,
        }, status.HTTP_201_CREATED)

    @action(detail=True, methods=['post'])
    def split(self, request, order_number=None):
        """Split a DRAFT cart order into vendor sub-orders."""
        order = self.get_object()

        try:
            sub_orders = OrderSplitter.split_order(order.order_number, actor=request.user)
        except BusinessException as e:
            return error_response(e)
        return success_response({'order_number': order.order_number, 'sub_orders': sub_orders})

    @action(detail=True, methods=['post'], permission_classes=[IsApprover])
    def approve(self, request, order_number=None):
        """Approve a sub-order at its current gate."""
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            pr_status = ApprovalService.approve(
                order_number,
                request.user,
                pr_number=data.get('pr_number') or None,
                pr_date=data.get('pr_date'),
                expected_status=data.get('expected_status') or None,
                remarks=data.get('remarks', ''),
            )
        except BusinessException as e:
            return error_response(e)

        order = Order.objects.get(order_number=order_number)
        return success_response({
            'order_number': order_number,
            'pr_status': pr_status,
            'pr_number': order.pr_number,
            'status': order.status,
        })

    @action(detail=True, methods=['post'], permission_classes=[IsApprover])
    def reject(self, request, order_number=None):
        """Reject an order; final."""
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            pr_status = ApprovalService.reject(
                order_number,
                request.user,
                serializer.validated_data['reason'],
                reason_code=serializer.validated_data.get('reason_code'),
            )
        except BusinessException as e:
            return error_response(e)
        return success_response({'order_number': order_number, 'pr_status': pr_status})

    @action(detail=False, methods=['get'], url_path='pending-approvals', permission_classes=[IsApprover])
    def pending_approvals(self, request):
        """Orders waiting on the requesting admin's gate."""
        try:
            queryset = ApprovalService.pending_approvals(request.user)
        except BusinessException as e:
            return error_response(e)

        page = self.paginate_queryset(queryset)
        if page is not None:
            return self.get_paginated_response(self.get_serializer(page, many=True).data)
        return success_response(self.get_serializer(queryset, many=True).data)

    @action(detail=True, methods=['get'])
    def summary(self, request, order_number=None):
        """Get order summary with sub-orders, approvals and purchase orders."""
        order = self.get_object()
        return success_response(OrderService.get_order_summary(order.order_number))
