from django.db.models import Q
from rest_framework import viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated

from order_fulfillment.exceptions import BusinessException
from order_fulfillment.responses import error_response, success_response
from users.permissions import IsCompanyAdminOrSuperAdmin
from .models import Vendor, VendorProduct, PurchaseOrder
from .serializers import (
    VendorSerializer, VendorProductSerializer, PurchaseOrderSerializer, PurchaseOrderListSerializer,
    GoodsReceiptNoteSerializer,
)
from .services import ReceiptService


class VendorViewSet(viewsets.ModelViewSet):
    """ViewSet for vendor management."""
    queryset = Vendor.objects.all().order_by('name')
    serializer_class = VendorSerializer
    lookup_field = 'vendor_code'
    filterset_fields = ['status', 'is_preferred']
    search_fields = ['name', 'vendor_code', 'email']

    def get_permissions(self):
        if self.action in ['list', 'retrieve', 'products']:
            return [IsAuthenticated()]
        return [IsCompanyAdminOrSuperAdmin()]

    def perform_create(self, serializer):
        serializer.save(created_by=self.request.user)

    @action(detail=True, methods=['get'])
    def products(self, request, vendor_code=None):
        """Products this vendor supplies, limited to the user's company unless super admin."""
        links = VendorProduct.objects.filter(vendor_id=vendor_code, is_active=True)
        if not request.user.is_super_admin:
            links = links.filter(company_id=request.user.company_id)
        return success_response(VendorProductSerializer(links, many=True).data)


class PurchaseOrderViewSet(viewsets.ReadOnlyModelViewSet):
    """
    ViewSet for purchase orders.

    Purchase orders are issued by the approval chain, never created here.
    Vendors raise GRNs; the ordering company acknowledges them.
    """
    queryset = PurchaseOrder.objects.all().order_by('-created_at')
    permission_classes = [IsAuthenticated]
    lookup_field = 'po_number'
    filterset_fields = ['status', 'vendor', 'company']
    search_fields = ['po_number', 'pr_number', 'vendor__name']

    def get_serializer_class(self):
        if self.action == 'list':
            return PurchaseOrderListSerializer
        return PurchaseOrderSerializer

    def get_queryset(self):
        user = self.request.user
        queryset = super().get_queryset().select_related('vendor')
        if user.is_super_admin:
            return queryset

        scope = Q(pk__in=[])
        if user.company_id and (user.is_company_admin or user.is_employee):
            scope |= Q(company_id=user.company_id)
        if user.is_vendor_user and user.vendor_id:
            scope |= Q(vendor_id=user.vendor_id)
        if user.is_site_admin:
            scope |= Q(order__location__in=user.managed_locations.all())
        return queryset.filter(scope)

    @action(detail=True, methods=['post'], url_path='raise-grn')
    def raise_grn(self, request, po_number=None):
        """Vendor raises the goods receipt note."""
        try:
            grn = ReceiptService.raise_grn(po_number, request.user)
        except BusinessException as e:
            return error_response(e)
        return success_response(GoodsReceiptNoteSerializer(grn).data)

    @action(detail=True, methods=['post'])
    def acknowledge(self, request, po_number=None):
        """Acknowledge receipt; completes the PO and fulfils the order."""
        try:
            grn = ReceiptService.acknowledge_receipt(po_number, request.user)
        except BusinessException as e:
            return error_response(e)
        return success_response(GoodsReceiptNoteSerializer(grn).data)
