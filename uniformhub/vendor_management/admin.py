from django.contrib import admin
from .models import Vendor, VendorProduct, PurchaseOrder, GoodsReceiptNote


@admin.register(Vendor)
class VendorAdmin(admin.ModelAdmin):
    list_display = ['name', 'vendor_code', 'email', 'phone', 'pincode', 'status', 'is_preferred']
    list_filter = ['status', 'is_preferred', 'state']
    search_fields = ['name', 'vendor_code', 'email']
    ordering = ['name']


@admin.register(VendorProduct)
class VendorProductAdmin(admin.ModelAdmin):
    list_display = ['vendor', 'product', 'company', 'is_active']
    list_filter = ['is_active', 'company', 'vendor']
    search_fields = ['vendor__vendor_code', 'product__product_code']


@admin.register(PurchaseOrder)
class PurchaseOrderAdmin(admin.ModelAdmin):
    list_display = ['po_number', 'order', 'vendor', 'company', 'pr_number', 'status', 'order_date', 'total_amount']
    list_filter = ['status', 'order_date', 'vendor']
    search_fields = ['po_number', 'pr_number', 'vendor__name']
    ordering = ['-created_at']
    readonly_fields = ['po_number']

    def get_queryset(self, request):
        return super().get_queryset(request).select_related('vendor', 'issued_by')


@admin.register(GoodsReceiptNote)
class GoodsReceiptNoteAdmin(admin.ModelAdmin):
    list_display = ['grn_number', 'purchase_order', 'status', 'acknowledged', 'approved_at']
    list_filter = ['status', 'acknowledged']
    search_fields = ['grn_number', 'purchase_order__po_number']
    readonly_fields = ['grn_number']
