from rest_framework import serializers
from .models import Vendor, VendorProduct, PurchaseOrder, GoodsReceiptNote


class VendorSerializer(serializers.ModelSerializer):
    """Serializer for vendors."""
    active_pos = serializers.SerializerMethodField()

    class Meta:
        model = Vendor
        fields = [
            'id', 'name', 'vendor_code', 'contact_person', 'email', 'phone',
            'address', 'city', 'state', 'country', 'pincode', 'pickup_location_name',
            'status', 'is_preferred', 'created_by', 'created_at', 'updated_at', 'active_pos',
        ]
        read_only_fields = ['created_by', 'created_at', 'updated_at']

    def get_active_pos(self, obj):
        return obj.purchase_orders.filter(status='ISSUED').count()


class VendorProductSerializer(serializers.ModelSerializer):
    class Meta:
        model = VendorProduct
        fields = ['id', 'vendor', 'product', 'company', 'is_active', 'created_at']
        read_only_fields = ['created_at']


class GoodsReceiptNoteSerializer(serializers.ModelSerializer):
    """Serializer for goods receipt notes."""
    is_approved = serializers.BooleanField(read_only=True)

    class Meta:
        model = GoodsReceiptNote
        fields = [
            'grn_number', 'purchase_order', 'status', 'is_approved', 'raised_by',
            'acknowledged', 'acknowledged_by', 'acknowledged_at',
            'approved_by', 'approved_at', 'remarks', 'created_at', 'updated_at',
        ]
        read_only_fields = fields


class PurchaseOrderListSerializer(serializers.ModelSerializer):
    """Simplified serializer for PO lists."""
    vendor_name = serializers.CharField(source='vendor.name', read_only=True)

    class Meta:
        model = PurchaseOrder
        fields = [
            'po_number', 'order', 'vendor', 'vendor_name', 'company', 'pr_number',
            'status', 'order_date', 'total_amount', 'created_at',
        ]


class PurchaseOrderSerializer(serializers.ModelSerializer):
    """Serializer for purchase orders."""
    vendor_name = serializers.CharField(source='vendor.name', read_only=True)
    grn = serializers.SerializerMethodField()

    class Meta:
        model = PurchaseOrder
        fields = [
            'po_number', 'order', 'vendor', 'vendor_name', 'company', 'pr_number',
            'order_date', 'total_amount', 'status', 'issued_by', 'completed_at',
            'cancelled_at', 'cancellation_reason', 'grn', 'created_at', 'updated_at',
        ]
        read_only_fields = fields

    def get_grn(self, obj):
        grn = GoodsReceiptNote.objects.filter(purchase_order=obj).first()
        return GoodsReceiptNoteSerializer(grn).data if grn else None
