"""
Order serializers for uniform orders.
"""

from rest_framework import serializers

from ..models import Order, OrderItem, OrderApproval, RejectionReason


class OrderItemSerializer(serializers.ModelSerializer):
    """Serializer for OrderItem model."""

    product_code = serializers.CharField(source='product_id', read_only=True)
    total_weight = serializers.DecimalField(max_digits=12, decimal_places=3, read_only=True)

    class Meta:
        model = OrderItem
        fields = [
            'id', 'product_code', 'product_name', 'size', 'quantity',
            'unit_price', 'unit_weight', 'line_total', 'total_weight',
        ]
        read_only_fields = fields


class CartItemSerializer(serializers.Serializer):
    """One cart line; price and name are looked up from the catalog."""

    product_code = serializers.CharField(max_length=50)
    size = serializers.CharField(max_length=20, required=False, allow_blank=True, default='')
    quantity = serializers.IntegerField(min_value=1)


class OrderCreateSerializer(serializers.Serializer):
    """Serializer for submitting a cart."""

    items = CartItemSerializer(many=True)
    notes = serializers.CharField(required=False, allow_blank=True, default='')

    def validate_items(self, value):
        """Validate order items."""
        if not value:
            raise serializers.ValidationError("Order must contain at least one item")

        keys = [(item['product_code'], item.get('size', '')) for item in value]
        if len(keys) != len(set(keys)):
            raise serializers.ValidationError("Duplicate product and size in order")

        return value


class OrderApprovalSerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderApproval
        fields = ['gate', 'approver', 'from_status', 'to_status', 'pr_number', 'remarks', 'approved_at']
        read_only_fields = fields


class OrderListSerializer(serializers.ModelSerializer):
    """Serializer for order listing."""

    employee_name = serializers.CharField(source='employee.username', read_only=True)
    items_count = serializers.SerializerMethodField()

    class Meta:
        model = Order
        fields = [
            'order_number', 'employee', 'employee_name', 'company', 'location', 'vendor',
            'parent_order', 'status', 'pr_status', 'pr_number', 'total_amount', 'items_count',
            'created_at', 'updated_at',
        ]

    def get_items_count(self, obj):
        return obj.items.count()


class OrderDetailSerializer(serializers.ModelSerializer):
    """Serializer for order details."""

    employee_name = serializers.CharField(source='employee.username', read_only=True)
    items = OrderItemSerializer(many=True, read_only=True)
    approvals = OrderApprovalSerializer(many=True, read_only=True)
    sub_orders = serializers.SlugRelatedField(many=True, read_only=True, slug_field='order_number')

    class Meta:
        model = Order
        fields = [
            'order_number', 'employee', 'employee_name', 'company', 'location', 'vendor',
            'parent_order', 'sub_orders', 'status', 'pr_status', 'pr_number', 'pr_date',
            'policy_workflow_enabled', 'policy_site_admin_required', 'policy_company_admin_required',
            'total_amount', 'rejection_reason', 'rejection_reason_code', 'rejected_by', 'rejected_at',
            'delivery_address', 'delivery_city', 'delivery_state', 'delivery_pincode', 'delivery_phone',
            'notes', 'items', 'approvals', 'created_at', 'updated_at',
        ]
        read_only_fields = fields


class ApproveSerializer(serializers.Serializer):
    pr_number = serializers.CharField(max_length=50, required=False, allow_blank=True)
    pr_date = serializers.DateField(required=False)
    expected_status = serializers.CharField(max_length=40, required=False, allow_blank=True)
    remarks = serializers.CharField(required=False, allow_blank=True, default='')


class RejectSerializer(serializers.Serializer):
    reason = serializers.CharField()
    reason_code = serializers.ChoiceField(choices=RejectionReason.choices, required=False)
