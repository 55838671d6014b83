"""
Django admin configuration for uniform orders.
"""

from django.contrib import admin
from .models import Order, OrderItem, OrderApproval, AuditLog


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    fk_name = 'order'
    extra = 0
    readonly_fields = ['product', 'product_name', 'size', 'quantity', 'unit_price', 'line_total']


class OrderApprovalInline(admin.TabularInline):
    model = OrderApproval
    extra = 0
    readonly_fields = ['gate', 'approver', 'from_status', 'to_status', 'pr_number', 'approved_at']


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ['order_number', 'employee', 'company', 'vendor', 'status', 'pr_status', 'total_amount', 'created_at']
    list_filter = ['status', 'pr_status', 'company', 'created_at']
    search_fields = ['order_number', 'pr_number', 'employee__username']
    readonly_fields = ['id', 'order_number', 'pr_status', 'created_at', 'updated_at']
    inlines = [OrderItemInline, OrderApprovalInline]


@admin.register(OrderItem)
class OrderItemAdmin(admin.ModelAdmin):
    list_display = ['order', 'product', 'size', 'quantity', 'unit_price', 'line_total']
    list_filter = ['order__status']
    search_fields = ['product__product_code', 'order__order_number']
    readonly_fields = ['id']


@admin.register(OrderApproval)
class OrderApprovalAdmin(admin.ModelAdmin):
    list_display = ['order', 'gate', 'approver', 'from_status', 'to_status', 'pr_number', 'approved_at']
    list_filter = ['gate', 'approved_at']
    search_fields = ['order__order_number', 'pr_number']
    readonly_fields = ['id', 'approved_at']


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    list_display = ['entity_type', 'entity_ref', 'action', 'user', 'timestamp']
    list_filter = ['entity_type', 'action', 'timestamp']
    search_fields = ['entity_ref', 'user__username']
    readonly_fields = ['timestamp']
