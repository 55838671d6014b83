from .order_serializers import (
    OrderItemSerializer, CartItemSerializer, OrderCreateSerializer, OrderApprovalSerializer,
    OrderListSerializer, OrderDetailSerializer, ApproveSerializer, RejectSerializer,
)

__all__ = [
    'OrderItemSerializer',
    'CartItemSerializer',
    'OrderCreateSerializer',
    'OrderApprovalSerializer',
    'OrderListSerializer',
    'OrderDetailSerializer',
    'ApproveSerializer',
    'RejectSerializer',
]
