"""
Uniform order models
"""

from .order import Order, OrderStatus, PRStatus
from .order_item import OrderItem
from .approval import OrderApproval, ApprovalGate, RejectionReason
from .audit import AuditLog

__all__ = [
    # Order models
    'Order', 'OrderStatus', 'PRStatus',
    'OrderItem',

    # Approval chain
    'OrderApproval', 'ApprovalGate', 'RejectionReason',

    # Audit
    'AuditLog',
]
