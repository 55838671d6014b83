"""
Purchase order and goods receipt services
"""

from .purchase_order_service import PurchaseOrderService
from .receipt_service import ReceiptService

__all__ = ['PurchaseOrderService', 'ReceiptService']
