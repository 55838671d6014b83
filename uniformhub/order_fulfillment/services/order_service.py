"""
Order Service for uniform orders.

Handles cart submission: capturing line items at their current price and
handing the cart to the splitter.
"""

import logging
from decimal import Decimal
from typing import Dict, Any, List, Tuple
from django.db import transaction

from ..adapters.catalog_adapter import get_catalog_adapter
from ..exceptions import ValidationException
from ..models import Order, OrderItem, OrderStatus, PRStatus, AuditLog

logger = logging.getLogger(__name__)


class OrderService:
    """Service class for order operations."""

    @staticmethod
    def _validate_items(items: List[Dict[str, Any]]) -> None:
        if not items:
            raise ValidationException("Order must contain at least one item")

        seen = set()
        for index, item in enumerate(items):
            if not item.get('product_code'):
                raise ValidationException("Each item needs a product_code", {f"items[{index}]": "product_code required"})
            quantity = item.get('quantity')
            if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity <= 0:
                raise ValidationException(
                    "Quantity must be a positive integer", {f"items[{index}]": "invalid quantity"}
                )
            key = (item['product_code'], item.get('size', ''))
            if key in seen:
                raise ValidationException(
                    f"Duplicate line for {item['product_code']} size {key[1] or '-'}",
                    {f"items[{index}]": "duplicate"}
                )
            seen.add(key)

    @staticmethod
    def create_order(employee, items: List[Dict[str, Any]], created_by=None, notes: str = "") -> Order:
        """
        Create a cart order for an employee.

        Args:
            employee: Employee the order is for
            items: [{"product_code": str, "size": str, "quantity": int}, ...]
            created_by: User creating the order (defaults to the employee)
            notes: Free-text notes

        Returns:
            Created Order instance, still in DRAFT

        Raises:
            ValidationException: If order data is invalid
        """
        OrderService._validate_items(items)
        if employee.company_id is None:
            raise ValidationException(
                f"Employee {employee.employee_code} is not assigned to a company",
                {"employee": employee.employee_code}
            )

        catalog = get_catalog_adapter()
        created_by = created_by or employee

        with transaction.atomic():
            order = Order.objects.create(
                employee=employee,
                company_id=employee.company_id,
                location_id=employee.location_id,
                delivery_address=employee.address,
                delivery_city=employee.city,
                delivery_state=employee.state,
                delivery_pincode=employee.pincode,
                delivery_phone=employee.phone,
                notes=notes,
                created_by=created_by,
            )

            total_amount = Decimal('0.00')
            for item_data in items:
                try:
                    product = catalog.get_product(item_data['product_code'])
                except LookupError as exc:
                    raise ValidationException(str(exc), {"product_code": item_data['product_code']})

                item = OrderItem.objects.create(
                    order=order,
                    product_id=product.product_code,
                    product_name=product.name,
                    size=item_data.get('size', ''),
                    quantity=item_data['quantity'],
                    unit_price=catalog.get_current_price(product.product_code),
                    unit_weight=product.weight,
                )
                total_amount += item.line_total

            order.total_amount = total_amount
            order.save(update_fields=['total_amount', 'updated_at'])

            AuditLog.log_change(
                entity=order,
                action='created',
                user=created_by,
                new_values={'status': OrderStatus.AWAITING_APPROVAL, 'pr_status': PRStatus.DRAFT},
                notes=f"Order created with {len(items)} items"
            )

            logger.info(f"Order {order.order_number} created for employee {employee.employee_code}")
            return order

    @staticmethod
    def submit_order(employee, items: List[Dict[str, Any]], created_by=None, notes: str = "") -> Tuple[Order, List[str]]:
        """
        Create a cart order and split it into vendor sub-orders in one transaction.

        Nothing is persisted when any line has no eligible vendor.
        """
        from .splitter import OrderSplitter

        with transaction.atomic():
            order = OrderService.create_order(employee, items, created_by=created_by, notes=notes)
            sub_order_numbers = OrderSplitter.split_order(order.order_number, actor=created_by or employee)
            order.refresh_from_db()
            return order, sub_order_numbers

    @staticmethod
    def get_order_summary(order_number: str) -> Dict[str, Any]:
        """
        Get an order with its items, sub-orders, approvals and purchase orders.
        """
        order = Order.objects.prefetch_related(
            'items', 'sub_orders', 'approvals', 'purchase_orders'
        ).get(order_number=order_number)

        return {
            'order': {
                'order_number': order.order_number,
                'status': order.status,
                'pr_status': order.pr_status,
                'pr_number': order.pr_number,
                'total_amount': order.total_amount,
                'employee': order.employee_id,
                'vendor': order.vendor_id,
                'parent_order': order.parent_order_id,
                'created_at': order.created_at,
            },
            'items': [
                {
                    'product_code': item.product_id,
                    'product_name': item.product_name,
                    'size': item.size,
                    'quantity': item.quantity,
                    'unit_price': item.unit_price,
                    'line_total': item.line_total,
                }
                for item in order.items.all()
            ],
            'sub_orders': [sub.order_number for sub in order.sub_orders.all()],
            'approvals': [
                {
                    'gate': approval.gate,
                    'approver': approval.approver_id,
                    'pr_number': approval.pr_number,
                    'approved_at': approval.approved_at,
                }
                for approval in order.approvals.all()
            ],
            'purchase_orders': [
                {'po_number': po.po_number, 'status': po.status}
                for po in order.purchase_orders.all()
            ],
        }
