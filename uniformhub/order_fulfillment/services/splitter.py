"""
Order splitter.

Partitions a cart order into one sub-order per supplying vendor. Lines are
re-priced from the catalog's current price, the company approval policy is
read once and frozen onto each sub-order, and each sub-order enters the
approval chain at the gate that policy dictates.
"""

import logging
from collections import OrderedDict
from decimal import Decimal
from typing import List

from django.db import transaction

from ..adapters.catalog_adapter import get_catalog_adapter
from ..exceptions import InvalidTransitionException, NoEligibleVendorException, ValidationException
from ..models import Order, OrderItem, OrderStatus, PRStatus, AuditLog
from .approval_service import ApprovalService
from .workflow import transition_order_status, validate_order_workflow

logger = logging.getLogger(__name__)


class OrderSplitter:
    """Service class for splitting cart orders by vendor."""

    @staticmethod
    def split_order(order_number: str, actor=None) -> List[str]:
        """
        Split a cart order into vendor sub-orders.

        All-or-nothing: a line without an eligible vendor aborts the split
        before anything is written.

        Returns:
            Sub-order numbers, ordered by vendor code

        Raises:
            ValidationException: Unknown order, empty order or a sub-order passed in
            NoEligibleVendorException: A line has no vendor for the employee's company
            InvalidTransitionException: The order was already split or closed
        """
        with transaction.atomic():
            try:
                parent = Order.objects.select_for_update().get(order_number=order_number)
            except Order.DoesNotExist:
                raise ValidationException(f"Order {order_number} does not exist", {"order_number": order_number})

            if parent.is_sub_order:
                raise ValidationException(
                    f"Order {order_number} is already a vendor sub-order", {"order_number": order_number}
                )
            if parent.status == OrderStatus.SPLIT:
                raise InvalidTransitionException(parent.status, OrderStatus.SPLIT, "Order")
            validate_order_workflow(parent, OrderStatus.SPLIT)
            if parent.pr_status != PRStatus.DRAFT:
                raise InvalidTransitionException(parent.pr_status, OrderStatus.SPLIT, "Order")

            items = list(parent.items.order_by('product_id', 'size'))
            if not items:
                raise ValidationException(f"Order {order_number} has no items")

            catalog = get_catalog_adapter()

            vendor_for_item = {}
            unresolved = []
            for item in items:
                vendor_code = catalog.resolve_vendor(item.product_id, parent.company_id)
                if vendor_code is None:
                    unresolved.append(item.product_id)
                else:
                    vendor_for_item[item.pk] = vendor_code
            if unresolved:
                raise NoEligibleVendorException(order_number, sorted(set(unresolved)))

            policy = catalog.get_approval_policy(parent.company_id)

            # Re-price the cart so sibling totals always add up to the parent total
            prices = {}
            for item in items:
                if item.product_id not in prices:
                    try:
                        prices[item.product_id] = catalog.get_current_price(item.product_id)
                    except LookupError as exc:
                        raise ValidationException(str(exc), {"product_code": item.product_id})
                if item.unit_price != prices[item.product_id]:
                    item.unit_price = prices[item.product_id]
                    item.save()
            parent.total_amount = sum((item.line_total for item in items), Decimal('0.00'))
            parent.save(update_fields=['total_amount', 'updated_at'])

            groups = OrderedDict()
            for item in sorted(items, key=lambda i: vendor_for_item[i.pk]):
                groups.setdefault(vendor_for_item[item.pk], []).append(item)

            sub_order_numbers = []
            for vendor_code, vendor_items in groups.items():
                sub_order = OrderSplitter._create_sub_order(parent, vendor_code, vendor_items, policy, actor)
                ApprovalService.start_approval(sub_order, actor)
                sub_order_numbers.append(sub_order.order_number)

            transition_order_status(
                parent, OrderStatus.SPLIT, user=actor,
                notes=f"Split into {len(sub_order_numbers)} vendor orders"
            )

            logger.info(f"Order {order_number} split into {', '.join(sub_order_numbers)}")
            return sub_order_numbers

    @staticmethod
    def _create_sub_order(parent: Order, vendor_code: str, items, policy, actor) -> Order:
        sub_order = Order.objects.create(
            order_number=f"{parent.order_number}-{vendor_code}",
            employee_id=parent.employee_id,
            company_id=parent.company_id,
            location_id=parent.location_id,
            parent_order=parent,
            vendor_id=vendor_code,
            policy_workflow_enabled=policy.pr_po_workflow_enabled,
            policy_site_admin_required=policy.site_admin_approval_required,
            policy_company_admin_required=policy.company_admin_approval_required,
            delivery_address=parent.delivery_address,
            delivery_city=parent.delivery_city,
            delivery_state=parent.delivery_state,
            delivery_pincode=parent.delivery_pincode,
            delivery_phone=parent.delivery_phone,
            notes=parent.notes,
            created_by=actor,
        )

        total_amount = Decimal('0.00')
        for item in items:
            sub_item = OrderItem.objects.create(
                order=sub_order,
                source_item=item,
                product_id=item.product_id,
                product_name=item.product_name,
                size=item.size,
                quantity=item.quantity,
                unit_price=item.unit_price,
                unit_weight=item.unit_weight,
            )
            total_amount += sub_item.line_total

        sub_order.total_amount = total_amount
        sub_order.save(update_fields=['total_amount', 'updated_at'])

        AuditLog.log_change(
            entity=sub_order,
            action='created',
            user=actor,
            new_values={'vendor': vendor_code, 'total_amount': total_amount, 'items': len(items)},
            notes=f"Split from {parent.order_number}"
        )
        return sub_order
