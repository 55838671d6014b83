from rest_framework.permissions import BasePermission

from order_fulfillment.exceptions import ApprovalScopeException


class CanManageShipments(BasePermission):
    """Vendor users ship their own sub-orders; company and super admins may act for them."""

    def has_permission(self, request, view):
        user = request.user
        return bool(user and user.is_authenticated) and (
            user.is_vendor_user or user.is_company_admin or user.is_super_admin
        )


def check_order_scope(user, order) -> None:
    """Raise unless ``user`` may ship or track ``order``."""
    if user.is_super_admin:
        return
    if user.is_vendor_user and user.vendor_id and user.vendor_id == order.vendor_id:
        return
    if user.is_company_admin and user.company_id and user.company_id == order.company_id:
        return
    raise ApprovalScopeException(
        f"{user.employee_code} may not manage shipments for order {order.order_number}",
        {"order_number": order.order_number},
    )
