"""
Custom permissions for uniform orders.
"""

from rest_framework.permissions import BasePermission

from .identity import canonical_ref


class IsOrderParticipant(BasePermission):
    """
    Employees reach their own orders; admins reach orders in their scope.

    Approval scope per gate is enforced by the approval service, not here.
    """

    def has_permission(self, request, view):
        user = request.user
        return bool(user and user.is_authenticated)

    def has_object_permission(self, request, view, obj):
        user = request.user

        if user.is_super_admin:
            return True
        if obj.employee_id == user.employee_code:
            return True
        if user.is_company_admin and user.company_id:
            return canonical_ref(user.company_id, 'user.company') == canonical_ref(obj.company_id, 'order.company')
        if user.is_site_admin and obj.location_id:
            managed = user.managed_locations.values_list('location_code', flat=True)
            return canonical_ref(obj.location_id, 'order.location') in set(managed)
        if user.is_vendor_user and obj.vendor_id:
            return user.vendor_id == obj.vendor_id
        return False
