from rest_framework import permissions


class IsApprover(permissions.BasePermission):
    """Site and company admins; gate and scope checks happen in the approval service."""

    def has_permission(self, request, view):
        return request.user and request.user.is_authenticated and (
            request.user.is_site_admin or request.user.is_company_admin
        )


class IsCompanyAdminOrSuperAdmin(permissions.BasePermission):
    def has_permission(self, request, view):
        return request.user and request.user.is_authenticated and (
            request.user.is_company_admin or request.user.is_super_admin
        )


class IsVendorUser(permissions.BasePermission):
    def has_permission(self, request, view):
        return request.user and request.user.is_authenticated and request.user.is_vendor_user
