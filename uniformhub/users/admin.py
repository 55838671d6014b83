from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from .models import User


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    list_display = ["username", "employee_code", "role", "company", "location", "is_active"]
    list_filter = ["role", "company", "is_active"]
    search_fields = ["username", "employee_code", "email"]
    filter_horizontal = ["managed_locations", "groups", "user_permissions"]
    fieldsets = BaseUserAdmin.fieldsets + (
        ("Organisation", {"fields": ("employee_code", "role", "company", "location", "managed_locations", "vendor")}),
        ("Delivery address", {"fields": ("phone", "address", "city", "state", "pincode")}),
    )
