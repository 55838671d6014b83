from django.contrib import admin

from .models import ApprovalPolicy, Company, Location


class LocationInline(admin.TabularInline):
    model = Location
    extra = 0


@admin.register(Company)
class CompanyAdmin(admin.ModelAdmin):
    list_display = ["company_code", "name", "is_active", "created_at"]
    list_filter = ["is_active"]
    search_fields = ["company_code", "name"]
    inlines = [LocationInline]


@admin.register(Location)
class LocationAdmin(admin.ModelAdmin):
    list_display = ["location_code", "name", "company", "pincode", "is_active"]
    list_filter = ["is_active", "company"]
    search_fields = ["location_code", "name"]


@admin.register(ApprovalPolicy)
class ApprovalPolicyAdmin(admin.ModelAdmin):
    list_display = [
        "company", "pr_po_workflow_enabled",
        "site_admin_approval_required", "company_admin_approval_required", "updated_at",
    ]
