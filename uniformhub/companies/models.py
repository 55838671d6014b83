from dataclasses import dataclass

from django.db import models


@dataclass(frozen=True)
class ApprovalPolicySnapshot:
    """Immutable copy of a company's approval flags, taken once per split."""

    pr_po_workflow_enabled: bool = True
    site_admin_approval_required: bool = False
    company_admin_approval_required: bool = False

    @property
    def requires_approval(self):
        return self.pr_po_workflow_enabled and (
            self.site_admin_approval_required or self.company_admin_approval_required
        )


class Company(models.Model):
    company_code = models.CharField(max_length=30, unique=True, help_text="Business identifier used by every reference")
    name = models.CharField(max_length=200)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "companies"
        verbose_name = "Company"
        verbose_name_plural = "Companies"
        ordering = ["name"]

    def __str__(self):
        return f"{self.name} ({self.company_code})"

    def get_approval_policy(self):
        """Return the company's policy as a snapshot, defaults when never configured."""
        try:
            return self.approval_policy.snapshot()
        except ApprovalPolicy.DoesNotExist:
            return ApprovalPolicySnapshot()


class Location(models.Model):
    location_code = models.CharField(max_length=30, unique=True)
    company = models.ForeignKey(
        Company, to_field="company_code", on_delete=models.CASCADE, related_name="locations"
    )
    name = models.CharField(max_length=200)
    address = models.TextField(blank=True)
    city = models.CharField(max_length=100, blank=True)
    state = models.CharField(max_length=100, blank=True)
    pincode = models.CharField(max_length=10, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "company_locations"
        ordering = ["company", "name"]
        indexes = [
            models.Index(fields=["company", "is_active"]),
        ]

    def __str__(self):
        return f"{self.name} ({self.location_code})"


class ApprovalPolicy(models.Model):
    """
    Per-company approval configuration.

    Only company configuration writes these flags. The order pipeline reads
    them once, through ``snapshot()``, when a cart order is split.
    """

    company = models.OneToOneField(
        Company, to_field="company_code", on_delete=models.CASCADE, related_name="approval_policy"
    )
    pr_po_workflow_enabled = models.BooleanField(
        default=True, help_text="Issue purchase requisitions and purchase orders for vendor sub-orders"
    )
    site_admin_approval_required = models.BooleanField(default=False)
    company_admin_approval_required = models.BooleanField(default=False)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "company_approval_policies"
        verbose_name = "Approval Policy"
        verbose_name_plural = "Approval Policies"

    def __str__(self):
        return f"Approval policy for {self.company_id}"

    def snapshot(self):
        return ApprovalPolicySnapshot(
            pr_po_workflow_enabled=self.pr_po_workflow_enabled,
            site_admin_approval_required=self.site_admin_approval_required,
            company_admin_approval_required=self.company_admin_approval_required,
        )
