from django.contrib.auth.models import AbstractUser
from django.db import models


class User(AbstractUser):
    ROLE_CHOICES = [
        ("EMPLOYEE", "Employee"),
        ("SITE_ADMIN", "Site Admin"),
        ("COMPANY_ADMIN", "Company Admin"),
        ("VENDOR", "Vendor"),
        ("SUPER_ADMIN", "Super Admin"),
    ]

    employee_code = models.CharField(
        max_length=30, unique=True, help_text="Business identifier referenced by orders and approvals"
    )
    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default="EMPLOYEE")
    company = models.ForeignKey(
        "companies.Company", to_field="company_code", on_delete=models.PROTECT,
        null=True, blank=True, related_name="users"
    )
    location = models.ForeignKey(
        "companies.Location", to_field="location_code", on_delete=models.SET_NULL,
        null=True, blank=True, related_name="employees"
    )
    managed_locations = models.ManyToManyField(
        "companies.Location", blank=True, related_name="site_admins",
        help_text="Locations whose orders this site admin approves"
    )
    vendor = models.ForeignKey(
        "vendor_management.Vendor", to_field="vendor_code", on_delete=models.SET_NULL,
        null=True, blank=True, related_name="users"
    )

    phone = models.CharField(max_length=20, blank=True)
    address = models.TextField(blank=True)
    city = models.CharField(max_length=100, blank=True)
    state = models.CharField(max_length=100, blank=True)
    pincode = models.CharField(max_length=10, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "users"
        verbose_name = "User"
        verbose_name_plural = "Users"

    def __str__(self):
        return f"{self.username} ({self.get_role_display()})"

    def save(self, *args, **kwargs):
        if not self.employee_code:
            self.employee_code = f"EMP-{self.username}".upper()
        super().save(*args, **kwargs)

    @property
    def is_employee(self):
        return self.role == "EMPLOYEE"

    @property
    def is_site_admin(self):
        return self.role == "SITE_ADMIN"

    @property
    def is_company_admin(self):
        return self.role == "COMPANY_ADMIN"

    @property
    def is_vendor_user(self):
        return self.role == "VENDOR"

    @property
    def is_super_admin(self):
        return self.role == "SUPER_ADMIN" or self.is_superuser
