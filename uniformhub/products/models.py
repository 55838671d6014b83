from decimal import Decimal

from django.db import models


class Product(models.Model):
    product_code = models.CharField(max_length=50, unique=True, db_index=True)
    name = models.CharField(max_length=200)
    category = models.CharField(max_length=100, blank=True, help_text="Shirt, trouser, shoes, ...")
    price = models.DecimalField(
        max_digits=10, decimal_places=2, default=Decimal("0.00"),
        help_text="Current price; order lines are re-priced from this at split time"
    )
    weight = models.DecimalField(
        max_digits=10, decimal_places=3, default=Decimal("0.500"), help_text="Unit weight in kg"
    )
    length = models.DecimalField(max_digits=8, decimal_places=2, null=True, blank=True, help_text="cm")
    width = models.DecimalField(max_digits=8, decimal_places=2, null=True, blank=True, help_text="cm")
    height = models.DecimalField(max_digits=8, decimal_places=2, null=True, blank=True, help_text="cm")
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "products"
        verbose_name = "Product"
        verbose_name_plural = "Products"
        ordering = ["name"]
        indexes = [
            models.Index(fields=["product_code"]),
            models.Index(fields=["is_active"]),
        ]

    def __str__(self):
        return f"{self.name} ({self.product_code})"
