"""
OrderItem model for uniform orders.
"""

import uuid
from decimal import Decimal
from django.db import models


class OrderItem(models.Model):
    """
    A single product/size line within an order.

    Sub-order lines point back at the cart line they were copied from,
    so every parent line is accounted for exactly once across siblings.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order = models.ForeignKey(
        'Order',
        to_field='order_number',
        on_delete=models.CASCADE,
        related_name='items',
        help_text="Order this item belongs to"
    )
    source_item = models.OneToOneField(
        'self',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='split_item',
        help_text="Cart line this sub-order line was split from"
    )

    product = models.ForeignKey(
        'products.Product',
        to_field='product_code',
        on_delete=models.PROTECT,
        related_name='order_items'
    )
    product_name = models.CharField(
        max_length=255,
        help_text="Product name at time of order"
    )
    size = models.CharField(max_length=20, blank=True)
    quantity = models.PositiveIntegerField()

    unit_price = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        help_text="Price per unit captured at order time, refreshed at split time"
    )
    unit_weight = models.DecimalField(
        max_digits=10,
        decimal_places=3,
        default=Decimal('0.000'),
        help_text="Weight per unit (kg)"
    )
    line_total = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        help_text="quantity * unit_price"
    )

    class Meta:
        ordering = ['order', 'product']
        indexes = [
            models.Index(fields=['order', 'product']),
        ]
        unique_together = ['order', 'product', 'size']

    def __str__(self):
        return f"{self.product_id} ({self.size or '-'}) x {self.quantity}"

    def save(self, *args, **kwargs):
        self.line_total = self.quantity * self.unit_price
        super().save(*args, **kwargs)

    @property
    def total_weight(self):
        return self.quantity * self.unit_weight
