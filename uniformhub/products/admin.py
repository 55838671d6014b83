from django.contrib import admin
from .models import Product


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ["name", "product_code", "category", "price", "weight", "is_active"]
    list_filter = ["category", "is_active"]
    search_fields = ["name", "product_code"]
    readonly_fields = ["created_at", "updated_at"]
