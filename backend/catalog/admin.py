from django.contrib import admin

from .models import Product


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ("name", "sku", "product_class", "base_price", "cost_per_sq_meter", "is_active")
    list_filter = ("product_class", "is_active")
    search_fields = ("name", "sku", "description")
