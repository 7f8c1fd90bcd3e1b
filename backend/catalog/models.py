from decimal import Decimal

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models


class Product(models.Model):
    class ProductClass(models.TextChoices):
        PACKAGING = "PACKAGING", "Packaging"
        WIDE_FORMAT = "WIDE_FORMAT", "Wide format"
        LEAFLETS = "LEAFLETS", "Leaflets"
        FINISHED = "FINISHED", "Finished goods"

    name = models.CharField(max_length=200)
    sku = models.CharField(max_length=64, unique=True)
    description = models.TextField(blank=True)
    product_class = models.CharField(
        max_length=20,
        choices=ProductClass.choices,
        default=ProductClass.FINISHED,
    )
    unit = models.CharField(max_length=20, default="unit")
    base_price = models.DecimalField(
        max_digits=10,
        decimal_places=4,
        default=Decimal("0.0000"),
        validators=[MinValueValidator(Decimal("0"))],
    )
    cost_per_sq_meter = models.DecimalField(
        max_digits=10,
        decimal_places=4,
        null=True,
        blank=True,
        validators=[MinValueValidator(Decimal("0"))],
    )
    default_length = models.DecimalField(max_digits=8, decimal_places=3, null=True, blank=True)
    default_width = models.DecimalField(max_digits=8, decimal_places=3, null=True, blank=True)
    is_active = models.BooleanField(default=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="products",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]
        indexes = [
            models.Index(fields=["product_class", "is_active"], name="prod_class_active_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.name} ({self.sku})"

    @property
    def is_area_priced(self) -> bool:
        return self.product_class == self.ProductClass.WIDE_FORMAT
