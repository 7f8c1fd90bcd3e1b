import decimal

import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Product",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=200)),
                ("sku", models.CharField(max_length=64, unique=True)),
                ("description", models.TextField(blank=True)),
                ("product_class", models.CharField(choices=[("PACKAGING", "Packaging"), ("WIDE_FORMAT", "Wide format"), ("LEAFLETS", "Leaflets"), ("FINISHED", "Finished goods")], default="FINISHED", max_length=20)),
                ("unit", models.CharField(default="unit", max_length=20)),
                ("base_price", models.DecimalField(decimal_places=4, default=decimal.Decimal("0.0000"), max_digits=10, validators=[django.core.validators.MinValueValidator(decimal.Decimal("0"))])),
                ("cost_per_sq_meter", models.DecimalField(blank=True, decimal_places=4, max_digits=10, null=True, validators=[django.core.validators.MinValueValidator(decimal.Decimal("0"))])),
                ("default_length", models.DecimalField(blank=True, decimal_places=3, max_digits=8, null=True)),
                ("default_width", models.DecimalField(blank=True, decimal_places=3, max_digits=8, null=True)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("created_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="products", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "ordering": ["name"],
                "indexes": [models.Index(fields=["product_class", "is_active"], name="prod_class_active_idx")],
            },
        ),
    ]
