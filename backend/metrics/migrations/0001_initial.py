import decimal

import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("jobs", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="JobMetrics",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("revenue", models.DecimalField(decimal_places=4, default=decimal.Decimal("0.0000"), max_digits=20)),
                ("material_cost", models.DecimalField(decimal_places=4, default=decimal.Decimal("0.0000"), max_digits=20)),
                ("ink_cost", models.DecimalField(decimal_places=4, default=decimal.Decimal("0.0000"), max_digits=20)),
                ("gross_profit", models.DecimalField(decimal_places=4, default=decimal.Decimal("0.0000"), max_digits=20)),
                ("profit_margin", models.DecimalField(decimal_places=2, default=decimal.Decimal("0.00"), max_digits=20)),
                ("total_quantity", models.PositiveBigIntegerField(default=0)),
                ("total_time", models.PositiveBigIntegerField(default=0)),
                ("last_updated", models.DateTimeField(default=django.utils.timezone.now)),
                ("job", models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name="metrics", to="jobs.job")),
            ],
            options={
                "verbose_name": "Job metrics",
                "verbose_name_plural": "Job metrics",
                "ordering": ["-last_updated"],
            },
        ),
    ]
