from decimal import Decimal

from django.db import models
from django.utils import timezone

from jobs.models import Job


class JobMetrics(models.Model):
    """Denormalised profitability snapshot for a job, rebuilt on every recalculation."""

    job = models.OneToOneField(Job, on_delete=models.CASCADE, related_name="metrics")
    revenue = models.DecimalField(max_digits=20, decimal_places=4, default=Decimal("0.0000"))
    material_cost = models.DecimalField(max_digits=20, decimal_places=4, default=Decimal("0.0000"))
    ink_cost = models.DecimalField(max_digits=20, decimal_places=4, default=Decimal("0.0000"))
    gross_profit = models.DecimalField(max_digits=20, decimal_places=4, default=Decimal("0.0000"))
    profit_margin = models.DecimalField(max_digits=20, decimal_places=2, default=Decimal("0.00"))
    total_quantity = models.PositiveBigIntegerField(default=0)
    total_time = models.PositiveBigIntegerField(default=0)
    last_updated = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["-last_updated"]
        verbose_name = "Job metrics"
        verbose_name_plural = "Job metrics"

    def __str__(self) -> str:
        return f"Metrics for {self.job}"
