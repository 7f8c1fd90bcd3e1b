from __future__ import annotations

from decimal import Decimal

import structlog
from django.core.cache import cache
from django.db import transaction
from django.utils import timezone

from jobs.models import Job

from .calculator import InkRates, JobFigures, calculate_job_figures
from .models import JobMetrics

logger = structlog.get_logger(__name__)

PROFIT_MARGINS_CACHE_KEY = "metrics:profit_margins:v1"
DECIMAL_FIGURES = ("revenue", "material_cost", "ink_cost", "gross_profit", "profit_margin")


class MetricsOutOfRangeError(ArithmeticError):
    """A computed figure does not fit the column that stores it."""


def ensure_storable(job_id: int, figures: JobFigures) -> None:
    for name in DECIMAL_FIGURES:
        field = JobMetrics._meta.get_field(name)
        limit = Decimal(10) ** (field.max_digits - field.decimal_places)
        value = getattr(figures, name)
        if abs(value) >= limit:
            raise MetricsOutOfRangeError(
                f"{name} {value} for job {job_id} does not fit the metrics column"
            )


def jobs_with_costing_data():
    return Job.objects.select_related("invoice", "customer").prefetch_related(
        "invoice__items__product",
        "job_products__product",
    )


def eligible_jobs():
    """Jobs that carry both an invoice and at least one job line."""
    return (
        jobs_with_costing_data()
        .filter(invoice__isnull=False, job_products__isnull=False)
        .distinct()
        .order_by("id")
    )


def figures_for_job(job: Job, *, rates: InkRates | None = None) -> JobFigures:
    invoice = job.invoice
    invoice_items = invoice.items.all() if invoice is not None else []
    return calculate_job_figures(
        invoice=invoice,
        invoice_items=invoice_items,
        job_products=job.job_products.all(),
        rates=rates,
    )


def invalidate_metrics_reports() -> None:
    cache.delete(PROFIT_MARGINS_CACHE_KEY)


def recalculate_job_metrics(job_id: int) -> JobMetrics:
    """Rebuild the metrics row for one job.

    Raises ``Job.DoesNotExist`` for an unknown id; any other error
    propagates unchanged.
    """
    job = jobs_with_costing_data().get(pk=job_id)
    figures = figures_for_job(job)
    ensure_storable(job.id, figures)
    metrics, created = JobMetrics.objects.update_or_create(
        job=job,
        defaults={**figures.as_fields(), "last_updated": timezone.now()},
    )
    invalidate_metrics_reports()
    logger.info(
        "job_metrics_recalculated",
        job_id=job.id,
        created=created,
        revenue=str(figures.revenue),
        material_cost=str(figures.material_cost),
        ink_cost=str(figures.ink_cost),
        profit_margin=str(figures.profit_margin),
    )
    return metrics


def recalculate_all_job_metrics() -> list[JobMetrics]:
    """Clear every metrics row and rebuild one per eligible job.

    The clear and the inserts share one transaction, so a failure on any
    job leaves the previous rows in place.
    """
    rates = InkRates.from_settings()
    with transaction.atomic():
        cleared, _ = JobMetrics.objects.all().delete()
        now = timezone.now()
        rows = []
        for job in eligible_jobs():
            figures = figures_for_job(job, rates=rates)
            ensure_storable(job.id, figures)
            rows.append(JobMetrics(job=job, last_updated=now, **figures.as_fields()))
        JobMetrics.objects.bulk_create(rows)
    invalidate_metrics_reports()
    logger.info("job_metrics_bulk_recalculated", cleared=cleared, processed=len(rows))
    return rows
