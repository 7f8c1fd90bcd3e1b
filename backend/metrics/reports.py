from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from jobs.models import Job

from .calculator import ZERO

CENT = Decimal("0.01")
RATIO_QUANTUM = Decimal("0.0001")
UNKNOWN_JOB_TYPE = "UNKNOWN"


def format_job_type(product_class: str) -> str:
    return " ".join(word.capitalize() for word in product_class.split("_"))


def _cents(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def _ratio(numerator: Decimal, denominator: Decimal) -> Decimal:
    if denominator <= ZERO:
        return ZERO
    return (numerator / denominator).quantize(RATIO_QUANTUM, rounding=ROUND_HALF_UP)


def profit_margins_by_job_type() -> dict[str, Any]:
    """Group job profitability by the product class of each job's first line.

    Cancelled jobs, jobs without metrics and jobs with no revenue are left
    out. Margins are ratios (0.25 means 25%).
    """
    jobs = (
        Job.objects.exclude(status=Job.Status.CANCELLED)
        .filter(metrics__isnull=False)
        .select_related("metrics")
        .prefetch_related("job_products__product")
        .order_by("id")
    )

    grouped: dict[str, dict[str, Any]] = {}
    for job in jobs:
        first_line = next(iter(job.job_products.all()), None)
        product_class = first_line.product.product_class if first_line else UNKNOWN_JOB_TYPE
        metrics = job.metrics
        revenue = metrics.revenue
        if revenue <= ZERO:
            continue
        cost = metrics.material_cost + metrics.ink_cost
        bucket = grouped.setdefault(
            product_class,
            {"job_count": 0, "revenue": ZERO, "cost": ZERO, "profit": ZERO},
        )
        bucket["job_count"] += 1
        bucket["revenue"] += revenue
        bucket["cost"] += cost
        bucket["profit"] += revenue - cost

    data = [
        {
            "job_type": format_job_type(product_class),
            "job_count": bucket["job_count"],
            "revenue": _cents(bucket["revenue"]),
            "cost": _cents(bucket["cost"]),
            "profit": _cents(bucket["profit"]),
            "margin": _ratio(bucket["profit"], bucket["revenue"]),
        }
        for product_class, bucket in grouped.items()
    ]
    data.sort(key=lambda row: row["margin"], reverse=True)

    highest_margin, highest_margin_type = ZERO, ""
    lowest_margin, lowest_margin_type = None, ""
    for row in data:
        if row["margin"] > highest_margin:
            highest_margin, highest_margin_type = row["margin"], row["job_type"]
        if row["margin"] > ZERO and (lowest_margin is None or row["margin"] < lowest_margin):
            lowest_margin, lowest_margin_type = row["margin"], row["job_type"]

    total_revenue = sum((row["revenue"] for row in data), ZERO)
    total_profit = sum((row["profit"] for row in data), ZERO)

    return {
        "data": data,
        "summary": {
            "overall_margin": _ratio(total_profit, total_revenue),
            "highest_margin_type": highest_margin_type,
            "highest_margin": highest_margin,
            "lowest_margin_type": lowest_margin_type,
            "lowest_margin": lowest_margin if lowest_margin is not None else ZERO,
            "total_revenue": total_revenue,
            "total_profit": total_profit,
        },
    }
