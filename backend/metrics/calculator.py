"""Job profitability arithmetic.

Everything here is a pure function of the records handed in: no queries,
no writes. ``services`` loads the records and persists the result.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable

from django.conf import settings

from catalog.models import Product

ZERO = Decimal("0")
ONE = Decimal("1")
HUNDRED = Decimal("100")
AMOUNT_QUANTUM = Decimal("0.0001")
MARGIN_QUANTUM = Decimal("0.01")


def to_decimal(value: Any, default: Decimal = ZERO) -> Decimal:
    if value is None:
        return default
    if isinstance(value, Decimal):
        return value
    # str() keeps floats such as 0.1 from dragging binary noise along.
    return Decimal(str(value))


def _is_known(value: Any) -> bool:
    return value is not None and to_decimal(value) != ZERO


def _quantize_amount(value: Decimal) -> Decimal:
    return value.quantize(AMOUNT_QUANTUM, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class InkRates:
    packaging_per_unit: Decimal
    leaflet_per_unit: Decimal
    per_ml: Decimal

    @classmethod
    def from_settings(cls) -> "InkRates":
        return cls(
            packaging_per_unit=to_decimal(settings.JOB_METRICS_PACKAGING_INK_COST_PER_UNIT),
            leaflet_per_unit=to_decimal(settings.JOB_METRICS_LEAFLET_INK_COST_PER_UNIT),
            per_ml=to_decimal(settings.JOB_METRICS_INK_COST_PER_ML),
        )


@dataclass(frozen=True)
class JobFigures:
    revenue: Decimal
    material_cost: Decimal
    ink_cost: Decimal
    gross_profit: Decimal
    profit_margin: Decimal
    total_quantity: int
    total_time: int

    def as_fields(self) -> dict[str, Any]:
        return {
            "revenue": self.revenue,
            "material_cost": self.material_cost,
            "ink_cost": self.ink_cost,
            "gross_profit": self.gross_profit,
            "profit_margin": self.profit_margin,
            "total_quantity": self.total_quantity,
            "total_time": self.total_time,
        }


def estimated_area(product: Product) -> Decimal:
    length = to_decimal(product.default_length, default=ONE)
    width = to_decimal(product.default_width, default=ONE)
    return length * width


def _area_priced_cost(product: Product, area: Any, quantity: int) -> Decimal | None:
    if product.is_area_priced and _is_known(area) and _is_known(product.cost_per_sq_meter):
        return to_decimal(product.cost_per_sq_meter) * to_decimal(area) * quantity
    return None


def invoice_item_material_cost(item) -> Decimal:
    product = item.product
    quantity = item.quantity or 0
    area_cost = _area_priced_cost(product, item.area, quantity)
    if area_cost is not None:
        return area_cost
    return to_decimal(product.base_price) * quantity


def job_product_material_cost(line) -> Decimal:
    """Material estimate for a job line that has not been invoiced yet."""
    product = line.product
    quantity = line.quantity or 0
    area_cost = _area_priced_cost(product, estimated_area(product), quantity)
    if area_cost is not None:
        return area_cost
    return to_decimal(product.base_price) * quantity


def job_product_ink_cost(line, rates: InkRates) -> Decimal:
    product_class = line.product.product_class
    completed = line.completed_quantity or 0
    if product_class == Product.ProductClass.PACKAGING:
        per_unit = to_decimal(line.ink_cost_per_unit, default=rates.packaging_per_unit)
        return per_unit * completed
    if product_class == Product.ProductClass.LEAFLETS:
        return rates.leaflet_per_unit * completed
    return to_decimal(line.ink_usage_in_ml) * rates.per_ml


def calculate_job_figures(
    *,
    invoice,
    invoice_items: Iterable,
    job_products: Iterable,
    rates: InkRates | None = None,
) -> JobFigures:
    """Compute revenue, costs, profit and margin for one job.

    ``invoice`` may be ``None``; material cost then falls back to the job
    lines priced with each product's default dimensions. Ink cost always
    comes from the job lines. Amounts are rounded to four places before
    gross profit is derived so the stored figures add up exactly.
    """
    rates = rates or InkRates.from_settings()
    job_products = list(job_products)

    revenue = _quantize_amount(to_decimal(invoice.subtotal)) if invoice is not None else ZERO

    if invoice is not None:
        material_cost = sum(
            (invoice_item_material_cost(item) for item in invoice_items), ZERO
        )
    else:
        material_cost = sum(
            (job_product_material_cost(line) for line in job_products), ZERO
        )
    ink_cost = sum((job_product_ink_cost(line, rates) for line in job_products), ZERO)

    material_cost = _quantize_amount(material_cost)
    ink_cost = _quantize_amount(ink_cost)
    gross_profit = revenue - (material_cost + ink_cost)
    if revenue > ZERO:
        profit_margin = (gross_profit / revenue * HUNDRED).quantize(
            MARGIN_QUANTUM, rounding=ROUND_HALF_UP
        )
    else:
        profit_margin = ZERO.quantize(MARGIN_QUANTUM)

    return JobFigures(
        revenue=revenue,
        material_cost=material_cost,
        ink_cost=ink_cost,
        gross_profit=_quantize_amount(gross_profit),
        profit_margin=profit_margin,
        total_quantity=sum(line.quantity or 0 for line in job_products),
        total_time=sum(line.time_taken or 0 for line in job_products),
    )
