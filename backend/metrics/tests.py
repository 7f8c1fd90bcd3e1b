from decimal import Decimal
from io import StringIO
from unittest.mock import patch

from django.core.cache import cache
from django.core.management import CommandError, call_command
from django.test import SimpleTestCase, TestCase, override_settings
from rest_framework import status
from rest_framework.test import APIClient

from accounts.models import User
from catalog.models import Product
from invoices.models import Invoice, InvoiceItem
from jobs.models import Customer, Job, JobProduct

from .calculator import (
    InkRates,
    calculate_job_figures,
    estimated_area,
    invoice_item_material_cost,
    job_product_ink_cost,
    job_product_material_cost,
)
from .models import JobMetrics
from .reports import format_job_type, profit_margins_by_job_type
from .services import (
    MetricsOutOfRangeError,
    recalculate_all_job_metrics,
    recalculate_job_metrics,
)
from .tasks import recalculate_all_job_metrics as recalculate_all_job_metrics_task

RATES = InkRates(
    packaging_per_unit=Decimal("0.04"),
    leaflet_per_unit=Decimal("0.004"),
    per_ml=Decimal("0.16"),
)


def build_product(product_class, **kwargs):
    defaults = {
        "name": f"{product_class} product",
        "sku": f"SKU-{product_class}",
        "product_class": product_class,
        "base_price": Decimal("1.00"),
    }
    defaults.update(kwargs)
    return Product(**defaults)


class CalculatorTests(SimpleTestCase):
    def setUp(self):
        self.banner = build_product(
            Product.ProductClass.WIDE_FORMAT,
            base_price=Decimal("99.00"),
            cost_per_sq_meter=Decimal("10.00"),
        )
        self.box = build_product(Product.ProductClass.PACKAGING, base_price=Decimal("0.50"))
        self.flyer = build_product(Product.ProductClass.LEAFLETS, base_price=Decimal("0.02"))
        self.mug = build_product(Product.ProductClass.FINISHED, base_price=Decimal("3.00"))

    def test_wide_format_invoice_item_uses_area_pricing(self):
        item = InvoiceItem(product=self.banner, quantity=3, unit_price=Decimal("40"), area=Decimal("2"))

        self.assertEqual(invoice_item_material_cost(item), Decimal("60"))

    def test_wide_format_invoice_item_without_area_uses_base_price(self):
        item = InvoiceItem(product=self.banner, quantity=2, unit_price=Decimal("40"))

        self.assertEqual(invoice_item_material_cost(item), Decimal("198"))

    def test_wide_format_without_cost_per_sq_meter_uses_base_price(self):
        self.banner.cost_per_sq_meter = None
        item = InvoiceItem(product=self.banner, quantity=1, unit_price=Decimal("40"), area=Decimal("2"))

        self.assertEqual(invoice_item_material_cost(item), Decimal("99"))

    def test_non_area_priced_item_uses_base_price(self):
        item = InvoiceItem(product=self.mug, quantity=4, unit_price=Decimal("8"), area=Decimal("2"))

        self.assertEqual(invoice_item_material_cost(item), Decimal("12"))

    def test_estimated_area_defaults_missing_dimensions_to_one(self):
        self.assertEqual(estimated_area(self.banner), Decimal("1"))
        self.banner.default_length = Decimal("2.5")
        self.assertEqual(estimated_area(self.banner), Decimal("2.5"))
        self.banner.default_width = Decimal("2")
        self.assertEqual(estimated_area(self.banner), Decimal("5"))

    def test_job_line_material_cost_uses_estimated_area(self):
        self.banner.default_length = Decimal("2")
        line = JobProduct(product=self.banner, quantity=3)

        self.assertEqual(job_product_material_cost(line), Decimal("60"))

    def test_packaging_ink_defaults_per_unit_rate(self):
        line = JobProduct(product=self.box, quantity=120, completed_quantity=100)

        self.assertEqual(job_product_ink_cost(line, RATES), Decimal("4.00"))

    def test_packaging_ink_uses_line_rate_when_set(self):
        line = JobProduct(
            product=self.box,
            quantity=20,
            completed_quantity=20,
            ink_cost_per_unit=Decimal("0.10"),
        )

        self.assertEqual(job_product_ink_cost(line, RATES), Decimal("2.00"))

    def test_leaflet_ink_uses_fixed_rate(self):
        line = JobProduct(product=self.flyer, quantity=500, completed_quantity=500)

        self.assertEqual(job_product_ink_cost(line, RATES), Decimal("2.0"))

    def test_other_classes_use_ink_usage_in_ml(self):
        line = JobProduct(product=self.banner, quantity=1, ink_usage_in_ml=Decimal("25"))
        unset = JobProduct(product=self.mug, quantity=1)

        self.assertEqual(job_product_ink_cost(line, RATES), Decimal("4.00"))
        self.assertEqual(job_product_ink_cost(unset, RATES), Decimal("0"))

    def test_empty_job_is_all_zero(self):
        figures = calculate_job_figures(invoice=None, invoice_items=[], job_products=[], rates=RATES)

        self.assertEqual(figures.revenue, Decimal("0"))
        self.assertEqual(figures.material_cost, Decimal("0"))
        self.assertEqual(figures.ink_cost, Decimal("0"))
        self.assertEqual(figures.gross_profit, Decimal("0"))
        self.assertEqual(figures.profit_margin, Decimal("0"))
        self.assertEqual(figures.total_quantity, 0)
        self.assertEqual(figures.total_time, 0)

    def test_zero_revenue_with_costs_has_zero_margin(self):
        line = JobProduct(product=self.mug, quantity=2, ink_usage_in_ml=Decimal("10"))

        figures = calculate_job_figures(invoice=None, invoice_items=[], job_products=[line], rates=RATES)

        self.assertEqual(figures.material_cost, Decimal("6"))
        self.assertEqual(figures.ink_cost, Decimal("1.6"))
        self.assertEqual(figures.gross_profit, Decimal("-7.6"))
        self.assertEqual(figures.profit_margin, Decimal("0"))

    def test_end_to_end_margin(self):
        invoice = Invoice(subtotal=Decimal("200.00"))
        item = InvoiceItem(product=self.banner, quantity=1, unit_price=Decimal("200"), area=Decimal("2"))
        line = JobProduct(product=self.box, quantity=50, completed_quantity=50, time_taken=45)

        figures = calculate_job_figures(
            invoice=invoice, invoice_items=[item], job_products=[line], rates=RATES
        )

        self.assertEqual(figures.revenue, Decimal("200"))
        self.assertEqual(figures.material_cost, Decimal("20"))
        self.assertEqual(figures.ink_cost, Decimal("2.0"))
        self.assertEqual(figures.gross_profit, Decimal("178"))
        self.assertEqual(figures.profit_margin, Decimal("89.0"))
        self.assertEqual(figures.total_quantity, 50)
        self.assertEqual(figures.total_time, 45)

    def test_invoice_material_ignores_job_lines(self):
        invoice = Invoice(subtotal=Decimal("50.00"))
        line = JobProduct(product=self.mug, quantity=10)

        figures = calculate_job_figures(
            invoice=invoice, invoice_items=[], job_products=[line], rates=RATES
        )

        self.assertEqual(figures.material_cost, Decimal("0"))
        self.assertEqual(figures.total_quantity, 10)

    def test_gross_profit_matches_stored_components(self):
        invoice = Invoice(subtotal=Decimal("10.00"))
        line = JobProduct(product=self.flyer, quantity=3, completed_quantity=3)
        item = InvoiceItem(product=self.flyer, quantity=3, unit_price=Decimal("1"))

        figures = calculate_job_figures(
            invoice=invoice, invoice_items=[item], job_products=[line], rates=RATES
        )

        self.assertEqual(
            figures.gross_profit,
            figures.revenue - (figures.material_cost + figures.ink_cost),
        )

    @override_settings(JOB_METRICS_INK_COST_PER_ML="0.50")
    def test_rates_come_from_settings(self):
        line = JobProduct(product=self.mug, quantity=1, ink_usage_in_ml=Decimal("4"))

        figures = calculate_job_figures(invoice=None, invoice_items=[], job_products=[line])

        self.assertEqual(figures.ink_cost, Decimal("2.00"))


class MetricsFixtureMixin:
    def create_products(self):
        self.banner = Product.objects.create(
            name="PVC Banner",
            sku="WF-BANNER",
            product_class=Product.ProductClass.WIDE_FORMAT,
            base_price=Decimal("99.00"),
            cost_per_sq_meter=Decimal("10.00"),
        )
        self.box = Product.objects.create(
            name="Pizza Box 12in",
            sku="PK-PIZZA-12",
            product_class=Product.ProductClass.PACKAGING,
            base_price=Decimal("0.50"),
        )
        self.flyer = Product.objects.create(
            name="A5 Leaflet",
            sku="LF-A5",
            product_class=Product.ProductClass.LEAFLETS,
            base_price=Decimal("0.02"),
        )

    def create_invoiced_job(self, title="Shop front banner", subtotal=Decimal("200.00"), **job_kwargs):
        invoice = Invoice.objects.create(subtotal=subtotal, total_amount=subtotal)
        InvoiceItem.objects.create(
            invoice=invoice,
            product=self.banner,
            quantity=1,
            unit_price=subtotal,
            area=Decimal("2"),
        )
        job = Job.objects.create(title=title, invoice=invoice, customer=self.customer, **job_kwargs)
        JobProduct.objects.create(
            job=job,
            product=self.box,
            quantity=50,
            completed_quantity=50,
            time_taken=30,
        )
        return job

    def create_low_revenue_job(self, *, base_price, quantity, title="Sample run"):
        """A job invoiced at one cent whose single line costs ``base_price * quantity``."""
        product = Product.objects.create(
            name=f"{title} stock",
            sku=f"FN-{quantity}",
            product_class=Product.ProductClass.FINISHED,
            base_price=base_price,
        )
        invoice = Invoice.objects.create(subtotal=Decimal("0.01"))
        InvoiceItem.objects.create(
            invoice=invoice,
            product=product,
            quantity=quantity,
            unit_price=Decimal("0.0001"),
        )
        return Job.objects.create(title=title, invoice=invoice, customer=self.customer)


class RecalculationServiceTests(MetricsFixtureMixin, TestCase):
    def setUp(self):
        self.customer = Customer.objects.create(name="Luigi's Pizzeria")
        self.create_products()

    def test_single_job_recalculation_persists_metrics(self):
        job = self.create_invoiced_job()

        metrics = recalculate_job_metrics(job.id)
        metrics.refresh_from_db()

        self.assertEqual(metrics.job_id, job.id)
        self.assertEqual(metrics.revenue, Decimal("200"))
        self.assertEqual(metrics.material_cost, Decimal("20"))
        self.assertEqual(metrics.ink_cost, Decimal("2"))
        self.assertEqual(metrics.gross_profit, Decimal("178"))
        self.assertEqual(metrics.profit_margin, Decimal("89"))
        self.assertEqual(metrics.total_quantity, 50)
        self.assertEqual(metrics.total_time, 30)

    def test_recalculation_is_idempotent(self):
        job = self.create_invoiced_job()

        first = recalculate_job_metrics(job.id)
        first.refresh_from_db()
        second = recalculate_job_metrics(job.id)
        second.refresh_from_db()

        self.assertEqual(JobMetrics.objects.filter(job=job).count(), 1)
        self.assertEqual(first.pk, second.pk)
        for field in [
            "revenue",
            "material_cost",
            "ink_cost",
            "gross_profit",
            "profit_margin",
            "total_quantity",
            "total_time",
        ]:
            self.assertEqual(getattr(first, field), getattr(second, field))
        self.assertGreaterEqual(second.last_updated, first.last_updated)

    def test_recalculation_overwrites_previous_figures(self):
        job = self.create_invoiced_job()
        recalculate_job_metrics(job.id)

        job.invoice.subtotal = Decimal("100.00")
        job.invoice.save(update_fields=["subtotal", "updated_at"])
        metrics = recalculate_job_metrics(job.id)
        metrics.refresh_from_db()

        self.assertEqual(metrics.revenue, Decimal("100"))
        self.assertEqual(metrics.gross_profit, Decimal("78"))
        self.assertEqual(metrics.profit_margin, Decimal("78"))

    def test_unknown_job_raises_not_found(self):
        with self.assertRaises(Job.DoesNotExist):
            recalculate_job_metrics(999999)

    def test_job_without_invoice_or_lines_gets_zero_metrics(self):
        job = Job.objects.create(title="Quote only", customer=self.customer)

        metrics = recalculate_job_metrics(job.id)
        metrics.refresh_from_db()

        self.assertEqual(metrics.revenue, Decimal("0"))
        self.assertEqual(metrics.material_cost, Decimal("0"))
        self.assertEqual(metrics.ink_cost, Decimal("0"))
        self.assertEqual(metrics.gross_profit, Decimal("0"))
        self.assertEqual(metrics.profit_margin, Decimal("0"))

    def test_job_without_invoice_estimates_material_from_lines(self):
        job = Job.objects.create(title="Window graphics", customer=self.customer)
        self.banner.default_length = Decimal("1.500")
        self.banner.default_width = Decimal("2.000")
        self.banner.save(update_fields=["default_length", "default_width"])
        JobProduct.objects.create(job=job, product=self.banner, quantity=2, ink_usage_in_ml=Decimal("10"))

        metrics = recalculate_job_metrics(job.id)
        metrics.refresh_from_db()

        self.assertEqual(metrics.material_cost, Decimal("60"))
        self.assertEqual(metrics.ink_cost, Decimal("1.6"))
        self.assertEqual(metrics.gross_profit, Decimal("-61.6"))
        self.assertEqual(metrics.profit_margin, Decimal("0"))

    def test_bulk_recalculation_rebuilds_eligible_jobs_only(self):
        first = self.create_invoiced_job(title="Banner one")
        second = self.create_invoiced_job(title="Banner two", subtotal=Decimal("100.00"))
        uninvoiced = Job.objects.create(title="No invoice yet", customer=self.customer)
        JobProduct.objects.create(job=uninvoiced, product=self.flyer, quantity=500, completed_quantity=500)
        invoice_without_lines = Invoice.objects.create(subtotal=Decimal("10.00"))
        Job.objects.create(title="Invoice only", invoice=invoice_without_lines)
        recalculate_job_metrics(uninvoiced.id)

        rows = recalculate_all_job_metrics()

        self.assertEqual(len(rows), 2)
        self.assertEqual(
            set(JobMetrics.objects.values_list("job_id", flat=True)),
            {first.id, second.id},
        )
        second_metrics = JobMetrics.objects.get(job=second)
        self.assertEqual(second_metrics.gross_profit, Decimal("78"))

    def test_bulk_recalculation_with_no_eligible_jobs_leaves_table_empty(self):
        job = Job.objects.create(title="Draft", customer=self.customer)
        recalculate_job_metrics(job.id)

        rows = recalculate_all_job_metrics()

        self.assertEqual(rows, [])
        self.assertEqual(JobMetrics.objects.count(), 0)

    def test_bulk_failure_keeps_previous_rows(self):
        job = self.create_invoiced_job()
        recalculate_job_metrics(job.id)

        with patch("metrics.services.figures_for_job", side_effect=ArithmeticError("bad figure")):
            with self.assertRaises(ArithmeticError):
                recalculate_all_job_metrics()

        self.assertTrue(JobMetrics.objects.filter(job=job).exists())

    def test_large_negative_margin_is_stored_and_read_back(self):
        job = self.create_low_revenue_job(base_price=Decimal("100.00"), quantity=100000)

        recalculate_job_metrics(job.id)
        metrics = JobMetrics.objects.get(job=job)

        self.assertEqual(metrics.material_cost, Decimal("10000000"))
        self.assertEqual(metrics.gross_profit, Decimal("-9999999.99"))
        self.assertEqual(metrics.profit_margin, Decimal("-99999999900"))

    def test_figures_beyond_column_range_are_rejected(self):
        job = self.create_low_revenue_job(base_price=Decimal("999999.9999"), quantity=2147483647)

        with self.assertRaises(MetricsOutOfRangeError):
            recalculate_job_metrics(job.id)

        self.assertFalse(JobMetrics.objects.filter(job=job).exists())

    def test_bulk_rejects_out_of_range_job_and_keeps_previous_rows(self):
        healthy = self.create_invoiced_job()
        recalculate_job_metrics(healthy.id)
        oversized = self.create_low_revenue_job(base_price=Decimal("999999.9999"), quantity=2147483647)
        JobProduct.objects.create(job=oversized, product=self.box, quantity=1)

        with self.assertRaises(MetricsOutOfRangeError):
            recalculate_all_job_metrics()

        self.assertEqual(list(JobMetrics.objects.values_list("job_id", flat=True)), [healthy.id])

    def test_celery_task_runs_bulk_recalculation(self):
        self.create_invoiced_job()

        processed = recalculate_all_job_metrics_task()

        self.assertEqual(processed, 1)
        self.assertEqual(JobMetrics.objects.count(), 1)


class RecalculationSignalTests(MetricsFixtureMixin, TestCase):
    def setUp(self):
        self.customer = Customer.objects.create(name="Corner Cafe")
        self.create_products()

    def test_job_line_change_recalculates_after_commit(self):
        with self.captureOnCommitCallbacks(execute=True):
            job = self.create_invoiced_job()

        metrics = JobMetrics.objects.get(job=job)
        self.assertEqual(metrics.profit_margin, Decimal("89"))

    def test_invoice_item_change_recalculates_after_commit(self):
        job = self.create_invoiced_job()
        recalculate_job_metrics(job.id)

        with self.captureOnCommitCallbacks(execute=True):
            InvoiceItem.objects.create(
                invoice=job.invoice,
                product=self.flyer,
                quantity=100,
                unit_price=Decimal("0.10"),
            )

        metrics = JobMetrics.objects.get(job=job)
        self.assertEqual(metrics.material_cost, Decimal("22"))

    def test_deleting_invoice_resets_revenue(self):
        job = self.create_invoiced_job()
        recalculate_job_metrics(job.id)

        with self.captureOnCommitCallbacks(execute=True):
            job.invoice.delete()

        metrics = JobMetrics.objects.get(job=job)
        self.assertEqual(metrics.revenue, Decimal("0"))
        self.assertEqual(metrics.profit_margin, Decimal("0"))

    def test_failed_recalculation_does_not_break_committed_save(self):
        job = self.create_low_revenue_job(base_price=Decimal("999999.9999"), quantity=2147483647)

        with self.captureOnCommitCallbacks(execute=True) as callbacks:
            line = JobProduct.objects.create(job=job, product=self.box, quantity=1)

        self.assertEqual(len(callbacks), 1)
        self.assertTrue(JobProduct.objects.filter(pk=line.pk).exists())
        self.assertFalse(JobMetrics.objects.filter(job=job).exists())

    def test_deleting_job_does_not_fail(self):
        job = self.create_invoiced_job()

        with self.captureOnCommitCallbacks(execute=True):
            job.delete()

        self.assertEqual(JobMetrics.objects.count(), 0)

    @override_settings(JOB_METRICS_AUTO_RECALCULATE=False)
    def test_auto_recalculation_can_be_disabled(self):
        with self.captureOnCommitCallbacks(execute=True):
            self.create_invoiced_job()

        self.assertEqual(JobMetrics.objects.count(), 0)


class MetricsApiTests(MetricsFixtureMixin, TestCase):
    def setUp(self):
        cache.clear()
        self.client = APIClient()
        self.admin = User.objects.create_user(
            username="shopadmin",
            password="pass12345",
            role=User.Roles.ADMIN,
        )
        self.employee = User.objects.create_user(
            username="operator",
            password="pass12345",
            role=User.Roles.EMPLOYEE,
        )
        self.customer = Customer.objects.create(name="Harbour Books")
        self.create_products()

    def test_webhook_recalculates_single_job(self):
        job = self.create_invoiced_job()
        self.client.force_authenticate(user=self.admin)

        response = self.client.post(
            "/api/webhooks/metrics-update/", {"jobId": job.id}, format="json"
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data["success"])
        self.assertEqual(response.data["message"], "Metrics recalculated for job: Shop front banner")
        self.assertEqual(JobMetrics.objects.get(job=job).gross_profit, Decimal("178"))

    def test_webhook_unknown_job_returns_404(self):
        self.client.force_authenticate(user=self.admin)

        response = self.client.post("/api/webhooks/metrics-update/", {"jobId": 424242}, format="json")

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertFalse(response.data["success"])
        self.assertEqual(response.data["message"], "Job with ID 424242 not found")

    def test_webhook_without_job_runs_bulk_mode(self):
        self.create_invoiced_job(title="One")
        self.create_invoiced_job(title="Two")
        self.client.force_authenticate(user=self.admin)

        response = self.client.post("/api/webhooks/metrics-update/", {}, format="json")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["message"], "Successfully recalculated metrics for 2 jobs")
        self.assertEqual(JobMetrics.objects.count(), 2)

    def test_webhook_null_job_with_no_eligible_jobs(self):
        self.client.force_authenticate(user=self.admin)

        response = self.client.post("/api/webhooks/metrics-update/", {"jobId": None}, format="json")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data["success"])
        self.assertEqual(response.data["processed"], 0)
        self.assertEqual(
            response.data["message"], "No jobs with invoices found to recalculate metrics"
        )
        self.assertEqual(JobMetrics.objects.count(), 0)

    def test_webhook_rejects_invalid_job_id(self):
        self.client.force_authenticate(user=self.admin)

        response = self.client.post("/api/webhooks/metrics-update/", {"jobId": "abc"}, format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_webhook_reports_computation_errors(self):
        job = self.create_invoiced_job()
        self.client.force_authenticate(user=self.admin)

        with patch("metrics.views.recalculate_job_metrics", side_effect=ValueError("malformed subtotal")):
            response = self.client.post(
                "/api/webhooks/metrics-update/", {"jobId": job.id}, format="json"
            )

        self.assertEqual(response.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.assertFalse(response.data["success"])
        self.assertEqual(response.data["details"], "malformed subtotal")

    @override_settings(JOB_METRICS_WEBHOOK_SECRET="hook-secret")
    def test_webhook_accepts_shared_secret(self):
        job = self.create_invoiced_job()

        response = self.client.post(
            "/api/webhooks/metrics-update/",
            {"jobId": job.id},
            format="json",
            HTTP_X_WEBHOOK_SECRET="hook-secret",
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(JobMetrics.objects.filter(job=job).exists())

    def test_employee_cannot_trigger_recalculation(self):
        self.client.force_authenticate(user=self.employee)

        webhook = self.client.post("/api/webhooks/metrics-update/", {}, format="json")
        recalculate = self.client.post("/api/metrics/recalculate/", {}, format="json")

        self.assertEqual(webhook.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(recalculate.status_code, status.HTTP_403_FORBIDDEN)

    def test_anonymous_cannot_list_metrics(self):
        response = self.client.get("/api/metrics/jobs/")

        self.assertIn(
            response.status_code,
            [status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN],
        )

    def test_recalculate_endpoint_rebuilds_all(self):
        self.create_invoiced_job()
        self.client.force_authenticate(user=self.admin)

        response = self.client.post("/api/metrics/recalculate/", {}, format="json")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["processed"], 1)

    def test_employee_can_list_job_metrics(self):
        job = self.create_invoiced_job()
        recalculate_job_metrics(job.id)
        self.client.force_authenticate(user=self.employee)

        response = self.client.get("/api/metrics/jobs/")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)
        row = response.data[0]
        self.assertEqual(row["job_title"], "Shop front banner")
        self.assertEqual(row["customer_name"], "Harbour Books")
        self.assertEqual(Decimal(row["profit_margin"]), Decimal("89"))

    def test_job_metrics_list_supports_status_filter_and_pagination(self):
        done = self.create_invoiced_job(title="Done", status=Job.Status.COMPLETED)
        pending = self.create_invoiced_job(title="Pending")
        recalculate_job_metrics(done.id)
        recalculate_job_metrics(pending.id)
        self.client.force_authenticate(user=self.employee)

        filtered = self.client.get("/api/metrics/jobs/", {"job__status": Job.Status.COMPLETED})
        paged = self.client.get("/api/metrics/jobs/", {"page": 1})

        self.assertEqual([row["job"] for row in filtered.data], [done.id])
        self.assertEqual(paged.data["count"], 2)

    def test_low_revenue_job_stays_readable_after_webhook(self):
        job = self.create_low_revenue_job(base_price=Decimal("100.00"), quantity=100000)
        self.client.force_authenticate(user=self.admin)

        response = self.client.post("/api/webhooks/metrics-update/", {"jobId": job.id}, format="json")
        listing = self.client.get("/api/metrics/jobs/")
        report = self.client.get("/api/metrics/profit-margins/")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(listing.status_code, status.HTTP_200_OK)
        self.assertEqual(Decimal(listing.data[0]["profit_margin"]), Decimal("-99999999900"))
        self.assertEqual(report.status_code, status.HTTP_200_OK)

    def test_webhook_rejects_out_of_range_figures(self):
        job = self.create_low_revenue_job(base_price=Decimal("999999.9999"), quantity=2147483647)
        self.client.force_authenticate(user=self.admin)

        response = self.client.post("/api/webhooks/metrics-update/", {"jobId": job.id}, format="json")
        listing = self.client.get("/api/metrics/jobs/")

        self.assertEqual(response.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.assertFalse(response.data["success"])
        self.assertIn("profit_margin", response.data["details"])
        self.assertEqual(listing.status_code, status.HTTP_200_OK)
        self.assertEqual(listing.data, [])

    def test_profit_margins_report(self):
        self.client.force_authenticate(user=self.employee)
        wide_job = self.create_invoiced_job(title="Packaging run")
        recalculate_job_metrics(wide_job.id)

        response = self.client.get("/api/metrics/profit-margins/")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        payload = response.json()
        self.assertEqual(len(payload["data"]), 1)
        self.assertEqual(payload["data"][0]["job_type"], "Packaging")
        self.assertEqual(payload["data"][0]["job_count"], 1)
        self.assertAlmostEqual(payload["data"][0]["margin"], 0.89)
        self.assertEqual(payload["summary"]["highest_margin_type"], "Packaging")

    def test_profit_margins_cache_cleared_by_recalculation(self):
        self.client.force_authenticate(user=self.admin)
        first = self.client.get("/api/metrics/profit-margins/")
        self.assertEqual(first.json()["data"], [])

        job = self.create_invoiced_job()
        self.client.post("/api/webhooks/metrics-update/", {"jobId": job.id}, format="json")
        second = self.client.get("/api/metrics/profit-margins/")

        self.assertEqual(len(second.json()["data"]), 1)


class ProfitMarginReportTests(MetricsFixtureMixin, TestCase):
    def setUp(self):
        self.customer = Customer.objects.create(name="Print Buyer")
        self.create_products()

    def _job_with_metrics(self, title, product, revenue, material, ink, status=Job.Status.COMPLETED):
        job = Job.objects.create(title=title, customer=self.customer, status=status)
        if product is not None:
            JobProduct.objects.create(job=job, product=product, quantity=1)
        JobMetrics.objects.create(
            job=job,
            revenue=revenue,
            material_cost=material,
            ink_cost=ink,
            gross_profit=revenue - material - ink,
        )
        return job

    def test_groups_by_first_line_product_class(self):
        self._job_with_metrics("Boxes", self.box, Decimal("200"), Decimal("20"), Decimal("2"))
        self._job_with_metrics("Banner", self.banner, Decimal("100"), Decimal("70"), Decimal("10"))
        self._job_with_metrics("Flyers", self.flyer, Decimal("50"), Decimal("50"), Decimal("5"))
        self._job_with_metrics("Mystery", None, Decimal("10"), Decimal("1"), Decimal("0"))
        self._job_with_metrics(
            "Cancelled", self.box, Decimal("500"), Decimal("1"), Decimal("1"), status=Job.Status.CANCELLED
        )
        self._job_with_metrics("Free sample", self.box, Decimal("0"), Decimal("5"), Decimal("0"))

        report = profit_margins_by_job_type()

        types = [row["job_type"] for row in report["data"]]
        self.assertEqual(types, ["Unknown", "Packaging", "Wide Format", "Leaflets"])
        packaging = report["data"][1]
        self.assertEqual(packaging["job_count"], 1)
        self.assertEqual(packaging["revenue"], Decimal("200.00"))
        self.assertEqual(packaging["cost"], Decimal("22.00"))
        self.assertEqual(packaging["profit"], Decimal("178.00"))
        self.assertEqual(packaging["margin"], Decimal("0.8900"))

        summary = report["summary"]
        self.assertEqual(summary["highest_margin_type"], "Unknown")
        self.assertEqual(summary["lowest_margin_type"], "Wide Format")
        self.assertEqual(summary["lowest_margin"], Decimal("0.2000"))
        self.assertEqual(summary["total_revenue"], Decimal("360.00"))
        self.assertEqual(summary["total_profit"], Decimal("202.00"))

    def test_format_job_type(self):
        self.assertEqual(format_job_type("WIDE_FORMAT"), "Wide Format")
        self.assertEqual(format_job_type("UNKNOWN"), "Unknown")


class RecalculateCommandTests(MetricsFixtureMixin, TestCase):
    def setUp(self):
        self.customer = Customer.objects.create(name="Command Co")
        self.create_products()

    def test_command_recalculates_all_jobs(self):
        self.create_invoiced_job()
        out = StringIO()

        call_command("recalculate_job_metrics", stdout=out)

        self.assertIn("Recalculated metrics for 1 job(s).", out.getvalue())
        self.assertEqual(JobMetrics.objects.count(), 1)

    def test_command_recalculates_single_job(self):
        job = self.create_invoiced_job()
        out = StringIO()

        call_command("recalculate_job_metrics", "--job", str(job.id), stdout=out)

        self.assertIn(f"Recalculated metrics for job {job.id}", out.getvalue())

    def test_command_unknown_job(self):
        with self.assertRaises(CommandError):
            call_command("recalculate_job_metrics", "--job", "999999", stdout=StringIO())
