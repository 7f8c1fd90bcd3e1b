from decimal import Decimal

from django.test import TestCase

from catalog.models import Product

from .models import Invoice, InvoiceItem


class InvoiceModelTests(TestCase):
    def setUp(self):
        self.banner = Product.objects.create(
            name="PVC Banner",
            sku="WF-BANNER",
            product_class=Product.ProductClass.WIDE_FORMAT,
            base_price=Decimal("25.00"),
            cost_per_sq_meter=Decimal("8.50"),
        )

    def test_invoice_number_is_generated(self):
        first = Invoice.objects.create(subtotal=Decimal("10.00"))
        second = Invoice.objects.create(subtotal=Decimal("10.00"))

        self.assertTrue(first.invoice_number.startswith("INV-"))
        self.assertNotEqual(first.invoice_number, second.invoice_number)

    def test_item_area_derived_from_dimensions(self):
        invoice = Invoice.objects.create(subtotal=Decimal("100.00"))
        item = InvoiceItem.objects.create(
            invoice=invoice,
            product=self.banner,
            quantity=2,
            unit_price=Decimal("50.00"),
            length=Decimal("2.000"),
            width=Decimal("1.500"),
        )
        item.refresh_from_db()

        self.assertEqual(item.area, Decimal("3.0000"))

    def test_explicit_area_is_kept(self):
        invoice = Invoice.objects.create(subtotal=Decimal("100.00"))
        item = InvoiceItem.objects.create(
            invoice=invoice,
            product=self.banner,
            quantity=1,
            unit_price=Decimal("50.00"),
            length=Decimal("2.000"),
            width=Decimal("2.000"),
            area=Decimal("1.2500"),
        )
        item.refresh_from_db()

        self.assertEqual(item.area, Decimal("1.2500"))

    def test_invoice_simple_history_created(self):
        invoice = Invoice.objects.create(subtotal=Decimal("100.00"))
        invoice.status = Invoice.Status.ISSUED
        invoice.save(update_fields=["status", "updated_at"])

        self.assertGreaterEqual(invoice.history.count(), 2)
