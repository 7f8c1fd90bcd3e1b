from decimal import Decimal

from django.db.models import ProtectedError
from django.test import TestCase

from catalog.models import Product
from invoices.models import Invoice

from .models import Customer, Job, JobProduct


class JobModelTests(TestCase):
    def setUp(self):
        self.customer = Customer.objects.create(name="Bakery Nord", company="Nord SARL")
        self.product = Product.objects.create(
            name="Cake Box",
            sku="PK-CAKE",
            product_class=Product.ProductClass.PACKAGING,
            base_price=Decimal("0.35"),
        )

    def test_job_defaults(self):
        job = Job.objects.create(title="Cake boxes", customer=self.customer)

        self.assertEqual(job.status, Job.Status.PENDING)
        self.assertEqual(job.priority, Job.Priority.MEDIUM)
        self.assertIsNone(job.invoice)

    def test_deleting_invoice_unlinks_job(self):
        invoice = Invoice.objects.create(subtotal=Decimal("80.00"))
        job = Job.objects.create(title="Cake boxes", customer=self.customer, invoice=invoice)

        invoice.delete()
        job.refresh_from_db()

        self.assertIsNone(job.invoice_id)

    def test_deleting_job_removes_lines(self):
        job = Job.objects.create(title="Cake boxes", customer=self.customer)
        JobProduct.objects.create(job=job, product=self.product, quantity=200)

        job.delete()

        self.assertFalse(JobProduct.objects.exists())

    def test_product_in_use_is_protected(self):
        job = Job.objects.create(title="Cake boxes", customer=self.customer)
        JobProduct.objects.create(job=job, product=self.product, quantity=200)

        with self.assertRaises(ProtectedError):
            self.product.delete()

    def test_job_line_str(self):
        job = Job.objects.create(title="Cake boxes", customer=self.customer)
        line = JobProduct.objects.create(job=job, product=self.product, quantity=200)

        self.assertEqual(str(line), "Cake boxes - Cake Box x200")
