import structlog
from django.conf import settings
from django.db import transaction
from django.db.models.signals import post_delete, post_save, pre_delete
from django.dispatch import receiver

from invoices.models import Invoice, InvoiceItem
from jobs.models import Job, JobProduct

from .services import recalculate_job_metrics

logger = structlog.get_logger(__name__)


def _recalculate_after_commit(job_id: int) -> None:
    try:
        recalculate_job_metrics(job_id)
    except Job.DoesNotExist:
        # The job went away in the same transaction; its metrics cascaded with it.
        logger.debug("job_metrics_skipped_missing_job", job_id=job_id)


def schedule_job_recalculation(job_id) -> None:
    if not job_id or not settings.JOB_METRICS_AUTO_RECALCULATE:
        return
    transaction.on_commit(lambda: _recalculate_after_commit(job_id), robust=True)


def _job_id_for_invoice(invoice_id):
    if not invoice_id:
        return None
    return Job.objects.filter(invoice_id=invoice_id).values_list("id", flat=True).first()


@receiver(post_save, sender=Job)
def recalculate_on_job_save(sender, instance, created, raw=False, **kwargs):
    if raw or (created and instance.invoice_id is None):
        return
    schedule_job_recalculation(instance.id)


@receiver(post_save, sender=Invoice)
def recalculate_on_invoice_save(sender, instance, raw=False, **kwargs):
    if raw:
        return
    schedule_job_recalculation(_job_id_for_invoice(instance.id))


@receiver(pre_delete, sender=Invoice)
def recalculate_on_invoice_delete(sender, instance, **kwargs):
    # Captured before the job's invoice link is nulled out.
    schedule_job_recalculation(_job_id_for_invoice(instance.id))


@receiver(post_save, sender=InvoiceItem)
@receiver(post_delete, sender=InvoiceItem)
def recalculate_on_invoice_item_change(sender, instance, raw=False, **kwargs):
    if raw:
        return
    schedule_job_recalculation(_job_id_for_invoice(instance.invoice_id))


@receiver(post_save, sender=JobProduct)
@receiver(post_delete, sender=JobProduct)
def recalculate_on_job_product_change(sender, instance, raw=False, **kwargs):
    if raw:
        return
    schedule_job_recalculation(instance.job_id)
