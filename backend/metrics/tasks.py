from __future__ import annotations

from celery import shared_task

from . import services


@shared_task
def recalculate_all_job_metrics() -> int:
    return len(services.recalculate_all_job_metrics())

