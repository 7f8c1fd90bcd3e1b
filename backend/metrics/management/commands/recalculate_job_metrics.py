from __future__ import annotations

from django.core.management.base import BaseCommand, CommandError

from jobs.models import Job
from metrics.services import recalculate_all_job_metrics, recalculate_job_metrics


class Command(BaseCommand):
    help = "Rebuild job profitability metrics for one job or for every invoiced job."

    def add_arguments(self, parser):
        parser.add_argument(
            "--job",
            type=int,
            dest="job_id",
            help="Only recalculate the job with this id.",
        )

    def handle(self, *args, **options):
        job_id = options.get("job_id")
        if job_id is not None:
            if job_id < 1:
                raise CommandError("--job must be >= 1.")
            try:
                metrics = recalculate_job_metrics(job_id)
            except Job.DoesNotExist as exc:
                raise CommandError(f"Job with ID {job_id} not found.") from exc
            self.stdout.write(
                self.style.SUCCESS(
                    f"Recalculated metrics for job {metrics.job_id}: "
                    f"revenue={metrics.revenue} margin={metrics.profit_margin}%"
                )
            )
            return

        rows = recalculate_all_job_metrics()
        if not rows:
            self.stdout.write(self.style.WARNING("No jobs with invoices found to recalculate metrics."))
            return
        self.stdout.write(self.style.SUCCESS(f"Recalculated metrics for {len(rows)} job(s)."))
