import structlog
from django.conf import settings
from django.core.cache import cache
from drf_spectacular.utils import extend_schema
from rest_framework import status, viewsets
from rest_framework.response import Response
from rest_framework.views import APIView

from accounts.permissions import IsShopAdmin, IsShopAdminOrWebhookSecret, IsShopStaff
from config.pagination import OptionalPaginationListMixin
from jobs.models import Job

from .models import JobMetrics
from .reports import profit_margins_by_job_type
from .serializers import (
    JobMetricsSerializer,
    MetricsUpdateRequestSerializer,
    RecalculationResultSerializer,
)
from .services import PROFIT_MARGINS_CACHE_KEY, recalculate_all_job_metrics, recalculate_job_metrics

logger = structlog.get_logger(__name__)

NO_ELIGIBLE_JOBS_MESSAGE = "No jobs with invoices found to recalculate metrics"


def _failure(message: str, exc: Exception) -> Response:
    return Response(
        {"success": False, "message": message, "details": str(exc)},
        status=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


def _recalculate_one(job_id: int) -> Response:
    try:
        metrics = recalculate_job_metrics(job_id)
    except Job.DoesNotExist:
        logger.warning("job_metrics_job_not_found", job_id=job_id)
        return Response(
            {"success": False, "message": f"Job with ID {job_id} not found"},
            status=status.HTTP_404_NOT_FOUND,
        )
    except Exception as exc:
        logger.exception("job_metrics_recalculation_failed", job_id=job_id)
        return _failure("Failed to recalculate job metrics", exc)
    return Response(
        {
            "success": True,
            "message": f"Metrics recalculated for job: {metrics.job.title}",
            "processed": 1,
        },
        status=status.HTTP_200_OK,
    )


def _recalculate_all() -> Response:
    try:
        rows = recalculate_all_job_metrics()
    except Exception as exc:
        logger.exception("job_metrics_bulk_recalculation_failed")
        return _failure("Failed to recalculate job metrics", exc)
    if not rows:
        return Response(
            {"success": True, "message": NO_ELIGIBLE_JOBS_MESSAGE, "processed": 0},
            status=status.HTTP_200_OK,
        )
    return Response(
        {
            "success": True,
            "message": f"Successfully recalculated metrics for {len(rows)} jobs",
            "processed": len(rows),
        },
        status=status.HTTP_200_OK,
    )


class MetricsUpdateWebhookView(APIView):
    """Recalculate one job's metrics, or every eligible job when no id is sent."""

    permission_classes = [IsShopAdminOrWebhookSecret]

    @extend_schema(request=MetricsUpdateRequestSerializer, responses=RecalculationResultSerializer)
    def post(self, request, *args, **kwargs):
        serializer = MetricsUpdateRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        job_id = serializer.validated_data.get("jobId")
        if job_id:
            return _recalculate_one(job_id)
        return _recalculate_all()


class RecalculateMetricsView(APIView):
    permission_classes = [IsShopAdmin]

    @extend_schema(request=None, responses=RecalculationResultSerializer)
    def post(self, request, *args, **kwargs):
        return _recalculate_all()


class JobMetricsViewSet(OptionalPaginationListMixin, viewsets.ReadOnlyModelViewSet):
    serializer_class = JobMetricsSerializer
    permission_classes = [IsShopStaff]
    filterset_fields = ["job__status"]

    def get_queryset(self):
        return JobMetrics.objects.select_related("job", "job__customer").order_by("-last_updated")


class ProfitMarginsView(APIView):
    permission_classes = [IsShopStaff]

    def get(self, request):
        cached_payload = cache.get(PROFIT_MARGINS_CACHE_KEY)
        if cached_payload is not None:
            return Response(cached_payload, status=status.HTTP_200_OK)

        payload = profit_margins_by_job_type()
        cache.set(
            PROFIT_MARGINS_CACHE_KEY,
            payload,
            timeout=settings.JOB_METRICS_REPORT_CACHE_SECONDS,
        )
        return Response(payload, status=status.HTTP_200_OK)
