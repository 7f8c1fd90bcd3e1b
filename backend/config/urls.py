from django.conf import settings
from django.contrib import admin
from django.http import JsonResponse
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView, SpectacularSwaggerView
from rest_framework.routers import DefaultRouter

from metrics.views import (
    JobMetricsViewSet,
    MetricsUpdateWebhookView,
    ProfitMarginsView,
    RecalculateMetricsView,
)

router = DefaultRouter()
router.register(r"metrics/jobs", JobMetricsViewSet, basename="job-metrics")


def health_check(request):
    return JsonResponse({"status": "ok"})


schema_view = (
    SpectacularAPIView.as_view(throttle_classes=[])
    if settings.DEBUG
    else SpectacularAPIView.as_view()
)

urlpatterns = [
    path("admin/", admin.site.urls),
    path("api/health/", health_check, name="health-check"),
    path(
        "api/webhooks/metrics-update/",
        MetricsUpdateWebhookView.as_view(),
        name="metrics-update-webhook",
    ),
    path("api/metrics/recalculate/", RecalculateMetricsView.as_view(), name="metrics-recalculate"),
    path(
        "api/metrics/profit-margins/",
        ProfitMarginsView.as_view(),
        name="metrics-profit-margins",
    ),
    path("api/", include(router.urls)),
    path("api/schema/", schema_view, name="schema"),
    path("api/docs/", SpectacularSwaggerView.as_view(url_name="schema"), name="docs"),
]
