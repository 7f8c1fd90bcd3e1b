from django.contrib import admin

from .models import JobMetrics


@admin.register(JobMetrics)
class JobMetricsAdmin(admin.ModelAdmin):
    list_display = (
        "job",
        "revenue",
        "material_cost",
        "ink_cost",
        "gross_profit",
        "profit_margin",
        "last_updated",
    )
    list_filter = ("job__status",)
    search_fields = ("job__title", "job__customer__name")
    readonly_fields = (
        "job",
        "revenue",
        "material_cost",
        "ink_cost",
        "gross_profit",
        "profit_margin",
        "total_quantity",
        "total_time",
        "last_updated",
    )

    def has_add_permission(self, request):
        return False
