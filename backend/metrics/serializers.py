from rest_framework import serializers

from .models import JobMetrics


class JobMetricsSerializer(serializers.ModelSerializer):
    job_title = serializers.CharField(source="job.title", read_only=True)
    job_status = serializers.CharField(source="job.status", read_only=True)
    customer_name = serializers.CharField(source="job.customer.name", read_only=True, default="")

    class Meta:
        model = JobMetrics
        fields = [
            "id",
            "job",
            "job_title",
            "job_status",
            "customer_name",
            "revenue",
            "material_cost",
            "ink_cost",
            "gross_profit",
            "profit_margin",
            "total_quantity",
            "total_time",
            "last_updated",
        ]
        read_only_fields = fields


class MetricsUpdateRequestSerializer(serializers.Serializer):
    jobId = serializers.IntegerField(required=False, allow_null=True, min_value=1)


class RecalculationResultSerializer(serializers.Serializer):
    success = serializers.BooleanField()
    message = serializers.CharField()
    processed = serializers.IntegerField(required=False)
    details = serializers.CharField(required=False)
