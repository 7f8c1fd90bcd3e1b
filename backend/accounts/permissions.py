# pyright: reportIncompatibleMethodOverride=false
import hmac

from django.conf import settings
from rest_framework.permissions import BasePermission


class IsShopAdmin(BasePermission):
    def has_permission(self, request, view):
        return request.user.is_authenticated and request.user.role == "admin"


class IsShopStaff(BasePermission):
    def has_permission(self, request, view) -> bool:  # type: ignore
        return request.user.is_authenticated and request.user.role in ["admin", "employee"]


class IsShopAdminOrWebhookSecret(BasePermission):
    """Admins, or internal callers presenting the shared metrics webhook secret."""

    header_name = "HTTP_X_WEBHOOK_SECRET"

    def has_permission(self, request, view) -> bool:  # type: ignore
        secret = settings.JOB_METRICS_WEBHOOK_SECRET
        presented = request.META.get(self.header_name, "")
        if secret and presented and hmac.compare_digest(secret, presented):
            return True
        return request.user.is_authenticated and request.user.role == "admin"
