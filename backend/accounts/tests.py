from django.contrib import admin
from django.contrib.auth.models import AnonymousUser
from django.test import TestCase, override_settings
from rest_framework.test import APIRequestFactory

from .models import User
from .permissions import IsShopAdmin, IsShopAdminOrWebhookSecret, IsShopStaff


class UserModelTests(TestCase):
    def test_default_role_is_employee(self):
        user = User.objects.create_user(username="testuser", password="pass12345")
        self.assertEqual(user.role, User.Roles.EMPLOYEE)
        self.assertFalse(user.is_shop_admin)

    def test_admin_role_flag(self):
        user = User.objects.create_user(
            username="owner",
            password="pass12345",
            role=User.Roles.ADMIN,
        )
        self.assertTrue(user.is_shop_admin)

    def test_admin_print_shop_fieldset_only_exposes_role(self):
        fieldsets = dict(admin.site._registry[User].fieldsets)
        self.assertEqual(fieldsets["Print shop"]["fields"], ("role",))


class PermissionTests(TestCase):
    def setUp(self):
        self.factory = APIRequestFactory()
        self.admin = User.objects.create_user(
            username="shopadmin",
            password="pass12345",
            role=User.Roles.ADMIN,
        )
        self.employee = User.objects.create_user(
            username="printer",
            password="pass12345",
            role=User.Roles.EMPLOYEE,
        )

    def _request_for_user(self, user, **extra):
        request = self.factory.post("/api/webhooks/metrics-update/", **extra)
        request.user = user
        return request

    def test_admin_allowed(self):
        request = self._request_for_user(self.admin)
        self.assertTrue(IsShopAdmin().has_permission(request, None))
        self.assertTrue(IsShopStaff().has_permission(request, None))

    def test_employee_is_staff_but_not_admin(self):
        request = self._request_for_user(self.employee)
        self.assertFalse(IsShopAdmin().has_permission(request, None))
        self.assertTrue(IsShopStaff().has_permission(request, None))

    def test_anonymous_denied(self):
        request = self._request_for_user(AnonymousUser())
        self.assertFalse(IsShopStaff().has_permission(request, None))
        self.assertFalse(IsShopAdminOrWebhookSecret().has_permission(request, None))

    @override_settings(JOB_METRICS_WEBHOOK_SECRET="s3cret")
    def test_webhook_secret_allows_anonymous_caller(self):
        request = self._request_for_user(AnonymousUser(), HTTP_X_WEBHOOK_SECRET="s3cret")
        self.assertTrue(IsShopAdminOrWebhookSecret().has_permission(request, None))

    @override_settings(JOB_METRICS_WEBHOOK_SECRET="s3cret")
    def test_wrong_webhook_secret_denied(self):
        request = self._request_for_user(self.employee, HTTP_X_WEBHOOK_SECRET="nope")
        self.assertFalse(IsShopAdminOrWebhookSecret().has_permission(request, None))

    @override_settings(JOB_METRICS_WEBHOOK_SECRET="")
    def test_empty_secret_never_matches(self):
        request = self._request_for_user(AnonymousUser(), HTTP_X_WEBHOOK_SECRET="")
        self.assertFalse(IsShopAdminOrWebhookSecret().has_permission(request, None))
