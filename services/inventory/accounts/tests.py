"""Tests for registration, login and account approval."""
from __future__ import annotations

from unittest import mock

from django.conf import settings
from django.db import IntegrityError, transaction
from django.test import TestCase, override_settings
from django.urls import reverse
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import AccessToken

from inventory_service.exceptions import (
    DuplicateEmail,
    Forbidden,
    InvalidCredentials,
    NotFound,
    PendingApproval,
    ValidationError,
)

from . import services
from .models import CUSTOMS, FIELD_ENGINEERING, SMART_CLICK, Account, AccountManager

FAST_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]
PASSWORD = "Quartz-Lantern-42"


def _register(email: str, working_group: str = SMART_CLICK) -> services.RegistrationResult:
    return services.register(
        email=email,
        password=PASSWORD,
        display_name=email.split("@")[0].title(),
        working_group=working_group,
    )


@override_settings(PASSWORD_HASHERS=FAST_HASHERS)
class RegistrationTests(TestCase):
    def test_first_account_is_approved_admin(self) -> None:
        result = _register("first@example.com")

        self.assertTrue(result.is_admin)
        self.assertEqual(result.message, services.ADMIN_CREATED_MESSAGE)
        self.assertEqual(result.account.role, Account.ADMIN)
        self.assertTrue(result.account.is_approved)
        self.assertTrue(result.account.is_bootstrap_admin)

    def test_later_accounts_are_pending_users(self) -> None:
        _register("first@example.com")
        for email in ("second@example.com", "third@example.com"):
            result = _register(email, working_group=FIELD_ENGINEERING)
            self.assertFalse(result.is_admin)
            self.assertEqual(result.message, services.PENDING_MESSAGE)
            self.assertEqual(result.account.role, Account.USER)
            self.assertFalse(result.account.is_approved)
            self.assertFalse(result.account.is_bootstrap_admin)

    def test_password_is_hashed(self) -> None:
        account = _register("first@example.com").account
        self.assertNotEqual(account.password, PASSWORD)
        self.assertTrue(account.check_password(PASSWORD))

    def test_duplicate_email_is_rejected_case_insensitively(self) -> None:
        _register("casey@example.com")
        with self.assertRaises(DuplicateEmail):
            _register("  Casey@Example.com ")
        self.assertEqual(Account.objects.count(), 1)

    def test_only_one_bootstrap_admin_can_exist(self) -> None:
        _register("first@example.com")
        with self.assertRaises(IntegrityError), transaction.atomic():
            Account.objects.create_account(
                "intruder@example.com",
                PASSWORD,
                display_name="Intruder",
                working_group=CUSTOMS,
                role=Account.ADMIN,
                is_approved=True,
                is_bootstrap_admin=True,
            )

    def test_rejects_invalid_profile_and_weak_password(self) -> None:
        with self.assertRaises(ValidationError) as ctx:
            services.register(
                email="not-an-email",
                password="abc",
                display_name="",
                working_group="Sales",
            )

        self.assertEqual(
            set(ctx.exception.detail),
            {"email", "display_name", "working_group", "password"},
        )
        self.assertFalse(Account.objects.exists())

    def test_rejected_registration_leaves_admin_slot_open(self) -> None:
        with self.assertRaises(ValidationError):
            services.register(
                email="first@example.com",
                password="password",
                display_name="First",
                working_group=SMART_CLICK,
            )

        self.assertTrue(_register("first@example.com").is_admin)

    def test_losing_the_admin_race_registers_a_pending_user(self) -> None:
        _register("first@example.com")
        # Simulate a registrant that counted zero accounts before the first insert landed.
        with mock.patch.object(AccountManager, "exists", return_value=False):
            result = _register("second@example.com")

        self.assertEqual(result.account.role, Account.USER)
        self.assertFalse(result.account.is_approved)
        self.assertEqual(Account.objects.filter(role=Account.ADMIN).count(), 1)


@override_settings(PASSWORD_HASHERS=FAST_HASHERS)
class LoginTests(TestCase):
    def setUp(self) -> None:
        self.admin = _register("admin@example.com").account
        self.pending = _register("pending@example.com").account

    def test_admin_receives_day_long_token(self) -> None:
        result = services.login(email="ADMIN@example.com", password=PASSWORD)

        token = AccessToken(result.token)
        # Newer simplejwt releases encode the claim as a string.
        self.assertEqual(str(token["user_id"]), str(self.admin.pk))
        self.assertEqual(token["exp"] - token["iat"], 24 * 60 * 60)
        self.assertEqual(int(result.expires_at.timestamp()), token["exp"])

    def test_pending_account_cannot_log_in(self) -> None:
        with self.assertRaises(PendingApproval):
            services.login(email="pending@example.com", password=PASSWORD)

    def test_pending_account_with_wrong_password_gets_generic_error(self) -> None:
        with self.assertRaises(InvalidCredentials):
            services.login(email="pending@example.com", password="not-the-password")

    def test_unknown_email_and_wrong_password_are_indistinguishable(self) -> None:
        with self.assertRaises(InvalidCredentials) as unknown:
            services.login(email="nobody@example.com", password=PASSWORD)
        with self.assertRaises(InvalidCredentials) as wrong:
            services.login(email="admin@example.com", password="not-the-password")
        self.assertEqual(str(unknown.exception.detail), str(wrong.exception.detail))

    def test_login_succeeds_after_approval(self) -> None:
        services.approve_account(self.admin, self.pending.pk)
        result = services.login(email="pending@example.com", password=PASSWORD)
        self.assertEqual(result.account, self.pending)


@override_settings(PASSWORD_HASHERS=FAST_HASHERS)
class ApprovalTests(TestCase):
    def setUp(self) -> None:
        self.admin = _register("admin@example.com").account
        self.first = _register("first@example.com").account
        self.second = _register("second@example.com").account

    def test_pending_list_is_in_creation_order(self) -> None:
        pending = list(services.list_pending_approvals(self.admin))
        self.assertEqual(pending, [self.first, self.second])

    def test_pending_list_requires_admin(self) -> None:
        with self.assertRaises(Forbidden):
            services.list_pending_approvals(self.first)

    def test_approve_is_idempotent(self) -> None:
        services.approve_account(self.admin, self.first.pk)
        account = services.approve_account(self.admin, self.first.pk)

        self.assertTrue(account.is_approved)
        self.assertEqual(list(services.list_pending_approvals(self.admin)), [self.second])

    def test_approve_requires_admin(self) -> None:
        with self.assertRaises(Forbidden):
            services.approve_account(self.first, self.second.pk)
        self.second.refresh_from_db()
        self.assertFalse(self.second.is_approved)

    def test_approve_unknown_account(self) -> None:
        with self.assertRaises(NotFound) as ctx:
            services.approve_account(self.admin, 9999)
        self.assertEqual(ctx.exception.identifier, 9999)


@override_settings(PASSWORD_HASHERS=FAST_HASHERS)
class AccountApiTests(TestCase):
    def setUp(self) -> None:
        self.client = APIClient()

    def _register(self, email: str, **overrides: str):
        payload = {
            "email": email,
            "password": PASSWORD,
            "display_name": "Casey Tech",
            "working_group": SMART_CLICK,
        }
        payload.update(overrides)
        return self.client.post(reverse("auth-register"), payload, format="json")

    def _login(self, email: str):
        return self.client.post(
            reverse("auth-login"), {"email": email, "password": PASSWORD}, format="json"
        )

    def test_health(self) -> None:
        response = self.client.get(reverse("inventory-health"))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["status"], "ok")

    def test_json_only_stack(self) -> None:
        for app in ("django.contrib.messages", "django.contrib.staticfiles"):
            self.assertNotIn(app, settings.INSTALLED_APPS)
        self.assertFalse(getattr(settings, "TEMPLATES", []))

    def test_register_reports_admin_then_pending(self) -> None:
        response = self._register("admin@example.com")
        self.assertEqual(response.status_code, 201)
        self.assertTrue(response.data["is_admin"])
        self.assertEqual(response.data["account"]["role"], "admin")
        self.assertNotIn("password", response.data["account"])

        response = self._register("tech@example.com")
        self.assertEqual(response.status_code, 201)
        self.assertFalse(response.data["is_admin"])
        self.assertEqual(response.data["message"], services.PENDING_MESSAGE)

    def test_register_validates_input(self) -> None:
        response = self._register("not-an-email", password="abc", working_group="Sales")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["code"], "validation_error")
        self.assertIn("email", response.data["errors"])
        self.assertIn("password", response.data["errors"])
        self.assertIn("working_group", response.data["errors"])
        self.assertEqual(Account.objects.count(), 0)

    def test_register_duplicate_email(self) -> None:
        self._register("admin@example.com")
        response = self._register("admin@example.com")
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.data["code"], "duplicate_email")

    def test_pending_user_login_then_approval_flow(self) -> None:
        self._register("admin@example.com")
        self._register("tech@example.com")

        response = self._login("tech@example.com")
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.data["code"], "pending_approval")
        self.assertNotIn("token", response.data)

        admin_token = self._login("admin@example.com").data["token"]
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {admin_token}")
        pending = self.client.get(reverse("account-pending"))
        self.assertEqual(pending.status_code, 200)
        self.assertEqual([entry["email"] for entry in pending.data], ["tech@example.com"])

        tech_id = pending.data[0]["id"]
        for _ in range(2):
            approved = self.client.post(reverse("account-approve", args=[tech_id]))
            self.assertEqual(approved.status_code, 200)
            self.assertTrue(approved.data["account"]["is_approved"])

        self.client.credentials()
        response = self._login("tech@example.com")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["user"]["email"], "tech@example.com")

        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {response.data['token']}")
        me = self.client.get(reverse("account-me"))
        self.assertEqual(me.status_code, 200)
        self.assertEqual(me.data["role"], "user")

    def test_wrong_password_is_unauthorized(self) -> None:
        self._register("admin@example.com")
        response = self.client.post(
            reverse("auth-login"),
            {"email": "admin@example.com", "password": "wrong-password"},
            format="json",
        )
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.data["code"], "invalid_credentials")

    def test_non_admin_cannot_manage_approvals(self) -> None:
        self._register("admin@example.com")
        self._register("tech@example.com")
        tech = Account.objects.get(email="tech@example.com")
        self.client.force_authenticate(user=tech)

        response = self.client.get(reverse("account-pending"))
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.data["code"], "forbidden")

        response = self.client.post(reverse("account-approve", args=[tech.pk]))
        self.assertEqual(response.status_code, 403)

    def test_approval_endpoints_require_authentication(self) -> None:
        response = self.client.get(reverse("account-pending"))
        self.assertEqual(response.status_code, 401)

    def test_approve_unknown_account(self) -> None:
        self._register("admin@example.com")
        self.client.force_authenticate(user=Account.objects.get())
        response = self.client.post(reverse("account-approve", args=[4242]))
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.data["code"], "not_found")
        self.assertEqual(response.data["id"], 4242)
