from io import StringIO

from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group
from django.core.management import call_command
from rest_framework.test import APITestCase

from apps.audit.models import AuditLog
from apps.common.permissions import resolve_role

User = get_user_model()


class RegistrationTests(APITestCase):
    def test_register_creates_customer_and_allows_login(self):
        response = self.client.post(
            "/api/v1/auth/register/",
            {"username": "ada", "email": "Ada@Example.com", "password": "s3cure-Passw0rd"},
            format="json",
        )
        self.assertEqual(response.status_code, 201)
        self.assertNotIn("password", response.data)

        user = User.objects.get(username="ada")
        self.assertEqual(user.role, "CUSTOMER")
        self.assertEqual(user.email, "ada@example.com")
        self.assertTrue(AuditLog.objects.filter(action="accounts.user.register", entity_id=str(user.id)).exists())

        token = self.client.post(
            "/api/v1/auth/token/",
            {"username": "ada", "password": "s3cure-Passw0rd"},
            format="json",
        )
        self.assertEqual(token.status_code, 200)
        self.assertIn("access", token.data)

    def test_register_rejects_duplicate_email_and_weak_password(self):
        User.objects.create_user(username="first", email="taken@example.com", password="s3cure-Passw0rd")

        duplicate = self.client.post(
            "/api/v1/auth/register/",
            {"username": "second", "email": "taken@example.com", "password": "s3cure-Passw0rd"},
            format="json",
        )
        self.assertEqual(duplicate.status_code, 400)
        self.assertIn("email", duplicate.data["fields"])

        weak = self.client.post(
            "/api/v1/auth/register/",
            {"username": "third", "email": "third@example.com", "password": "123"},
            format="json",
        )
        self.assertEqual(weak.status_code, 400)


class CurrentUserTests(APITestCase):
    def test_me_returns_identity_with_name_from_email(self):
        User.objects.create_user(username="tolu", email="tolu.ade@example.com", password="pass12345")
        token = self.client.post(
            "/api/v1/auth/token/",
            {"username": "tolu", "password": "pass12345"},
            format="json",
        ).data["access"]
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")

        response = self.client.get("/api/v1/auth/me/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["email"], "tolu.ade@example.com")
        self.assertEqual(response.data["name"], "tolu.ade")
        self.assertEqual(response.data["role"], "CUSTOMER")

    def test_me_requires_authentication(self):
        response = self.client.get("/api/v1/auth/me/")
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.data["code"], "authentication_required")


class SeedRolesCommandTests(APITestCase):
    def test_seed_roles_creates_groups_and_assigns_members(self):
        manager = User.objects.create_user(username="mgr", password="pass12345", role="SHOP_MANAGER")
        out = StringIO()

        call_command("seed_roles", stdout=out)
        call_command("seed_roles", stdout=out)

        self.assertEqual(Group.objects.filter(name__in=["CUSTOMER", "SHOP_MANAGER", "SUPER_ADMIN"]).count(), 3)
        self.assertTrue(manager.groups.filter(name="SHOP_MANAGER").exists())
        self.assertEqual(resolve_role(manager), "SHOP_MANAGER")
        self.assertIn("SHOP_MANAGER: exists, 1 member(s)", out.getvalue())
