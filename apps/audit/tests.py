from decimal import Decimal

from django.contrib.auth import get_user_model
from django.contrib.auth.models import AnonymousUser
from rest_framework.test import APITestCase

from apps.audit.models import AuditLog
from apps.audit.services import record_audit

User = get_user_model()


class RecordAuditTests(APITestCase):
    def test_payload_values_are_stored_as_json(self):
        entry = record_audit(
            actor=AnonymousUser(),
            action="customization.payment.initiate",
            entity_type="payment",
            entity_id="KRI8BLANK_1_1",
            payload={"total_cost": Decimal("5020.00")},
        )
        entry.refresh_from_db()
        self.assertIsNone(entry.actor)
        self.assertEqual(entry.payload, {"total_cost": "5020.00"})


class AuditLogApiTests(APITestCase):
    def setUp(self):
        self.manager = User.objects.create_user(username="manager", password="manager123", role="SHOP_MANAGER")
        self.customer = User.objects.create_user(username="customer", password="customer123", role="CUSTOMER")
        record_audit(actor=self.manager, action="catalog.product.create", entity_type="product", entity_id="p-1")
        record_audit(actor=self.customer, action="customization.request.create", entity_type="customization_request", entity_id="r-1")

    def auth_as(self, username, password):
        token = self.client.post(
            "/api/v1/auth/token/",
            {"username": username, "password": password},
            format="json",
        ).data["access"]
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")

    def test_managers_can_filter_audit_log(self):
        self.auth_as("manager", "manager123")
        response = self.client.get("/api/v1/audit-logs/?entity_type=customization_request")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["count"], 1)
        self.assertEqual(response.data["results"][0]["actor_username"], "customer")

    def test_customers_cannot_read_audit_log(self):
        self.auth_as("customer", "customer123")
        response = self.client.get("/api/v1/audit-logs/")
        self.assertEqual(response.status_code, 403)
        self.assertEqual(AuditLog.objects.count(), 2)
