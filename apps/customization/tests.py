import re
from decimal import Decimal
from io import StringIO
from types import SimpleNamespace
from unittest import mock
from urllib.parse import parse_qs, urlparse

from django.contrib.auth import get_user_model
from django.contrib.auth.models import AnonymousUser
from django.core.cache import cache
from django.core.files.storage import InMemoryStorage
from django.core.files.uploadedfile import SimpleUploadedFile
from django.core.management import call_command
from django.db import DatabaseError, OperationalError
from django.test import SimpleTestCase, TestCase
from rest_framework.test import APITestCase

from apps.audit.models import AuditLog
from apps.catalog.models import Product
from apps.customization.costs import CostBreakdown, calculate_costs
from apps.customization.domain import (
    ContactDetails,
    PersonalItemCustomization,
    ProductCustomization,
    customization_from_payload,
)
from apps.customization.exceptions import (
    AuthenticationRequired,
    CustomizationValidationError,
    FileTooLarge,
    GatewayError,
    InvalidFileType,
    InvalidPaymentReference,
    PaymentCancelled,
    PaymentIntentNotFound,
)
from apps.customization.models import (
    CustomizationRequest,
    CustomizationStatus,
    FabricQuality,
    PrintingSize,
    PrintingTechnique,
)
from apps.customization.payments import PaymentCompletionHandler, PaymentIntentStore, PaymentState
from apps.customization.services import (
    build_customization_request,
    price_customization,
    submit_customization_request,
    update_customization_status,
)
from apps.customization.uploads import DesignUploadManager

User = get_user_model()

REFERENCE_PATTERN = re.compile(r"^KRI8BLANK_\d{13}_\d{1,6}$")
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


def personal_item(**overrides):
    data = {
        "technique_id": "dtf",
        "design_url": "https://cdn.example.com/designs/logo.png",
        "item_description": "Black hoodie",
        "size": "L",
        "quantity": 2,
        "fabric_purchase_option": "already_have",
        "contact": ContactDetails(phone_number="08030000000", delivery_address="12 Allen Avenue, Ikeja"),
    }
    data.update(overrides)
    return PersonalItemCustomization(**data)


class FakeIntentStore:
    def __init__(self):
        self.intents = {}

    def save(self, user_id, intent):
        self.intents[user_id] = intent

    def load(self, user_id):
        return self.intents.get(user_id)

    def clear(self, user_id):
        self.intents.pop(user_id, None)


class CostCalculatorTests(SimpleTestCase):
    def test_own_fabric_with_dtf_prices_technique_only(self):
        costs = calculate_costs(technique_cost=2510, fabric_purchase_option="already_have", quantity=2)
        self.assertEqual(costs.fabric_cost, Decimal("0.00"))
        self.assertEqual(costs.unit_cost, Decimal("2510.00"))
        self.assertEqual(costs.total_cost, Decimal("5020.00"))

    def test_bought_180_gsm_fabric_is_added_per_unit(self):
        costs = calculate_costs(technique_cost=3000, fabric_purchase_option="help_buy", fabric_quality=180, quantity=3)
        self.assertEqual(costs.fabric_cost, Decimal("3000.00"))
        self.assertEqual(costs.unit_cost, Decimal("6000.00"))
        self.assertEqual(costs.total_cost, Decimal("18000.00"))

    def test_help_me_buy_is_a_purchase_option(self):
        costs = calculate_costs(technique_cost=2510, fabric_purchase_option="help_me_buy", fabric_quality=220, quantity=1)
        self.assertEqual(costs.fabric_cost, Decimal("4000.00"))

    def test_fabric_is_free_unless_the_shop_buys_it(self):
        for option in ("already_have", None, ""):
            for gsm in (160, 220, 999):
                with self.subTest(option=option, gsm=gsm):
                    costs = calculate_costs(
                        technique_cost=5110,
                        fabric_purchase_option=option,
                        fabric_quality=gsm,
                        quantity=1,
                    )
                    self.assertEqual(costs.fabric_cost, Decimal("0.00"))

    def test_total_is_unit_times_quantity_and_unit_covers_technique(self):
        samples = [
            (0, "already_have", 1),
            (2510, "help_buy", 4),
            (Decimal("9111.50"), "help_me_buy", 7),
            (3011, "already_have", 25),
        ]
        for technique_cost, option, quantity in samples:
            with self.subTest(technique_cost=technique_cost, option=option, quantity=quantity):
                costs = calculate_costs(technique_cost=technique_cost, fabric_purchase_option=option, quantity=quantity)
                self.assertEqual(costs.total_cost, costs.unit_cost * quantity)
                self.assertGreaterEqual(costs.unit_cost, costs.technique_cost)

    def test_default_fabric_quality_is_160_gsm(self):
        costs = calculate_costs(technique_cost=1000, fabric_purchase_option="help_buy", quantity=1)
        self.assertEqual(costs.fabric_cost, Decimal("2500.00"))

    def test_no_technique_leaves_everything_at_zero(self):
        costs = calculate_costs(technique_cost=None, fabric_purchase_option="help_buy", fabric_quality=180, quantity=5)
        self.assertEqual(costs, CostBreakdown())

    def test_unknown_gsm_and_bad_quantity_are_rejected(self):
        with self.assertRaises(ValueError):
            calculate_costs(technique_cost=2510, fabric_purchase_option="help_buy", fabric_quality=170, quantity=1)
        with self.assertRaises(ValueError):
            calculate_costs(technique_cost=2510, quantity=0)

    def test_product_price_replaces_fabric(self):
        costs = calculate_costs(
            technique_cost=2510,
            fabric_purchase_option="help_buy",
            fabric_quality=200,
            quantity=2,
            product_price=Decimal("8500"),
        )
        self.assertEqual(costs.fabric_cost, Decimal("0.00"))
        self.assertEqual(costs.unit_cost, Decimal("11010.00"))
        self.assertEqual(costs.total_cost, Decimal("22020.00"))

    def test_breakdown_survives_intent_serialization(self):
        costs = calculate_costs(technique_cost=2510, quantity=3, product_price=Decimal("100.50"))
        self.assertEqual(CostBreakdown.from_payload(costs.as_dict()), costs)


class CustomizationDomainTests(SimpleTestCase):
    def test_missing_required_fields_name_the_field(self):
        cases = [
            (personal_item(technique_id=""), "technique_id"),
            (personal_item(design_url="  "), "design_url"),
            (personal_item(item_description=""), "item_description"),
            (personal_item(size=""), "size"),
            (personal_item(quantity=0), "quantity"),
            (ProductCustomization(product_id="", technique_id="dtf", design_url="https://x/y.png", size="M"), "product_id"),
        ]
        for customization, field in cases:
            with self.subTest(field=field):
                with self.assertRaises(CustomizationValidationError) as ctx:
                    customization.validate()
                self.assertEqual(ctx.exception.field, field)

    def test_personal_item_flattens_with_product_fields_null(self):
        fields = personal_item(fabric_purchase_option="help_buy", fabric_quality=180).record_fields()
        self.assertEqual(fields["item_type"], "personal_item")
        self.assertEqual(fields["title"], "Personal Item Customization - Black hoodie")
        self.assertEqual(fields["fabric_quality"], 180)
        for name in ("product_id", "product_name", "product_price", "product_size"):
            self.assertIsNone(fields[name])

    def test_fabric_quality_dropped_when_customer_has_fabric(self):
        fields = personal_item(fabric_purchase_option="already_have", fabric_quality=200).record_fields()
        self.assertIsNone(fields["fabric_quality"])

    def test_product_flattens_with_fabric_fields_null(self):
        customization = ProductCustomization(
            product_id="p-1",
            product_name="Classic Tee",
            product_price=Decimal("8500.00"),
            technique_id="dtg",
            design_url="https://x/y.png",
            size="M",
        )
        fields = customization.record_fields()
        self.assertEqual(fields["title"], "Product Customization - Classic Tee")
        self.assertEqual(fields["product_size"], "M")
        self.assertIsNone(fields["fabric_purchase_option"])
        self.assertIsNone(fields["fabric_quality"])
        self.assertIsNone(fields["material_id"])

    def test_payload_rebuilds_the_same_customization(self):
        product = ProductCustomization(
            product_id="p-1",
            product_name="Classic Tee",
            product_price=Decimal("8500.00"),
            technique_id="dtg",
            design_url="https://x/y.png",
            size="M",
            contact=ContactDetails(phone_number="0803", delivery_address="Lekki"),
        )
        self.assertEqual(customization_from_payload(product.to_payload()), product)
        self.assertEqual(customization_from_payload(personal_item().to_payload()), personal_item())


class DesignUploadManagerTests(SimpleTestCase):
    def setUp(self):
        self.owner = SimpleNamespace(pk=42)

    def test_rejects_disallowed_type_without_writing(self):
        storage = mock.Mock()
        upload = SimpleUploadedFile("designs.zip", b"PK\x03\x04", content_type="application/zip")
        with self.assertRaises(InvalidFileType):
            DesignUploadManager(storage=storage).upload(upload, owner=self.owner)
        storage.save.assert_not_called()

    def test_rejects_oversized_image_without_writing(self):
        storage = mock.Mock()
        upload = SimpleUploadedFile("huge.png", b"\x00" * (11 * 1024 * 1024), content_type="image/png")
        with self.assertRaises(FileTooLarge):
            DesignUploadManager(storage=storage).upload(upload, owner=self.owner)
        storage.save.assert_not_called()

    def test_stores_design_under_owner_prefix(self):
        storage = InMemoryStorage(base_url="/media/")
        manager = DesignUploadManager(storage=storage)
        result = manager.upload(SimpleUploadedFile("Logo.PNG", PNG_BYTES, content_type="image/png"), owner=self.owner)

        self.assertRegex(result["file_id"], r"^[0-9a-f]{32}\.png$")
        self.assertEqual(result["url"], f"/media/designs/42/{result['file_id']}")
        self.assertTrue(storage.exists(f"designs/42/{result['file_id']}"))

        self.assertTrue(manager.delete(result["file_id"], owner=self.owner))
        self.assertFalse(storage.exists(f"designs/42/{result['file_id']}"))
        self.assertFalse(manager.delete(result["file_id"], owner=self.owner))

    def test_storage_failure_is_logged_and_reported(self):
        storage = mock.Mock()
        storage.save.side_effect = OSError("bucket unavailable")
        upload = SimpleUploadedFile("logo.png", PNG_BYTES, content_type="image/png")
        with self.assertLogs("apps.customization.uploads", level="ERROR"):
            with self.assertRaises(GatewayError):
                DesignUploadManager(storage=storage).upload(upload, owner=self.owner)

    def test_delete_rejects_path_like_ids(self):
        storage = mock.Mock()
        with self.assertRaises(CustomizationValidationError):
            DesignUploadManager(storage=storage).delete("../../etc/passwd", owner=self.owner)
        storage.delete.assert_not_called()


class CustomizationRequestServiceTests(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(username="bimpe", email="bimpe@example.com", password="pass12345")
        self.costs = calculate_costs(technique_cost=2510, fabric_purchase_option="already_have", quantity=2)

    def test_anonymous_user_is_rejected(self):
        for user in (None, AnonymousUser()):
            with self.subTest(user=user):
                with self.assertRaises(AuthenticationRequired):
                    build_customization_request(personal_item(), user, self.costs)
        self.assertEqual(CustomizationRequest.objects.count(), 0)

    def test_invalid_submission_is_rejected_before_any_query(self):
        for overrides in ({"technique_id": ""}, {"design_url": ""}, {"size": ""}):
            with self.subTest(overrides=overrides):
                with self.assertNumQueries(0):
                    with self.assertRaises(CustomizationValidationError):
                        submit_customization_request(personal_item(**overrides), self.user, self.costs)
        self.assertEqual(CustomizationRequest.objects.count(), 0)

    def test_build_persists_pending_request_with_cost_snapshot(self):
        request = build_customization_request(personal_item(technique_name="DTF"), self.user, self.costs)

        self.assertEqual(request.status, CustomizationStatus.PENDING)
        self.assertEqual(request.user_name, "bimpe")
        self.assertEqual(request.user_email, "bimpe@example.com")
        self.assertEqual(request.total_cost, Decimal("5020.00"))
        self.assertEqual(request.fabric_cost, Decimal("0.00"))
        self.assertIsNone(request.payment_reference)
        self.assertFalse(request.payment_completed)
        self.assertTrue(AuditLog.objects.filter(action="customization.request.create", entity_id=str(request.id)).exists())

    def test_same_payment_reference_returns_the_first_record(self):
        first, created_first = submit_customization_request(
            personal_item(), self.user, self.costs, payment_reference="KRI8BLANK_1700000000000_42"
        )
        second, created_second = submit_customization_request(
            personal_item(size="XL"), self.user, self.costs, payment_reference="KRI8BLANK_1700000000000_42"
        )

        self.assertTrue(created_first)
        self.assertFalse(created_second)
        self.assertEqual(first.id, second.id)
        self.assertEqual(second.size, "L")
        self.assertTrue(second.payment_completed)
        self.assertEqual(CustomizationRequest.objects.filter(payment_reference="KRI8BLANK_1700000000000_42").count(), 1)

    def test_guard_lookup_failure_is_logged_and_creation_proceeds(self):
        with mock.patch(
            "apps.customization.services.find_request_by_payment_reference",
            side_effect=DatabaseError("connection reset"),
        ):
            with self.assertLogs("apps.customization.services", level="WARNING") as logs:
                request, created = submit_customization_request(
                    personal_item(), self.user, self.costs, payment_reference="KRI8BLANK_1_1"
                )
        self.assertTrue(created)
        self.assertEqual(request.payment_reference, "KRI8BLANK_1_1")
        self.assertTrue(any("Duplicate check failed" in line for line in logs.output))

    def test_unique_reference_resolves_concurrent_submissions(self):
        winner = build_customization_request(personal_item(), self.user, self.costs, payment_reference="KRI8BLANK_2_2")
        with mock.patch("apps.customization.services.guard_duplicate_submission", return_value=None):
            request, created = submit_customization_request(
                personal_item(), self.user, self.costs, payment_reference="KRI8BLANK_2_2"
            )
        self.assertFalse(created)
        self.assertEqual(request.id, winner.id)
        self.assertEqual(CustomizationRequest.objects.count(), 1)

    def test_database_failure_on_create_is_a_gateway_error(self):
        with mock.patch.object(CustomizationRequest.objects, "create", side_effect=OperationalError("db down")):
            with self.assertLogs("apps.customization.services", level="ERROR"):
                with self.assertRaises(GatewayError):
                    submit_customization_request(
                        personal_item(), self.user, self.costs, payment_reference="KRI8BLANK_3_3"
                    )
        self.assertEqual(CustomizationRequest.objects.count(), 0)

    def test_failed_lookup_after_conflict_is_a_gateway_error(self):
        build_customization_request(personal_item(), self.user, self.costs, payment_reference="KRI8BLANK_4_4")
        with mock.patch("apps.customization.services.guard_duplicate_submission", return_value=None):
            with mock.patch(
                "apps.customization.services.find_request_by_payment_reference",
                side_effect=OperationalError("db down"),
            ):
                with self.assertLogs("apps.customization.services", level="ERROR"):
                    with self.assertRaises(GatewayError):
                        submit_customization_request(
                            personal_item(), self.user, self.costs, payment_reference="KRI8BLANK_4_4"
                        )
        self.assertEqual(CustomizationRequest.objects.count(), 1)

    def test_deactivated_fabric_tiers_are_not_charged_from_defaults(self):
        FabricQuality.objects.create(quality=180, cost=Decimal("3000.00"), is_active=False)

        with self.assertRaises(CustomizationValidationError) as ctx:
            price_customization(personal_item(fabric_purchase_option="help_buy", fabric_quality=180))
        self.assertEqual(ctx.exception.field, "fabric_quality")

        _, costs = price_customization(personal_item(fabric_purchase_option="already_have"))
        self.assertEqual(costs.fabric_cost, Decimal("0.00"))

    def test_totals_beyond_the_money_columns_are_rejected(self):
        product = Product.objects.create(sku="COAT-1", name="Leather Coat", price=Decimal("9000000000.00"))
        customization = ProductCustomization(
            product_id=str(product.id),
            technique_id="dtf",
            design_url="https://cdn.example.com/designs/logo.png",
            size="M",
            quantity=2,
        )

        with self.assertRaises(CustomizationValidationError) as ctx:
            price_customization(customization)
        self.assertEqual(ctx.exception.field, "quantity")

    def test_pricing_uses_tables_and_fills_technique_name(self):
        PrintingTechnique.objects.create(code="dtf", name="DTF", base_cost=Decimal("2600.00"))
        FabricQuality.objects.create(quality=180, cost=Decimal("3100.00"))

        customization, costs = price_customization(
            personal_item(fabric_purchase_option="help_buy", fabric_quality=180, quantity=1)
        )
        self.assertEqual(customization.technique_name, "DTF")
        self.assertEqual(costs.unit_cost, Decimal("5700.00"))

    def test_pricing_falls_back_to_default_techniques(self):
        customization, costs = price_customization(personal_item(technique_id="sublimation", quantity=1))
        self.assertEqual(customization.technique_name, "Sublimation")
        self.assertEqual(costs.technique_cost, Decimal("3011.00"))

    def test_pricing_rejects_unknown_technique_and_gsm(self):
        with self.assertRaises(CustomizationValidationError) as technique_error:
            price_customization(personal_item(technique_id="screen"))
        self.assertEqual(technique_error.exception.field, "technique_id")

        with self.assertRaises(CustomizationValidationError) as gsm_error:
            price_customization(personal_item(fabric_purchase_option="help_buy", fabric_quality=170))
        self.assertEqual(gsm_error.exception.field, "fabric_quality")

    def test_status_transitions_follow_the_workflow(self):
        request = build_customization_request(personal_item(), self.user, self.costs)

        update_customization_status(request, actor=self.user, status="approved", admin_notes="Print on back")
        request.refresh_from_db()
        self.assertEqual(request.status, "approved")
        self.assertEqual(request.admin_notes, "Print on back")

        with self.assertRaises(CustomizationValidationError):
            update_customization_status(request, actor=self.user, status="Pending")

        update_customization_status(request, actor=self.user, status="completed")
        with self.assertRaises(CustomizationValidationError):
            update_customization_status(request, actor=self.user, status="rejected")
        self.assertEqual(AuditLog.objects.filter(action="customization.request.status").count(), 2)


class PaymentCompletionHandlerTests(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(username="chidi", email="chidi@example.com", password="pass12345")
        self.store = FakeIntentStore()
        self.handler = PaymentCompletionHandler(store=self.store)
        self.costs = calculate_costs(technique_cost=2510, fabric_purchase_option="already_have", quantity=2)

    def start_payment(self):
        return self.handler.initiate(self.user, personal_item(technique_name="DTF"), self.costs)

    def test_initiate_stores_intent_and_builds_checkout_url(self):
        intent = self.start_payment()

        self.assertRegex(intent["reference"], REFERENCE_PATTERN)
        self.assertEqual(self.handler.state, PaymentState.AWAITING_CALLBACK)
        self.assertEqual(self.store.load(self.user.pk)["reference"], intent["reference"])
        self.assertIn("amount=502000", intent["checkout_url"])
        self.assertIn("currency=NGN", intent["checkout_url"])
        self.assertIn(f"ref={intent['reference']}", intent["checkout_url"])

    def test_initiate_requires_contact_details(self):
        customization = personal_item(contact=ContactDetails(phone_number="", delivery_address="Ikeja"))
        with self.assertRaises(CustomizationValidationError) as ctx:
            self.handler.initiate(self.user, customization, self.costs)
        self.assertEqual(ctx.exception.field, "phone_number")
        self.assertEqual(self.store.intents, {})

    def test_matching_callback_creates_paid_request_and_clears_intent(self):
        reference = self.start_payment()["reference"]

        outcome = self.handler.complete(self.user, reference, "success")

        self.assertEqual(outcome.state, PaymentState.COMPLETED)
        self.assertTrue(outcome.created)
        self.assertEqual(outcome.request.payment_reference, reference)
        self.assertTrue(outcome.request.payment_completed)
        self.assertEqual(outcome.request.total_cost, Decimal("5020.00"))
        self.assertEqual(outcome.request.technique_name, "DTF")
        self.assertIsNone(self.store.load(self.user.pk))

    def test_mismatched_reference_creates_nothing(self):
        intent = self.start_payment()

        with self.assertLogs("apps.customization.payments", level="WARNING"):
            with self.assertRaises(InvalidPaymentReference):
                self.handler.complete(self.user, "KRI8BLANK_0_0", "success")

        self.assertEqual(self.handler.state, PaymentState.FAILED)
        self.assertEqual(CustomizationRequest.objects.count(), 0)
        self.assertEqual(self.store.load(self.user.pk)["reference"], intent["reference"])

    def test_retried_callback_returns_existing_request(self):
        reference = self.start_payment()["reference"]
        first = self.handler.complete(self.user, reference)

        retry = self.handler.complete(self.user, reference)

        self.assertFalse(retry.created)
        self.assertEqual(retry.request.id, first.request.id)
        self.assertEqual(CustomizationRequest.objects.count(), 1)

    def test_callback_without_intent_or_request_is_not_found(self):
        with self.assertLogs("apps.customization.payments", level="WARNING"):
            with self.assertRaises(PaymentIntentNotFound):
                self.handler.complete(self.user, "KRI8BLANK_1_1")

    def test_lookup_failure_on_retried_callback_is_a_gateway_error(self):
        with mock.patch(
            "apps.customization.payments.find_request_by_payment_reference",
            side_effect=OperationalError("db down"),
        ):
            with self.assertLogs("apps.customization.payments", level="ERROR"):
                with self.assertRaises(GatewayError):
                    self.handler.complete(self.user, "KRI8BLANK_1_1")
        self.assertEqual(self.handler.state, PaymentState.FAILED)

    def test_missing_reference_is_a_validation_error(self):
        with self.assertLogs("apps.customization.payments", level="WARNING"):
            with self.assertRaises(CustomizationValidationError) as ctx:
                self.handler.complete(self.user, "")
        self.assertEqual(ctx.exception.field, "reference")

    def test_failed_gateway_status_cancels_payment(self):
        reference = self.start_payment()["reference"]

        with self.assertNoLogs("apps.customization.payments", level="WARNING"):
            with self.assertRaises(PaymentCancelled):
                self.handler.complete(self.user, reference, "failed")

        self.assertEqual(self.handler.state, PaymentState.IDLE)
        self.assertIsNone(self.store.load(self.user.pk))
        self.assertEqual(CustomizationRequest.objects.count(), 0)
        self.assertTrue(AuditLog.objects.filter(action="customization.payment.cancel", entity_id=reference).exists())

    def test_cancel_clears_intent(self):
        reference = self.start_payment()["reference"]

        outcome = self.handler.cancel(self.user)

        self.assertEqual(outcome.state, PaymentState.IDLE)
        self.assertEqual(outcome.reference, reference)
        self.assertIsNone(self.store.load(self.user.pk))
        self.assertEqual(CustomizationRequest.objects.count(), 0)


class PaymentIntentStoreTests(SimpleTestCase):
    def setUp(self):
        cache.clear()

    def test_intent_is_scoped_per_user_and_cleared(self):
        store = PaymentIntentStore()
        store.save(1, {"reference": "KRI8BLANK_1_1", "costs": {"total_cost": Decimal("10.00")}})

        self.assertEqual(store.load(1)["costs"]["total_cost"], "10.00")
        self.assertIsNone(store.load(2))
        self.assertIsNotNone(cache.get("customization_payment_intent:1"))

        store.clear(1)
        self.assertIsNone(store.load(1))


class CustomizationApiTestCase(APITestCase):
    def setUp(self):
        cache.clear()
        self.customer = User.objects.create_user(
            username="customer", email="amaka@example.com", password="customer123", role="CUSTOMER"
        )
        self.other = User.objects.create_user(
            username="other", email="other@example.com", password="other123", role="CUSTOMER"
        )
        self.manager = User.objects.create_user(
            username="manager", email="manager@example.com", password="manager123", role="SHOP_MANAGER"
        )

    def auth_as(self, username, password):
        response = self.client.post(
            "/api/v1/auth/token/",
            {"username": username, "password": password},
            format="json",
        )
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {response.data['access']}")

    def submission(self, **overrides):
        data = {
            "item_type": "personal_item",
            "technique_id": "dtf",
            "design_url": "https://cdn.example.com/designs/logo.png",
            "item_description": "White tee",
            "size": "M",
            "color": "White",
            "quantity": 2,
            "fabric_purchase_option": "already_have",
            "phone_number": "08031234567",
            "delivery_address": "5 Admiralty Way, Lekki",
        }
        data.update(overrides)
        return data


class CustomizationRequestApiTests(CustomizationApiTestCase):
    def test_quote_recomputes_costs(self):
        self.auth_as("customer", "customer123")
        response = self.client.post(
            "/api/v1/customization/quote/",
            {"technique_id": "dtf", "fabric_purchase_option": "help_buy", "fabric_quality": 180, "quantity": 3},
            format="json",
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["technique_name"], "DTF")
        self.assertEqual(response.data["fabric_cost"], "3000.00")
        self.assertEqual(response.data["unit_cost"], "5510.00")
        self.assertEqual(response.data["total_cost"], "16530.00")

    def test_quote_requires_authentication(self):
        response = self.client.post("/api/v1/customization/quote/", {"technique_id": "dtf"}, format="json")
        self.assertEqual(response.status_code, 401)

    def test_direct_submission_ignores_client_totals(self):
        self.auth_as("customer", "customer123")
        response = self.client.post(
            "/api/v1/customization-requests/",
            self.submission(total_cost="1.00", unit_cost="1.00"),
            format="json",
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["status"], "Pending")
        self.assertEqual(response.data["total_cost"], "5020.00")
        self.assertEqual(response.data["fabric_cost"], "0.00")
        self.assertEqual(response.data["title"], "Personal Item Customization - White tee")
        self.assertFalse(response.data["payment_completed"])

    def test_submission_without_design_is_rejected(self):
        self.auth_as("customer", "customer123")
        for field in ("technique_id", "design_url", "size"):
            with self.subTest(field=field):
                response = self.client.post(
                    "/api/v1/customization-requests/",
                    self.submission(**{field: ""}),
                    format="json",
                )
                self.assertEqual(response.status_code, 400)
                self.assertEqual(response.data["code"], "invalid")
                self.assertIn(field, response.data["fields"])
        self.assertEqual(CustomizationRequest.objects.count(), 0)

    def test_product_submission_uses_catalog_price(self):
        product = Product.objects.create(sku="TEE-1", name="Classic Tee", price=Decimal("8500.00"))
        self.auth_as("customer", "customer123")
        response = self.client.post(
            "/api/v1/customization-requests/",
            self.submission(item_type="product", product_id=str(product.id), item_description=""),
            format="json",
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(str(response.data["product"]), str(product.id))
        self.assertEqual(response.data["product_price"], "8500.00")
        self.assertEqual(response.data["unit_cost"], "11010.00")
        self.assertEqual(response.data["total_cost"], "22020.00")
        self.assertIsNone(response.data["fabric_purchase_option"])

    def test_unknown_product_is_rejected(self):
        self.auth_as("customer", "customer123")
        response = self.client.post(
            "/api/v1/customization-requests/",
            self.submission(item_type="product", product_id="not-a-product"),
            format="json",
        )
        self.assertEqual(response.status_code, 400)
        self.assertIn("product_id", response.data["fields"])

    def test_customers_only_see_their_own_requests(self):
        self.auth_as("other", "other123")
        theirs = self.client.post("/api/v1/customization-requests/", self.submission(), format="json").data["id"]

        self.auth_as("customer", "customer123")
        mine = self.client.post("/api/v1/customization-requests/", self.submission(), format="json").data["id"]

        listed = self.client.get("/api/v1/customization-requests/")
        self.assertEqual(listed.data["count"], 1)
        self.assertEqual(listed.data["results"][0]["id"], mine)
        self.assertEqual(self.client.get(f"/api/v1/customization-requests/{theirs}/").status_code, 404)

        self.auth_as("manager", "manager123")
        all_requests = self.client.get("/api/v1/customization-requests/")
        self.assertEqual(all_requests.data["count"], 2)
        filtered = self.client.get(f"/api/v1/customization-requests/?user={self.other.id}")
        self.assertEqual(filtered.data["count"], 1)

    def test_status_updates_are_restricted_to_managers(self):
        self.auth_as("customer", "customer123")
        request_id = self.client.post("/api/v1/customization-requests/", self.submission(), format="json").data["id"]

        forbidden = self.client.post(
            f"/api/v1/customization-requests/{request_id}/status/",
            {"status": "approved"},
            format="json",
        )
        self.assertEqual(forbidden.status_code, 403)

        self.auth_as("manager", "manager123")
        approved = self.client.post(
            f"/api/v1/customization-requests/{request_id}/status/",
            {"status": "approved", "admin_notes": "Ready for print"},
            format="json",
        )
        self.assertEqual(approved.status_code, 200)
        self.assertEqual(approved.data["status"], "approved")
        self.assertEqual(approved.data["admin_notes"], "Ready for print")

        backwards = self.client.post(
            f"/api/v1/customization-requests/{request_id}/status/",
            {"status": "Pending"},
            format="json",
        )
        self.assertEqual(backwards.status_code, 400)
        self.assertIn("status", backwards.data["fields"])

    def test_database_outage_is_reported_as_retryable(self):
        self.auth_as("customer", "customer123")
        with mock.patch.object(CustomizationRequest.objects, "create", side_effect=OperationalError("db down")):
            with self.assertLogs("apps.customization.services", level="ERROR"):
                response = self.client.post("/api/v1/customization-requests/", self.submission(), format="json")
        self.assertEqual(response.status_code, 503)
        self.assertEqual(response.data["code"], "gateway_error")

    def test_quantity_is_bounded(self):
        self.auth_as("customer", "customer123")
        response = self.client.post(
            "/api/v1/customization/quote/",
            {"technique_id": "glitter-htv", "quantity": 10_000_001},
            format="json",
        )
        self.assertEqual(response.status_code, 400)
        self.assertIn("quantity", response.data["fields"])

    def test_requests_cannot_be_deleted(self):
        self.auth_as("customer", "customer123")
        request_id = self.client.post("/api/v1/customization-requests/", self.submission(), format="json").data["id"]
        response = self.client.delete(f"/api/v1/customization-requests/{request_id}/")
        self.assertEqual(response.status_code, 405)


class CustomizationPaymentApiTests(CustomizationApiTestCase):
    def test_payment_round_trip_is_idempotent(self):
        self.auth_as("customer", "customer123")
        initiated = self.client.post("/api/v1/customization-payments/", self.submission(), format="json")
        self.assertEqual(initiated.status_code, 201)
        reference = initiated.data["reference"]
        self.assertRegex(reference, REFERENCE_PATTERN)
        self.assertTrue(initiated.data["checkout_url"].startswith("https://checkout.paystack.co/?"))
        self.assertIn("callback_url=", initiated.data["checkout_url"])
        self.assertEqual(initiated.data["state"], "AwaitingCallback")

        completed = self.client.get(f"/api/v1/customization-payments/callback/?reference={reference}&status=success")
        self.assertEqual(completed.status_code, 201)
        self.assertEqual(completed.data["state"], "Completed")
        self.assertTrue(completed.data["request"]["payment_completed"])
        self.assertEqual(completed.data["request"]["total_cost"], "5020.00")

        retried = self.client.get(f"/api/v1/customization-payments/callback/?trxref={reference}")
        self.assertEqual(retried.status_code, 200)
        self.assertEqual(retried.data["request_id"], completed.data["request_id"])
        self.assertEqual(CustomizationRequest.objects.filter(payment_reference=reference).count(), 1)

    def test_checkout_returns_the_browser_to_the_storefront(self):
        self.auth_as("customer", "customer123")
        initiated = self.client.post("/api/v1/customization-payments/", self.submission(), format="json")

        query = parse_qs(urlparse(initiated.data["checkout_url"]).query)
        self.assertEqual(query["callback_url"], ["https://shop.example.com/customize"])
        self.assertEqual(query["ref"], [initiated.data["reference"]])
        self.assertEqual(query["amount"], ["502000"])

    def test_payment_requires_delivery_details(self):
        self.auth_as("customer", "customer123")
        response = self.client.post(
            "/api/v1/customization-payments/",
            self.submission(delivery_address=""),
            format="json",
        )
        self.assertEqual(response.status_code, 400)
        self.assertIn("delivery_address", response.data["fields"])

    def test_mismatched_callback_does_not_create_a_request(self):
        self.auth_as("customer", "customer123")
        self.client.post("/api/v1/customization-payments/", self.submission(), format="json")

        response = self.client.get("/api/v1/customization-payments/callback/?reference=KRI8BLANK_0_0")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["code"], "invalid_payment_reference")
        self.assertEqual(CustomizationRequest.objects.count(), 0)

    def test_callback_without_pending_payment(self):
        self.auth_as("customer", "customer123")
        response = self.client.get("/api/v1/customization-payments/callback/?reference=KRI8BLANK_0_0")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.data["code"], "payment_intent_not_found")

    def test_cancelled_payment_creates_nothing(self):
        self.auth_as("customer", "customer123")
        reference = self.client.post("/api/v1/customization-payments/", self.submission(), format="json").data[
            "reference"
        ]

        cancelled = self.client.get(f"/api/v1/customization-payments/callback/?reference={reference}&status=cancelled")
        self.assertEqual(cancelled.status_code, 409)
        self.assertEqual(cancelled.data["code"], "payment_cancelled")

        after = self.client.get(f"/api/v1/customization-payments/callback/?reference={reference}")
        self.assertEqual(after.status_code, 404)
        self.assertEqual(CustomizationRequest.objects.count(), 0)

    def test_cancel_endpoint_clears_pending_payment(self):
        self.auth_as("customer", "customer123")
        reference = self.client.post("/api/v1/customization-payments/", self.submission(), format="json").data[
            "reference"
        ]

        response = self.client.post("/api/v1/customization-payments/cancel/", {}, format="json")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data, {"state": "Idle", "reference": reference})
        self.assertIsNone(cache.get(f"customization_payment_intent:{self.customer.pk}"))


class DesignUploadApiTests(CustomizationApiTestCase):
    def test_upload_and_delete_design(self):
        self.auth_as("customer", "customer123")
        upload = SimpleUploadedFile("front.png", PNG_BYTES, content_type="image/png")

        response = self.client.post("/api/v1/customization/designs/", {"file": upload}, format="multipart")
        self.assertEqual(response.status_code, 201)
        file_id = response.data["file_id"]
        self.assertEqual(
            response.data["url"],
            f"http://testserver/media/designs/{self.customer.pk}/{file_id}",
        )

        deleted = self.client.delete(f"/api/v1/customization/designs/{file_id}/")
        self.assertEqual(deleted.status_code, 204)
        missing = self.client.delete(f"/api/v1/customization/designs/{file_id}/")
        self.assertEqual(missing.status_code, 404)

    def test_upload_rejects_unsupported_type(self):
        self.auth_as("customer", "customer123")
        upload = SimpleUploadedFile("archive.zip", b"PK\x03\x04", content_type="application/zip")

        response = self.client.post("/api/v1/customization/designs/", {"file": upload}, format="multipart")
        self.assertEqual(response.status_code, 415)
        self.assertEqual(response.data["code"], "invalid_file_type")

    def test_designs_are_private_to_their_owner(self):
        self.auth_as("customer", "customer123")
        upload = SimpleUploadedFile("front.png", PNG_BYTES, content_type="image/png")
        file_id = self.client.post("/api/v1/customization/designs/", {"file": upload}, format="multipart").data[
            "file_id"
        ]

        self.auth_as("other", "other123")
        response = self.client.delete(f"/api/v1/customization/designs/{file_id}/")
        self.assertEqual(response.status_code, 404)


class CostTableApiTests(CustomizationApiTestCase):
    def test_empty_tables_list_defaults_publicly(self):
        techniques = self.client.get("/api/v1/printing-techniques/")
        self.assertEqual(techniques.status_code, 200)
        self.assertEqual(techniques.data["count"], 6)
        codes = {row["code"]: row["base_cost"] for row in techniques.data["results"]}
        self.assertEqual(codes["glitter-htv"], "9111.00")

        fabrics = self.client.get("/api/v1/fabric-qualities/")
        self.assertEqual([row["quality"] for row in fabrics.data["results"]], [160, 180, 200, 220])

    def test_only_managers_edit_cost_tables(self):
        self.auth_as("customer", "customer123")
        forbidden = self.client.post(
            "/api/v1/fabric-qualities/",
            {"quality": 240, "cost": "4500.00"},
            format="json",
        )
        self.assertEqual(forbidden.status_code, 403)

        self.auth_as("manager", "manager123")
        created = self.client.post(
            "/api/v1/printing-techniques/",
            {"code": "screen", "name": "Screen Print", "base_cost": "1800.00"},
            format="json",
        )
        self.assertEqual(created.status_code, 201)
        self.assertTrue(
            AuditLog.objects.filter(action="costs.printing_technique.create", entity_id=created.data["id"]).exists()
        )

        listed = self.client.get("/api/v1/printing-techniques/")
        self.assertEqual([row["code"] for row in listed.data["results"]], ["screen"])

    def test_printing_sizes_are_managed_like_the_other_tables(self):
        defaults = self.client.get("/api/v1/printing-sizes/")
        self.assertEqual(defaults.status_code, 200)
        self.assertEqual({row["size"]: row["cost"] for row in defaults.data["results"]}["XL"], "1500.00")

        self.auth_as("customer", "customer123")
        forbidden = self.client.post("/api/v1/printing-sizes/", {"size": "3XL", "cost": "2500.00"}, format="json")
        self.assertEqual(forbidden.status_code, 403)

        self.auth_as("manager", "manager123")
        created = self.client.post("/api/v1/printing-sizes/", {"size": " 3xl ", "cost": "2500.00"}, format="json")
        self.assertEqual(created.status_code, 201)
        self.assertEqual(created.data["size"], "3XL")
        self.assertTrue(
            AuditLog.objects.filter(action="costs.printing_size.create", entity_id=created.data["id"]).exists()
        )

        duplicate = self.client.post("/api/v1/printing-sizes/", {"size": "3xl", "cost": "100.00"}, format="json")
        self.assertEqual(duplicate.status_code, 400)
        self.assertIn("size", duplicate.data["fields"])

        deactivated = self.client.patch(
            f"/api/v1/printing-sizes/{created.data['id']}/", {"is_active": False}, format="json"
        )
        self.assertEqual(deactivated.status_code, 200)
        self.client.credentials()
        self.assertEqual(self.client.get("/api/v1/printing-sizes/").data["count"], 0)

    def test_seed_command_is_idempotent(self):
        out = StringIO()
        call_command("seed_customization_costs", stdout=out)
        call_command("seed_customization_costs", stdout=out)

        self.assertEqual(PrintingTechnique.objects.count(), 6)
        self.assertEqual(FabricQuality.objects.count(), 4)
        self.assertEqual(PrintingSize.objects.count(), 5)
        self.assertIn("techniques_created=0", out.getvalue())
