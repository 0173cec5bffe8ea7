from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.cache import cache
from rest_framework.test import APITestCase

from apps.audit.models import AuditLog
from apps.catalog.models import Product

User = get_user_model()


class CatalogAuditTests(APITestCase):
    def setUp(self):
        self.manager = User.objects.create_user(username="manager", password="manager123", role="SHOP_MANAGER")
        self.customer = User.objects.create_user(username="customer", password="customer123", role="CUSTOMER")

    def auth_as(self, username, password):
        response = self.client.post(
            "/api/v1/auth/token/",
            {"username": username, "password": password},
            format="json",
        )
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {response.data['access']}")

    def test_product_create_update_delete_are_audited(self):
        self.auth_as("manager", "manager123")
        created = self.client.post(
            "/api/v1/products/",
            {
                "sku": "tee-001",
                "name": "Plain Tee",
                "category": " Shirts ",
                "price": "8500.00",
                "sizes": ["S", "M", "M", " L "],
                "colors": ["Black"],
            },
            format="json",
        )
        self.assertEqual(created.status_code, 201)
        product_id = created.data["id"]
        self.assertEqual(created.data["sku"], "TEE-001")
        self.assertEqual(created.data["category"], "shirts")
        self.assertEqual(created.data["sizes"], ["S", "M", "L"])

        updated = self.client.patch(f"/api/v1/products/{product_id}/", {"price": "9000.00"}, format="json")
        self.assertEqual(updated.status_code, 200)
        self.assertEqual(updated.data["price"], "9000.00")

        deleted = self.client.delete(f"/api/v1/products/{product_id}/")
        self.assertEqual(deleted.status_code, 204)

        self.assertTrue(AuditLog.objects.filter(action="catalog.product.create", entity_id=product_id).exists())
        update_entry = AuditLog.objects.get(action="catalog.product.update", entity_id=product_id)
        self.assertEqual(update_entry.payload["before"]["price"], "8500.00")
        self.assertEqual(update_entry.payload["after"]["price"], "9000.00")
        self.assertTrue(AuditLog.objects.filter(action="catalog.product.delete", entity_id=product_id).exists())

    def test_customer_can_list_but_not_manage_products(self):
        Product.objects.create(sku="CAP-001", name="Cap", price=Decimal("4000.00"))
        self.auth_as("customer", "customer123")

        listed = self.client.get("/api/v1/products/")
        self.assertEqual(listed.status_code, 200)
        self.assertEqual(listed.data["count"], 1)

        created = self.client.post(
            "/api/v1/products/",
            {"sku": "X-1", "name": "X", "price": "1.00"},
            format="json",
        )
        self.assertEqual(created.status_code, 403)
        self.assertEqual(created.data["code"], "permission_denied")

    def test_sizes_must_be_a_list_of_strings(self):
        self.auth_as("manager", "manager123")
        response = self.client.post(
            "/api/v1/products/",
            {"sku": "BAD-1", "name": "Bad", "price": "1.00", "sizes": "M"},
            format="json",
        )
        self.assertEqual(response.status_code, 400)
        self.assertIn("sizes", response.data["fields"])


class PublicCatalogTests(APITestCase):
    def setUp(self):
        cache.clear()
        self.tee = Product.objects.create(
            sku="PUB-001",
            name="Classic Tee",
            category="shirts",
            price=Decimal("8500.00"),
            image_url="https://example.com/tee.jpg",
        )
        self.hoodie = Product.objects.create(sku="PUB-002", name="Hoodie", category="outerwear", price=Decimal("18000.00"))
        self.retired = Product.objects.create(
            sku="PUB-003",
            name="Retired Tee",
            category="shirts",
            price=Decimal("5000.00"),
            is_active=False,
        )

    def test_public_catalog_list_is_readonly_and_does_not_require_auth(self):
        response = self.client.get("/api/v1/public/catalog/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["count"], 2)
        self.assertEqual([item["sku"] for item in response.data["results"]], ["PUB-001", "PUB-002"])

        post = self.client.post(
            "/api/v1/public/catalog/",
            {"sku": "X", "name": "X", "price": "1.00"},
            format="json",
        )
        self.assertEqual(post.status_code, 405)

    def test_public_catalog_filters_active_products(self):
        by_query = self.client.get("/api/v1/public/catalog/?q=tee")
        self.assertEqual(by_query.data["count"], 1)
        self.assertEqual(by_query.data["results"][0]["sku"], "PUB-001")

        by_category = self.client.get("/api/v1/public/catalog/?category=OUTERWEAR")
        self.assertEqual(by_category.data["count"], 1)
        self.assertEqual(by_category.data["results"][0]["sku"], "PUB-002")

        by_price = self.client.get("/api/v1/public/catalog/?min_price=9000&ordering=-price")
        self.assertEqual([item["sku"] for item in by_price.data["results"]], ["PUB-002"])

    def test_public_catalog_rejects_non_numeric_price_filter(self):
        response = self.client.get("/api/v1/public/catalog/?max_price=cheap")
        self.assertEqual(response.status_code, 400)
        self.assertIn("max_price", response.data["fields"])

    def test_public_catalog_detail_by_sku(self):
        response = self.client.get("/api/v1/public/catalog/PUB-001/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["name"], "Classic Tee")
        self.assertEqual(response.data["image_url"], "https://example.com/tee.jpg")

        not_found = self.client.get("/api/v1/public/catalog/PUB-003/")
        self.assertEqual(not_found.status_code, 404)
        self.assertEqual(not_found.data["code"], "not_found")
