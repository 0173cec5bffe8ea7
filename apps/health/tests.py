from unittest import mock

from django.db import DatabaseError
from rest_framework.test import APITestCase


class HealthTests(APITestCase):
    def test_health_reports_database_ok_without_auth(self):
        response = self.client.get("/health/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data, {"status": "ok", "database": "ok"})

    def test_health_degrades_when_database_is_unreachable(self):
        with mock.patch("apps.health.views.connection.cursor", side_effect=DatabaseError("down")):
            with self.assertLogs("apps.health.views", level="ERROR"):
                response = self.client.get("/health/")
        self.assertEqual(response.status_code, 503)
        self.assertEqual(response.data["database"], "unavailable")
