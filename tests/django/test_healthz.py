from unittest.mock import patch

from django.test import TestCase
from django.urls import reverse


class HealthzTests(TestCase):
    def test_shallow_check(self):
        response = self.client.get(reverse("healthz"))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"status": "ok", "services": {"database": {"status": "ok"}}})

    @patch("exam_scheduling.views.ExamboardClient")
    def test_deep_check_reports_unreachable_api(self, mock_client):
        backend = mock_client.return_value.__enter__.return_value
        backend.ping.return_value = False
        backend.base_url = "http://examboard.test"

        response = self.client.get(reverse("healthz"), {"deep": "1"})

        self.assertEqual(response.status_code, 503)
        self.assertEqual(
            response.json()["services"]["examboard"],
            {"status": "error", "url": "http://examboard.test"},
        )

    @patch("exam_scheduling.views.ExamboardClient")
    def test_deep_check_ok(self, mock_client):
        backend = mock_client.return_value.__enter__.return_value
        backend.ping.return_value = True
        backend.base_url = "http://examboard.test"

        response = self.client.get(reverse("healthz"), {"deep": "1"})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "ok")
