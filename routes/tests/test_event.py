from unittest import TestCase

import httpx
from fastapi.testclient import TestClient

from core.dame_service import DameEventsService
from core.dependencies import get_events_service
from main import app

EVENT = {
    "id": 5,
    "slug": "salsa-night",
    "title_es": "Noche de salsa",
    "title_en": "Salsa night",
    "summary_es": "Clase y social",
    "start_datetime": "2025-06-20T21:00:00+02:00",
    "price_amount": "15.00",
    "place": {"id": 1, "name": "Sala Caribe", "city": "Madrid"},
    "organizers": [{"id": 1, "name": "DAME", "image_url": "https://img/dame.png"}],
}


class TestEvent(TestCase):
    def setUp(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/api/events/salsa-night/":
                return httpx.Response(200, json=EVENT)
            return httpx.Response(404, json={"detail": "Not found."})

        service = DameEventsService(
            base_url="https://dame.test/api", transport=httpx.MockTransport(handler)
        )
        app.dependency_overrides[get_events_service] = lambda: service
        self.client = TestClient(app)

    def tearDown(self):
        app.dependency_overrides.clear()

    def test_get_event(self):
        response = self.client.get("/event/salsa-night?lang=en")

        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(data["title"], "Salsa night")
        # no English summary, Spanish is used
        self.assertEqual(data["summary"], "Clase y social")
        self.assertEqual(data["data"]["organizers"][0]["logo_url"], "https://img/dame.png")
        self.assertEqual(data["data"]["place"]["city"], "Madrid")

    def test_unknown_event(self):
        response = self.client.get("/event/missing")

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["code"], "SERVER_REJECTED")
        self.assertEqual(response.json()["message"], "Not found.")

    def test_health(self):
        response = self.client.get("/health")
        self.assertEqual(response.json(), {"status": "ok"})
