import json
from unittest import TestCase

import httpx
from fastapi.testclient import TestClient

from core.dame_service import DameTicketsService
from core.dependencies import get_pending_intent_store, get_tickets_service
from core.pending_intent import InMemoryPendingIntentStore
from core.responses import build_login_url
from main import app

TOKEN = "opaque-session-token"
AUTH_HEADERS = {"Authorization": f"Bearer {TOKEN}"}


def ticket_data(ticket_id: int, **kwargs) -> dict:
    data = {
        "id": ticket_id,
        "ticket_type": 3,
        "ticket_type_title": "Entrada en puerta",
        "event_title": "Salsa Night",
        "event_id": 5,
        "event_slug": "salsa-night",
        "status": "PURCHASED",
        "full_name": f"Guest {ticket_id}",
        "email": f"guest{ticket_id}@example.com",
        "purchase_price": "15.00",
        "ticket_code": f"TKT-{ticket_id}",
    }
    data.update(kwargs)
    return data


class FakeDameApi:
    """Ticketing endpoints of the DAME API backed by in-memory data."""

    def __init__(self):
        self.requests = []
        self.offers = [
            {
                "id": 1,
                "title_es": "Entrada anticipada",
                "title_en": "Early bird",
                "ticket_type": "ONLINE",
                "base_price": "12.00",
                "is_on_sale": True,
                "available_stock": 10,
            },
            {
                "id": 2,
                "title_es": "Reserva",
                "ticket_type": "RESERVA",
                "base_price": "0",
                "is_on_sale": True,
                "available_stock": 5,
                "require_role": True,
            },
            {
                "id": 3,
                "title_es": "Entrada en puerta",
                "title_en": "At the door",
                "ticket_type": "EN_PUERTA",
                "base_price": "15.00",
                "is_on_sale": False,
                "available_stock": 3,
                "require_document": True,
            },
        ]
        self.purchase_response = None
        self.my_tickets = [ticket_data(1), ticket_data(2, status="RESERVED", event_id=6)]

    def posted(self, path: str) -> list:
        return [
            json.loads(r.content)
            for r in self.requests
            if r.method == "POST" and r.url.path == path
        ]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path == "/api/tickets/events/5/ticket-types/":
            return httpx.Response(200, json={"count": len(self.offers), "results": self.offers})

        if path == "/api/tickets/purchase/":
            if self.purchase_response is not None:
                return self.purchase_response
            body = json.loads(request.content)
            attendees = body.get("attendee_data") or [body]
            offer = next(
                o
                for o in self.offers
                if o["id"] in (body.get("ticket_type_id"), body.get("ticket_type"))
            )
            # stock goes down like on the real backend
            offer["available_stock"] -= body.get("quantity", 1)
            tickets = [
                ticket_data(
                    100 + index,
                    full_name=attendee["full_name"],
                    purchase_price=offer["base_price"],
                )
                for index, attendee in enumerate(attendees)
            ]
            return httpx.Response(201, json={"success": True, "tickets": tickets})

        if path == "/api/tickets/reserve/":
            body = json.loads(request.content)
            return httpx.Response(
                201,
                json={
                    "success": True,
                    "ticket": ticket_data(200, status="RESERVED", full_name=body["full_name"]),
                },
            )

        if path == "/api/tickets/my-tickets/current/":
            return httpx.Response(200, json={"count": 2, "next": None, "results": self.my_tickets})

        if path == "/api/tickets/status/TKT-1/":
            return httpx.Response(
                200,
                json={"success": True, "ticket": {"ticket_code": "TKT-1", "status": "REDEEMED"}},
            )

        if path.startswith("/api/tickets/status/"):
            return httpx.Response(200, json={"success": False, "error": "Ticket not found"})

        return httpx.Response(404, json={"detail": "Not found."})


class TestTicket(TestCase):
    def setUp(self):
        self.api = FakeDameApi()
        self.store = InMemoryPendingIntentStore()
        self.service = DameTicketsService(
            base_url="https://dame.test/api",
            transport=httpx.MockTransport(self.api.handler),
        )
        app.dependency_overrides[get_tickets_service] = lambda: self.service
        app.dependency_overrides[get_pending_intent_store] = lambda: self.store
        self.client = TestClient(app)

    def tearDown(self):
        app.dependency_overrides.clear()

    def at_door_payload(self, quantity: int = 2, **kwargs) -> dict:
        payload = {
            "event_id": 5,
            "ticket_type_id": 3,
            "quantity": quantity,
            "event_slug": "salsa-night",
            "return_path": "/events/salsa-night",
            "attendees": [
                {
                    "full_name": f"Guest {i + 1}",
                    "email": f"guest{i + 1}@example.com",
                    "id_document": f"DOC-{i + 1}",
                }
                for i in range(quantity)
            ],
        }
        payload.update(kwargs)
        return payload

    def test_list_offers(self):
        response = self.client.get("/ticket/events/5/offers?lang=en")

        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(len(data["results"]), 3)
        summary = data["summary"]
        self.assertTrue(summary["has_orderable_offers"])
        self.assertEqual(summary["min_display_price"], "12.00€")
        self.assertEqual(summary["at_door_offer_id"], 3)
        states = {offer["id"]: offer for offer in summary["offers"]}
        self.assertEqual(states[1]["title"], "Early bird")
        self.assertEqual(states[2]["price_label"], "Free")
        self.assertTrue(states[3]["is_orderable"])

    def test_list_offers_locale_from_header(self):
        response = self.client.get(
            "/ticket/events/5/offers", headers={"Accept-Language": "es-ES,es;q=0.9"}
        )
        states = {offer["id"]: offer for offer in response.json()["summary"]["offers"]}
        self.assertEqual(states[1]["title"], "Entrada anticipada")

    def test_list_offers_backend_down(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        self.service.transport = httpx.MockTransport(handler)
        response = self.client.get("/ticket/events/5/offers?lang=en")

        self.assertEqual(response.status_code, 502)
        self.assertEqual(response.json()["code"], "NETWORK_ERROR")
        self.assertEqual(response.json()["message"], "Connection error, please try again")

    def test_at_door_registration(self):
        response = self.client.post(
            "/ticket/at-door", json=self.at_door_payload(2), headers=AUTH_HEADERS
        )

        self.assertEqual(response.status_code, 201)
        data = response.json()
        self.assertEqual([t["full_name"] for t in data["tickets"]], ["Guest 1", "Guest 2"])
        self.assertEqual(data["tickets"][0]["lifecycle"], "CONFIRMED")

        posted = self.api.posted("/api/tickets/purchase/")
        self.assertEqual(len(posted), 1)
        self.assertEqual(posted[0]["ticket_type_id"], 3)
        self.assertEqual(posted[0]["quantity"], 2)
        self.assertEqual(posted[0]["attendee_data"][1]["id_document"], "DOC-2")

        # offers are read again after the registration
        at_door = next(o for o in data["offers"]["results"] if o["id"] == 3)
        self.assertEqual(at_door["available_stock"], 1)

    def test_free_at_door_registration(self):
        at_door = self.api.offers[2]
        at_door.update(base_price="0", available_stock=5, require_document=False)
        payload = self.at_door_payload(1)
        payload["attendees"] = [{"full_name": "Ana Ruiz", "email": "ana@x.com"}]

        response = self.client.post("/ticket/at-door", json=payload, headers=AUTH_HEADERS)

        self.assertEqual(response.status_code, 201)
        data = response.json()
        self.assertEqual(len(data["tickets"]), 1)
        self.assertEqual(data["tickets"][0]["purchase_price"], "0")
        refreshed = next(o for o in data["offers"]["results"] if o["id"] == 3)
        self.assertEqual(refreshed["available_stock"], 4)

    def test_at_door_without_login_saves_intent(self):
        response = self.client.post("/ticket/at-door", json=self.at_door_payload(1))

        self.assertEqual(response.status_code, 401)
        data = response.json()
        self.assertEqual(data["code"], "AUTH_REQUIRED")
        self.assertEqual(data["login_url"], build_login_url("/events/salsa-night"))
        self.assertIsNotNone(data["intent_id"])
        self.assertEqual(self.api.posted("/api/tickets/purchase/"), [])

        consumed = self.client.post(
            f"/intent/{data['intent_id']}/consume", headers=AUTH_HEADERS
        )
        self.assertEqual(consumed.status_code, 200)
        self.assertEqual(consumed.json()["slug"], "salsa-night")

    def test_at_door_missing_document(self):
        payload = self.at_door_payload(2)
        payload["attendees"][1]["id_document"] = "  "
        response = self.client.post(
            "/ticket/at-door", json=payload, headers=AUTH_HEADERS | {"Accept-Language": "en"}
        )

        self.assertEqual(response.status_code, 400)
        data = response.json()
        self.assertEqual(data["code"], "VALIDATION_ERROR")
        self.assertEqual(data["field"], "id_document")
        self.assertEqual(data["attendee_position"], 2)
        self.assertEqual(data["message"], "ID document required for attendee 2")
        self.assertEqual(self.api.posted("/api/tickets/purchase/"), [])

    def test_at_door_quantity_above_stock(self):
        response = self.client.post(
            "/ticket/at-door", json=self.at_door_payload(4), headers=AUTH_HEADERS
        )

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["code"], "QUANTITY_OUT_OF_RANGE")
        self.assertEqual(response.json()["max"], 3)

    def test_at_door_unknown_ticket_type(self):
        response = self.client.post(
            "/ticket/at-door",
            json=self.at_door_payload(1, ticket_type_id=99),
            headers=AUTH_HEADERS,
        )
        self.assertEqual(response.status_code, 404)

    def test_at_door_hidden_offer(self):
        self.api.offers[2]["is_visible"] = False
        offers = self.client.get("/ticket/events/5/offers").json()
        self.assertIsNone(offers["summary"]["at_door_offer_id"])

        response = self.client.post(
            "/ticket/at-door", json=self.at_door_payload(1), headers=AUTH_HEADERS
        )
        self.assertEqual(response.status_code, 404)
        self.assertEqual(self.api.posted("/api/tickets/purchase/"), [])

    def test_at_door_sold_out_offer(self):
        self.api.offers[2]["available_stock"] = 0
        response = self.client.post(
            "/ticket/at-door", json=self.at_door_payload(1), headers=AUTH_HEADERS
        )
        self.assertEqual(response.status_code, 404)
        self.assertEqual(self.api.posted("/api/tickets/purchase/"), [])

    def test_at_door_only_first_offer_is_used(self):
        self.api.offers.append(
            {
                "id": 4,
                "title_es": "Puerta tarde",
                "ticket_type": "EN_PUERTA",
                "base_price": "20.00",
                "available_stock": 10,
            }
        )
        response = self.client.post(
            "/ticket/at-door",
            json=self.at_door_payload(1, ticket_type_id=4),
            headers=AUTH_HEADERS,
        )
        self.assertEqual(response.status_code, 404)
        self.assertEqual(self.api.posted("/api/tickets/purchase/"), [])

    def test_at_door_rejects_online_offer(self):
        response = self.client.post(
            "/ticket/at-door",
            json=self.at_door_payload(1, ticket_type_id=1),
            headers=AUTH_HEADERS,
        )
        self.assertEqual(response.status_code, 404)

    def test_backend_rejection_keeps_field_errors(self):
        self.api.purchase_response = httpx.Response(
            400, json={"errors": {"quantity": ["Not enough stock"]}}
        )
        response = self.client.post(
            "/ticket/at-door", json=self.at_door_payload(1), headers=AUTH_HEADERS
        )

        self.assertEqual(response.status_code, 400)
        data = response.json()
        self.assertEqual(data["code"], "SERVER_REJECTED")
        self.assertEqual(data["message"], "quantity: Not enough stock")
        self.assertEqual(data["errors"], {"quantity": ["Not enough stock"]})

    def test_backend_error_becomes_bad_gateway(self):
        self.api.purchase_response = httpx.Response(500, text="Internal Server Error")
        response = self.client.post(
            "/ticket/at-door", json=self.at_door_payload(1), headers=AUTH_HEADERS
        )
        self.assertEqual(response.status_code, 502)
        self.assertEqual(response.json()["code"], "SERVER_REJECTED")

    def test_request_validation(self):
        response = self.client.post(
            "/ticket/at-door",
            json={"event_id": 5, "ticket_type_id": 3, "quantity": "many"},
            headers=AUTH_HEADERS,
        )
        self.assertEqual(response.status_code, 422)
        fields = [error["field"] for error in response.json()["errors"]]
        self.assertIn("quantity", fields)
        self.assertIn("attendees", fields)

    def test_validation_error_documented(self):
        schema = self.client.get("/openapi.json").json()
        for path in ("/ticket/purchase", "/ticket/reserve", "/ticket/at-door"):
            unprocessable = schema["paths"][path]["post"]["responses"]["422"]
            self.assertEqual(
                unprocessable["content"]["application/json"]["schema"]["$ref"],
                "#/components/schemas/ValidationErrorResponse",
            )

    def test_reserve(self):
        response = self.client.post(
            "/ticket/reserve",
            json={
                "event_id": 5,
                "ticket_type_id": 2,
                "attendee": {
                    "full_name": "Ana López",
                    "email": "ana@example.com",
                    "role": "FOLLOWER",
                },
                "terms_accepted": True,
            },
            headers=AUTH_HEADERS,
        )

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["ticket"]["lifecycle"], "PENDING")
        self.assertIsNotNone(response.json()["offers"])

    def test_reserve_without_terms(self):
        response = self.client.post(
            "/ticket/reserve",
            json={
                "event_id": 5,
                "ticket_type_id": 2,
                "attendee": {"full_name": "Ana", "email": "ana@example.com", "role": "LEADER"},
            },
            headers=AUTH_HEADERS,
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["field"], "terms_accepted")

    def test_reserve_offer_not_on_sale(self):
        self.api.offers[1]["is_on_sale"] = False
        response = self.client.post(
            "/ticket/reserve",
            json={
                "event_id": 5,
                "ticket_type_id": 2,
                "attendee": {"full_name": "Ana", "email": "ana@example.com", "role": "LEADER"},
                "terms_accepted": True,
            },
            headers=AUTH_HEADERS,
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["field"], "ticket_type_id")
        self.assertEqual(self.api.posted("/api/tickets/reserve/"), [])

    def test_purchase_after_sale_end(self):
        self.api.offers[0]["sale_end_date"] = "2020-01-01T00:00:00+01:00"
        response = self.client.post(
            "/ticket/purchase",
            json={
                "event_id": 5,
                "ticket_type_id": 1,
                "quantity": 1,
                "buyer": {"full_name": "Ana López", "email": "ana@example.com"},
            },
            headers=AUTH_HEADERS,
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["code"], "VALIDATION_ERROR")
        self.assertEqual(self.api.posted("/api/tickets/purchase/"), [])

    def test_purchase_with_checkout(self):
        self.api.purchase_response = httpx.Response(
            200,
            json={
                "success": True,
                "tickets": [],
                "checkout_url": "https://pay.example/checkout/1",
            },
        )
        response = self.client.post(
            "/ticket/purchase",
            json={
                "event_id": 5,
                "ticket_type_id": 1,
                "quantity": 2,
                "buyer": {"full_name": "Ana López", "email": "ana@example.com"},
            },
            headers=AUTH_HEADERS,
        )

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["checkout_url"], "https://pay.example/checkout/1")
        self.assertEqual(self.api.posted("/api/tickets/purchase/")[0]["quantity"], 2)

    def test_my_current_tickets(self):
        response = self.client.get("/ticket/me/current", headers=AUTH_HEADERS)

        self.assertEqual(response.status_code, 200)
        results = response.json()["results"]
        self.assertEqual([t["lifecycle"] for t in results], ["CONFIRMED", "PENDING"])
        my_tickets_request = self.api.requests[-1]
        self.assertEqual(my_tickets_request.headers["authorization"], f"Bearer {TOKEN}")
        self.assertEqual(my_tickets_request.url.params["page"], "1")

    def test_my_tickets_without_login(self):
        response = self.client.get("/ticket/me/current")
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["code"], "AUTH_REQUIRED")
        self.assertEqual(self.api.requests, [])

    def test_ticket_ownership(self):
        response = self.client.get(
            "/ticket/events/6/ownership?slug=salsa-night", headers=AUTH_HEADERS
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"has_ticket": True})

        response = self.client.get("/ticket/events/7/ownership", headers=AUTH_HEADERS)
        self.assertEqual(response.json(), {"has_ticket": False})

    def test_ticket_status(self):
        response = self.client.get("/ticket/status/TKT-1")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["data"]["status"], "REDEEMED")

        response = self.client.get("/ticket/status/NOPE")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["message"], "Ticket not found")
