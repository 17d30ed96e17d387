"""Tests for the response envelope and the global error handling."""

import json
from datetime import datetime, timezone
from decimal import Decimal

from repairdesk.core.responses import envelope_body, error, success

API = "/api/v1"


# ============== Envelope ==============

class TestEnvelope:
    def test_success_shape(self):
        body = envelope_body(200, "ok", data={"n": 1})
        assert body == {"status": 200, "message": "ok", "data": {"n": 1}}

    def test_empty_data_is_object(self):
        assert envelope_body(200, "ok")["data"] == {}
        assert envelope_body(200, "ok", data=[])["data"] == {}

    def test_error_shape(self):
        body = envelope_body(422, "bad", errors={"email": ["x"]}, is_error=True)
        assert body == {"status": 422, "message": "bad", "errors": {"email": ["x"]}}
        assert "data" not in body

    def test_empty_errors_is_object(self):
        assert envelope_body(403, "no", is_error=True)["errors"] == {}

    def test_values_are_json_encoded(self):
        at = datetime(2026, 1, 1, tzinfo=timezone.utc)
        body = envelope_body(200, "ok", data={"at": at, "price": Decimal("9.50")})
        assert body["data"]["at"] == at.isoformat()
        json.dumps(body)

    def test_success_response(self):
        response = success("Created.", {"id": 1}, status=201)
        assert response.status_code == 201
        assert json.loads(response.body) == {"status": 201, "message": "Created.", "data": {"id": 1}}

    def test_error_response(self):
        response = error("Nope.", status=404)
        assert response.status_code == 404
        assert json.loads(response.body)["errors"] == {}


# ============== Error handlers ==============

class TestErrorHandlers:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        body = response.json()
        assert body["data"]["checks"]["database"] == "healthy"

    def test_unknown_route_is_404_envelope(self, client):
        response = client.get(f"{API}/does-not-exist")
        assert response.status_code == 404
        body = response.json()
        assert body["status"] == 404
        assert body["errors"] == {}

    def test_wrong_method_is_405_envelope(self, client):
        response = client.delete(f"{API}/auth/login")
        assert response.status_code == 405
        assert response.json()["message"] == "Method not allowed."

    def test_path_coercion_error_is_422(self, client):
        response = client.get(f"{API}/article/not-a-number")
        assert response.status_code == 422
        assert "article_id" in response.json()["errors"]

    def test_malformed_json_is_400(self, client):
        response = client.post(
            f"{API}/auth/login",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )
        assert response.status_code == 400
        assert response.json()["errors"] == {}

    def test_validation_error_lists_fields(self, client):
        response = client.post(f"{API}/auth/login", json={})
        assert response.status_code == 422
        body = response.json()
        assert body["message"] == "The given data was invalid."
        assert set(body["errors"]) == {"email", "password"}

    def test_security_headers(self, client):
        response = client.get("/health")
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "DENY"
