"""Tests for repair request endpoints."""

import json
import pytest

from sqlalchemy.exc import SQLAlchemyError

from repairdesk.core.storage import ImageStorage, get_storage
from repairdesk.main import app
from repairdesk.models.catalog import Image
from repairdesk.models.repair_request import RepairRequest, RepairStatus

API = "/api/v1"

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


def repair_payload(**overrides):
    payload = {
        "customer_name": "Maria Garcia",
        "customer_phone": "600123456",
        "customer_email": "maria@example.com",
        "article_name": "Laptop",
        "article_type": "Computer",
        "article_brand": "Lenovo",
        "article_model": "T480",
        "article_serialnumber": "SN123456",
        "article_problem": "Does not boot",
        "repair_status": "pending",
        "repair_price": "120.50",
        "received_at": "2026-01-10T09:00:00Z",
    }
    payload.update(overrides)
    return payload


class FailingStorage(ImageStorage):
    """Stores the first upload and fails on the next one."""

    def __init__(self, base_dir):
        super().__init__(base_dir)
        self.calls = 0

    def put(self, stream, original_filename, directory="images"):
        self.calls += 1
        if self.calls > 1:
            raise OSError("disk full")
        return super().put(stream, original_filename, directory)


def stored_files(root):
    return [p for p in root.rglob("*") if p.is_file()] if root.exists() else []


# ============== Create ==============

class TestCreateRepairRequest:
    def test_create_json(self, client, admin_headers):
        response = client.post(f"{API}/repair-request", json=repair_payload(), headers=admin_headers)
        assert response.status_code == 201
        data = response.json()["data"]["repair_request"]
        assert data["receipt_number"] == "RR-000000000001"
        assert data["repair_status"] == "pending"
        assert data["repair_status_label"] == "Pending review"
        assert data["repair_price"] == 120.5
        assert data["images"] == []

    def test_receipt_number_follows_id(self, client, admin_headers):
        client.post(f"{API}/repair-request", json=repair_payload(), headers=admin_headers)
        response = client.post(f"{API}/repair-request", json=repair_payload(), headers=admin_headers)
        assert response.json()["data"]["repair_request"]["receipt_number"] == "RR-000000000002"

    def test_create_with_images(self, client, admin_headers, storage, db_session):
        response = client.post(
            f"{API}/repair-request",
            data=repair_payload(),
            files=[
                ("images[]", ("front.png", PNG, "image/png")),
                ("images[]", ("back.jpg", PNG, "image/jpeg")),
            ],
            headers=admin_headers,
        )
        assert response.status_code == 201
        images = response.json()["data"]["repair_request"]["images"]
        assert len(images) == 2
        for image in images:
            assert image["path"].startswith("repair_requests/")
            assert storage.exists(image["path"])
            assert image["alt"] == "repair_request_1"

        assert db_session.query(Image).filter(Image.imageable_type == "repair_request").count() == 2

    def test_rollback_when_image_fails(self, client, admin_headers, db_session, tmp_path):
        failing = FailingStorage(str(tmp_path / "failing"))
        app.dependency_overrides[get_storage] = lambda: failing

        response = client.post(
            f"{API}/repair-request",
            data=repair_payload(),
            files=[
                ("images[]", ("front.png", PNG, "image/png")),
                ("images[]", ("back.png", PNG, "image/png")),
            ],
            headers=admin_headers,
        )
        assert response.status_code == 500
        assert response.json()["message"] == "Failed to create repair request."

        assert failing.calls == 2
        assert db_session.query(RepairRequest).count() == 0
        assert db_session.query(Image).count() == 0
        assert stored_files(tmp_path / "failing") == []

    def test_invalid_status(self, client, admin_headers):
        response = client.post(
            f"{API}/repair-request",
            json=repair_payload(repair_status="lost"),
            headers=admin_headers,
        )
        assert response.status_code == 422
        assert "repair_status" in response.json()["errors"]

    def test_missing_required_fields(self, client, admin_headers):
        response = client.post(f"{API}/repair-request", json={}, headers=admin_headers)
        assert response.status_code == 422
        errors = response.json()["errors"]
        for key in ("customer_phone", "customer_email", "article_problem", "received_at"):
            assert key in errors
        assert "customer_name" not in errors

    def test_non_image_upload_rejected(self, client, admin_headers):
        response = client.post(
            f"{API}/repair-request",
            data=repair_payload(),
            files=[("images[]", ("notes.txt", b"hello", "text/plain"))],
            headers=admin_headers,
        )
        assert response.status_code == 422
        assert "images.0" in response.json()["errors"]

    def test_negative_price(self, client, admin_headers):
        response = client.post(
            f"{API}/repair-request",
            json=repair_payload(repair_price="-5"),
            headers=admin_headers,
        )
        assert response.status_code == 422

    @pytest.mark.parametrize("price", [float("nan"), float("inf"), float("-inf")])
    def test_non_finite_price(self, client, admin_headers, db_session, price):
        # The stdlib encoder writes NaN and Infinity literals
        response = client.post(
            f"{API}/repair-request",
            content=json.dumps(repair_payload(repair_price=price)),
            headers={**admin_headers, "Content-Type": "application/json"},
        )
        assert response.status_code == 422
        assert response.json()["errors"]["repair_price"] == ["The repair price field must be a number."]
        assert db_session.query(RepairRequest).count() == 0


# ============== Read / update / delete ==============

class TestRepairRequestLifecycle:
    def create(self, client, headers, **overrides):
        response = client.post(f"{API}/repair-request", json=repair_payload(**overrides), headers=headers)
        return response.json()["data"]["repair_request"]

    def test_list_and_get(self, client, admin_headers):
        created = self.create(client, admin_headers)

        listing = client.get(f"{API}/repair-request", headers=admin_headers)
        assert [r["id"] for r in listing.json()["data"]["repair_requests"]] == [created["id"]]

        response = client.get(f"{API}/repair-request/{created['id']}", headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["data"]["repair_request"]["customer_email"] == "maria@example.com"

    def test_get_missing(self, client, admin_headers):
        response = client.get(f"{API}/repair-request/999", headers=admin_headers)
        assert response.status_code == 404
        assert response.json()["message"] == "Repair request not found."

    def test_get_id_beyond_64_bit(self, client, admin_headers):
        response = client.get(f"{API}/repair-request/99999999999999999999999", headers=admin_headers)
        assert response.status_code == 404
        assert response.json()["message"] == "Repair request not found."

    def test_update_progress(self, client, admin_headers):
        created = self.create(client, admin_headers)
        response = client.put(
            f"{API}/repair-request/{created['id']}",
            json={
                "repair_status": "completed",
                "repair_details": "Replaced the SSD",
                "repaired_at": "2026-01-12T15:00:00Z",
                "customer_email": "ignored@example.com",
            },
            headers=admin_headers,
        )
        assert response.status_code == 200
        data = response.json()["data"]["repair_request"]
        assert data["repair_status"] == RepairStatus.COMPLETED.value
        assert data["repair_details"] == "Replaced the SSD"
        assert data["customer_email"] == "maria@example.com"

    def test_update_requires_status(self, client, admin_headers):
        created = self.create(client, admin_headers)
        response = client.put(
            f"{API}/repair-request/{created['id']}",
            json={"repair_details": "Waiting"},
            headers=admin_headers,
        )
        assert response.status_code == 422
        assert "repair_status" in response.json()["errors"]

    def test_delete_removes_images(self, client, admin_headers, storage, db_session):
        created = client.post(
            f"{API}/repair-request",
            data=repair_payload(),
            files=[("images[]", ("front.png", PNG, "image/png"))],
            headers=admin_headers,
        ).json()["data"]["repair_request"]
        path = created["images"][0]["path"]

        response = client.delete(f"{API}/repair-request/{created['id']}", headers=admin_headers)
        assert response.status_code == 200
        assert not storage.exists(path)
        assert db_session.query(Image).count() == 0

        assert client.get(f"{API}/repair-request/{created['id']}", headers=admin_headers).status_code == 404

    def test_user_cannot_delete(self, client, admin_headers, auth_headers):
        created = self.create(client, admin_headers)
        response = client.delete(f"{API}/repair-request/{created['id']}", headers=auth_headers)
        assert response.status_code == 403

    def test_delete_keeps_files_when_commit_fails(self, client, admin_headers, storage, db_session, monkeypatch):
        created = client.post(
            f"{API}/repair-request",
            data=repair_payload(),
            files=[("images[]", ("front.png", PNG, "image/png"))],
            headers=admin_headers,
        ).json()["data"]["repair_request"]
        path = created["images"][0]["path"]

        def fail_commit():
            raise SQLAlchemyError("database is locked")

        monkeypatch.setattr(db_session, "commit", fail_commit)
        response = client.delete(f"{API}/repair-request/{created['id']}", headers=admin_headers)
        assert response.status_code == 500
        assert response.json()["message"] == "Repair request could not be deleted."

        assert storage.exists(path)
        assert db_session.query(Image).count() == 1
        assert client.get(f"{API}/repair-request/{created['id']}", headers=admin_headers).status_code == 200
