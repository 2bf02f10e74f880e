"""
Tests for the porting HTTP routes.
"""
from unittest.mock import patch

import pytest

from services.porting_service import CARRIER_INITIATION_FAILED_MESSAGE


def _body(porting_data):
    return {
        "user_id": porting_data["userId"],
        "current_number": porting_data["currentNumber"],
        "current_carrier": porting_data["currentCarrier"],
        "account_number": porting_data["accountNumber"],
        "pin": porting_data["pin"],
        "authorized_name": porting_data["authorizedName"],
        "billing_address": porting_data["billingAddress"],
    }


@pytest.fixture
def created(client, porting_data):
    response = client.post('/api/porting', json=porting_data)
    assert response.status_code == 201
    return response.get_json()["data"]


class TestAppRoutes:

    def test_health(self, client):
        response = client.get('/health')

        assert response.status_code == 200
        assert response.get_json()["status"] == "healthy"

    def test_unknown_route_is_json(self, client):
        response = client.get('/nope')

        assert response.status_code == 404
        assert response.get_json()["success"] is False


class TestCreateRoute:
    """Tests for POST /api/porting."""

    def test_create(self, client, porting_data):
        response = client.post('/api/porting', json=porting_data)

        assert response.status_code == 201
        data = response.get_json()["data"]
        assert data["status"] == "submitted"
        assert data["current_number"] == "+12025551234"
        assert "pin" not in data
        assert data["status_history"][0]["message"] == "Porting request submitted and under review"

    def test_snake_case_body(self, client, porting_data):
        response = client.post('/api/porting', json=_body(porting_data))

        assert response.status_code == 201

    def test_missing_fields(self, client):
        response = client.post('/api/porting', json={"current_number": "+12025551234"})

        assert response.status_code == 400
        body = response.get_json()
        assert body["kind"] == "validation_error"
        assert body["error"] == (
            "Missing required fields: user_id, current_carrier, account_number, pin, authorized_name"
        )

    def test_incomplete_address(self, client, porting_data):
        porting_data["billingAddress"]["city"] = ""

        response = client.post('/api/porting', json=porting_data)

        assert response.status_code == 400
        assert response.get_json()["error"] == "Complete billing address is required"

    def test_validation_failure_lists_errors(self, client, porting_data):
        porting_data["accountNumber"] = "12"

        response = client.post('/api/porting', json=porting_data)

        assert response.status_code == 400
        assert "Verizon account numbers must be 9-12 digits" in response.get_json()["details"]

    def test_duplicate_active_request(self, client, porting_data, created):
        response = client.post('/api/porting', json=porting_data)

        assert response.status_code == 409
        assert response.get_json()["kind"] == "conflict"

    def test_no_body(self, client):
        response = client.post('/api/porting', data="not json", content_type="text/plain")

        assert response.status_code == 400

    def test_validate_dry_run(self, client, porting_data):
        porting_data["accountNumber"] = "12"

        response = client.post('/api/porting/validate', json=porting_data)

        assert response.status_code == 200
        data = response.get_json()["data"]
        assert data["is_valid"] is False
        assert data["warnings"] == ["Account must be in good standing"]


class TestLifecycleRoutes:
    """Tests for status, cancel, progress and history routes."""

    def test_get_and_progress(self, client, created):
        response = client.get(f"/api/porting/{created['id']}")
        assert response.status_code == 200
        assert response.get_json()["data"]["id"] == created["id"]

        progress = client.get(f"/api/porting/{created['id']}/progress").get_json()["data"]
        assert progress["current_step"] == "Request Submitted"

    def test_get_missing(self, client):
        response = client.get('/api/porting/missing')

        assert response.status_code == 404
        assert response.get_json()["kind"] == "not_found"

    def test_approve(self, client, created):
        response = client.put(
            f"/api/porting/{created['id']}/status",
            json={"status": "approved", "message": "Docs verified", "updated_by": "op-1"}
        )

        assert response.status_code == 200
        data = response.get_json()["data"]
        assert data["status"] == "processing"
        assert [entry["status"] for entry in data["status_history"]] == ["processing", "approved", "submitted"]

    def test_carrier_failure(self, client, app, created):
        service = app.extensions['porting_service']
        with patch.object(service.carrier_service, 'initiate_port',
                          return_value={"success": False, "error": "timeout"}):
            response = client.put(
                f"/api/porting/{created['id']}/status",
                json={"status": "approved", "message": "ok", "updated_by": "op-1"}
            )

        assert response.status_code == 200
        data = response.get_json()["data"]
        assert data["status"] == "processing"
        assert data["status_history"][0]["message"] == f"{CARRIER_INITIATION_FAILED_MESSAGE}: timeout"

    def test_repeated_completion(self, client, created):
        body = {"status": "completed", "message": "Port done", "updated_by": "carrier-callback"}

        first = client.put(f"/api/porting/{created['id']}/status", json=body)
        second = client.put(f"/api/porting/{created['id']}/status", json=body)

        assert first.status_code == 200
        assert second.status_code == 409
        assert second.get_json()["kind"] == "illegal_transition"
        assert client.get(f"/api/porting/{created['id']}").get_json()["data"]["status"] == "completed"

    def test_status_update_requires_fields(self, client, created):
        response = client.put(f"/api/porting/{created['id']}/status", json={"status": "failed"})

        assert response.status_code == 400
        assert response.get_json()["error"] == "Missing required fields: message, updated_by"

    def test_invalid_status(self, client, created):
        response = client.put(
            f"/api/porting/{created['id']}/status",
            json={"status": "paused", "message": "x", "updated_by": "op-1"}
        )

        assert response.status_code == 400
        assert response.get_json()["kind"] == "invalid_status"

    def test_cancel_and_cancel_again(self, client, created):
        body = {"reason": "Changed mind", "cancelled_by": "user-1"}

        first = client.post(f"/api/porting/{created['id']}/cancel", json=body)
        second = client.post(f"/api/porting/{created['id']}/cancel", json=body)

        assert first.status_code == 200
        assert first.get_json()["data"]["status"] == "cancelled"
        assert second.status_code == 409
        assert second.get_json()["error"] == "Cannot cancel porting request in status: cancelled"

    def test_complete_creates_number(self, client, app, created):
        response = client.put(
            f"/api/porting/{created['id']}/status",
            json={"status": "completed", "message": "Port done", "updated_by": "op-1"}
        )

        assert response.status_code == 200
        assert response.get_json()["data"]["actual_completion"] is not None
        number_model = app.extensions['porting_service'].number_model
        assert number_model.find_by_phone_number("+12025551234").status == "active"

    def test_history(self, client, created):
        client.put(
            f"/api/porting/{created['id']}/status",
            json={"status": "processing", "message": "Review", "updated_by": "op-1"}
        )

        history = client.get(f"/api/porting/{created['id']}/history").get_json()["data"]

        assert [entry["status"] for entry in history] == ["processing", "submitted"]

    def test_notes(self, client, created):
        response = client.patch(f"/api/porting/{created['id']}/notes", json={"notes": "Call after 5pm"})

        assert response.status_code == 200
        assert response.get_json()["data"]["notes"] == "Call after 5pm"


class TestDocumentRoutes:
    """Tests for the document routes."""

    def test_upload_list_delete(self, client, created):
        upload = client.post(
            f"/api/porting/{created['id']}/documents",
            json={"type": "bill", "filename": "bill.pdf", "url": "https://files/bill.pdf"}
        )
        assert upload.status_code == 201
        document_id = upload.get_json()["data"]["id"]

        listed = client.get(f"/api/porting/{created['id']}/documents").get_json()["data"]
        assert [document["id"] for document in listed] == [document_id]

        assert client.delete(f"/api/porting/documents/{document_id}").status_code == 200
        assert client.delete(f"/api/porting/documents/{document_id}").status_code == 404

    def test_upload_requires_fields(self, client, created):
        response = client.post(f"/api/porting/{created['id']}/documents", json={"type": "bill"})

        assert response.status_code == 400


class TestListingRoutes:
    """Tests for the listing routes."""

    def test_user_requests(self, client, created):
        body = client.get('/api/porting/user/user-1?limit=10').get_json()

        assert [request["id"] for request in body["data"]] == [created["id"]]
        assert body["pagination"] == {"limit": 10, "offset": 0, "total": 1}

    def test_by_status(self, client, created):
        body = client.get('/api/porting/status/submitted').get_json()

        assert body["pagination"]["total"] == 1

    def test_search(self, client, created):
        body = client.get('/api/porting/search/verizon?user_id=user-1').get_json()

        assert body["count"] == 1

    def test_attention(self, client, created):
        client.put(
            f"/api/porting/{created['id']}/status",
            json={"status": "failed", "message": "Rejected", "updated_by": "op-1"}
        )

        body = client.get('/api/porting/admin/attention').get_json()

        assert [request["id"] for request in body["data"]] == [created["id"]]
