"""
Integration tests for API workflow.

Tests cover:
- Full workflow: track upload -> register component -> poll -> verified result
- Domain errors mapped to HTTP responses
- Cancelling sessions and lifecycle events through the API
- Background maintenance
"""

import time
from unittest.mock import Mock

import pytest
from fastapi.testclient import TestClient

from verification_poller.api.app import create_app, run_maintenance
from verification_poller.api.dependencies import get_coordinator, get_poller, get_tracker
from verification_poller.models.session import SessionStatus
from verification_poller.services.lifecycle import LifecycleCoordinator
from verification_poller.services.poller import StatusPoller
from verification_poller.services.session_store import SessionStore
from verification_poller.services.tracker import DocumentTracker
from verification_poller.utils.exceptions import StatusRequestError

DOC_1 = "3f2504e0-4f89-11d3-9a0c-0305e82c3301"
DOC_2 = "6fa459ea-ee8a-3ca4-894e-db77e160355e"

SLOW = {"initial_delay_ms": 10000, "timeout_ms": 60000}


@pytest.fixture
def poller(status_client: Mock, fast_config) -> StatusPoller:
    return StatusPoller(
        status_client,
        SessionStore(removal_grace_seconds=5.0),
        DocumentTracker(),
        default_config=fast_config(),
    )


@pytest.fixture
def coordinator(poller: StatusPoller) -> LifecycleCoordinator:
    return LifecycleCoordinator(poller)


@pytest.fixture
def app(poller: StatusPoller, coordinator: LifecycleCoordinator):
    app = create_app()
    app.dependency_overrides[get_tracker] = lambda: poller._tracker
    app.dependency_overrides[get_poller] = lambda: poller
    app.dependency_overrides[get_coordinator] = lambda: coordinator
    return app


@pytest.fixture
def test_client(app):
    """Test client with a running event loop shared by every request."""
    with TestClient(app) as client:
        yield client


def wait_for_status(client: TestClient, document_id: str, status: str) -> dict:
    deadline = time.monotonic() + 2
    while time.monotonic() < deadline:
        response = client.get(f"/api/polling/sessions/{document_id}")
        if response.status_code == 200 and response.json()["status"] == status:
            return response.json()
        time.sleep(0.01)
    raise AssertionError(f"Session for {document_id} never reached {status}")


def start_polling(client: TestClient, component_id: str, document_id: str, **config) -> dict:
    response = client.post(
        f"/api/components/{component_id}/documents",
        json={"document_id": document_id, "document_type": "passport", "config": config or None},
    )
    assert response.status_code == 200, response.json()
    return response.json()


class TestFullPollingWorkflow:
    """Test the complete upload-to-result workflow."""

    def test_track_register_poll_complete(self, test_client, status_client, make_result):
        status_client.get_status.side_effect = [
            StatusRequestError("Status request failed with status code 404", status_code=404),
            make_result(DOC_1),
        ]

        # Step 1: Report the upload
        track_response = test_client.post(f"/api/documents/{DOC_1}/track")
        assert track_response.status_code == 200
        assert track_response.json() == {"document_id": DOC_1, "tracked": True}

        # Step 2: Register the owning component
        register_response = test_client.post(
            "/api/components",
            json={"component_id": "upload-step", "route": "/upload"},
        )
        assert register_response.status_code == 200
        assert register_response.json()["route"] == "/upload"

        # Step 3: Start polling
        started = start_polling(test_client, "upload-step", DOC_1)
        assert started["session_id"].startswith("polling_")

        # Step 4: Wait for the verified result
        session = wait_for_status(test_client, DOC_1, "completed")
        assert session["session_id"] == started["session_id"]
        assert session["total_requests"] == 2
        assert session["successful_requests"] == 1
        assert session["last_error"]["kind"] == "not_ready"
        assert session["progress_message"] is None

        # Step 5: Statistics reflect the finished session
        stats = test_client.get("/api/polling/statistics").json()
        assert stats["completed_sessions"] == 1
        assert stats["total_requests"] == 2
        assert stats["success_rate"] == 50.0

    def test_starting_twice_joins_session(self, test_client):
        test_client.post(f"/api/documents/{DOC_1}/track")
        test_client.post("/api/components", json={"component_id": "upload-step"})

        first = start_polling(test_client, "upload-step", DOC_1, **SLOW)
        second = start_polling(test_client, "upload-step", DOC_1, **SLOW)

        assert second["session_id"] == first["session_id"]
        sessions = test_client.get("/api/polling/sessions").json()
        assert len(sessions["sessions"]) == 1
        assert sessions["active_documents"] == [DOC_1]
        assert sessions["sessions"][0]["progress_message"] is not None

    def test_failed_session_reports_last_error(self, test_client, status_client):
        status_client.get_status.side_effect = [
            StatusRequestError("Status request failed with status code 400", status_code=400)
        ]
        test_client.post(f"/api/documents/{DOC_1}/track")
        test_client.post("/api/components", json={"component_id": "upload-step"})

        start_polling(test_client, "upload-step", DOC_1)
        session = wait_for_status(test_client, DOC_1, "failed")

        assert session["last_error"]["kind"] == "client_error"
        assert session["last_error"]["status_code"] == 400


class TestErrorMapping:
    """Test domain exceptions mapped by the middleware."""

    def test_invalid_document_id(self, test_client):
        response = test_client.post("/api/documents/not-a-guid/track")

        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_DOCUMENT_ID"

    def test_untracked_document(self, test_client, status_client):
        test_client.post("/api/components", json={"component_id": "upload-step"})

        response = test_client.post(
            "/api/components/upload-step/documents", json={"document_id": DOC_1}
        )

        assert response.status_code == 400
        assert response.json()["code"] == "DOCUMENT_NOT_TRACKED"
        status_client.get_status.assert_not_called()

    def test_unknown_component(self, test_client):
        test_client.post(f"/api/documents/{DOC_1}/track")

        response = test_client.post(
            "/api/components/missing/documents", json={"document_id": DOC_1}
        )

        assert response.status_code == 404
        assert response.json()["code"] == "COMPONENT_NOT_FOUND"
        assert test_client.delete("/api/components/missing").status_code == 404

    def test_unknown_session(self, test_client):
        response = test_client.get(f"/api/polling/sessions/{DOC_1}")

        assert response.status_code == 404
        assert response.json()["code"] == "SESSION_NOT_FOUND"

    def test_unexpected_error_is_hidden(self, test_client, poller, monkeypatch):
        monkeypatch.setattr(poller, "get_polling_statistics", Mock(side_effect=KeyError("x")))

        response = test_client.get("/api/polling/statistics")

        assert response.status_code == 500
        assert response.json()["code"] == "INTERNAL_SERVER_ERROR"


class TestCancellationAndLifecycle:
    """Test cancellation and lifecycle endpoints."""

    def test_cancel_session(self, test_client):
        test_client.post(f"/api/documents/{DOC_1}/track")
        test_client.post("/api/components", json={"component_id": "upload-step"})
        start_polling(test_client, "upload-step", DOC_1, **SLOW)

        first = test_client.delete(f"/api/polling/sessions/{DOC_1}")
        second = test_client.delete(f"/api/polling/sessions/{DOC_1}")

        assert first.json() == {"document_id": DOC_1, "cancelled": True}
        assert second.json() == {"document_id": DOC_1, "cancelled": False}
        assert test_client.get(f"/api/polling/sessions/{DOC_1}").json()["status"] == "cancelled"

    def test_unregister_component_cancels_polling(self, test_client):
        test_client.post(f"/api/documents/{DOC_1}/track")
        test_client.post("/api/components", json={"component_id": "comp-A"})
        start_polling(test_client, "comp-A", DOC_1, **SLOW)

        response = test_client.delete("/api/components/comp-A")

        assert response.status_code == 200
        assert response.json()["document_ids"] == [DOC_1]
        assert test_client.get(f"/api/polling/sessions/{DOC_1}").json()["status"] == "cancelled"

    def test_remove_document_from_component(self, test_client):
        test_client.post(f"/api/documents/{DOC_1}/track")
        test_client.post("/api/components", json={"component_id": "comp-A"})
        start_polling(test_client, "comp-A", DOC_1, **SLOW)

        response = test_client.delete(f"/api/components/comp-A/documents/{DOC_1}")

        assert response.json()["document_ids"] == []
        assert test_client.get(f"/api/polling/sessions/{DOC_1}").json()["status"] == "cancelled"

    def test_navigation_cleans_up_left_behind_components(self, test_client):
        for document_id in (DOC_1, DOC_2):
            test_client.post(f"/api/documents/{document_id}/track")
        test_client.post(
            "/api/components", json={"component_id": "personal", "route": "/personal-info"}
        )
        test_client.post("/api/components", json={"component_id": "upload", "route": "/review"})
        start_polling(test_client, "personal", DOC_1, **SLOW)
        start_polling(test_client, "upload", DOC_2, **SLOW)

        response = test_client.post("/api/lifecycle/navigation", json={"route": "/review"})

        assert response.json() == {"route": "/review", "unregistered_components": ["personal"]}
        assert test_client.get(f"/api/polling/sessions/{DOC_1}").json()["status"] == "cancelled"
        assert test_client.get(f"/api/polling/sessions/{DOC_2}").json()["status"] == "active"
        components = test_client.get("/api/components").json()
        assert components["current_route"] == "/review"
        assert [c["component_id"] for c in components["components"]] == ["upload"]

    def test_visibility_and_unload(self, test_client):
        test_client.post(f"/api/documents/{DOC_1}/track")
        test_client.post("/api/components", json={"component_id": "comp-A"})
        start_polling(test_client, "comp-A", DOC_1, **SLOW)

        hidden = test_client.post("/api/lifecycle/visibility", json={"hidden": True})
        assert hidden.json() == {"background_mode": True}
        assert test_client.get("/health").json()["active_sessions"] == 1

        unload = test_client.post("/api/lifecycle/unload")
        assert unload.json() == {"affected": 1}
        assert test_client.get("/health").json()["active_sessions"] == 0
        assert test_client.get("/api/lifecycle/statistics").json()["total_components"] == 0

    def test_cleanup_stale_components(self, test_client):
        test_client.post("/api/components", json={"component_id": "comp-A"})
        time.sleep(0.02)

        response = test_client.post("/api/lifecycle/cleanup-stale", json={"max_age_ms": 10})

        assert response.json() == {"affected": 1}


class TestMaintenance:
    """Test the background maintenance pass."""

    def test_run_maintenance_purges_expired_sessions(self, app, poller, coordinator):
        store = poller.store
        store._removal_grace = 0.0
        store.create(DOC_1, "passport", poller.default_config)
        store.complete(DOC_1, SessionStatus.cancelled)
        coordinator.register_component("old")
        coordinator._contexts["old"].registration_time -= 3600

        purged, stale = run_maintenance(app)

        assert purged == 1
        assert stale == 1
        assert store.get(DOC_1) is None
