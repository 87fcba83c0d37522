"""Tests for the FastAPI app shell: health, middleware, auth and the error envelope."""

from __future__ import annotations

from unittest.mock import AsyncMock

from src.api.dependencies import get_session_user


class TestHealthEndpoint:
    def test_health_returns_ok(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["service"] == "docwebsite-backend"
        assert data["database"] == "connected"

    def test_health_reports_unreachable_database(self, client, app):
        app.state.db_manager.health_check = AsyncMock(return_value=False)
        data = client.get("/api/health").json()
        assert data["status"] == "degraded"
        assert data["database"] == "disconnected"

    def test_root_lists_entry_points(self, client):
        data = client.get("/").json()
        assert data["service"] == "DocWebsite Backend"
        assert data["health"] == "/api/health"


class TestRequestId:
    def test_generated_when_missing(self, client):
        response = client.get("/api/health")
        assert len(response.headers["X-Request-ID"]) == 36

    def test_echoes_client_value(self, client):
        response = client.get("/api/health", headers={"X-Request-ID": "req-123"})
        assert response.headers["X-Request-ID"] == "req-123"


class TestErrorEnvelope:
    def test_unknown_resource_is_404_envelope(self, client):
        body = client.get("/api/services/slug/does-not-exist").json()
        assert body == {"success": False, "message": "Service not found", "code": "SERVICE_NOT_FOUND"}

    def test_validation_errors_list_fields(self, client, login):
        login("doctor")
        response = client.post("/api/services/generate-content-from-data", json={"websiteId": "x"})
        assert response.status_code == 422
        body = response.json()
        assert body["success"] is False
        assert body["message"] == "Validation failed"
        assert any(e["field"] == "serviceName" for e in body["errors"])

    def test_missing_state_answers_503(self, client, app, login):
        login("doctor")
        app.state.llm_service = None
        response = client.get("/api/services/llm/status")
        assert response.status_code == 503
        assert response.json()["success"] is False


class TestAuthGuards:
    def test_protected_route_requires_session(self, client):
        response = client.get("/api/auth/current-user")
        assert response.status_code == 401
        assert response.json()["message"] == "Not authenticated"

    def test_deleted_user_is_rejected(self, client, app):
        app.dependency_overrides[get_session_user] = lambda: "64b7f0c2a1b2c3d4e5f60718"
        response = client.get("/api/auth/current-user")
        assert response.status_code == 401
        assert response.json()["message"] == "User not found"

    def test_client_cannot_use_doctor_routes(self, client, login):
        login("client")
        response = client.get("/api/websites")
        assert response.status_code == 403
        assert response.json()["message"] == "Access denied"


class TestAuthEndpoints:
    def test_google_url_carries_role_as_state(self, client, app):
        app.state.calendar_client.build_auth_url.return_value = "https://accounts.google.com/o/oauth2/v2/auth?x=1"
        response = client.get("/api/auth/google/url", params={"role": "doctor"})
        assert response.status_code == 200
        assert response.json()["url"].startswith("https://accounts.google.com")
        app.state.calendar_client.build_auth_url.assert_called_once_with(state="doctor")

    def test_google_url_rejects_unknown_role(self, client):
        response = client.get("/api/auth/google/url", params={"role": "admin"})
        assert response.status_code == 400
        assert response.json()["message"] == "Invalid role specified"

    def test_callback_creates_user_and_session(self, client, app, db, run):
        calendar = app.state.calendar_client
        calendar.exchange_code.return_value = {"access_token": "ya29.a", "refresh_token": "1//r"}
        calendar.get_user_info.return_value = {
            "id": "g-42", "email": "dr.lee@example.com", "name": "Dr. Lee", "picture": None,
        }
        app.state.webhook_service = None

        response = client.post("/api/auth/google/callback", json={"code": "4/abc", "state": "doctor"})
        assert response.status_code == 200
        user = response.json()["user"]
        assert user["email"] == "dr.lee@example.com"
        assert user["role"] == "doctor"
        assert user["calendarConnected"] is True
        assert "refreshToken" not in user

        stored = run(db.users.find_one({"googleId": "g-42"}))
        assert stored["refreshToken"] == "1//r"
        assert stored["googleCalendarId"] == "dr.lee@example.com"

        current = client.get("/api/auth/current-user")
        assert current.status_code == 200
        assert current.json()["user"]["email"] == "dr.lee@example.com"

    def test_callback_sets_up_webhook_for_new_doctor(self, client, app):
        calendar = app.state.calendar_client
        calendar.exchange_code.return_value = {"access_token": "ya29.a", "refresh_token": "1//r"}
        calendar.get_user_info.return_value = {"id": "g-7", "email": "doc@example.com", "name": "Doc"}
        service = app.state.webhook_service
        service.syncs.get_by_user = AsyncMock(return_value=None)
        service.setup_webhook = AsyncMock(return_value={"channelId": "c1"})

        client.post("/api/auth/google/callback", json={"code": "4/abc", "role": "doctor"})
        service.setup_webhook.assert_awaited_once()

    def test_logout_clears_session(self, client, app):
        calendar = app.state.calendar_client
        calendar.exchange_code.return_value = {"access_token": "ya29.a"}
        calendar.get_user_info.return_value = {"id": "g-9", "email": "pat@example.com", "name": "Pat"}
        client.post("/api/auth/google/callback", json={"code": "4/abc"})
        assert client.get("/api/auth/current-user").status_code == 200

        assert client.post("/api/auth/logout").json()["message"] == "Logged out successfully"
        assert client.get("/api/auth/current-user").status_code == 401
