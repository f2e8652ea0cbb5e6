"""Tests for the REST API."""

import base64

import pytest

ARTISAN = {
    "uid": "artisan-001",
    "role": "artisan",
    "name": "Meera",
    "profession": "Potter",
    "description": "Hand-thrown terracotta from Khurja"
}
BUYER = {"uid": "buyer-001", "role": "buyer"}


# ──────────────────────────────────────────
# Health
# ──────────────────────────────────────────

class TestHealth:
    @pytest.mark.anyio
    async def test_health(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert "X-Process-Time-Ms" in response.headers

    @pytest.mark.anyio
    async def test_ready(self, client):
        response = await client.get("/health/ready")
        data = response.json()
        assert data["status"] == "ready"
        assert all(data["checks"].values())

    @pytest.mark.anyio
    async def test_root(self, client):
        response = await client.get("/")
        assert response.json()["status"] == "running"


# ──────────────────────────────────────────
# Navigation
# ──────────────────────────────────────────

class TestProcess:
    @pytest.mark.anyio
    async def test_dashboard(self, client):
        response = await client.post("/api/v1/navigation/process", json={
            "message": "go to dashboard",
            "sessionId": "api-1",
            "language": "en-US",
            "userProfile": ARTISAN
        })
        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["intent"] == "navigate_dashboard"
        assert data["targetRoute"] == "/dashboard"
        assert base64.b64decode(data["audioContent"])

    @pytest.mark.anyio
    async def test_snake_case_input(self, client):
        response = await client.post("/api/v1/navigation/process", json={
            "message": "डैशबोर्ड पर जाएं",
            "session_id": "api-2",
            "language": "hi",
            "user_profile": ARTISAN
        })
        data = response.json()
        assert data["targetRoute"] == "/dashboard"
        assert data["language"] == "hi-IN"

    @pytest.mark.anyio
    async def test_retry_prompt(self, client):
        response = await client.post("/api/v1/navigation/process", json={
            "message": "blah blah nonsense",
            "sessionId": "api-3"
        })
        data = response.json()
        assert data["success"] is False
        assert data["canRetry"] is True
        assert data["retryCount"] == 1

    @pytest.mark.anyio
    async def test_empty_message_is_rejected(self, client):
        response = await client.post("/api/v1/navigation/process", json={"message": ""})
        assert response.status_code == 422

    @pytest.mark.anyio
    async def test_unknown_role_is_rejected(self, client):
        response = await client.post("/api/v1/navigation/process", json={
            "message": "go to dashboard",
            "userProfile": {"uid": "x", "role": "wizard"}
        })
        assert response.status_code == 422


class TestConfirmAndHistory:
    @pytest.mark.anyio
    async def test_confirmation(self, client):
        response = await client.post("/api/v1/navigation/process", json={
            "message": "create product",
            "sessionId": "api-4",
            "userProfile": ARTISAN
        })
        data = response.json()
        assert data["requiresConfirmation"] is True

        response = await client.post("/api/v1/navigation/confirm", json={
            "confirmationId": data["confirmationId"],
            "confirmed": True
        })
        data = response.json()
        assert data["executed"] is True
        assert data["targetRoute"] == "/smart-product-creator"

        history = (await client.get("/api/v1/navigation/history/api-4")).json()
        assert history["count"] == 1
        assert history["current_route"] == "/smart-product-creator"

    @pytest.mark.anyio
    async def test_back_and_clear(self, client):
        for message in ["go to dashboard", "open marketplace"]:
            await client.post("/api/v1/navigation/process", json={
                "message": message, "sessionId": "api-5", "userProfile": ARTISAN
            })

        response = await client.post("/api/v1/navigation/back", json={"sessionId": "api-5"})
        assert response.json()["targetRoute"] == "/dashboard"

        response = await client.delete("/api/v1/navigation/history/api-5")
        assert response.json()["status"] == "cleared"
        history = (await client.get("/api/v1/navigation/history/api-5")).json()
        assert history["count"] == 0


class TestDiscovery:
    @pytest.mark.anyio
    async def test_routes_for_buyer(self, client):
        data = (await client.get("/api/v1/navigation/routes", params={"role": "buyer"})).json()
        paths = [r["path"] for r in data["routes"]]
        assert "/marketplace" in paths
        assert "/finance" not in paths
        assert data["count"] == len(paths)

    @pytest.mark.anyio
    async def test_suggestions(self, client):
        data = (await client.get("/api/v1/navigation/suggestions", params={"role": "artisan", "limit": 3})).json()
        assert len(data["suggestions"]) == 3

    @pytest.mark.anyio
    async def test_help(self, client):
        data = (await client.get("/api/v1/navigation/help", params={"language": "hi-IN"})).json()
        assert data["language"] == "hi-IN"
        assert data["commands"]

    @pytest.mark.anyio
    async def test_status(self, client):
        data = (await client.get("/api/v1/navigation/status")).json()
        assert data["initialized"] is True


class TestSecurityEndpoints:
    @pytest.mark.anyio
    async def test_valid_parameters(self, client):
        data = (await client.post("/api/v1/navigation/validate-parameters", json={
            "path": "/profile",
            "parameters": {"section": "overview"}
        })).json()
        assert data["isValid"] is True
        assert data["sanitizedParams"] == {"section": "overview"}

    @pytest.mark.anyio
    async def test_markup_parameters(self, client):
        data = (await client.post("/api/v1/navigation/validate-parameters", json={
            "path": "/profile",
            "parameters": {"section": "<script>"}
        })).json()
        assert data["isValid"] is False
        assert data["errors"]

    @pytest.mark.anyio
    async def test_audit_log(self, client):
        await client.post("/api/v1/navigation/process", json={
            "message": "open finance", "sessionId": "api-6", "userProfile": BUYER
        })
        data = (await client.get("/api/v1/navigation/audit-logs", params={"user_id": "buyer-001"})).json()
        assert "access_denied" in [e["action"] for e in data["entries"]]


# ──────────────────────────────────────────
# Guidance
# ──────────────────────────────────────────

class TestGuidance:
    @pytest.mark.anyio
    async def test_tutorial_flow(self, client):
        tutorials = (await client.get("/api/v1/guidance/tutorials", params={"user_id": "g1"})).json()
        assert tutorials["skill_level"] == "beginner"

        started = (await client.post(
            "/api/v1/guidance/tutorials/basic_voice_navigation/start", json={"userId": "g1"}
        )).json()
        assert started["success"] is True

        for command in ["hello", "go to dashboard", "help"]:
            step = (await client.post(
                "/api/v1/guidance/tutorials/step", json={"userId": "g1", "command": command}
            )).json()
            assert step["success"] is True
        assert step["completed"] is True

        progress = (await client.get("/api/v1/guidance/progress/g1")).json()
        assert progress["skill_level"] == "intermediate"

    @pytest.mark.anyio
    async def test_unknown_tutorial(self, client):
        response = await client.post("/api/v1/guidance/tutorials/juggling/start", json={"userId": "g2"})
        assert response.status_code == 404

    @pytest.mark.anyio
    async def test_hints(self, client):
        data = (await client.get("/api/v1/guidance/hints", params={
            "user_id": "g3", "trigger": "low_confidence"
        })).json()
        assert [h["id"] for h in data["hints"]] == ["speech_not_recognized"]

    @pytest.mark.anyio
    async def test_command_suggestions(self, client):
        data = (await client.get("/api/v1/guidance/suggestions", params={"error_type": "not_found"})).json()
        assert data["suggestions"] == ["help", "go to dashboard", "open marketplace"]
