"""Tests for the health endpoint and request validation."""


class TestHealthEndpoint:
    """Tests for GET /health."""

    def test_health_returns_ok(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["version"] == "0.1.0"
        assert "T" in data["timestamp"]


class TestValidationErrors:
    """Malformed bodies come back as 400 with the error envelope."""

    def test_missing_fields(self, client):
        response = client.post("/api/practice-test", json={"studentName": "Ana"})

        assert response.status_code == 400
        data = response.json()
        assert data["error"].startswith("Missing required fields: ")
        assert "className" in data["error"]
        assert "skillName" in data["error"]
        assert data["retryable"] is False

    def test_invalid_field(self, client):
        response = client.post(
            "/api/skill-distribution",
            json={"skills": [{"skillName": "A"}], "targetTotal": 0},
        )

        assert response.status_code == 400
        assert response.json()["error"] == "Invalid request fields: targetTotal"

    def test_cors_headers(self, client):
        response = client.get("/health", headers={"Origin": "http://localhost:3000"})

        assert response.headers["access-control-allow-origin"] in ("*", "http://localhost:3000")
