"""
Unit tests for main application endpoints.
"""
import pytest


class TestHealthCheck:
    """Tests for health check endpoint."""

    def test_health_check(self, client):
        """Test the health check endpoint."""
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}


class TestApplicationSetup:
    """Tests for application configuration."""

    def test_app_title(self, client):
        """Test that the app has correct title."""
        response = client.get("/openapi.json")
        assert response.status_code == 200
        openapi = response.json()
        assert "Classroom Reservation" in openapi["info"]["title"]

    def test_docs_endpoint_exists(self, client):
        """Test that API documentation endpoint is accessible."""
        response = client.get("/docs")
        assert response.status_code == 200

    def test_versioned_prefix(self, client, sample_classroom):
        """Test routers are also mounted under /api/v1."""
        response = client.get("/api/v1/classrooms/")
        assert response.status_code == 200
        assert response.json()[0]["name"] == sample_classroom.name

    def test_unknown_route_uses_error_shape(self, client):
        """Test 404s carry the standard error body."""
        response = client.get("/api/does-not-exist")
        assert response.status_code == 404
        body = response.json()
        assert body["error"] == "HTTP error"
        assert body["path"] == "/api/does-not-exist"
