"""Tests for the FastAPI app."""
import httpx
import pytest
import respx
from fastapi.testclient import TestClient

from reachstream.main import app
from reachstream.registry import ENDPOINTS
from reachstream.scrapers.bluesky_scraper import PROFILE_ENDPOINT


@pytest.fixture
def api():
    return TestClient(app)


class TestApi:

    def test_health(self, api):
        """Test the health route."""
        response = api.get("/health")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["components"]["endpoints"] == len(ENDPOINTS)

    def test_index(self, api):
        """Test the index lists endpoints."""
        body = api.get("/api/scrape").json()
        assert body["success"] is True
        assert body["count"] == len(ENDPOINTS)
        assert any(item["path"] == "/api/scrape/youtube/transcript" for item in body["endpoints"])

    def test_unknown_endpoint(self, api):
        """Test an unknown endpoint returns 404."""
        response = api.get("/api/scrape/myspace/profile")
        assert response.status_code == 404
        assert response.json() == {"success": False, "error": "Unknown endpoint: myspace/profile"}

    def test_missing_parameter(self, api):
        """Test a missing parameter returns 400."""
        response = api.get("/api/scrape/twitter/profile")
        assert response.status_code == 400
        assert response.json()["example"] == "/api/scrape/twitter/profile?username=nasa"

    def test_invalid_input(self, api):
        """Test invalid input returns 400."""
        response = api.get("/api/scrape/tiktok/followers", params={"username": "x", "limit": "99"})
        assert response.status_code == 400
        assert response.json()["metadata"]["error_type"] == "invalid_input"

    @respx.mock
    def test_success(self, api):
        """Test a successful scrape returns 200."""
        respx.get(url__startswith=PROFILE_ENDPOINT).mock(
            return_value=httpx.Response(200, json={"did": "did:plc:abc", "handle": "jay.bsky.team"})
        )
        response = api.get("/api/scrape/bluesky/profile", params={"handle": "jay.bsky.team"})
        assert response.status_code == 200
        assert response.json()["data"]["handle"] == "jay.bsky.team"

    @respx.mock
    def test_upstream_failure(self, api):
        """Test an upstream failure returns 500."""
        respx.get(url__startswith=PROFILE_ENDPOINT).mock(return_value=httpx.Response(404))
        response = api.get("/api/scrape/bluesky/profile", params={"handle": "nobody"})
        assert response.status_code == 500
        body = response.json()
        assert body["success"] is False
        assert body["metadata"]["error_type"] == "upstream_http"
