"""Tests for the endpoint registry."""
import pytest

from reachstream.registry import ENDPOINTS, get_endpoint, list_endpoints, normalize_name

PLATFORMS = {"bluesky", "facebook", "instagram", "linkedin", "pinterest", "reddit", "threads", "tiktok",
             "twitter", "youtube"}


class TestRegistry:

    def test_paths_are_unique(self):
        """Test every endpoint path is unique."""
        paths = [endpoint.path for endpoint in ENDPOINTS]
        assert len(paths) == len(set(paths))

    def test_every_platform_registered(self):
        """Test every platform has endpoints."""
        assert {endpoint.platform for endpoint in ENDPOINTS} == PLATFORMS

    def test_every_endpoint_callable_with_example(self):
        """Test every endpoint has a callable and an example."""
        for endpoint in ENDPOINTS:
            assert callable(endpoint.func), endpoint.path
            assert endpoint.example, endpoint.path
            assert all(isinstance(group, tuple) and group for group in endpoint.required)

    @pytest.mark.parametrize("platform,name,path", [
        ("tiktok", "search_users", "tiktok/search_users"),
        ("TikTok", "Search-Users", "tiktok/search_users"),
        (" youtube ", "trending-shorts", "youtube/trending_shorts"),
    ])
    def test_lookup_normalizes(self, platform, name, path):
        """Test lookups ignore case and dashes."""
        assert get_endpoint(platform, name).path == path

    def test_unknown_endpoint(self):
        """Test an unknown endpoint is not found."""
        assert get_endpoint("myspace", "profile") is None
        assert get_endpoint("tiktok", "") is None

    def test_normalize_name(self):
        """Test endpoint name normalization."""
        assert normalize_name("Song-Details") == "song_details"
        assert normalize_name(None) == ""

    def test_aliases(self):
        """Test required parameter aliases."""
        assert get_endpoint("bluesky", "post").required == [("post_uri", "url")]
        assert get_endpoint("youtube", "transcript").required == [("url", "video_url", "video_id")]
        assert get_endpoint("pinterest", "board").required == [("username",), ("board_slug",)]

    def test_list_endpoints(self):
        """Test the endpoint listing."""
        items = list_endpoints()
        assert len(items) == len(ENDPOINTS)
        shop = next(item for item in items if item["path"] == "/api/scrape/tiktok/shop_reviews")
        assert shop["required"] == ["product_id"]
        assert shop["optional"] == ["cursor", "filter", "limit"]
        assert shop["example"] == "/api/scrape/tiktok/shop_reviews?product_id=1729384756&filter=positive"
