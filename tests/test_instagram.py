"""Tests for the Instagram scraper."""
import httpx
import pytest
import respx

from reachstream.scrapers.errors import ExtractionError
from reachstream.scrapers.instagram_scraper import (
    edge_count,
    extract_comments,
    extract_post,
    extract_posts,
    extract_profile,
    extract_search_page,
    extract_topsearch,
    scrape_comments,
    scrape_profile,
    search_instagram,
)
from pages import assigned_page

USER = {
    "id": "25025320",
    "username": "instagram",
    "full_name": "Instagram",
    "profile_pic_url": "https://cdn/pic.jpg",
    "edge_followed_by": {"count": 600000000},
    "edge_follow": {"count": 70},
    "is_verified": True,
    "edge_owner_to_timeline_media": {
        "count": 7000,
        "edges": [
            {"node": {
                "id": "1",
                "shortcode": "ABC",
                "__typename": "GraphImage",
                "edge_media_to_caption": {"edges": [{"node": {"text": "Hello #world"}}]},
                "edge_liked_by": {"count": 50},
                "edge_media_to_comment": {"count": 5},
                "location": {"id": "9", "name": "Menlo Park", "slug": "menlo"},
            }},
            {"node": {"id": "2", "shortcode": "DEF", "__typename": "GraphVideo", "is_video": True}},
        ],
    },
}

PROFILE_DATA = {"entry_data": {"ProfilePage": [{"graphql": {"user": USER}}]}}

MEDIA = {
    "id": "1",
    "shortcode": "ABC",
    "__typename": "GraphSidecar",
    "edge_media_to_caption": {"edges": [{"node": {"text": "Caption"}}]},
    "owner": {"id": "25025320", "username": "instagram"},
    "dimensions": {"width": 1080, "height": 1350},
    "edge_media_preview_like": {"count": 1000},
    "edge_media_to_parent_comment": {
        "count": 42,
        "edges": [
            {"node": {
                "id": "c1",
                "text": "First!",
                "owner": {"id": "7", "username": "fan"},
                "edge_liked_by": {"count": 3},
                "pinned_comment_badge": True,
                "edge_threaded_comments": {
                    "count": 1,
                    "edges": [{"node": {"id": "r1", "text": "reply", "owner": {"username": "other"}}}],
                },
            }},
            {"node": {"id": "c2", "text": "Nice", "owner": {"username": "b"}}},
        ],
    },
    "edge_media_to_tagged_user": {"edges": [{"node": {"user": {"username": "friend"}}}]},
}

POST_DATA = {"entry_data": {"PostPage": [{"graphql": {"shortcode_media": MEDIA}}]}}

TOPSEARCH = {
    "users": [{"user": {"pk": "1", "username": "nasa", "follower_count": 90}}],
    "hashtags": [{"hashtag": {"name": "space", "media_count": 1000}}],
    "places": [{"place": {"title": "KSC", "subtitle": "Florida", "location": {"pk": "77"}}}],
}


def shared_page(data):
    return assigned_page("window._sharedData", data)


class TestInstagramExtraction:

    def test_edge_count_first_non_zero(self):
        """Test edge counts fall through to the first non-zero value."""
        node = {"a": {"count": 0}, "b": {"count": 4}}
        assert edge_count(node, "a", "b") == 4
        assert edge_count(node, "missing") == 0

    def test_profile(self):
        """Test profile extraction from shared data."""
        profile = extract_profile(PROFILE_DATA, "instagram")
        assert profile["follower_count"] == 600000000
        assert profile["following_count"] == 70
        assert profile["post_count"] == 7000
        assert profile["profile_pic_url"] == "https://cdn/pic.jpg"
        assert profile["profile_url"] == "https://www.instagram.com/instagram"

    def test_profile_missing(self):
        """Test missing profile data raises."""
        with pytest.raises(ExtractionError, match="Profile data structure not found"):
            extract_profile({"entry_data": {}}, "nobody")

    def test_posts(self):
        """Test posts are read from the timeline edges."""
        posts = extract_posts(PROFILE_DATA)
        assert [p["type"] for p in posts] == ["GraphImage", "GraphVideo"]
        assert posts[0]["caption"] == "Hello #world"
        assert posts[0]["engagement"] == {"likes": 50, "comments": 5}
        assert posts[0]["location"] == {"id": "9", "name": "Menlo Park"}
        assert posts[1]["caption"] == ""
        assert posts[1]["location"] is None

    def test_posts_missing_user(self):
        """Test posts without a user raise."""
        with pytest.raises(ExtractionError, match="User data structure not found"):
            extract_posts({})

    def test_post(self):
        """Test single post extraction."""
        post = extract_post(POST_DATA, "ABC")
        assert post["post_url"] == "https://www.instagram.com/p/ABC/"
        assert post["engagement"] == {"likes": 1000, "comments": 42}
        assert post["dimensions"] == {"width": 1080, "height": 1350}
        assert post["tagged_users"] == ["friend"]
        assert post["location"] is None

    def test_comments_threaded(self):
        """Test comments keep their replies."""
        result = extract_comments(POST_DATA)
        assert result["total_comments"] == 42
        first, second = result["comments"]
        assert first["is_pinned"] is True
        assert first["reply_count"] == 1
        assert first["replies"][0]["user"]["username"] == "other"
        assert first["replies"][0]["like_count"] == 0
        assert second["is_pinned"] is False
        assert second["replies"] == []

    def test_topsearch_filters(self):
        """Test topsearch results are filtered by type."""
        assert [r["type"] for r in extract_topsearch(TOPSEARCH, "all")] == ["user", "hashtag", "place"]
        assert [r["type"] for r in extract_topsearch(TOPSEARCH, "hashtags")] == ["hashtag"]
        assert extract_topsearch(TOPSEARCH, "posts") == []
        place = extract_topsearch(TOPSEARCH, "all")[2]
        assert place["location_url"] == "https://www.instagram.com/explore/locations/77/"

    def test_search_page_posts(self):
        """Test search posts from the search page."""
        data = {"entry_data": {"SearchPage": [{"graphql": {
            "posts": [{"shortcode": "XYZ", "edge_liked_by": {"count": 9}, "owner": {"username": "u"}}],
        }}]}}
        results = extract_search_page(data, "posts")
        assert results[0]["post_url"] == "https://www.instagram.com/p/XYZ/"
        assert results[0]["like_count"] == 9
        assert results[0]["owner_username"] == "u"


class TestInstagramScraper:

    @respx.mock
    def test_scrape_profile(self, client):
        """Test profile scrape end to end."""
        respx.get("https://www.instagram.com/instagram/").mock(
            return_value=httpx.Response(200, text=shared_page(PROFILE_DATA))
        )
        result = scrape_profile("@instagram", client=client)
        assert result["success"] is True
        assert result["data"]["user_id"] == "25025320"

    @respx.mock
    def test_scrape_comments_limit(self, client):
        """Test comments are cut to the limit."""
        respx.get("https://www.instagram.com/p/ABC/").mock(
            return_value=httpx.Response(200, text=shared_page(POST_DATA))
        )
        result = scrape_comments("ABC", limit=1, client=client)
        assert result["data"]["comment_count"] == 1
        assert result["data"]["total_comments"] == 42

    @respx.mock
    def test_search_json(self, client):
        """Test search uses the topsearch JSON."""
        route = respx.get(url__startswith="https://www.instagram.com/web/search/topsearch/").mock(
            return_value=httpx.Response(200, json=TOPSEARCH)
        )
        result = search_instagram("nasa", type="users", client=client)
        assert result["data"]["result_count"] == 1
        assert result["metadata"]["search_type"] == "users"
        request = route.calls.last.request
        assert request.url.params["query"] == "nasa"
        assert request.headers["X-Requested-With"] == "XMLHttpRequest"

    @respx.mock
    def test_search_html_fallback(self, client):
        """Test search falls back to the search page."""
        data = {"entry_data": {"SearchPage": [{"graphql": {"hashtags": [{"name": "space", "media_count": 5}]}}]}}
        respx.get(url__startswith="https://www.instagram.com/web/search/topsearch/").mock(
            return_value=httpx.Response(200, text=shared_page(data))
        )
        result = search_instagram("space", client=client)
        assert result["success"] is True
        assert result["data"]["results"][0]["hashtag_url"] == "https://www.instagram.com/explore/tags/space/"

    def test_search_invalid_type(self):
        """Test an unknown search type is rejected."""
        result = search_instagram("nasa", type="reels")
        assert result["success"] is False
        assert result["error"] == "Invalid search type. Must be one of: all, users, hashtags, posts"
