"""Tests for the TikTok page scraper."""
import httpx
import pytest
import respx

from reachstream.scrapers.errors import ExtractionError
from reachstream.scrapers.tiktok_scraper import (
    REHYDRATION_ID,
    extract_comments,
    extract_connections,
    extract_feed,
    extract_hashtag,
    extract_profile,
    extract_trending,
    extract_video,
    parse_json_or_blob,
    scrape_feed,
    scrape_followers,
    scrape_hashtag,
    scrape_profile,
    scrape_video,
)
from pages import script_page


def rehydration(**scopes):
    return {"__DEFAULT_SCOPE__": scopes}


def tiktok_page(**scopes):
    return script_page(REHYDRATION_ID, rehydration(**scopes))


ITEM = {
    "id": "7001",
    "desc": "Dance #fyp",
    "createTime": 1700000000,
    "author": {"id": "1", "uniqueId": "dancer", "nickname": "Dancer", "verified": True},
    "video": {"cover": "https://cdn/cover.jpg", "duration": 15, "playAddr": "https://cdn/play.mp4"},
    "music": {"id": "m1", "title": "Song", "authorName": "Band"},
    "stats": {"playCount": 1000, "diggCount": 100, "commentCount": 10, "shareCount": 5, "collectCount": 2},
    "challenges": [{"id": "c1", "title": "fyp"}],
    "comments": [
        {"cid": "k1", "text": "wow", "diggCount": 3, "user": {"uid": "u1", "uniqueId": "fan", "verified": False},
         "replies": [{"cid": "k2", "text": "yes", "user": {"uniqueId": "other"}}]},
    ],
}

USER_DETAIL = {
    "userInfo": {
        "user": {"id": "1", "uniqueId": "dancer", "nickname": "Dancer", "avatarMedium": "https://cdn/a.jpg",
                 "followerCount": 999},
        "stats": {"followerCount": 5000, "followingCount": 50, "videoCount": 12, "heartCount": 90000},
    },
    "itemList": [ITEM],
}


def connections(n):
    return [{"uid": f"u{i}", "uniqueId": f"user{i}", "followerCount": i} for i in range(n)]


class TestTikTokExtraction:

    def test_parse_json_or_blob(self):
        """Test JSON bodies and HTML blobs are both accepted."""
        assert parse_json_or_blob('{"a": 1}') == {"a": 1}
        assert parse_json_or_blob(tiktok_page(x={"y": 1})) == rehydration(x={"y": 1})

    def test_profile(self):
        """Test profile extraction."""
        profile = extract_profile(rehydration(**{"webapp.user-detail": USER_DETAIL}), "dancer")
        assert profile["avatar_url"] == "https://cdn/a.jpg"
        assert profile["follower_count"] == 5000
        assert profile["heart_count"] == 90000
        assert profile["profile_url"] == "https://www.tiktok.com/@dancer"

    def test_profile_missing(self):
        """Test missing profile data raises."""
        with pytest.raises(ExtractionError, match="Profile data structure not found"):
            extract_profile(rehydration(), "dancer")

    def test_video(self):
        """Test video extraction."""
        data = rehydration(**{"webapp.video-detail": {"itemInfo": {"itemStruct": ITEM}}})
        video = extract_video(data, "7001")
        assert video["video"]["url"] == "https://cdn/play.mp4"
        assert video["stats"] == {
            "play_count": 1000, "like_count": 100, "comment_count": 10, "share_count": 5, "collect_count": 2,
        }
        assert video["hashtags"][0]["title"] == "fyp"
        assert video["is_ad"] is False
        assert video["video_url"] == "https://www.tiktok.com/@dancer/video/7001"

    def test_video_missing(self):
        """Test missing video data raises."""
        with pytest.raises(ExtractionError, match="Video data structure not found"):
            extract_video(rehydration(), "1")

    def test_feed(self):
        """Test feed extraction."""
        videos = extract_feed(rehydration(**{"webapp.user-detail": USER_DETAIL}), "dancer")
        assert videos[0]["play_count"] == 1000
        assert videos[0]["music"] == {"title": "Song", "author": "Band"}
        assert videos[0]["hashtags"] == ["fyp"]

    def test_comments_with_replies(self):
        """Test comments keep their replies."""
        data = rehydration(**{"webapp.video-detail": {"itemInfo": {"itemStruct": ITEM}}})
        comments = extract_comments(data)
        assert comments[0]["user"]["verified"] is False
        assert comments[0]["like_count"] == 3
        assert comments[0]["is_pinned"] is False
        assert comments[0]["replies"][0]["user"]["username"] == "other"
        assert "verified" not in comments[0]["replies"][0]["user"]

    def test_connections_page_and_cursor(self):
        """Test connections paging and next cursor."""
        data = rehydration(**{
            "webapp.user-followers": {"followers": connections(3)},
            "webapp.user-detail": USER_DETAIL,
        })
        result = extract_connections(data, "dancer", "followers", limit=2)
        assert len(result["followers"]) == 2
        assert result["total_followers"] == 999
        assert result["has_more"] is True
        assert result["next_cursor"] == "u2"
        assert result["followers"][0]["profile_url"] == "https://www.tiktok.com/@user0"

    def test_connections_last_page(self):
        """Test the last page of connections."""
        data = rehydration(**{"webapp.user-following": {"following": connections(1)}})
        result = extract_connections(data, "dancer", "following", limit=20)
        assert result["total_following"] == 1
        assert result["has_more"] is False
        assert result["next_cursor"] is None

    def test_connections_skip_null_entries(self):
        """Test null entries in connection lists are skipped."""
        data = rehydration(**{"webapp.user-followers": {"followers": [None, {"uid": "1"}, None, {"uid": "2"}]}})
        result = extract_connections(data, "dancer", "followers", limit=1)
        assert [account["user_id"] for account in result["followers"]] == ["1"]
        assert result["has_more"] is True
        assert result["next_cursor"] == "2"

    def test_connections_missing(self):
        """Test missing connection data raises."""
        with pytest.raises(ExtractionError, match="Following list data structure not found"):
            extract_connections(rehydration(), "dancer", "following", 20)

    def test_hashtag(self):
        """Test hashtag extraction."""
        data = rehydration(**{"webapp.challenge-detail": {
            "challengeInfo": {"challenge": {"id": "c1", "title": "fyp", "stats": {"viewCount": 10}}},
            "itemList": [ITEM],
        }})
        result = extract_hashtag(data, "fyp")
        assert result["view_count"] == 10
        assert result["video_count"] == 0
        assert result["videos"][0]["author"]["username"] == "dancer"

    def test_trending(self):
        """Test trending extraction."""
        videos = extract_trending(rehydration(**{"webapp.foryou": {"items": [ITEM]}}))
        assert videos[0]["hashtags"] == ["fyp"]
        assert videos[0]["duration"] == 15


class TestTikTokScraper:

    @respx.mock
    def test_scrape_profile(self, client):
        """Test profile scrape end to end."""
        respx.get("https://www.tiktok.com/@dancer").mock(
            return_value=httpx.Response(200, text=tiktok_page(**{"webapp.user-detail": USER_DETAIL}))
        )
        result = scrape_profile("@dancer", client=client)
        assert result["success"] is True
        assert result["data"]["username"] == "dancer"

    @respx.mock
    def test_scrape_video_url(self, client):
        """Test a video URL is accepted."""
        route = respx.get("https://www.tiktok.com/video/7001").mock(
            return_value=httpx.Response(200, text=tiktok_page(
                **{"webapp.video-detail": {"itemInfo": {"itemStruct": ITEM}}}
            ))
        )
        assert scrape_video("7001", client=client)["success"] is True
        assert route.called

    @respx.mock
    def test_feed_limit(self, client):
        """Test the feed is cut to the limit."""
        detail = dict(USER_DETAIL, itemList=[ITEM, ITEM, ITEM])
        respx.get("https://www.tiktok.com/@dancer").mock(
            return_value=httpx.Response(200, text=tiktok_page(**{"webapp.user-detail": detail}))
        )
        result = scrape_feed("dancer", limit=2, client=client)
        assert result["data"]["video_count"] == 2

    @respx.mock
    def test_followers_cursor_and_referer(self, client):
        """Test followers cursor and referer are sent."""
        route = respx.get(url__startswith="https://www.tiktok.com/@dancer/followers").mock(
            return_value=httpx.Response(200, text=tiktok_page(**{"webapp.user-followers": {"followers": []}}))
        )
        result = scrape_followers("dancer", cursor="abc", client=client)
        assert result["success"] is True
        request = route.calls.last.request
        assert request.url.params["cursor"] == "abc"
        assert request.headers["Referer"] == "https://www.tiktok.com/"

    def test_followers_limit_range(self):
        """Test followers limit outside 1-50 is rejected."""
        assert scrape_followers("dancer", limit=51)["error"] == "Limit must be between 1 and 50"

    @respx.mock
    def test_hashtag_strips_signs(self, client):
        """Test hashtag signs are stripped."""
        route = respx.get("https://www.tiktok.com/tag/fyp").mock(
            return_value=httpx.Response(200, text=tiktok_page(**{"webapp.challenge-detail": {"itemList": []}}))
        )
        result = scrape_hashtag("#fyp", client=client)
        assert result["data"]["hashtag"] == "fyp"
        assert route.called

    @respx.mock
    def test_page_without_blob(self, client):
        """Test a page without the rehydration blob raises."""
        respx.get("https://www.tiktok.com/@dancer").mock(return_value=httpx.Response(200, text="<html></html>"))
        result = scrape_profile("dancer", client=client)
        assert result["error"] == "Could not find profile data in HTML"
