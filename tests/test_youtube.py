"""Tests for the YouTube page scraper."""
import httpx
import pytest
import respx

from reachstream.scrapers.errors import ExtractionError
from reachstream.scrapers.youtube_scraper import (
    channel_url,
    extract_channel,
    extract_channel_stats,
    extract_comments,
    extract_hashtag,
    extract_playlist,
    extract_search,
    extract_video,
    scrape_channel,
    scrape_playlist,
    search_hashtag,
    search_videos,
)
from pages import assigned_page

VERIFIED = [{"metadataBadgeRenderer": {"style": "BADGE_STYLE_TYPE_VERIFIED"}}]


def page(data):
    return assigned_page("var ytInitialData", data)


def grid_item(video_id, views, published="1 day ago"):
    return {"richItemRenderer": {"content": {"videoRenderer": {
        "videoId": video_id,
        "title": {"runs": [{"text": f"Video {video_id}"}]},
        "viewCountText": {"simpleText": views},
        "publishedTimeText": {"simpleText": published},
        "lengthText": {"simpleText": "10:00"},
        "thumbnail": {"thumbnails": [{"url": "small"}, {"url": "large"}]},
    }}}}


CHANNEL = {
    "header": {"c4TabbedHeaderRenderer": {
        "subscriberCountText": {"simpleText": "1,000 subscribers"},
        "avatar": {"thumbnails": [{"url": "a1"}, {"url": "a2"}]},
        "badges": VERIFIED,
        "videosCountText": {"runs": [{"text": "3"}, {"text": " videos"}]},
    }},
    "metadata": {"channelMetadataRenderer": {
        "externalId": "UC123",
        "title": "Demo Channel",
        "vanityChannelUrl": "http://www.youtube.com/@demo",
        "keywords": "python scraping",
        "channelUrl": "https://www.youtube.com/channel/UC123",
    }},
    "contents": {"twoColumnBrowseResultsRenderer": {"tabs": [
        {"tabRenderer": {"title": "Home"}},
        {"tabRenderer": {"title": "Videos", "content": {"richGridRenderer": {"contents": [
            grid_item("v1", "50K views"),
            grid_item("v2", "30K views"),
            grid_item("v3", "10K views", published="3 weeks ago"),
        ]}}}},
    ]}},
}

SEARCH = {"contents": {"twoColumnSearchResultsRenderer": {"primaryContents": {"sectionListRenderer": {"contents": [
    {"itemSectionRenderer": {"contents": [
        {"adSlotRenderer": {}},
        {"videoRenderer": {
            "videoId": "abc",
            "title": {"runs": [{"text": "Learn #python"}]},
            "viewCountText": {"simpleText": "1.5M views"},
            "ownerText": {"runs": [{"text": "Science Hub", "navigationEndpoint": {"browseEndpoint": {"browseId": "UCt"}}}]},
            "ownerBadges": VERIFIED,
            "detailedMetadataSnippets": [{"snippetText": {"runs": [{"text": "Part "}, {"text": "one"}]}}],
        }},
        {"videoRenderer": {"videoId": "def", "title": {"runs": [{"text": "Second"}]},
                           "viewCountText": {"simpleText": "500 views"}}},
    ]}},
]}}}}}


class TestChannelUrl:

    @pytest.mark.parametrize("value,bare_as_handle,expected", [
        ("@demo", True, "https://www.youtube.com/@demo"),
        ("UC123", True, "https://www.youtube.com/channel/UC123"),
        ("demo", True, "https://www.youtube.com/@demo"),
        ("demo", False, "https://www.youtube.com/channel/demo"),
    ])
    def test_forms(self, value, bare_as_handle, expected):
        """Test channel URL forms."""
        assert channel_url(value, bare_as_handle=bare_as_handle) == expected

    def test_tab_suffix(self):
        """Test channel tab suffixes."""
        assert channel_url("@demo", "videos") == "https://www.youtube.com/@demo/videos"


class TestYouTubeExtraction:

    def test_channel(self):
        """Test channel extraction."""
        channel = extract_channel(CHANNEL)
        assert channel["channel_id"] == "UC123"
        assert channel["handle"] == "@demo"
        assert channel["avatar_url"] == "a2"
        assert channel["subscriber_count"] == 1000
        assert channel["is_verified"] is True
        assert channel["video_count"] == "3"
        assert channel["keywords"] == ["python", "scraping"]

    def test_channel_missing_header(self):
        """Test a channel without a header raises."""
        with pytest.raises(ExtractionError, match="Channel data structure not found"):
            extract_channel({"metadata": CHANNEL["metadata"]})

    def test_channel_stats(self):
        """Test channel statistics."""
        stats = extract_channel_stats(CHANNEL)
        assert stats["video_count"] == 3
        assert stats["statistics"]["avg_views_per_video"] == 30000
        assert stats["statistics"]["max_views"] == 50000
        assert stats["statistics"]["min_views"] == 10000
        assert stats["statistics"]["estimated_total_views"] == 90000
        assert stats["statistics"]["subscriber_engagement_rate"] == 3000.0
        assert stats["statistics"]["upload_frequency"] == "Regular uploads"
        insights = stats["performance_insights"]
        assert insights["consistency_score"] == 20.0
        assert insights["growth_potential"] == "High"
        assert insights["content_performance"] == "Good"
        assert [v["video_id"] for v in stats["top_performing_videos"]] == ["v1", "v2", "v3"]

    def test_channel_stats_without_videos(self):
        """Test channel statistics with no videos."""
        data = dict(CHANNEL, contents={})
        stats = extract_channel_stats(data)
        assert stats["statistics"]["recent_videos_analyzed"] == 0
        assert stats["statistics"]["upload_frequency"] == "Unknown"
        assert stats["performance_insights"]["consistency_score"] == 0
        assert stats["performance_insights"]["content_performance"] == "Below Average"

    def test_video(self):
        """Test video extraction."""
        data = {"contents": {"twoColumnWatchNextResults": {"results": {"results": {"contents": [
            {"videoPrimaryInfoRenderer": {
                "title": {"runs": [{"text": "Demo"}]},
                "viewCount": {"videoViewCountRenderer": {"viewCount": {"simpleText": "1,234 views"}}},
            }},
            {"videoSecondaryInfoRenderer": {
                "attributedDescription": {"content": "About"},
                "owner": {"videoOwnerRenderer": {
                    "title": {"runs": [{"text": "Demo Channel"}]},
                    "navigationEndpoint": {"browseEndpoint": {"browseId": "UC123"}},
                    "badges": VERIFIED,
                }},
            }},
        ]}}}}}
        video = extract_video(data, "abc")
        assert video["title"] == "Demo"
        assert video["view_count"] == "1,234 views"
        assert video["like_count"] == "0"
        assert video["channel"]["channel_url"] == "https://www.youtube.com/channel/UC123"
        assert video["channel"]["verified"] is True
        assert video["video_url"] == "https://www.youtube.com/watch?v=abc"

    def test_video_missing(self):
        """Test missing video data raises."""
        with pytest.raises(ExtractionError, match="Video data structure not found"):
            extract_video({}, "abc")

    def test_search_skips_non_video_items(self):
        """Test search skips non-video items."""
        results = extract_search(SEARCH)
        assert [r["video_id"] for r in results] == ["abc", "def"]
        assert results[0]["channel"] == {"channel_id": "UCt", "name": "Science Hub", "thumbnail": None}

    def test_search_without_section(self):
        """Test search without a results section."""
        with pytest.raises(ExtractionError, match="Search results section not found"):
            extract_search({})

    def test_comments(self):
        """Test comments extraction."""
        data = {"contents": {"twoColumnWatchNextResults": {"results": {"results": {"contents": [
            {"itemSectionRenderer": {"contents": [
                {"commentThreadRenderer": {"comment": {"commentRenderer": {
                    "commentId": "c1",
                    "authorText": {"simpleText": "@fan"},
                    "contentText": {"runs": [{"text": "Great "}, {"text": "video"}]},
                    "likeCount": 7,
                    "pinnedCommentBadge": {},
                }}}},
                {"continuationItemRenderer": {}},
            ]}},
        ]}}}}}
        comments = extract_comments(data)
        assert len(comments) == 1
        assert comments[0]["text"] == "Great video"
        assert comments[0]["is_pinned"] is True
        assert comments[0]["is_hearted"] is False
        assert comments[0]["reply_count"] == 0

    def test_playlist(self):
        """Test playlist extraction."""
        data = {
            "sidebar": {"playlistSidebarRenderer": {"items": [
                {"playlistSidebarPrimaryInfoRenderer": {
                    "title": {"simpleText": "Mix"},
                    "stats": [{"runs": [{"text": "1,200 videos"}]}],
                }},
            ]}},
            "contents": {"twoColumnBrowseResultsRenderer": {"tabs": [{"tabRenderer": {"content": {
                "sectionListRenderer": {"contents": [{"itemSectionRenderer": {"contents": [
                    {"playlistVideoListRenderer": {"contents": [
                        {"playlistVideoRenderer": {"videoId": "a", "title": {"runs": [{"text": "A"}]},
                                                   "videoInfo": {"runs": [{"text": "3K views"}, {"text": " • "},
                                                                          {"text": "2 years ago"}]}}},
                        {"playlistVideoRenderer": {"videoId": "b", "title": {"runs": [{"text": "B"}]},
                                                   "videoInfo": {"runs": [{"text": "1K views"}]}}},
                    ]}},
                ]}}]},
            }}}]}},
        }
        playlist = extract_playlist(data, "PL1", limit=1)
        assert playlist["total_videos"] == 1200
        assert playlist["videos_returned"] == 1
        video = playlist["videos"][0]
        assert video["url"] == "https://www.youtube.com/watch?v=a&list=PL1"
        assert video["views"] == 3000
        assert video["published"] == "2 years ago"
        assert playlist["statistics"]["most_popular_video"]["video_id"] == "a"

    def test_playlist_missing_info(self):
        """Test a playlist without info raises."""
        with pytest.raises(ExtractionError, match="Playlist info not found"):
            extract_playlist({}, "PL1", 20)

    def test_hashtag(self):
        """Test hashtag extraction."""
        result = extract_hashtag(SEARCH, "python", limit=20)
        assert result["hashtag"] == "#python"
        assert result["total_results"] == 2
        first_video = result["videos"][0]
        assert first_video["views"] == 1500000
        assert first_video["channel"]["verified"] is True
        assert first_video["description"] == "Part one"
        stats = result["statistics"]
        assert stats["total_views"] == 1500500
        assert stats["avg_views_per_video"] == 750250
        assert stats["max_views"] == 1500000

    def test_hashtag_empty(self):
        """Test a hashtag with no videos."""
        result = extract_hashtag({}, "nothing", limit=20)
        assert result["total_results"] == 0
        assert result["statistics"]["most_popular_video"] is None
        assert result["statistics"]["avg_views_per_video"] == 0


class TestYouTubeScraper:

    @respx.mock
    def test_scrape_channel_by_id(self, client):
        """Test channel scrape by id."""
        route = respx.get("https://www.youtube.com/channel/UC123").mock(
            return_value=httpx.Response(200, text=page(CHANNEL))
        )
        result = scrape_channel("UC123", client=client)
        assert result["success"] is True
        assert result["data"]["channel_name"] == "Demo Channel"
        assert route.called

    @respx.mock
    def test_search_sends_query(self, client):
        """Test the search query is sent."""
        route = respx.get(url__startswith="https://www.youtube.com/results").mock(
            return_value=httpx.Response(200, text=page(SEARCH))
        )
        result = search_videos("python tutorial", client=client)
        assert result["data"]["result_count"] == 2
        assert route.calls.last.request.url.params["search_query"] == "python tutorial"

    def test_search_requires_query(self):
        """Test an empty search query is rejected."""
        result = search_videos("")
        assert result["success"] is False
        assert result["error"] == "Invalid search query provided"

    def test_playlist_limit_range(self):
        """Test playlist limit outside the range is rejected."""
        result = scrape_playlist("PL1", limit=0)
        assert result["error"] == "Limit must be between 1 and 100"

    @respx.mock
    def test_hashtag_strips_sign(self, client):
        """Test the hashtag sign is stripped."""
        route = respx.get("https://www.youtube.com/hashtag/python").mock(
            return_value=httpx.Response(200, text=page(SEARCH))
        )
        result = search_hashtag("#python", limit=1, client=client)
        assert result["data"]["total_results"] == 1
        assert route.called

    @respx.mock
    def test_page_without_initial_data(self, client):
        """Test a page without initial data raises."""
        respx.get("https://www.youtube.com/channel/UC123").mock(return_value=httpx.Response(200, text="<html/>"))
        result = scrape_channel("UC123", client=client)
        assert result["error"] == "Could not find channel data in HTML"
        assert result["metadata"]["error_type"] == "extraction"
