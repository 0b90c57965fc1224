"""
YouTube Scraper

Scrapes channel, video, search, comment, playlist and hashtag pages from the
``ytInitialData`` object the web client embeds in every page.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from reachstream.scrapers.base import BaseScraper, check_limit, require_text
from reachstream.scrapers.errors import ExtractionError, InvalidInputError
from reachstream.scrapers.extract import (
    dig,
    find_assigned_json,
    js_round,
    parse_view_count,
    safe_average,
    to_fixed,
    utc_now_iso,
)

logger = logging.getLogger(__name__)

YOUTUBE_BASE = "https://www.youtube.com"
INITIAL_DATA_MARKER = "var ytInitialData ="
VERIFIED_BADGE = "BADGE_STYLE_TYPE_VERIFIED"


def text_of(node: Any) -> Optional[str]:
    """Text from a YouTube text object (``runs[0].text`` or ``simpleText``)."""
    return dig(node, "runs", 0, "text") or dig(node, "simpleText")


def joined_runs(node: Any) -> str:
    return "".join(run.get("text", "") for run in dig(node, "runs", default=[]))


def last_thumbnail(node: Any) -> Optional[str]:
    return dig(node, "thumbnails", -1, "url")


def is_verified(badges: Optional[List[Dict[str, Any]]]) -> bool:
    return any(dig(b, "metadataBadgeRenderer", "style") == VERIFIED_BADGE for b in badges or [])


def channel_url(channel_id: str, tab: str = "", bare_as_handle: bool = True) -> str:
    """
    Build a channel page URL.

    "@handle" maps to /@handle. A "UC..." id maps to /channel/ID. Any other
    value is a handle without its @ when ``bare_as_handle`` is set and a
    channel id otherwise.
    """
    suffix = f"/{tab}" if tab else ""
    if channel_id.startswith("@"):
        return f"{YOUTUBE_BASE}/{channel_id}{suffix}"
    if channel_id.startswith("UC") or not bare_as_handle:
        return f"{YOUTUBE_BASE}/channel/{channel_id}{suffix}"
    return f"{YOUTUBE_BASE}/@{channel_id}{suffix}"


def watch_url(video_id: Optional[str]) -> str:
    return f"{YOUTUBE_BASE}/watch?v={video_id}"


def browse_tabs(data: Dict[str, Any]) -> List[Dict[str, Any]]:
    return dig(data, "contents", "twoColumnBrowseResultsRenderer", "tabs", default=[])


def grid_videos(tab: Optional[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """videoRenderer objects from a tab's rich grid."""
    contents = dig(tab, "tabRenderer", "content", "richGridRenderer", "contents", default=[])
    return [
        video for video in (dig(item, "richItemRenderer", "content", "videoRenderer") for item in contents)
        if video
    ]


def _channel_header(data: Dict[str, Any]):
    header = dig(data, "header", "c4TabbedHeaderRenderer") or dig(data, "header", "pageHeaderRenderer")
    metadata = dig(data, "metadata", "channelMetadataRenderer")
    if not header or not metadata:
        raise ExtractionError("Channel data structure not found")
    subscriber_text = text_of(header.get("subscriberCountText")) or "0 subscribers"
    return header, metadata, subscriber_text


def _handle(metadata: Dict[str, Any]) -> Optional[str]:
    vanity = metadata.get("vanityChannelUrl")
    return vanity.replace("http://www.youtube.com/", "") if vanity else None


def _search_items(data: Dict[str, Any]) -> List[Dict[str, Any]]:
    return dig(
        data, "contents", "twoColumnSearchResultsRenderer", "primaryContents",
        "sectionListRenderer", "contents", default=[],
    )


def _views_summary(videos: List[Dict[str, Any]], key: str = "views") -> Dict[str, Any]:
    total = sum(v[key] for v in videos)
    most_popular = max(videos, key=lambda v: v[key], default=None)
    return {
        "total_views": total,
        "avg_views_per_video": safe_average(total, len(videos)),
        "max_views": max((v[key] for v in videos), default=0),
        "most_popular_video": {
            "video_id": most_popular["video_id"],
            "title": most_popular["title"],
            "views": most_popular[key],
            "url": most_popular["url"],
        } if most_popular else None,
    }


def extract_channel(data: Dict[str, Any]) -> Dict[str, Any]:
    header, metadata, subscriber_text = _channel_header(data)
    keywords = metadata.get("keywords")
    return {
        "channel_id": metadata.get("externalId"),
        "channel_name": metadata.get("title"),
        "handle": _handle(metadata),
        "description": metadata.get("description"),
        "avatar_url": last_thumbnail(header.get("avatar")),
        "banner_url": last_thumbnail(header.get("banner")),
        "subscriber_count": parse_view_count(subscriber_text),
        "subscriber_text": subscriber_text,
        "is_verified": is_verified(header.get("badges")),
        "video_count": dig(header, "videosCountText", "runs", 0, "text", default="Unknown"),
        "country": metadata.get("country"),
        "keywords": keywords.split(" ") if keywords else [],
        "channel_url": metadata.get("channelUrl"),
    }


def extract_video(data: Dict[str, Any], video_id: str) -> Dict[str, Any]:
    contents = dig(data, "contents", "twoColumnWatchNextResults", "results", "results", "contents", default=[])
    primary = next((c["videoPrimaryInfoRenderer"] for c in contents if c.get("videoPrimaryInfoRenderer")), None)
    if not primary:
        raise ExtractionError("Video data structure not found")
    secondary = next((c["videoSecondaryInfoRenderer"] for c in contents if c.get("videoSecondaryInfoRenderer")), {})

    like_button = next(
        (b for b in dig(primary, "videoActions", "menuRenderer", "topLevelButtons", default=[])
         if b.get("segmentedLikeDislikeButtonViewModel")),
        None,
    )
    like_count = dig(
        like_button, "segmentedLikeDislikeButtonViewModel", "likeButtonViewModel",
        "likeButtonViewModel", "toggleButtonViewModel", "toggleButtonViewModel",
        "defaultButtonViewModel", "buttonViewModel", "accessibilityText", default="0",
    )

    owner = dig(secondary, "owner", "videoOwnerRenderer", default={})
    owner_id = dig(owner, "navigationEndpoint", "browseEndpoint", "browseId")
    return {
        "video_id": video_id,
        "title": dig(primary, "title", "runs", 0, "text", default=""),
        "description": dig(secondary, "attributedDescription", "content", default=""),
        "view_count": dig(primary, "viewCount", "videoViewCountRenderer", "viewCount", "simpleText", default="0"),
        "like_count": like_count,
        "channel": {
            "channel_id": owner_id,
            "channel_name": dig(owner, "title", "runs", 0, "text"),
            "channel_url": f"{YOUTUBE_BASE}/channel/{owner_id}",
            "subscriber_count": text_of(owner.get("subscriberCountText")),
            "thumbnail": dig(owner, "thumbnail", "thumbnails", 0, "url"),
            "verified": is_verified(owner.get("badges")),
        },
        "video_url": watch_url(video_id),
    }


def extract_channel_videos(data: Dict[str, Any]) -> List[Dict[str, Any]]:
    tab = next(
        (t for t in browse_tabs(data) if dig(t, "tabRenderer", "content", "richGridRenderer")),
        None,
    )
    if not tab:
        raise ExtractionError("Videos data structure not found")
    return [
        {
            "video_id": video.get("videoId"),
            "title": text_of(video.get("title")),
            "description": joined_runs(video.get("descriptionSnippet")),
            "thumbnail_url": last_thumbnail(video.get("thumbnail")),
            "duration": dig(video, "lengthText", "simpleText"),
            "view_count": dig(video, "viewCountText", "simpleText"),
            "published_time": dig(video, "publishedTimeText", "simpleText"),
            "video_url": watch_url(video.get("videoId")),
        }
        for video in grid_videos(tab)
    ]


def extract_search(data: Dict[str, Any]) -> List[Dict[str, Any]]:
    section = next(
        (c["itemSectionRenderer"] for c in _search_items(data) if c.get("itemSectionRenderer")),
        None,
    )
    if not section:
        raise ExtractionError("Search results section not found")

    results = []
    for item in section.get("contents") or []:
        video = item.get("videoRenderer")
        if not video:
            continue
        owner = dig(video, "ownerText", "runs", 0, default={})
        results.append({
            "video_id": video.get("videoId"),
            "title": text_of(video.get("title")),
            "description": joined_runs(video.get("descriptionSnippet")),
            "thumbnail_url": last_thumbnail(video.get("thumbnail")),
            "duration": dig(video, "lengthText", "simpleText"),
            "view_count": dig(video, "viewCountText", "simpleText"),
            "published_time": dig(video, "publishedTimeText", "simpleText"),
            "channel": {
                "channel_id": dig(owner, "navigationEndpoint", "browseEndpoint", "browseId"),
                "name": owner.get("text"),
                "thumbnail": dig(
                    video, "channelThumbnailSupportedRenderers", "channelThumbnailWithLinkRenderer",
                    "thumbnail", "thumbnails", 0, "url",
                ),
            },
            "video_url": watch_url(video.get("videoId")),
        })
    return results


def extract_comments(data: Dict[str, Any]) -> List[Dict[str, Any]]:
    contents = dig(data, "contents", "twoColumnWatchNextResults", "results", "results", "contents", default=[])
    section = next((c["itemSectionRenderer"] for c in contents if c.get("itemSectionRenderer")), None)
    if not section:
        raise ExtractionError("Comments section not found")

    comments = []
    for thread in section.get("contents") or []:
        renderer = thread.get("commentThreadRenderer")
        comment = dig(renderer, "comment", "commentRenderer")
        if not comment:
            continue
        comments.append({
            "comment_id": comment.get("commentId"),
            "author": {
                "channel_id": dig(comment, "authorEndpoint", "browseEndpoint", "browseId"),
                "name": dig(comment, "authorText", "simpleText"),
                "thumbnail": dig(comment, "authorThumbnail", "thumbnails", 0, "url"),
                "is_channel_owner": comment.get("authorIsChannelOwner") or False,
                "is_verified": "authorCommentBadge" in comment,
            },
            "text": joined_runs(comment.get("contentText")),
            "published_time": dig(comment, "publishedTimeText", "runs", 0, "text"),
            "like_count": comment.get("likeCount") or 0,
            "reply_count": dig(renderer, "replies", "commentRepliesRenderer", "moreText", "simpleText", default=0),
            "is_pinned": "pinnedCommentBadge" in comment,
            "is_hearted": "creatorHeart" in comment,
        })
    return comments


def extract_playlist(data: Dict[str, Any], playlist_id: str, limit: int) -> Dict[str, Any]:
    sidebar = dig(data, "sidebar", "playlistSidebarRenderer", "items", default=[])
    info = next(
        (item["playlistSidebarPrimaryInfoRenderer"] for item in sidebar
         if item.get("playlistSidebarPrimaryInfoRenderer")),
        None,
    )
    if not info:
        raise ExtractionError("Playlist info not found")

    count_text = text_of(dig(info, "stats", 0)) or "0"
    try:
        total_videos = int(count_text.replace(",", "").split()[0])
    except (ValueError, IndexError):
        total_videos = 0

    contents = dig(
        data, "contents", "twoColumnBrowseResultsRenderer", "tabs", 0, "tabRenderer", "content",
        "sectionListRenderer", "contents", 0, "itemSectionRenderer", "contents", 0,
        "playlistVideoListRenderer", "contents", default=[],
    )
    renderers = [item["playlistVideoRenderer"] for item in contents if item.get("playlistVideoRenderer")]

    videos = []
    for video in renderers[:limit]:
        byline = dig(video, "shortBylineText", "runs", 0, default={})
        view_text = dig(video, "videoInfo", "runs", 0, "text")
        videos.append({
            "video_id": video.get("videoId"),
            "title": dig(video, "title", "runs", 0, "text", default=""),
            "url": f"{watch_url(video.get('videoId'))}&list={playlist_id}",
            "thumbnail": last_thumbnail(video.get("thumbnail")),
            "channel": {
                "name": byline.get("text") or "",
                "id": dig(byline, "navigationEndpoint", "browseEndpoint", "browseId"),
            },
            "length": dig(video, "lengthText", "simpleText", default="0:00"),
            "views": parse_view_count(view_text),
            "view_text": view_text or "0 views",
            "published": dig(video, "videoInfo", "runs", 2, "text", default=""),
            "index": dig(video, "index", "simpleText", default=""),
        })

    return {
        "playlist_id": playlist_id,
        "title": text_of(info.get("title")) or "",
        "total_videos": total_videos,
        "videos_returned": len(videos),
        "videos": videos,
        "statistics": _views_summary(videos),
    }


def extract_hashtag(data: Dict[str, Any], hashtag: str, limit: int) -> Dict[str, Any]:
    videos: List[Dict[str, Any]] = []
    for content in _search_items(data):
        for item in dig(content, "itemSectionRenderer", "contents", default=[]):
            video = item.get("videoRenderer")
            if not video or len(videos) >= limit:
                continue
            owner = dig(video, "ownerText", "runs", 0, default={})
            owner_id = dig(owner, "navigationEndpoint", "browseEndpoint", "browseId")
            view_text = text_of(video.get("viewCountText"))
            videos.append({
                "video_id": video.get("videoId"),
                "title": dig(video, "title", "runs", 0, "text", default=""),
                "url": watch_url(video.get("videoId")),
                "thumbnail": last_thumbnail(video.get("thumbnail")),
                "channel": {
                    "name": owner.get("text") or "",
                    "id": owner_id,
                    "url": f"{YOUTUBE_BASE}/channel/{owner_id}",
                    "verified": is_verified(video.get("ownerBadges")),
                },
                "description": joined_runs(dig(video, "detailedMetadataSnippets", 0, "snippetText")),
                "length": dig(video, "lengthText", "simpleText", default="0:00"),
                "views": parse_view_count(view_text),
                "view_text": view_text or "0 views",
                "published": dig(video, "publishedTimeText", "simpleText", default=""),
            })

    return {
        "hashtag": f"#{hashtag}",
        "hashtag_url": f"{YOUTUBE_BASE}/hashtag/{hashtag}",
        "total_results": len(videos),
        "videos": videos,
        "statistics": _views_summary(videos),
    }


def extract_channel_stats(data: Dict[str, Any]) -> Dict[str, Any]:
    """Channel header plus performance statistics over the 20 latest uploads."""
    header, metadata, subscriber_text = _channel_header(data)
    subscribers = parse_view_count(subscriber_text)

    count_text = dig(header, "videosCountText", "runs", 0, "text", default="0")
    try:
        video_count = int(count_text.replace(",", "").split()[0])
    except (ValueError, IndexError):
        video_count = 0

    videos_tab = next(
        (t for t in browse_tabs(data)
         if dig(t, "tabRenderer", "title") == "Videos" or dig(t, "tabRenderer", "selected")),
        None,
    )
    recent = [
        {
            "video_id": video.get("videoId"),
            "title": dig(video, "title", "runs", 0, "text", default=""),
            "views": parse_view_count(text_of(video.get("viewCountText"))),
            "published": dig(video, "publishedTimeText", "simpleText", default=""),
        }
        for video in grid_videos(videos_tab)[:20]
    ]

    views = [v["views"] for v in recent]
    avg_views = safe_average(sum(views), len(views))
    max_views = max(views, default=0)
    min_views = min(views, default=0)
    engagement = avg_views / subscribers * 100 if subscribers > 0 else 0

    upload_frequency = "Unknown"
    if len(recent) >= 3 and recent[0]["published"] and recent[-1]["published"]:
        upload_frequency = "Regular uploads"

    if avg_views > 100_000:
        performance = "Excellent"
    elif avg_views > 10_000:
        performance = "Good"
    elif avg_views > 1_000:
        performance = "Average"
    else:
        performance = "Below Average"

    top = sorted(recent, key=lambda v: v["views"], reverse=True)[:5]
    return {
        "channel_id": metadata.get("externalId"),
        "channel_name": metadata.get("title"),
        "handle": _handle(metadata),
        "subscriber_count": subscribers,
        "subscriber_text": subscriber_text,
        "video_count": video_count,
        "is_verified": is_verified(header.get("badges")),
        "country": metadata.get("country"),
        "statistics": {
            "avg_views_per_video": avg_views,
            "max_views": max_views,
            "min_views": min_views,
            "estimated_total_views": avg_views * video_count,
            "subscriber_engagement_rate": to_fixed(engagement, 2),
            "upload_frequency": upload_frequency,
            "recent_videos_analyzed": len(recent),
        },
        "performance_insights": {
            "consistency_score": to_fixed((1 - (max_views - min_views) / max_views) * 100, 2) if max_views > 0 else 0,
            "growth_potential": "High" if engagement > 10 else "Medium" if engagement > 5 else "Low",
            "content_performance": performance,
        },
        "top_performing_videos": [
            {"video_id": v["video_id"], "title": v["title"], "views": v["views"], "url": watch_url(v["video_id"])}
            for v in top
        ],
    }


class YouTubeScraper(BaseScraper):
    """Scraper for YouTube channels, videos, search, comments and playlists."""

    platform = "YouTube"

    def initial_data(self, url: str, what: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        html = self.fetch_html(url, params=params)
        return find_assigned_json(html, INITIAL_DATA_MARKER, what)

    def channel(self, channel_id: str) -> Dict[str, Any]:
        require_text(channel_id, "channel ID")
        data = self.initial_data(channel_url(channel_id, bare_as_handle=False), "channel data")
        result = extract_channel(data)
        result["scraped_at"] = utc_now_iso()
        return result

    def video(self, video_id: str) -> Dict[str, Any]:
        require_text(video_id, "video ID")
        data = self.initial_data(watch_url(video_id), "video data")
        result = extract_video(data, video_id)
        result["scraped_at"] = utc_now_iso()
        return result

    def videos(self, channel_id: str) -> Dict[str, Any]:
        require_text(channel_id, "channel ID")
        data = self.initial_data(channel_url(channel_id, "videos", bare_as_handle=False), "videos data")
        videos = extract_channel_videos(data)
        return {
            "channel_id": channel_id,
            "video_count": len(videos),
            "videos": videos,
            "scraped_at": utc_now_iso(),
        }

    def search(self, query: str) -> Dict[str, Any]:
        if not query or not isinstance(query, str):
            raise InvalidInputError("Invalid search query provided")
        data = self.initial_data(f"{YOUTUBE_BASE}/results", "search results", params={"search_query": query})
        results = extract_search(data)
        return {
            "query": query,
            "result_count": len(results),
            "results": results,
            "scraped_at": utc_now_iso(),
        }

    def comments(self, video_id: str) -> Dict[str, Any]:
        require_text(video_id, "video ID")
        data = self.initial_data(watch_url(video_id), "comments data")
        comments = extract_comments(data)
        return {
            "video_id": video_id,
            "comment_count": len(comments),
            "comments": comments,
            "scraped_at": utc_now_iso(),
        }

    def playlist(self, playlist_id: str, limit: int = 20) -> Dict[str, Any]:
        require_text(playlist_id, "playlist ID")
        check_limit(limit, 1, 100)
        data = self.initial_data(f"{YOUTUBE_BASE}/playlist", "playlist data", params={"list": playlist_id})
        result = extract_playlist(data, playlist_id, limit)
        result["scraped_at"] = utc_now_iso()
        return result

    def search_hashtag(self, hashtag: str, limit: int = 20) -> Dict[str, Any]:
        require_text(hashtag, "hashtag")
        check_limit(limit, 1, 50)
        clean = hashtag.replace("#", "", 1)
        data = self.initial_data(f"{YOUTUBE_BASE}/hashtag/{clean}", "search results")
        result = extract_hashtag(data, clean, limit)
        result["scraped_at"] = utc_now_iso()
        return result

    def stats(self, channel_id: str) -> Dict[str, Any]:
        require_text(channel_id, "channel ID")
        data = self.initial_data(channel_url(channel_id, "videos"), "channel data")
        result = extract_channel_stats(data)
        result["scraped_at"] = utc_now_iso()
        return result


def scrape_channel(channel_id: str, client: Optional[httpx.Client] = None) -> Dict[str, Any]:
    """
    Scrape a channel page.

    Args:
        channel_id: "@handle" or a channel id (UC...)
    """
    scraper = YouTubeScraper(client=client)
    return scraper.run(scraper.channel, channel_id)


def scrape_video(video_id: str, client: Optional[httpx.Client] = None) -> Dict[str, Any]:
    """Scrape a watch page."""
    scraper = YouTubeScraper(client=client)
    return scraper.run(scraper.video, video_id)


def scrape_videos(channel_id: str, client: Optional[httpx.Client] = None) -> Dict[str, Any]:
    """Scrape the videos tab of a channel."""
    scraper = YouTubeScraper(client=client)
    return scraper.run(scraper.videos, channel_id)


def search_videos(query: str, client: Optional[httpx.Client] = None) -> Dict[str, Any]:
    """Search videos."""
    scraper = YouTubeScraper(client=client)
    return scraper.run(scraper.search, query)


def scrape_comments(video_id: str, client: Optional[httpx.Client] = None) -> Dict[str, Any]:
    """Scrape the comments rendered on a watch page."""
    scraper = YouTubeScraper(client=client)
    return scraper.run(scraper.comments, video_id)


def scrape_playlist(playlist_id: str, limit: int = 20, client: Optional[httpx.Client] = None) -> Dict[str, Any]:
    """Scrape a playlist with view statistics."""
    scraper = YouTubeScraper(client=client)
    return scraper.run(scraper.playlist, playlist_id, limit=limit)


def search_hashtag(hashtag: str, limit: int = 20, client: Optional[httpx.Client] = None) -> Dict[str, Any]:
    """Scrape a hashtag page."""
    scraper = YouTubeScraper(client=client)
    return scraper.run(scraper.search_hashtag, hashtag, limit=limit)


def scrape_channel_stats(channel_id: str, client: Optional[httpx.Client] = None) -> Dict[str, Any]:
    """Channel statistics and performance insights from recent uploads."""
    scraper = YouTubeScraper(client=client)
    return scraper.run(scraper.stats, channel_id)
