"""
Instagram media endpoints: hashtags, highlights, reels, stories and long-form video.

These pages embed their GraphQL results in ``data-sjs`` script blocks rather
than ``_sharedData``.
"""

import logging
import time
from typing import Any, Dict, List, Optional

import httpx

from reachstream.scrapers.base import BaseScraper, check_limit, require_text
from reachstream.scrapers.errors import InvalidInputError
from reachstream.scrapers.extract import (
    dig,
    find_sjs_data,
    iso_from_timestamp,
    js_round,
    safe_average,
    strip_prefix,
    to_fixed,
    utc_now_iso,
)
from reachstream.scrapers.instagram_scraper import INSTAGRAM_BASE, caption_of, edge_count, post_url

logger = logging.getLogger(__name__)

STORIES_NOTE = "Stories are ephemeral content with 24-hour lifespan. Data reflects current active stories only."
REFERER = {"Referer": f"{INSTAGRAM_BASE}/"}


def _percent(part: int, whole: int) -> int:
    return js_round(part / whole * 100) if whole > 0 else 0


def _dimensions(node: Dict[str, Any]) -> Dict[str, int]:
    return {
        "width": dig(node, "dimensions", "width", default=0),
        "height": dig(node, "dimensions", "height", default=0),
    }


def _owner(node: Dict[str, Any], username: Optional[str] = None) -> Dict[str, Any]:
    return {
        "id": dig(node, "owner", "id"),
        "username": dig(node, "owner", "username") or username,
    }


def _video_stats(node: Dict[str, Any]) -> Dict[str, int]:
    views = node.get("video_view_count") or 0
    return {
        "views": views,
        "likes": edge_count(node, "edge_media_preview_like", "edge_liked_by"),
        "comments": edge_count(node, "edge_media_to_comment"),
        "plays": node.get("video_play_count") or views,
    }


def _hashtag_post(node: Dict[str, Any]) -> Dict[str, Any]:
    likes = edge_count(node, "edge_liked_by")
    comments = edge_count(node, "edge_media_to_comment")
    return {
        "id": node.get("id"),
        "shortcode": node.get("shortcode"),
        "url": post_url(node.get("shortcode")),
        "type": "video" if node.get("__typename") == "GraphVideo" else "photo",
        "thumbnail_url": node.get("thumbnail_src") or node.get("display_url"),
        "caption": caption_of(node),
        "stats": {"likes": likes, "comments": comments, "engagement": likes + comments},
        "is_video": node.get("is_video") or False,
        "taken_at": node.get("taken_at_timestamp"),
        "created_at": iso_from_timestamp(node.get("taken_at_timestamp")),
        "owner": _owner(node),
    }


def popularity_tier(total_posts: int) -> str:
    if total_posts > 10_000_000:
        return "extremely_popular"
    if total_posts > 1_000_000:
        return "very_popular"
    if total_posts > 100_000:
        return "popular"
    if total_posts > 10_000:
        return "moderate"
    return "niche"


def competition_level(total_posts: int) -> str:
    if total_posts > 1_000_000:
        return "high"
    if total_posts > 100_000:
        return "medium"
    return "low"


def extract_hashtag(hashtag_data: Dict[str, Any], hashtag: str, limit: int) -> Dict[str, Any]:
    """
    Top and recent posts for a hashtag with reach and competition estimates.

    Args:
        hashtag_data: The ``hashtag`` object from the page data
        hashtag: Hashtag name without the leading #
        limit: Maximum posts per list

    Returns:
        Dict with posts, performance metrics, content insights and recommendations
    """
    total_posts = dig(hashtag_data, "edge_hashtag_to_media", "count", default=0)

    top_posts = []
    for edge in dig(hashtag_data, "edge_hashtag_to_top_posts", "edges", default=[])[:limit]:
        node = edge.get("node") or {}
        post = _hashtag_post(node)
        post["dimensions"] = _dimensions(node)
        post["accessibility_caption"] = node.get("accessibility_caption")
        top_posts.append(post)
    recent_posts = [
        _hashtag_post(edge.get("node") or {})
        for edge in dig(hashtag_data, "edge_hashtag_to_media", "edges", default=[])[:limit]
    ]

    total_likes = sum(p["stats"]["likes"] for p in top_posts)
    total_comments = sum(p["stats"]["comments"] for p in top_posts)
    total_engagement = total_likes + total_comments
    avg_engagement = safe_average(total_engagement, len(top_posts))
    avg_likes = safe_average(total_likes, len(top_posts))
    avg_comments = safe_average(total_comments, len(top_posts))
    best = max(top_posts, key=lambda p: p["stats"]["engagement"], default=None)

    video_count = sum(1 for p in top_posts if p["is_video"])
    photo_count = len(top_posts) - video_count
    tier = popularity_tier(total_posts)
    competition = competition_level(total_posts)
    estimated_reach = avg_engagement / total_posts * 100_000 if total_posts > 0 else 0

    return {
        "hashtag": f"#{hashtag}",
        "hashtag_name": hashtag,
        "profile_pic_url": hashtag_data.get("profile_pic_url"),
        "total_posts": total_posts,
        "popularity_tier": tier,
        "competition_level": competition,
        "top_posts": {"count": len(top_posts), "posts": top_posts},
        "recent_posts": {"count": len(recent_posts), "posts": recent_posts},
        "performance_metrics": {
            "total_engagement": total_engagement,
            "avg_engagement_per_post": avg_engagement,
            "avg_likes_per_post": avg_likes,
            "avg_comments_per_post": avg_comments,
            "engagement_rate": to_fixed(avg_engagement / avg_likes * 100, 2) if avg_likes > 0 else 0,
            "best_performing_post": {
                "shortcode": best["shortcode"],
                "url": best["url"],
                "engagement": best["stats"]["engagement"],
                "likes": best["stats"]["likes"],
                "comments": best["stats"]["comments"],
            } if best else None,
        },
        "content_insights": {
            "video_count": video_count,
            "photo_count": photo_count,
            "video_percentage": _percent(video_count, len(top_posts)),
            "photo_percentage": _percent(photo_count, len(top_posts)),
            "preferred_content_type": "video" if video_count > photo_count else "photo",
        },
        "recommendations": {
            "use_case": (
                "Good for targeted reach and engagement"
                if tier in ("niche", "moderate")
                else "High competition - requires exceptional content quality"
            ),
            "estimated_reach": js_round(estimated_reach),
            "posting_strategy": (
                "Post during peak hours with high-quality content"
                if competition == "high"
                else "Consistent posting with engaging captions"
            ),
        },
    }


def extract_highlights(user: Dict[str, Any], username: str, limit: int) -> Dict[str, Any]:
    highlights = []
    for edge in dig(user, "edge_highlight_reels", "edges", default=[])[:limit]:
        node = edge.get("node") or {}
        highlights.append({
            "id": node.get("id"),
            "title": node.get("title") or "",
            "cover_image": (
                dig(node, "cover_media", "thumbnail_src")
                or dig(node, "cover_media_cropped_thumbnail", "url")
            ),
            "url": f"{INSTAGRAM_BASE}/stories/highlights/{node.get('id')}/",
            "owner": _owner(node, username),
            "items_count": node.get("media_count") or 0,
        })

    total_items = sum(h["items_count"] for h in highlights)
    return {
        "username": username,
        "total_highlights": len(highlights),
        "highlights": highlights,
        "statistics": {
            "total_items": total_items,
            "total_highlights": len(highlights),
            "avg_items_per_highlight": safe_average(total_items, len(highlights)),
        },
    }


def _video_timeline(user: Dict[str, Any]) -> Dict[str, Any]:
    return user.get("edge_felix_video_timeline") or user.get("edge_owner_to_timeline_media") or {}


def extract_reels(user: Dict[str, Any], username: str, limit: int) -> Dict[str, Any]:
    timeline = _video_timeline(user)
    reels = []
    for edge in (timeline.get("edges") or [])[:limit]:
        node = edge.get("node") or {}
        reels.append({
            "id": node.get("id"),
            "shortcode": node.get("shortcode"),
            "url": f"{INSTAGRAM_BASE}/reel/{node.get('shortcode')}/",
            "video_url": node.get("video_url"),
            "thumbnail_url": node.get("thumbnail_src") or node.get("display_url"),
            "caption": caption_of(node),
            "duration": node.get("video_duration") or 0,
            "dimensions": _dimensions(node),
            "stats": _video_stats(node),
            "is_video": True,
            "taken_at": node.get("taken_at_timestamp"),
            "created_at": iso_from_timestamp(node.get("taken_at_timestamp")),
            "owner": _owner(node, username),
            "accessibility_caption": node.get("accessibility_caption"),
            "music": {
                "has_audio": not node.get("is_muted"),
                "original_audio": dig(node, "clips_music_attribution_info", "artist_name"),
            },
        })

    total_views = sum(r["stats"]["views"] for r in reels)
    total_likes = sum(r["stats"]["likes"] for r in reels)
    best = max(reels, key=lambda r: r["stats"]["views"], default=None)
    return {
        "username": username,
        "total_reels": timeline.get("count") or len(reels),
        "reels": reels,
        "performance_metrics": {
            "total_views": total_views,
            "avg_views_per_reel": safe_average(total_views, len(reels)),
            "total_likes": total_likes,
            "avg_likes_per_reel": safe_average(total_likes, len(reels)),
            "best_performing_reel": {
                "shortcode": best["shortcode"],
                "url": best["url"],
                "views": best["stats"]["views"],
                "likes": best["stats"]["likes"],
            } if best else None,
        },
    }


def _story(node: Dict[str, Any], now: int) -> Dict[str, Any]:
    expires_at = node.get("expiring_at_timestamp") or 0
    remaining = expires_at - now
    location = node.get("location")
    music = node.get("clips_music_attribution_info")
    return {
        "id": node.get("id"),
        "type": "video" if node.get("is_video") else "photo",
        "url": node.get("video_url") if node.get("is_video") else node.get("display_url"),
        "thumbnail_url": node.get("display_url"),
        "dimensions": _dimensions(node),
        "created_at": node.get("taken_at_timestamp"),
        "expires_at": expires_at,
        "time_remaining_seconds": max(0, remaining),
        "time_remaining_hours": max(0, remaining // 3600),
        "is_expired": remaining <= 0,
        "tappable_objects": node.get("story_app_attribution") or [],
        "story_cta": {
            "url": node.get("story_cta_url"),
            "text": node.get("story_cta_text") or "See More",
        } if node.get("story_cta_url") else None,
        "location": {
            "id": location.get("id"),
            "name": location.get("name"),
            "slug": location.get("slug"),
        } if location else None,
        "music": {
            "artist_name": music.get("artist_name"),
            "song_name": music.get("song_name"),
            "audio_id": music.get("audio_id"),
        } if music else None,
    }


def extract_stories(user: Dict[str, Any], username: str, now: Optional[int] = None) -> Dict[str, Any]:
    """
    Active stories and highlight reels of a profile.

    Args:
        user: The ``user`` object from the page data
        username: Profile name
        now: Unix seconds used for expiry, defaults to the current time
    """
    now = int(time.time()) if now is None else now
    stories = [
        _story(edge.get("node") or {}, now)
        for edge in dig(user, "edge_owner_to_timeline_media", "edges", default=[])
        if dig(edge, "node", "__typename") == "GraphStoryMedia"
    ]
    highlights = [
        {
            "id": node.get("id"),
            "title": node.get("title"),
            "cover_url": dig(node, "cover_media", "thumbnail_src"),
            "item_count": len(dig(node, "cover_media_cropped_thumbnail", "edges", default=[])),
            "created_at": node.get("created_at"),
        }
        for node in (edge.get("node") or {} for edge in dig(user, "edge_highlight_reels", "edges", default=[]))
    ]

    total = len(stories)
    videos = sum(1 for s in stories if s["type"] == "video")
    photos = total - videos
    with_cta = sum(1 for s in stories if s["story_cta"] is not None)
    with_location = sum(1 for s in stories if s["location"] is not None)
    with_music = sum(1 for s in stories if s["music"] is not None)

    return {
        "username": username,
        "profile_url": f"{INSTAGRAM_BASE}/{username}/",
        "active_stories": {
            "total_count": total,
            "stories": stories,
            "statistics": {
                "video_count": videos,
                "photo_count": photos,
                "with_cta": with_cta,
                "with_location": with_location,
                "with_music": with_music,
            },
        },
        "story_highlights": {"total_count": len(highlights), "highlights": highlights},
        "engagement_insights": {
            "posting_frequency": "active" if total > 0 else "inactive",
            "content_variety": {
                "video_percentage": _percent(videos, total),
                "photo_percentage": _percent(photos, total),
            },
            "interactive_features": {
                "cta_usage": with_cta > 0,
                "location_tagging": with_location > 0,
                "music_integration": with_music > 0,
            },
        },
    }


def is_long_form(node: Dict[str, Any]) -> bool:
    """IGTV-style video: longer than a minute or tagged as igtv."""
    return bool(node.get("is_video")) and (
        (node.get("video_duration") or 0) > 60 or node.get("product_type") == "igtv"
    )


def extract_videos(user: Dict[str, Any], username: str, limit: int) -> Dict[str, Any]:
    nodes = [edge.get("node") or {} for edge in _video_timeline(user).get("edges") or []]
    videos: List[Dict[str, Any]] = []
    for node in [n for n in nodes if is_long_form(n)][:limit]:
        videos.append({
            "id": node.get("id"),
            "shortcode": node.get("shortcode"),
            "url": f"{INSTAGRAM_BASE}/tv/{node.get('shortcode')}/",
            "video_url": node.get("video_url"),
            "thumbnail_url": node.get("thumbnail_src") or node.get("display_url"),
            "title": node.get("title") or "",
            "caption": caption_of(node),
            "duration": node.get("video_duration") or 0,
            "dimensions": _dimensions(node),
            "stats": _video_stats(node),
            "is_video": True,
            "product_type": node.get("product_type") or "igtv",
            "taken_at": node.get("taken_at_timestamp"),
            "created_at": iso_from_timestamp(node.get("taken_at_timestamp")),
            "owner": _owner(node, username),
            "accessibility_caption": node.get("accessibility_caption"),
        })

    total_views = sum(v["stats"]["views"] for v in videos)
    total_likes = sum(v["stats"]["likes"] for v in videos)
    total_duration = sum(v["duration"] for v in videos)
    best = max(videos, key=lambda v: v["stats"]["views"], default=None)
    rates = [
        (v["stats"]["likes"] + v["stats"]["comments"]) / v["stats"]["views"] * 100
        if v["stats"]["views"] > 0 else 0
        for v in videos
    ]

    return {
        "username": username,
        "total_videos": len(videos),
        "videos": videos,
        "statistics": {
            "total_views": total_views,
            "avg_views_per_video": safe_average(total_views, len(videos)),
            "total_likes": total_likes,
            "avg_likes_per_video": safe_average(total_likes, len(videos)),
            "total_duration_seconds": total_duration,
            "avg_duration_seconds": safe_average(total_duration, len(videos)),
            "avg_engagement_rate": to_fixed(sum(rates) / len(rates), 2) if rates else 0,
            "best_performing": {
                "shortcode": best["shortcode"],
                "url": best["url"],
                "views": best["stats"]["views"],
                "likes": best["stats"]["likes"],
            } if best else None,
        },
    }


class InstagramMediaScraper(BaseScraper):
    """Scraper for Instagram hashtags, highlights, reels, stories and video."""

    platform = "Instagram"

    def _user_data(self, url: str, what: str, headers: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        html = self.fetch_html(url, headers=headers)
        return find_sjs_data(html, "user", what, missing=f"{what} structure not found")

    def hashtag(self, hashtag: str, limit: int = 12) -> Dict[str, Any]:
        require_text(hashtag, "hashtag")
        clean = hashtag.replace("#", "", 1).strip()
        if not clean:
            raise InvalidInputError("Hashtag cannot be empty")

        html = self.fetch_html(f"{INSTAGRAM_BASE}/explore/tags/{clean}/")
        data = find_sjs_data(html, "hashtag", "hashtag data", missing="Hashtag data structure not found")
        result = extract_hashtag(data, clean, limit)
        result["scraped_at"] = utc_now_iso()
        return result

    def highlights(self, username: str, limit: int = 20) -> Dict[str, Any]:
        require_text(username, "username")
        check_limit(limit, 1, 50)
        clean = strip_prefix(username, "@")
        user = self._user_data(f"{INSTAGRAM_BASE}/{clean}/", "Story Highlights data", headers=REFERER)
        result = extract_highlights(user, clean, limit)
        result["scraped_at"] = utc_now_iso()
        return result

    def reels(self, username: str, limit: int = 12) -> Dict[str, Any]:
        require_text(username, "username")
        clean = strip_prefix(username, "@")
        user = self._user_data(f"{INSTAGRAM_BASE}/{clean}/reels/", "Reels data")
        result = extract_reels(user, clean, limit)
        result["scraped_at"] = utc_now_iso()
        return result

    def stories(self, username: str) -> Dict[str, Any]:
        require_text(username, "username")
        clean = strip_prefix(username, "@")
        user = self._user_data(f"{INSTAGRAM_BASE}/{clean}/", "Stories data")
        result = extract_stories(user, clean)
        result["scraped_at"] = utc_now_iso()
        return result

    def video(self, username: str, limit: int = 12) -> Dict[str, Any]:
        require_text(username, "username")
        check_limit(limit, 1, 50)
        clean = strip_prefix(username, "@")
        user = self._user_data(f"{INSTAGRAM_BASE}/{clean}/channel/", "IGTV data", headers=REFERER)
        result = extract_videos(user, clean, limit)
        result["scraped_at"] = utc_now_iso()
        return result


def scrape_hashtag(hashtag: str, limit: int = 12, client: Optional[httpx.Client] = None) -> Dict[str, Any]:
    """
    Scrape a hashtag explore page.

    Args:
        hashtag: Hashtag with or without the leading #
        limit: Maximum posts in each of the top and recent lists
        client: Optional httpx client
    """
    scraper = InstagramMediaScraper(client=client)
    return scraper.run(scraper.hashtag, hashtag, limit=limit)


def scrape_highlights(username: str, limit: int = 20, client: Optional[httpx.Client] = None) -> Dict[str, Any]:
    """Scrape story highlight reels of a profile."""
    scraper = InstagramMediaScraper(client=client)
    return scraper.run(scraper.highlights, username, limit=limit)


def scrape_reels(username: str, limit: int = 12, client: Optional[httpx.Client] = None) -> Dict[str, Any]:
    """Scrape reels with performance metrics."""
    scraper = InstagramMediaScraper(client=client)
    return scraper.run(scraper.reels, username, limit=limit)


def scrape_stories(username: str, client: Optional[httpx.Client] = None) -> Dict[str, Any]:
    """Scrape active stories and highlights."""
    scraper = InstagramMediaScraper(client=client)
    return scraper.run(scraper.stories, username, metadata={"note": STORIES_NOTE})


def scrape_video(username: str, limit: int = 12, client: Optional[httpx.Client] = None) -> Dict[str, Any]:
    """Scrape long-form (IGTV) videos of a profile."""
    scraper = InstagramMediaScraper(client=client)
    return scraper.run(scraper.video, username, limit=limit)
