"""
TikTok music: sound pages, song details, videos using a song and trending songs.
"""

import logging
import re
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx

from reachstream.scrapers.base import BaseScraper, check_limit, require_text
from reachstream.scrapers.errors import ExtractionError
from reachstream.scrapers.extract import (
    dig,
    first,
    format_count,
    iso_from_timestamp,
    safe_average,
    to_fixed,
    utc_now_iso,
)
from reachstream.scrapers.tiktok_scraper import (
    REFERER,
    TIKTOK_BASE,
    find_rehydration_data,
    parse_json_or_blob,
    scope,
    video_url,
)

logger = logging.getLogger(__name__)

MUSIC_BASE = f"{TIKTOK_BASE}/music"


def music_info(data: Dict[str, Any], missing: str) -> Dict[str, Any]:
    """``musicInfo`` from the music-detail scope, an API ``data`` wrapper or the root."""
    info = first(
        scope(data, "webapp.music-detail", "musicInfo"),
        dig(data, "data", "musicInfo"),
        data.get("musicInfo"),
    )
    if not info:
        raise ExtractionError(missing)
    return info


def song_url(title: Optional[str], song_id: Any) -> str:
    slug = re.sub(r"\s+", "-", title) if title else "song"
    return f"{MUSIC_BASE}/{quote(slug, safe='')}-{song_id}"


def format_duration(seconds: Optional[int]) -> str:
    if not seconds:
        return "0:00"
    return f"{seconds // 60}:{seconds % 60:02d}"


def _rate(part: int, whole: int) -> float:
    return to_fixed(part / whole * 100, 2) if whole > 0 else 0


def extract_sound(data: Dict[str, Any], sound_id: str) -> Dict[str, Any]:
    info = music_info(data, "Sound data structure not found")
    music = info.get("music") or info
    stats = info.get("stats") or {}

    top_videos = []
    for video in first(info.get("itemList"), info.get("videos"), default=[])[:10]:
        author = video.get("author") or {}
        video_stats = video.get("stats") or {}
        top_videos.append({
            "video_id": video.get("id"),
            "description": first(video.get("desc"), video.get("description")),
            "author": {
                "user_id": author.get("id"),
                "username": author.get("uniqueId"),
                "nickname": author.get("nickname"),
            },
            "stats": {
                "play_count": video_stats.get("playCount") or 0,
                "like_count": video_stats.get("diggCount") or 0,
                "comment_count": video_stats.get("commentCount") or 0,
                "share_count": video_stats.get("shareCount") or 0,
            },
            "create_time": video.get("createTime"),
        })

    return {
        "sound_id": music.get("id") or sound_id,
        "title": music.get("title"),
        "author": first(music.get("authorName"), music.get("author")),
        "duration": music.get("duration"),
        "original": music.get("original") or False,
        "album": music.get("album") or None,
        "cover_url": {
            "large": music.get("coverLarge"),
            "medium": music.get("coverMedium"),
            "thumb": music.get("coverThumb"),
        },
        "play_url": music.get("playUrl"),
        "stats": {
            "video_count": first(stats.get("videoCount"), stats.get("video_count"), default=0),
            "play_count": first(stats.get("playCount"), stats.get("play_count"), default=0),
            "share_count": first(stats.get("shareCount"), stats.get("share_count"), default=0),
        },
        "top_videos": top_videos,
    }


def song_category(music: Dict[str, Any]) -> str:
    if music.get("album"):
        return "Commercial Music"
    if music.get("original"):
        return "User Original"
    return "Original Audio"


def extract_song_details(data: Dict[str, Any], song_id: str) -> Dict[str, Any]:
    """
    Song metadata with popularity estimates from its video count.

    Popular means more than 100K videos, trending more than 10K.
    """
    info = music_info(data, "Song data structure not found")
    music = info.get("music") or info
    stats = info.get("stats") or {}
    video_count = first(stats.get("videoCount"), stats.get("video_count"), default=0)
    is_popular = video_count > 100_000
    is_trending = video_count > 10_000

    if video_count > 100_000:
        engagement_level = "Viral"
    elif video_count > 10_000:
        engagement_level = "Popular"
    elif video_count > 1_000:
        engagement_level = "Moderate"
    else:
        engagement_level = "Low"

    return {
        "song_id": music.get("id") or song_id,
        "title": music.get("title") or "",
        "author": first(music.get("authorName"), music.get("author"), default=""),
        "album": music.get("album") or None,
        "duration": music.get("duration") or 0,
        "duration_formatted": format_duration(music.get("duration")),
        "is_original": music.get("original") or False,
        "category": song_category(music),
        "cover_images": {
            "large": music.get("coverLarge"),
            "medium": music.get("coverMedium"),
            "thumb": music.get("coverThumb"),
        },
        "play_url": music.get("playUrl"),
        "statistics": {
            "video_count": video_count,
            "video_count_formatted": format_count(video_count),
            "is_popular": is_popular,
            "is_trending": is_trending,
        },
        "popularity_metrics": {
            "popularity_score": min(100, video_count // 10_000),
            "trending_rank": "High" if is_popular else "Medium" if is_trending else "Low",
            "engagement_level": engagement_level,
        },
        "usage_info": {
            "total_videos_using_song": video_count,
            "can_be_used_in_videos": True,
            "attribution_required": not music.get("original"),
        },
        "song_url": song_url(music.get("title"), song_id),
    }


def _song_video(video: Dict[str, Any], music: Dict[str, Any], song_id: str) -> Dict[str, Any]:
    author = video.get("author") or {}
    stats = video.get("stats") or {}
    media = video.get("video") or {}
    used = video.get("music") or {}
    plays = stats.get("playCount") or 0
    likes = stats.get("diggCount") or 0
    comments = stats.get("commentCount") or 0
    shares = stats.get("shareCount") or 0
    return {
        "video_id": video.get("id"),
        "description": first(video.get("desc"), video.get("description"), default=""),
        "create_time": video.get("createTime"),
        "create_time_iso": iso_from_timestamp(video.get("createTime")),
        "video_url": video_url(author.get("uniqueId"), video.get("id")),
        "author": {
            "user_id": author.get("id") or "",
            "username": author.get("uniqueId") or "",
            "nickname": author.get("nickname") or "",
            "avatar": first(author.get("avatarThumb"), author.get("avatarMedium"), author.get("avatarLarge")),
            "verified": author.get("verified") or False,
            "signature": author.get("signature") or "",
        },
        "video_stats": {
            "play_count": plays,
            "like_count": likes,
            "comment_count": comments,
            "share_count": shares,
            "download_count": stats.get("downloadCount") or 0,
        },
        "engagement_metrics": {
            "engagement_rate": _rate(likes + comments + shares, plays),
            "like_rate": _rate(likes, plays),
            "comment_rate": _rate(comments, plays),
        },
        "video_info": {
            "duration": media.get("duration") or 0,
            "width": media.get("width") or 0,
            "height": media.get("height") or 0,
            "ratio": media.get("ratio") or "",
            "cover": first(media.get("cover"), media.get("dynamicCover")),
            "play_addr": media.get("playAddr"),
            "download_addr": media.get("downloadAddr"),
        },
        "music_used": {
            "music_id": used.get("id") or song_id,
            "music_title": first(used.get("title"), music.get("title"), default=""),
            "music_author": first(used.get("authorName"), music.get("authorName"), default=""),
        },
        "hashtags": [
            {"id": tag.get("hashtagId"), "name": tag.get("hashtagName")}
            for tag in video.get("textExtra") or []
            if tag.get("hashtagName")
        ],
    }


def extract_song_videos(data: Dict[str, Any], song_id: str, limit: int) -> Dict[str, Any]:
    info = music_info(data, "Music data structure not found")
    music = info.get("music") or info
    videos = [
        _song_video(video, music, song_id)
        for video in first(info.get("itemList"), info.get("videos"), default=[])[:limit]
    ]

    def total(key: str) -> int:
        return sum(v["video_stats"][key] for v in videos)

    plays, likes = total("play_count"), total("like_count")
    comments, shares = total("comment_count"), total("share_count")
    top = max(videos, key=lambda v: v["video_stats"]["play_count"], default=None)

    return {
        "song_id": song_id,
        "song_info": {
            "title": music.get("title") or "",
            "author": first(music.get("authorName"), music.get("author"), default=""),
            "cover": first(music.get("coverThumb"), music.get("coverMedium")),
        },
        "total_videos_returned": len(videos),
        "videos": videos,
        "aggregate_stats": {
            "total_plays": plays,
            "total_likes": likes,
            "total_comments": comments,
            "total_shares": shares,
            "avg_plays_per_video": safe_average(plays, len(videos)),
            "avg_likes_per_video": safe_average(likes, len(videos)),
            "avg_comments_per_video": safe_average(comments, len(videos)),
            "overall_engagement_rate": _rate(likes + comments + shares, plays),
        },
        "top_performing_video": {
            "video_id": top["video_id"],
            "author_username": top["author"]["username"],
            "play_count": top["video_stats"]["play_count"],
            "like_count": top["video_stats"]["like_count"],
            "video_url": top["video_url"],
        } if top else None,
    }


def extract_trending_songs(data: Dict[str, Any], limit: int) -> Dict[str, Any]:
    songs: List[Dict[str, Any]] = []
    for item in scope(data, "webapp.music-trending", "musicList", default=[])[:limit]:
        music = item.get("music") or item
        songs.append({
            "music_id": music.get("id"),
            "title": music.get("title") or "",
            "author": music.get("authorName") or "",
            "album": music.get("album") or "",
            "cover_url": first(music.get("coverThumb"), music.get("coverMedium"), music.get("coverLarge")),
            "play_url": music.get("playUrl"),
            "duration": music.get("duration") or 0,
            "stats": {
                "video_count": music.get("userCount") or 0,
                "is_original": music.get("original") or False,
            },
            "url": song_url(music.get("title"), music.get("id")),
        })

    total_videos = sum(s["stats"]["video_count"] for s in songs)
    return {
        "total_songs": len(songs),
        "songs": songs,
        "statistics": {
            "total_videos_using_songs": total_videos,
            "avg_videos_per_song": safe_average(total_videos, len(songs)),
            "original_songs_count": sum(1 for s in songs if s["stats"]["is_original"]),
        },
    }


class TikTokMusicScraper(BaseScraper):
    """Scraper for TikTok sounds and songs."""

    platform = "TikTok"

    def _song_page(self, song_id: str, what: str) -> Dict[str, Any]:
        body = self.fetch_html(f"{MUSIC_BASE}/-{song_id}", headers=REFERER)
        return parse_json_or_blob(body, what)

    def sound(self, sound_id: str) -> Dict[str, Any]:
        require_text(sound_id, "sound ID")
        body = self.fetch_html(f"{MUSIC_BASE}/{sound_id}")
        result = extract_sound(parse_json_or_blob(body, "sound data"), sound_id)
        result["scraped_at"] = utc_now_iso()
        return result

    def song_details(self, song_id: str) -> Dict[str, Any]:
        require_text(song_id, "song ID")
        result = extract_song_details(self._song_page(song_id, "song data"), song_id)
        result["scraped_at"] = utc_now_iso()
        return result

    def song_videos(self, song_id: str, limit: int = 20) -> Dict[str, Any]:
        require_text(song_id, "song ID")
        check_limit(limit, 1, 50)
        result = extract_song_videos(self._song_page(song_id, "video data"), song_id, limit)
        result["scraped_at"] = utc_now_iso()
        return result

    def trending_songs(self, limit: int = 20) -> Dict[str, Any]:
        check_limit(limit, 1, 50)
        html = self.fetch_html(f"{MUSIC_BASE}/trending", headers=REFERER)
        result = extract_trending_songs(find_rehydration_data(html, "trending songs data"), limit)
        result["scraped_at"] = utc_now_iso()
        return result


def scrape_sound(sound_id: str, client: Optional[httpx.Client] = None) -> Dict[str, Any]:
    """Scrape a sound page with its top ten videos."""
    scraper = TikTokMusicScraper(client=client)
    return scraper.run(scraper.sound, sound_id)


def get_song_details(song_id: str, client: Optional[httpx.Client] = None) -> Dict[str, Any]:
    """
    Song metadata, category and popularity estimates.

    Args:
        song_id: Numeric music id
        client: Optional httpx client
    """
    scraper = TikTokMusicScraper(client=client)
    return scraper.run(scraper.song_details, song_id)


def get_song_videos(song_id: str, limit: int = 20, client: Optional[httpx.Client] = None) -> Dict[str, Any]:
    """Videos using a song, with engagement rates."""
    scraper = TikTokMusicScraper(client=client)
    return scraper.run(scraper.song_videos, song_id, limit=limit)


def get_trending_songs(limit: int = 20, client: Optional[httpx.Client] = None) -> Dict[str, Any]:
    """Trending songs."""
    scraper = TikTokMusicScraper(client=client)
    return scraper.run(scraper.trending_songs, limit=limit)
