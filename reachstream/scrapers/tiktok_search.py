"""
TikTok search: the mixed search API plus the user and keyword result pages.
"""

import json
import logging
from typing import Any, Dict, List, Optional

import httpx

from reachstream.scrapers.base import JSON_ACCEPT, BaseScraper, check_limit, require_text
from reachstream.scrapers.errors import InvalidInputError
from reachstream.scrapers.extract import dig, first, iso_from_timestamp, safe_average, utc_now_iso
from reachstream.scrapers.tiktok_scraper import (
    REFERER,
    TIKTOK_BASE,
    TikTokScraper,
    find_rehydration_data,
    hashtag_titles,
    profile_url,
    scope,
    video_url,
)

logger = logging.getLogger(__name__)

SEARCH_API = f"{TIKTOK_BASE}/api/search"
SEARCH_TYPES = ("all", "users", "videos", "hashtags", "sounds")

# Numeric ``type`` codes understood by the search API
SEARCH_TYPE_CODES = {"users": "1", "videos": "0", "hashtags": "3", "sounds": "4"}


def _search_user(user: Dict[str, Any]) -> Dict[str, Any]:
    username = first(user.get("uniqueId"), user.get("unique_id"))
    return {
        "type": "user",
        "user_id": first(user.get("id"), user.get("uid")),
        "username": username,
        "nickname": user.get("nickname"),
        "avatar_url": first(user.get("avatarLarger"), user.get("avatarMedium"), user.get("avatar")),
        "signature": user.get("signature"),
        "verified": user.get("verified"),
        "follower_count": first(user.get("followerCount"), user.get("fans_count")),
        "video_count": first(user.get("videoCount"), user.get("video_count")),
        "profile_url": profile_url(username),
    }


def _search_video(video: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "type": "video",
        "video_id": video.get("id"),
        "description": first(video.get("desc"), video.get("description")),
        "create_time": first(video.get("createTime"), video.get("create_time")),
        "author": {
            "user_id": first(dig(video, "author", "id"), video.get("author_id")),
            "username": first(dig(video, "author", "uniqueId"), video.get("author_name")),
            "nickname": dig(video, "author", "nickname"),
        },
        "stats": {
            "play_count": first(dig(video, "stats", "playCount"), video.get("play_count"), default=0),
            "like_count": first(dig(video, "stats", "diggCount"), video.get("digg_count"), default=0),
            "comment_count": first(dig(video, "stats", "commentCount"), video.get("comment_count"), default=0),
            "share_count": first(dig(video, "stats", "shareCount"), video.get("share_count"), default=0),
        },
        "video_url": first(dig(video, "video", "downloadAddr"), video.get("video_url")),
        "cover_url": first(dig(video, "video", "cover"), video.get("cover_url")),
        "hashtags": hashtag_titles(video),
        "music": {
            "id": dig(video, "music", "id"),
            "title": dig(video, "music", "title"),
            "author": dig(video, "music", "authorName"),
        },
    }


def _search_hashtag(hashtag: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "type": "hashtag",
        "hashtag_id": hashtag.get("id"),
        "title": hashtag.get("title"),
        "description": first(hashtag.get("desc"), hashtag.get("description")),
        "view_count": first(hashtag.get("viewCount"), hashtag.get("view_count"), default=0),
        "video_count": first(hashtag.get("videoCount"), hashtag.get("user_count"), default=0),
        "cover_url": first(hashtag.get("coverLarger"), hashtag.get("cover")),
        "is_commerce": hashtag.get("isCommerce") or False,
    }


def _search_sound(sound: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "type": "sound",
        "sound_id": sound.get("id"),
        "title": sound.get("title"),
        "author": first(sound.get("authorName"), sound.get("author")),
        "duration": sound.get("duration"),
        "play_count": first(dig(sound, "stats", "videoCount"), sound.get("user_count"), default=0),
        "cover_url": first(sound.get("coverLarge"), sound.get("cover")),
        "original": sound.get("original") or False,
    }


def extract_search(data: Dict[str, Any], search_type: str) -> Dict[str, Any]:
    """
    Mixed search results from either the API JSON or the page blob.

    The API names its lists ``user_list``/``item_list``/``challenge_list``/
    ``music_list``; the web app uses ``users``/``videos``/``hashtags``/``sounds``.
    Both spellings are read.
    """
    results_root = first(scope(data, "webapp.search"), data.get("data"), data, default={})
    sections = (
        ("users", ("users", "user_list"), _search_user),
        ("videos", ("videos", "item_list"), _search_video),
        ("hashtags", ("hashtags", "challenge_list"), _search_hashtag),
        ("sounds", ("sounds", "music_list"), _search_sound),
    )

    results: List[Dict[str, Any]] = []
    for section, keys, project in sections:
        if search_type not in (section, "all"):
            continue
        items = first(*(results_root.get(k) for k in keys), default=[])
        results.extend(project(item) for item in items)

    return {
        "results": results,
        "has_more": bool(data.get("has_more") or data.get("hasMore")),
        "cursor": data.get("cursor"),
    }


def extract_user_search(data: Dict[str, Any], limit: int) -> Dict[str, Any]:
    users = []
    for entry in scope(data, "webapp.search-results", "userList", default=[])[:limit]:
        user = entry.get("user") or {}
        users.append({
            "user_id": user.get("id") or user.get("uid"),
            "username": user.get("uniqueId"),
            "nickname": user.get("nickname"),
            "avatar": user.get("avatarThumb") or user.get("avatarMedium") or user.get("avatarLarger"),
            "signature": user.get("signature") or "",
            "is_verified": user.get("verified") or False,
            "follower_count": user.get("followerCount") or 0,
            "following_count": user.get("followingCount") or 0,
            "video_count": user.get("videoCount") or 0,
            "likes_count": user.get("heartCount") or 0,
            "profile_url": profile_url(user.get("uniqueId")),
        })

    total_followers = sum(u["follower_count"] for u in users)
    return {
        "total_results": len(users),
        "users": users,
        "statistics": {
            "total_followers": total_followers,
            "avg_followers": safe_average(total_followers, len(users)),
            "verified_count": sum(1 for u in users if u["is_verified"]),
        },
    }


def extract_keyword_search(data: Dict[str, Any], limit: int) -> Dict[str, Any]:
    results = []
    for entry in scope(data, "webapp.search-results", "itemList", default=[])[:limit]:
        video = entry.get("item") or entry
        author = video.get("author") or {}
        stats = video.get("stats") or {}
        results.append({
            "type": "video",
            "video_id": video.get("id"),
            "description": video.get("desc") or "",
            "url": video_url(author.get("uniqueId"), video.get("id")),
            "cover_url": dig(video, "video", "cover") or dig(video, "video", "dynamicCover"),
            "play_url": dig(video, "video", "playAddr"),
            "duration": dig(video, "video", "duration", default=0),
            "author": {
                "user_id": author.get("id") or author.get("uid"),
                "username": author.get("uniqueId"),
                "nickname": author.get("nickname"),
                "avatar": author.get("avatarThumb") or author.get("avatarMedium"),
                "is_verified": author.get("verified") or False,
            },
            "stats": {
                "views": stats.get("playCount") or 0,
                "likes": stats.get("diggCount") or 0,
                "comments": stats.get("commentCount") or 0,
                "shares": stats.get("shareCount") or 0,
            },
            "music": {
                "id": dig(video, "music", "id"),
                "title": dig(video, "music", "title"),
                "author": dig(video, "music", "authorName"),
            },
            "hashtags": hashtag_titles(video),
            "created_at": iso_from_timestamp(video.get("createTime")),
        })

    total_views = sum(r["stats"]["views"] for r in results)
    total_likes = sum(r["stats"]["likes"] for r in results)
    unique_hashtags = list(dict.fromkeys(tag for r in results for tag in r["hashtags"]))
    return {
        "total_results": len(results),
        "results": results,
        "statistics": {
            "total_views": total_views,
            "total_likes": total_likes,
            "avg_views": safe_average(total_views, len(results)),
            "avg_likes": safe_average(total_likes, len(results)),
            "unique_hashtags": len(unique_hashtags),
            "top_hashtags": unique_hashtags[:10],
        },
    }


class TikTokSearchScraper(TikTokScraper):
    """Scraper for TikTok search."""

    def search(
        self,
        query: str,
        type: str = "all",
        limit: int = 20,
        cursor: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Search users, videos, hashtags and sounds.

        The search API usually answers JSON. When it serves the web app
        instead, the results are read from the rehydration blob.
        """
        if not query or not isinstance(query, str):
            raise InvalidInputError("Invalid search query provided")
        if type not in SEARCH_TYPES:
            raise InvalidInputError(f"Invalid search type. Must be one of: {', '.join(SEARCH_TYPES)}")

        params = {"keyword": query, "offset": cursor or "0", "count": str(limit)}
        if type != "all":
            params["type"] = SEARCH_TYPE_CODES[type]

        response = self.fetch(SEARCH_API, headers=self.get_headers(REFERER, accept=JSON_ACCEPT), params=params)
        body = self._checked(response).text
        try:
            data = json.loads(body)
        except json.JSONDecodeError:
            logger.debug("Search API returned HTML, reading the rehydration data")
            data = find_rehydration_data(body, "search data")

        extracted = extract_search(data, type)
        return {
            "query": query,
            "type": type,
            "total_results": len(extracted["results"]),
            **extracted,
            "scraped_at": utc_now_iso(),
        }

    def search_users(self, query: str, limit: int = 20) -> Dict[str, Any]:
        require_text(query, "query")
        check_limit(limit, 1, 50)
        data = self.page_data(f"{TIKTOK_BASE}/search/user", "search data", headers=REFERER, params={"q": query})
        result = {"query": query, **extract_user_search(data, limit)}
        result["scraped_at"] = utc_now_iso()
        return result

    def search_keywords(self, keyword: str, limit: int = 20) -> Dict[str, Any]:
        require_text(keyword, "keyword")
        check_limit(limit, 1, 50)
        data = self.page_data(f"{TIKTOK_BASE}/search", "search data", headers=REFERER, params={"q": keyword})
        result = {"keyword": keyword, **extract_keyword_search(data, limit)}
        result["scraped_at"] = utc_now_iso()
        return result


def search_tiktok(
    query: str,
    type: str = "all",
    limit: int = 20,
    cursor: Optional[str] = None,
    client: Optional[httpx.Client] = None,
) -> Dict[str, Any]:
    """
    Search TikTok.

    Args:
        query: Search terms
        type: all, users, videos, hashtags or sounds
        limit: Page size requested from the API
        cursor: Offset returned by a previous page
        client: Optional httpx client
    """
    scraper = TikTokSearchScraper(client=client)
    return scraper.run(scraper.search, query, type=type, limit=limit, cursor=cursor)


def search_users(query: str, limit: int = 20, client: Optional[httpx.Client] = None) -> Dict[str, Any]:
    """Search accounts."""
    scraper = TikTokSearchScraper(client=client)
    return scraper.run(scraper.search_users, query, limit=limit)


def search_keywords(keyword: str, limit: int = 20, client: Optional[httpx.Client] = None) -> Dict[str, Any]:
    """Search videos by keyword with hashtag statistics."""
    scraper = TikTokSearchScraper(client=client)
    return scraper.run(scraper.search_keywords, keyword, limit=limit)
