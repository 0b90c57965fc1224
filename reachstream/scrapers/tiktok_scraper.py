"""
TikTok Scraper

TikTok's web app rehydrates from ``__UNIVERSAL_DATA_FOR_REHYDRATION__``; each
page type stores its payload under a ``webapp.*`` key of ``__DEFAULT_SCOPE__``.
"""

import json
import logging
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx

from reachstream.scrapers.base import BaseScraper, check_limit, require_text
from reachstream.scrapers.errors import ExtractionError
from reachstream.scrapers.extract import dig, find_script_json, strip_prefix, utc_now_iso

logger = logging.getLogger(__name__)

TIKTOK_BASE = "https://www.tiktok.com"
REHYDRATION_ID = "__UNIVERSAL_DATA_FOR_REHYDRATION__"
REFERER = {"Referer": f"{TIKTOK_BASE}/"}


def find_rehydration_data(html: str, what: str = "data") -> Dict[str, Any]:
    return find_script_json(html, REHYDRATION_ID, what)


def parse_json_or_blob(body: str, what: str = "data") -> Dict[str, Any]:
    """API endpoints answer JSON; web pages carry the rehydration blob."""
    try:
        return json.loads(body)
    except json.JSONDecodeError:
        return find_rehydration_data(body, what)


def scope(data: Dict[str, Any], key: str, *path: str, default: Any = None) -> Any:
    """Lookup under ``__DEFAULT_SCOPE__[key]``."""
    return dig(data, "__DEFAULT_SCOPE__", key, *path, default=default)


def profile_url(username: Optional[str]) -> str:
    return f"{TIKTOK_BASE}/@{username}"


def video_url(username: Optional[str], video_id: Optional[str]) -> str:
    return f"{TIKTOK_BASE}/@{username}/video/{video_id}"


def item_counts(item: Dict[str, Any]) -> Dict[str, int]:
    """play/like/comment/share counts of a video item."""
    stats = item.get("stats") or {}
    return {
        "play_count": stats.get("playCount") or 0,
        "like_count": stats.get("diggCount") or 0,
        "comment_count": stats.get("commentCount") or 0,
        "share_count": stats.get("shareCount") or 0,
    }


def hashtag_titles(item: Dict[str, Any]) -> List[str]:
    return [c.get("title") for c in item.get("challenges") or []]


def extract_profile(data: Dict[str, Any], username: str) -> Dict[str, Any]:
    info = scope(data, "webapp.user-detail", "userInfo")
    if not info:
        raise ExtractionError("Profile data structure not found")

    user = info.get("user") or {}
    stats = info.get("stats") or {}
    return {
        "user_id": user.get("id"),
        "username": user.get("uniqueId"),
        "nickname": user.get("nickname"),
        "avatar_url": user.get("avatarLarger") or user.get("avatarMedium") or user.get("avatarThumb"),
        "signature": user.get("signature"),
        "verified": user.get("verified"),
        "private_account": user.get("privateAccount"),
        "follower_count": stats.get("followerCount"),
        "following_count": stats.get("followingCount"),
        "video_count": stats.get("videoCount"),
        "heart_count": stats.get("heartCount"),
        "profile_url": profile_url(username),
    }


def extract_video(data: Dict[str, Any], video_id: str) -> Dict[str, Any]:
    item = scope(data, "webapp.video-detail", "itemInfo", "itemStruct")
    if not item:
        raise ExtractionError("Video data structure not found")

    author = item.get("author") or {}
    video = item.get("video") or {}
    music = item.get("music") or {}
    stats = item.get("stats") or {}
    return {
        "video_id": item.get("id"),
        "description": item.get("desc"),
        "create_time": item.get("createTime"),
        "author": {
            "user_id": author.get("id"),
            "username": author.get("uniqueId"),
            "nickname": author.get("nickname"),
            "avatar_url": author.get("avatarThumb"),
            "verified": author.get("verified"),
        },
        "video": {
            "url": video.get("playAddr") or video.get("downloadAddr"),
            "cover_url": video.get("cover") or video.get("dynamicCover"),
            "duration": video.get("duration"),
            "width": video.get("width"),
            "height": video.get("height"),
            "ratio": video.get("ratio"),
            "download_url": video.get("downloadAddr"),
        },
        "stats": {
            **item_counts(item),
            "collect_count": stats.get("collectCount") or 0,
        },
        "music": {
            "id": music.get("id"),
            "title": music.get("title"),
            "author": music.get("authorName"),
            "album": music.get("album"),
            "play_url": music.get("playUrl"),
            "cover_url": music.get("coverThumb"),
            "duration": music.get("duration"),
        },
        "hashtags": [
            {
                "id": c.get("id"),
                "title": c.get("title"),
                "description": c.get("desc"),
                "is_commerce": c.get("isCommerce"),
            }
            for c in item.get("challenges") or []
        ],
        "is_ad": item.get("isAd") or False,
        "video_url": video_url(author.get("uniqueId"), video_id),
    }


def extract_feed(data: Dict[str, Any], username: str) -> List[Dict[str, Any]]:
    videos = []
    for item in scope(data, "webapp.user-detail", "itemList", default=[]):
        video = item.get("video") or {}
        videos.append({
            "video_id": item.get("id"),
            "description": item.get("desc"),
            "create_time": item.get("createTime"),
            "video_url": video_url(username, item.get("id")),
            "cover_url": video.get("cover") or video.get("dynamicCover"),
            **item_counts(item),
            "duration": video.get("duration") or 0,
            "music": {"title": dig(item, "music", "title"), "author": dig(item, "music", "authorName")},
            "hashtags": hashtag_titles(item),
        })
    return videos


def _comment_user(comment: Dict[str, Any]) -> Dict[str, Any]:
    user = comment.get("user") or {}
    return {
        "user_id": user.get("uid"),
        "username": user.get("uniqueId"),
        "nickname": user.get("nickname"),
        "avatar_url": user.get("avatarThumb"),
    }


def extract_comments(data: Dict[str, Any]) -> List[Dict[str, Any]]:
    comments = []
    for comment in scope(data, "webapp.video-detail", "itemInfo", "itemStruct", "comments", default=[]):
        user = _comment_user(comment)
        user["verified"] = dig(comment, "user", "verified")
        comments.append({
            "comment_id": comment.get("cid"),
            "user": user,
            "text": comment.get("text"),
            "create_time": comment.get("createTime"),
            "like_count": comment.get("diggCount") or 0,
            "reply_count": comment.get("replyCommentTotal") or 0,
            "is_author_liked": comment.get("authorLiked"),
            "is_pinned": comment.get("isPinned") or False,
            "language": comment.get("commentLanguage"),
            "replies": [
                {
                    "comment_id": reply.get("cid"),
                    "user": _comment_user(reply),
                    "text": reply.get("text"),
                    "create_time": reply.get("createTime"),
                    "like_count": reply.get("diggCount") or 0,
                }
                for reply in comment.get("replies") or []
            ],
        })
    return comments


def _connection(user: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "user_id": user.get("uid") or user.get("id"),
        "username": user.get("uniqueId"),
        "nickname": user.get("nickname"),
        "avatar": user.get("avatarThumb") or user.get("avatarMedium") or user.get("avatarLarger"),
        "signature": user.get("signature") or "",
        "is_verified": user.get("verified") or False,
        "follower_count": user.get("followerCount") or 0,
        "following_count": user.get("followingCount") or 0,
        "video_count": user.get("videoCount") or 0,
        "profile_url": profile_url(user.get("uniqueId")),
    }


def extract_connections(data: Dict[str, Any], username: str, relation: str, limit: int) -> Dict[str, Any]:
    """
    Followers or followed accounts of a user.

    Args:
        data: Rehydration data
        username: Profile name
        relation: "followers" or "following"
        limit: Maximum accounts returned

    Returns:
        Dict with the accounts, total count, has_more and the next cursor
        (the uid of the first account past the limit)
    """
    users = scope(data, f"webapp.user-{relation}", relation)
    if users is None:
        raise ExtractionError(f"{relation.capitalize()} list data structure not found")

    count_key = "followerCount" if relation == "followers" else "followingCount"
    total = scope(data, "webapp.user-detail", "userInfo", "user", count_key)
    users = [user for user in users if user]
    accounts = [_connection(user) for user in users[:limit]]
    has_more = len(users) > limit
    return {
        "username": username,
        "profile_url": profile_url(username),
        f"total_{relation}": total or len(accounts),
        relation: accounts,
        "has_more": has_more,
        "next_cursor": users[limit].get("uid") if has_more else None,
    }


def _listed_video(item: Dict[str, Any]) -> Dict[str, Any]:
    author = item.get("author") or {}
    return {
        "video_id": item.get("id"),
        "author": {
            "username": author.get("uniqueId"),
            "nickname": author.get("nickname"),
            "verified": author.get("verified"),
        },
        "description": item.get("desc"),
        "create_time": item.get("createTime"),
        "video_url": video_url(author.get("uniqueId"), item.get("id")),
        "cover_url": dig(item, "video", "cover"),
        **item_counts(item),
        "duration": dig(item, "video", "duration", default=0),
    }


def extract_hashtag(data: Dict[str, Any], hashtag: str) -> Dict[str, Any]:
    detail = scope(data, "webapp.challenge-detail")
    if not detail:
        raise ExtractionError("Hashtag data structure not found")

    challenge = dig(detail, "challengeInfo", "challenge", default={})
    videos = [_listed_video(item) for item in detail.get("itemList") or []]
    return {
        "hashtag": hashtag,
        "hashtag_id": challenge.get("id"),
        "title": challenge.get("title"),
        "description": challenge.get("desc"),
        "view_count": dig(challenge, "stats", "viewCount", default=0),
        "video_count": dig(challenge, "stats", "videoCount", default=0),
        "is_commerce": challenge.get("isCommerce") or False,
        "video_count_returned": len(videos),
        "videos": videos,
    }


def extract_trending(data: Dict[str, Any]) -> List[Dict[str, Any]]:
    videos = []
    for item in scope(data, "webapp.foryou", "items", default=[]):
        video = _listed_video(item)
        video["author"]["avatar_url"] = dig(item, "author", "avatarThumb")
        video["music"] = {"title": dig(item, "music", "title"), "author": dig(item, "music", "authorName")}
        video["hashtags"] = hashtag_titles(item)
        videos.append(video)
    return videos


class TikTokScraper(BaseScraper):
    """Scraper for TikTok profiles, videos, comments, connections and hashtags."""

    platform = "TikTok"

    def page_data(
        self,
        url: str,
        what: str,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        html = self.fetch_html(url, headers=headers, params=params)
        return find_rehydration_data(html, what)

    def profile(self, username: str) -> Dict[str, Any]:
        require_text(username, "username")
        clean = strip_prefix(username, "@")
        data = self.page_data(profile_url(clean), "profile data")
        result = extract_profile(data, clean)
        result["scraped_at"] = utc_now_iso()
        return result

    def video(self, video_id: str) -> Dict[str, Any]:
        require_text(video_id, "video ID")
        data = self.page_data(f"{TIKTOK_BASE}/video/{video_id}", "video data")
        result = extract_video(data, video_id)
        result["scraped_at"] = utc_now_iso()
        return result

    def feed(self, username: str, limit: int = 30) -> Dict[str, Any]:
        require_text(username, "username")
        clean = strip_prefix(username, "@")
        data = self.page_data(profile_url(clean), "feed data")
        videos = extract_feed(data, clean)[:limit]
        return {
            "username": clean,
            "video_count": len(videos),
            "videos": videos,
            "scraped_at": utc_now_iso(),
        }

    def comments(self, video_id: str, limit: int = 50) -> Dict[str, Any]:
        require_text(video_id, "video ID")
        data = self.page_data(f"{TIKTOK_BASE}/video/{video_id}", "comments data")
        comments = extract_comments(data)[:limit]
        return {
            "video_id": video_id,
            "comment_count": len(comments),
            "comments": comments,
            "scraped_at": utc_now_iso(),
        }

    def _connections(self, relation: str, username: str, limit: int, cursor: Optional[str]) -> Dict[str, Any]:
        require_text(username, "username")
        check_limit(limit, 1, 50)
        clean = strip_prefix(username, "@")
        data = self.page_data(
            f"{profile_url(clean)}/{relation}",
            f"{relation} data",
            headers=REFERER,
            params={"cursor": cursor} if cursor else None,
        )
        result = extract_connections(data, clean, relation, limit)
        result["scraped_at"] = utc_now_iso()
        return result

    def followers(self, username: str, limit: int = 20, cursor: Optional[str] = None) -> Dict[str, Any]:
        return self._connections("followers", username, limit, cursor)

    def following(self, username: str, limit: int = 20, cursor: Optional[str] = None) -> Dict[str, Any]:
        return self._connections("following", username, limit, cursor)

    def hashtag(self, hashtag: str) -> Dict[str, Any]:
        require_text(hashtag, "hashtag")
        clean = hashtag.replace("#", "")
        data = self.page_data(f"{TIKTOK_BASE}/tag/{quote(clean, safe='')}", "hashtag data")
        result = extract_hashtag(data, clean)
        result["scraped_at"] = utc_now_iso()
        return result

    def trending(self, limit: int = 30) -> Dict[str, Any]:
        data = self.page_data(f"{TIKTOK_BASE}/foryou", "trending data")
        videos = extract_trending(data)[:limit]
        return {
            "video_count": len(videos),
            "videos": videos,
            "scraped_at": utc_now_iso(),
        }


def scrape_profile(username: str, client: Optional[httpx.Client] = None) -> Dict[str, Any]:
    """
    Scrape a TikTok profile.

    Args:
        username: Account name, with or without a leading @
        client: Optional httpx client

    Returns:
        Envelope dict with profile fields and follower/video/heart counts
    """
    scraper = TikTokScraper(client=client)
    return scraper.run(scraper.profile, username)


def scrape_video(video_id: str, client: Optional[httpx.Client] = None) -> Dict[str, Any]:
    """Scrape a single video."""
    scraper = TikTokScraper(client=client)
    return scraper.run(scraper.video, video_id)


def scrape_feed(username: str, limit: int = 30, client: Optional[httpx.Client] = None) -> Dict[str, Any]:
    """Scrape the videos rendered on a profile."""
    scraper = TikTokScraper(client=client)
    return scraper.run(scraper.feed, username, limit=limit)


def scrape_comments(video_id: str, limit: int = 50, client: Optional[httpx.Client] = None) -> Dict[str, Any]:
    """Scrape the comments rendered with a video."""
    scraper = TikTokScraper(client=client)
    return scraper.run(scraper.comments, video_id, limit=limit)


def scrape_followers(
    username: str,
    limit: int = 20,
    cursor: Optional[str] = None,
    client: Optional[httpx.Client] = None,
) -> Dict[str, Any]:
    """Scrape one page of a user's followers."""
    scraper = TikTokScraper(client=client)
    return scraper.run(scraper.followers, username, limit=limit, cursor=cursor)


def scrape_following(
    username: str,
    limit: int = 20,
    cursor: Optional[str] = None,
    client: Optional[httpx.Client] = None,
) -> Dict[str, Any]:
    """Scrape one page of the accounts a user follows."""
    scraper = TikTokScraper(client=client)
    return scraper.run(scraper.following, username, limit=limit, cursor=cursor)


def scrape_hashtag(hashtag: str, client: Optional[httpx.Client] = None) -> Dict[str, Any]:
    """Scrape a hashtag page."""
    scraper = TikTokScraper(client=client)
    return scraper.run(scraper.hashtag, hashtag)


def scrape_trending(limit: int = 30, client: Optional[httpx.Client] = None) -> Dict[str, Any]:
    """Scrape the For You feed."""
    scraper = TikTokScraper(client=client)
    return scraper.run(scraper.trending, limit=limit)
