"""
Threads Scraper

Threads pages embed their relay payloads in ``data-sjs`` script blocks. The
scraper reads the ``userData``, ``xdt_shortcode_media`` and search result
entries from the first block that carries them.
"""

import logging
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx

from reachstream.scrapers.base import BaseScraper, check_limit, require_text
from reachstream.scrapers.errors import InvalidInputError
from reachstream.scrapers.extract import (
    dig,
    extract_hashtags,
    extract_mentions,
    find_sjs_data,
    iso_from_timestamp,
    safe_average,
    strip_prefix,
    to_fixed,
    utc_now_iso,
)

logger = logging.getLogger(__name__)

THREADS_BASE = "https://www.threads.net"

POST_TYPES = {
    "GraphVideo": "video",
    "GraphImage": "image",
    "GraphSidecar": "carousel",
}


def _post_type(node: Dict[str, Any]) -> str:
    return POST_TYPES.get(node.get("__typename"), "text")


def _caption(node: Dict[str, Any]) -> str:
    return dig(node, "edge_media_to_caption", "edges", 0, "node", "text", default="")


def _dimensions(node: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    dims = node.get("dimensions")
    if not dims:
        return None
    return {"width": dims.get("width"), "height": dims.get("height")}


def _media(node: Dict[str, Any], detailed: bool = False) -> List[Dict[str, Any]]:
    """
    Media list for a node; carousel children replace the cover item.

    Args:
        node: Post node
        detailed: Include video duration and child dimensions
    """
    media: List[Dict[str, Any]] = []
    if node.get("is_video") and node.get("video_url"):
        item = {"type": "video", "url": node["video_url"], "thumbnail": node.get("display_url")}
        if detailed:
            item["duration"] = node.get("video_duration")
        media.append(item)
    elif node.get("display_url"):
        media.append({"type": "image", "url": node["display_url"]})

    children = dig(node, "edge_sidecar_to_children", "edges")
    if children is not None:
        media = []
        for child in children:
            child_node = child.get("node") or {}
            is_video = child_node.get("is_video")
            item = {
                "type": "video" if is_video else "image",
                "url": child_node.get("video_url") if is_video else child_node.get("display_url"),
                "thumbnail": child_node.get("display_url"),
            }
            if detailed:
                item["dimensions"] = child_node.get("dimensions")
            media.append(item)
    return media


def _post_url(shortcode: Optional[str]) -> str:
    return f"{THREADS_BASE}/t/{shortcode}"


def _user(user: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "user_id": user.get("pk") or user.get("id"),
        "username": user.get("username"),
        "full_name": user.get("full_name") or "",
        "biography": user.get("biography") or "",
        "profile_pic_url": user.get("profile_pic_url") or dig(user, "hd_profile_pic_url_info", "url", default=""),
        "is_verified": user.get("is_verified") or False,
        "is_private": user.get("is_private") or False,
        "follower_count": user.get("follower_count") or 0,
        "external_url": user.get("external_url"),
        "is_business_account": user.get("is_business") or False,
        "category": user.get("category"),
    }


def extract_post(post: Dict[str, Any]) -> Dict[str, Any]:
    """Map an ``xdt_shortcode_media`` object."""
    caption = _caption(post)
    author = post.get("owner") or {}
    location = post.get("location")

    comments = []
    for edge in dig(post, "edge_media_to_parent_comment", "edges", default=[])[:10]:
        comment = edge.get("node") or {}
        comments.append({
            "id": comment.get("id"),
            "text": comment.get("text"),
            "created_at": iso_from_timestamp(comment.get("created_at")),
            "likes": dig(comment, "edge_liked_by", "count", default=0),
            "author": {
                "username": dig(comment, "owner", "username"),
                "is_verified": dig(comment, "owner", "is_verified"),
                "profile_pic": dig(comment, "owner", "profile_pic_url"),
            },
        })

    return {
        "id": post.get("id"),
        "shortcode": post.get("shortcode"),
        "url": _post_url(post.get("shortcode")),
        "type": _post_type(post),
        "caption": caption,
        "hashtags": extract_hashtags(caption),
        "mentions": extract_mentions(caption),
        "created_at": iso_from_timestamp(post.get("taken_at_timestamp")),
        "timestamp": post.get("taken_at_timestamp"),
        "media": _media(post, detailed=True),
        "stats": {
            "likes": dig(post, "edge_media_preview_like", "count", default=0),
            "comments": dig(post, "edge_media_to_parent_comment", "count", default=0),
            "plays": post.get("video_view_count") or None,
        },
        "author": {
            "user_id": author.get("id"),
            "username": author.get("username"),
            "full_name": author.get("full_name"),
            "profile_pic": author.get("profile_pic_url"),
            "is_verified": author.get("is_verified"),
            "is_private": author.get("is_private"),
        },
        "location": {
            "id": location.get("id"),
            "name": location.get("name"),
            "slug": location.get("slug"),
        } if location else None,
        "dimensions": _dimensions(post),
        "is_video": post.get("is_video") or False,
        "is_paid_partnership": post.get("is_paid_partnership") or False,
        "accessibility_caption": post.get("accessibility_caption"),
        "top_comments": comments,
    }


def _timeline_post(node: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": node.get("id"),
        "shortcode": node.get("shortcode"),
        "url": _post_url(node.get("shortcode")),
        "type": _post_type(node),
        "caption": _caption(node),
        "created_at": iso_from_timestamp(node.get("taken_at_timestamp")),
        "timestamp": node.get("taken_at_timestamp"),
        "media": _media(node),
        "stats": {
            "likes": dig(node, "edge_liked_by", "count", default=0),
            "comments": dig(node, "edge_media_to_comment", "count", default=0),
            "plays": node.get("video_view_count") or None,
        },
        "dimensions": _dimensions(node),
        "is_video": node.get("is_video") or False,
        "accessibility_caption": node.get("accessibility_caption"),
    }


def extract_posts(user_data: Dict[str, Any], username: str, limit: int) -> Dict[str, Any]:
    edges = dig(user_data, "edge_owner_to_timeline_media", "edges", default=[])
    posts = [_timeline_post(edge.get("node") or {}) for edge in edges[:limit]]

    total_likes = sum(p["stats"]["likes"] for p in posts)
    total_comments = sum(p["stats"]["comments"] for p in posts)
    breakdown = {kind: 0 for kind in ("video", "image", "carousel", "text")}
    for post in posts:
        breakdown[post["type"]] += 1

    return {
        "username": username,
        "profile_url": f"{THREADS_BASE}/@{username}",
        "total_posts": len(posts),
        "posts": posts,
        "summary_stats": {
            "total_likes": total_likes,
            "total_comments": total_comments,
            "avg_likes_per_post": safe_average(total_likes, len(posts)),
            "avg_comments_per_post": safe_average(total_comments, len(posts)),
        },
        "content_breakdown": breakdown,
    }


def extract_profile(user_data: Dict[str, Any], username: str) -> Dict[str, Any]:
    user = user_data.get("user") or {}
    profile = _user(user)
    profile.update({
        "biography_links": user.get("bio_links") or [],
        "following_count": user.get("following_count") or 0,
        "post_count": user.get("media_count") or 0,
        "profile_url": f"{THREADS_BASE}/@{username}",
    })

    recent = dig(user_data, "edge_owner_to_timeline_media", "edges", default=[])
    if recent:
        total_likes = sum(dig(e, "node", "edge_liked_by", "count", default=0) for e in recent)
        total_comments = sum(dig(e, "node", "edge_media_to_comment", "count", default=0) for e in recent)
        avg_likes = safe_average(total_likes, len(recent))
        avg_comments = safe_average(total_comments, len(recent))
        followers = user.get("follower_count") or 0
        profile["engagement"] = {
            "avg_likes_per_post": avg_likes,
            "avg_comments_per_post": avg_comments,
            "engagement_rate": to_fixed((avg_likes + avg_comments) / followers * 100, 2) if followers > 0 else 0,
        }
    return profile


def extract_search(search_data: Dict[str, Any], query: str, limit: int) -> Dict[str, Any]:
    edges = dig(search_data, "xdt_api__v1__feed__search_results", "edges", default=[])
    posts = []
    for edge in edges[:limit]:
        node = edge.get("node") or {}
        caption = _caption(node)
        media = []
        if node.get("is_video") and node.get("video_url"):
            media.append({"type": "video", "url": node["video_url"], "thumbnail": node.get("display_url")})
        elif node.get("display_url"):
            media.append({"type": "image", "url": node["display_url"]})
        posts.append({
            "id": node.get("id"),
            "shortcode": node.get("shortcode"),
            "url": _post_url(node.get("shortcode")),
            "type": _post_type(node),
            "caption": caption,
            "hashtags": extract_hashtags(caption),
            "mentions": extract_mentions(caption),
            "created_at": iso_from_timestamp(node.get("taken_at_timestamp")),
            "timestamp": node.get("taken_at_timestamp"),
            "media": media,
            "stats": {
                "likes": dig(node, "edge_liked_by", "count", default=0),
                "comments": dig(node, "edge_media_to_comment", "count", default=0),
                "plays": node.get("video_view_count") or None,
            },
            "author": {
                "username": dig(node, "owner", "username"),
                "full_name": dig(node, "owner", "full_name"),
                "profile_pic": dig(node, "owner", "profile_pic_url"),
                "is_verified": dig(node, "owner", "is_verified"),
            },
            "dimensions": node.get("dimensions"),
            "is_video": node.get("is_video") or False,
        })

    return {
        "query": query,
        "total_results": len(edges),
        "posts": posts,
        "statistics": {
            "content_breakdown": {
                "video": sum(1 for p in posts if p["type"] == "video"),
                "image": sum(1 for p in posts if p["type"] == "image"),
                "carousel": sum(1 for p in posts if p["type"] == "carousel"),
            },
            "avg_likes": safe_average(sum(p["stats"]["likes"] for p in posts), len(posts)),
            "avg_comments": safe_average(sum(p["stats"]["comments"] for p in posts), len(posts)),
        },
    }


def extract_user_search(search_data: Dict[str, Any], query: str, limit: int) -> Dict[str, Any]:
    users = []
    for user in dig(search_data, "xdt_api__v1__users__search", "users", default=[])[:limit]:
        item = _user(user)
        item["profile_url"] = f"{THREADS_BASE}/@{user.get('username')}"
        item["following_count"] = user.get("following_count") or None
        item["post_count"] = user.get("media_count") or None
        users.append(item)

    top_user = max(users, key=lambda u: u["follower_count"], default=None)
    return {
        "query": query,
        "total_results": len(users),
        "users": users,
        "statistics": {
            "verified_users": sum(1 for u in users if u["is_verified"]),
            "business_accounts": sum(1 for u in users if u["is_business_account"]),
            "private_accounts": sum(1 for u in users if u["is_private"]),
            "avg_follower_count": safe_average(sum(u["follower_count"] for u in users), len(users)),
            "top_user": {
                "username": top_user["username"],
                "followers": top_user["follower_count"],
            } if top_user else None,
        },
    }


def _validate_query(query: Any) -> str:
    if not query or not isinstance(query, str):
        raise InvalidInputError("Invalid search query provided")
    if not query.strip():
        raise InvalidInputError("Search query cannot be empty")
    return query


class ThreadsScraper(BaseScraper):
    """Scraper for Threads posts, profiles and search."""

    platform = "Threads"

    def post(self, post_id: str) -> Dict[str, Any]:
        require_text(post_id, "post ID")
        html = self.fetch_html(_post_url(post_id))
        media = find_sjs_data(html, "xdt_shortcode_media", "post data", missing="Post data structure not found")
        result = extract_post(media)
        result["scraped_at"] = utc_now_iso()
        return result

    def posts(self, username: str, limit: int = 20) -> Dict[str, Any]:
        require_text(username, "username")
        check_limit(limit, 1, 100)
        clean = strip_prefix(username, "@")
        html = self.fetch_html(f"{THREADS_BASE}/@{clean}")
        user_data = find_sjs_data(html, "userData", "posts data", missing="Posts data structure not found")
        result = extract_posts(user_data, clean, limit)
        result["scraped_at"] = utc_now_iso()
        return result

    def profile(self, username: str) -> Dict[str, Any]:
        require_text(username, "username")
        clean = strip_prefix(username, "@")
        html = self.fetch_html(f"{THREADS_BASE}/@{clean}")
        user_data = find_sjs_data(html, "userData", "profile data", missing="Profile data structure not found")
        result = extract_profile(user_data, clean)
        result["scraped_at"] = utc_now_iso()
        return result

    def search(self, query: str, limit: int = 20) -> Dict[str, Any]:
        _validate_query(query)
        check_limit(limit, 1, 100)
        html = self.fetch_html(f"{THREADS_BASE}/search?q={quote(query)}")
        search_data = find_sjs_data(html, None, "search data", missing="Search data structure not found")
        result = extract_search(search_data, query, limit)
        result["scraped_at"] = utc_now_iso()
        return result

    def search_users(self, query: str, limit: int = 20) -> Dict[str, Any]:
        _validate_query(query)
        check_limit(limit, 1, 100)
        html = self.fetch_html(f"{THREADS_BASE}/search?q={quote(query)}&type=users")
        search_data = find_sjs_data(html, None, "search data", missing="User search data structure not found")
        result = extract_user_search(search_data, query, limit)
        result["scraped_at"] = utc_now_iso()
        return result


def scrape_post(post_id: str, client: Optional[httpx.Client] = None) -> Dict[str, Any]:
    """Scrape a Threads post by shortcode."""
    scraper = ThreadsScraper(client=client)
    return scraper.run(scraper.post, post_id)


def scrape_posts(username: str, limit: int = 20, client: Optional[httpx.Client] = None) -> Dict[str, Any]:
    """Scrape a user's recent Threads posts."""
    scraper = ThreadsScraper(client=client)
    return scraper.run(scraper.posts, username, limit=limit)


def scrape_profile(username: str, client: Optional[httpx.Client] = None) -> Dict[str, Any]:
    """Scrape a Threads profile with engagement over recent posts."""
    scraper = ThreadsScraper(client=client)
    return scraper.run(scraper.profile, username)


def search_posts(query: str, limit: int = 20, client: Optional[httpx.Client] = None) -> Dict[str, Any]:
    """Search Threads posts."""
    scraper = ThreadsScraper(client=client)
    return scraper.run(scraper.search, query, limit=limit)


def search_users(query: str, limit: int = 20, client: Optional[httpx.Client] = None) -> Dict[str, Any]:
    """Search Threads users."""
    scraper = ThreadsScraper(client=client)
    return scraper.run(scraper.search_users, query, limit=limit)
