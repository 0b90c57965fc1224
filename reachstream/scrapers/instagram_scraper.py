"""
Instagram Scraper

Profiles, posts and comments come from the ``window._sharedData`` object of
server-rendered pages. Search uses the ``web/search/topsearch`` JSON
endpoint and falls back to the SearchPage entry of ``_sharedData``.
"""

import json
import logging
from typing import Any, Dict, List, Optional

import httpx

from reachstream.scrapers.base import JSON_ACCEPT, BaseScraper, require_text
from reachstream.scrapers.errors import ExtractionError, InvalidInputError
from reachstream.scrapers.extract import dig, find_assigned_json, strip_prefix, utc_now_iso

logger = logging.getLogger(__name__)

INSTAGRAM_BASE = "https://www.instagram.com"
SHARED_DATA_MARKER = "window._sharedData"
SEARCH_TYPES = ("all", "users", "hashtags", "posts")


def post_url(shortcode: Optional[str]) -> str:
    return f"{INSTAGRAM_BASE}/p/{shortcode}/"


def caption_of(node: Dict[str, Any]) -> str:
    return dig(node, "edge_media_to_caption", "edges", 0, "node", "text", default="")


def edge_count(node: Dict[str, Any], *edges: str) -> int:
    """First non-zero ``count`` among the named edges."""
    for edge in edges:
        count = dig(node, edge, "count")
        if count:
            return count
    return 0


def extract_profile(data: Dict[str, Any], username: str) -> Dict[str, Any]:
    user = dig(data, "entry_data", "ProfilePage", 0, "graphql", "user")
    if not user:
        raise ExtractionError("Profile data structure not found")
    return {
        "user_id": user.get("id"),
        "username": user.get("username"),
        "full_name": user.get("full_name"),
        "biography": user.get("biography"),
        "profile_pic_url": user.get("profile_pic_url_hd") or user.get("profile_pic_url"),
        "follower_count": edge_count(user, "edge_followed_by"),
        "following_count": edge_count(user, "edge_follow"),
        "post_count": edge_count(user, "edge_owner_to_timeline_media"),
        "is_verified": user.get("is_verified"),
        "is_private": user.get("is_private"),
        "is_business_account": user.get("is_business_account"),
        "business_category": user.get("business_category_name"),
        "external_url": user.get("external_url"),
        "profile_url": f"{INSTAGRAM_BASE}/{username}",
    }


def _location(node: Dict[str, Any], with_slug: bool = True) -> Optional[Dict[str, Any]]:
    location = node.get("location")
    if not location:
        return None
    result = {"id": location.get("id"), "name": location.get("name")}
    if with_slug:
        result["slug"] = location.get("slug")
    return result


def _dimensions(node: Dict[str, Any]) -> Dict[str, Any]:
    return {"width": dig(node, "dimensions", "width"), "height": dig(node, "dimensions", "height")}


def extract_post(data: Dict[str, Any], shortcode: str) -> Dict[str, Any]:
    media = dig(data, "entry_data", "PostPage", 0, "graphql", "shortcode_media")
    if not media:
        raise ExtractionError("Post data structure not found")

    owner = media.get("owner") or {}
    return {
        "post_id": media.get("id"),
        "shortcode": media.get("shortcode"),
        "post_url": post_url(shortcode),
        "type": media.get("__typename"),
        "caption": caption_of(media),
        "timestamp": media.get("taken_at_timestamp"),
        "owner": {
            "user_id": owner.get("id"),
            "username": owner.get("username"),
            "full_name": owner.get("full_name"),
            "profile_pic_url": owner.get("profile_pic_url"),
            "is_verified": owner.get("is_verified"),
        },
        "display_url": media.get("display_url"),
        "is_video": media.get("is_video"),
        "video_url": media.get("video_url"),
        "video_view_count": media.get("video_view_count"),
        "dimensions": _dimensions(media),
        "engagement": {
            "likes": edge_count(media, "edge_media_preview_like"),
            "comments": edge_count(media, "edge_media_to_parent_comment"),
        },
        "location": _location(media),
        "tagged_users": [
            dig(e, "node", "user", "username")
            for e in dig(media, "edge_media_to_tagged_user", "edges", default=[])
        ],
        "accessibility_caption": media.get("accessibility_caption"),
    }


def extract_posts(data: Dict[str, Any]) -> List[Dict[str, Any]]:
    user = dig(data, "entry_data", "ProfilePage", 0, "graphql", "user")
    if not user:
        raise ExtractionError("User data structure not found")

    posts = []
    for edge in dig(user, "edge_owner_to_timeline_media", "edges", default=[]):
        node = edge.get("node") or {}
        posts.append({
            "post_id": node.get("id"),
            "shortcode": node.get("shortcode"),
            "post_url": post_url(node.get("shortcode")),
            # GraphImage, GraphVideo or GraphSidecar
            "type": node.get("__typename"),
            "caption": caption_of(node),
            "timestamp": node.get("taken_at_timestamp"),
            "display_url": node.get("display_url"),
            "thumbnail_url": node.get("thumbnail_src"),
            "is_video": node.get("is_video"),
            "video_view_count": node.get("video_view_count"),
            "dimensions": _dimensions(node),
            "engagement": {
                "likes": edge_count(node, "edge_media_preview_like", "edge_liked_by"),
                "comments": edge_count(node, "edge_media_to_comment"),
            },
            "location": _location(node, with_slug=False),
            "accessibility_caption": node.get("accessibility_caption"),
        })
    return posts


def _comment_user(comment: Dict[str, Any]) -> Dict[str, Any]:
    owner = comment.get("owner") or {}
    return {
        "user_id": owner.get("id"),
        "username": owner.get("username"),
        "profile_picture": owner.get("profile_pic_url"),
        "is_verified": owner.get("is_verified"),
    }


def extract_comments(data: Dict[str, Any]) -> Dict[str, Any]:
    """Top-level comments with their threaded replies."""
    media = dig(data, "entry_data", "PostPage", 0, "graphql", "shortcode_media")
    if not media:
        raise ExtractionError("Post data structure not found")

    comments = []
    for edge in dig(media, "edge_media_to_parent_comment", "edges", default=[]):
        comment = edge.get("node") or {}
        replies = [
            {
                "comment_id": reply.get("id"),
                "user": _comment_user(reply),
                "text": reply.get("text"),
                "created_at": reply.get("created_at"),
                "like_count": edge_count(reply, "edge_liked_by"),
            }
            for reply in (
                e.get("node") or {} for e in dig(comment, "edge_threaded_comments", "edges", default=[])
            )
        ]
        comments.append({
            "comment_id": comment.get("id"),
            "user": _comment_user(comment),
            "text": comment.get("text"),
            "created_at": comment.get("created_at"),
            "like_count": edge_count(comment, "edge_liked_by"),
            "reply_count": edge_count(comment, "edge_threaded_comments"),
            "is_pinned": comment.get("pinned_comment_badge") is not None,
            "viewer_has_liked": comment.get("viewer_has_liked"),
            "replies": replies,
        })

    return {
        "comments": comments,
        "total_comments": edge_count(media, "edge_media_to_parent_comment"),
    }


def _user_result(user: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "type": "user",
        "user_id": user.get("pk"),
        "username": user.get("username"),
        "full_name": user.get("full_name"),
        "profile_picture": user.get("profile_pic_url"),
        "is_verified": user.get("is_verified"),
        "is_private": user.get("is_private"),
        "follower_count": user.get("follower_count"),
        "profile_url": f"{INSTAGRAM_BASE}/{user.get('username')}/",
    }


def _hashtag_result(hashtag: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "type": "hashtag",
        "name": hashtag.get("name"),
        "post_count": hashtag.get("media_count"),
        "hashtag_url": f"{INSTAGRAM_BASE}/explore/tags/{hashtag.get('name')}/",
    }


def extract_topsearch(payload: Dict[str, Any], search_type: str) -> List[Dict[str, Any]]:
    """Results from the topsearch JSON, filtered by ``search_type``."""
    results = []
    if search_type in ("users", "all"):
        results.extend(_user_result(item.get("user") or {}) for item in payload.get("users") or [])
    if search_type in ("hashtags", "all"):
        results.extend(_hashtag_result(item.get("hashtag") or {}) for item in payload.get("hashtags") or [])
    if search_type == "all":
        for item in payload.get("places") or []:
            place = item.get("place") or {}
            place_id = dig(place, "location", "pk")
            results.append({
                "type": "place",
                "place_id": place_id,
                "name": place.get("title"),
                "address": place.get("subtitle"),
                "location_url": f"{INSTAGRAM_BASE}/explore/locations/{place_id}/",
            })
    return results


def extract_search_page(data: Dict[str, Any], search_type: str) -> List[Dict[str, Any]]:
    """Results from the SearchPage entry of ``_sharedData``."""
    graphql = dig(data, "entry_data", "SearchPage", 0, "graphql", default={})
    results = []
    if search_type in ("users", "all"):
        results.extend(_user_result(user) for user in graphql.get("users") or [])
    if search_type in ("hashtags", "all"):
        results.extend(_hashtag_result(hashtag) for hashtag in graphql.get("hashtags") or [])
    if search_type in ("posts", "all"):
        for post in graphql.get("posts") or []:
            results.append({
                "type": "post",
                "post_id": post.get("id"),
                "shortcode": post.get("shortcode"),
                "post_url": post_url(post.get("shortcode")),
                "caption": caption_of(post),
                "display_url": post.get("display_url"),
                "is_video": post.get("is_video"),
                "like_count": edge_count(post, "edge_liked_by"),
                "comment_count": edge_count(post, "edge_media_to_comment"),
                "timestamp": post.get("taken_at_timestamp"),
                "owner_username": dig(post, "owner", "username"),
            })
    return results


class InstagramScraper(BaseScraper):
    """Scraper for Instagram profiles, posts, comments and search."""

    platform = "Instagram"

    def shared_data(self, url: str, what: str) -> Dict[str, Any]:
        html = self.fetch_html(url)
        return find_assigned_json(html, SHARED_DATA_MARKER, what)

    def profile(self, username: str) -> Dict[str, Any]:
        require_text(username, "username")
        clean = strip_prefix(username, "@")
        data = self.shared_data(f"{INSTAGRAM_BASE}/{clean}/", "profile data")
        result = extract_profile(data, clean)
        result["scraped_at"] = utc_now_iso()
        return result

    def post(self, shortcode: str) -> Dict[str, Any]:
        require_text(shortcode, "shortcode")
        data = self.shared_data(post_url(shortcode), "post data")
        result = extract_post(data, shortcode)
        result["scraped_at"] = utc_now_iso()
        return result

    def posts(self, username: str, limit: int = 12) -> Dict[str, Any]:
        require_text(username, "username")
        clean = strip_prefix(username, "@")
        data = self.shared_data(f"{INSTAGRAM_BASE}/{clean}/", "posts data")
        posts = extract_posts(data)[:limit]
        return {
            "username": clean,
            "post_count": len(posts),
            "posts": posts,
            "scraped_at": utc_now_iso(),
        }

    def comments(self, shortcode: str, limit: int = 50) -> Dict[str, Any]:
        require_text(shortcode, "shortcode")
        data = self.shared_data(post_url(shortcode), "comments data")
        extracted = extract_comments(data)
        comments = extracted["comments"][:limit]
        return {
            "shortcode": shortcode,
            "post_url": post_url(shortcode),
            "comment_count": len(comments),
            "total_comments": extracted["total_comments"],
            "comments": comments,
            "scraped_at": utc_now_iso(),
        }

    def search(self, query: str, limit: int = 20, type: str = "all") -> Dict[str, Any]:
        """
        Search users, hashtags, places and posts.

        The topsearch endpoint answers JSON for most clients; when it serves
        an HTML page instead, the SearchPage data of that page is used.
        """
        if not query or not isinstance(query, str):
            raise InvalidInputError("Invalid search query provided")
        if type not in SEARCH_TYPES:
            raise InvalidInputError(f"Invalid search type. Must be one of: {', '.join(SEARCH_TYPES)}")

        response = self.fetch(
            f"{INSTAGRAM_BASE}/web/search/topsearch/",
            headers=self.get_headers({"X-Requested-With": "XMLHttpRequest"}, accept=JSON_ACCEPT),
            params={"query": query},
        )
        body = self._checked(response).text

        try:
            results = extract_topsearch(json.loads(body), type)
        except json.JSONDecodeError:
            logger.debug("topsearch returned HTML, reading SearchPage data")
            data = find_assigned_json(body, SHARED_DATA_MARKER, "search data")
            results = extract_search_page(data, type)

        results = results[:limit]
        return {
            "query": query,
            "search_type": type,
            "result_count": len(results),
            "results": results,
            "scraped_at": utc_now_iso(),
        }


def scrape_profile(username: str, client: Optional[httpx.Client] = None) -> Dict[str, Any]:
    """
    Scrape an Instagram profile.

    Args:
        username: Account name, with or without a leading @
        client: Optional httpx client

    Returns:
        Envelope dict with profile fields and counts
    """
    scraper = InstagramScraper(client=client)
    return scraper.run(scraper.profile, username)


def scrape_post(shortcode: str, client: Optional[httpx.Client] = None) -> Dict[str, Any]:
    """Scrape a single post by shortcode."""
    scraper = InstagramScraper(client=client)
    return scraper.run(scraper.post, shortcode)


def scrape_posts(username: str, limit: int = 12, client: Optional[httpx.Client] = None) -> Dict[str, Any]:
    """Scrape the posts rendered on a profile page."""
    scraper = InstagramScraper(client=client)
    return scraper.run(scraper.posts, username, limit=limit)


def scrape_comments(shortcode: str, limit: int = 50, client: Optional[httpx.Client] = None) -> Dict[str, Any]:
    """Scrape threaded comments of a post."""
    scraper = InstagramScraper(client=client)
    return scraper.run(scraper.comments, shortcode, limit=limit)


def search_instagram(
    query: str,
    limit: int = 20,
    type: str = "all",
    client: Optional[httpx.Client] = None,
) -> Dict[str, Any]:
    """
    Search Instagram.

    Args:
        query: Search terms
        limit: Maximum results returned
        type: all, users, hashtags or posts
        client: Optional httpx client
    """
    scraper = InstagramScraper(client=client)
    return scraper.run(scraper.search, query, limit=limit, type=type, metadata={"search_type": type})
