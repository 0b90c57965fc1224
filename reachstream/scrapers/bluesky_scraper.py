"""
Bluesky Scraper

Uses the public AppView XRPC endpoints (no authentication):
- app.bsky.actor.getProfile
- app.bsky.feed.getPostThread
- app.bsky.feed.getAuthorFeed
"""

import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx

from reachstream.scrapers.base import BaseScraper, check_limit, require_text
from reachstream.scrapers.errors import ExtractionError, InvalidInputError
from reachstream.scrapers.extract import dig, parse_iso, safe_average, strip_prefix, to_fixed, utc_now_iso

logger = logging.getLogger(__name__)

XRPC_BASE = "https://public.api.bsky.app/xrpc"
PROFILE_ENDPOINT = f"{XRPC_BASE}/app.bsky.actor.getProfile"
THREAD_ENDPOINT = f"{XRPC_BASE}/app.bsky.feed.getPostThread"
AUTHOR_FEED_ENDPOINT = f"{XRPC_BASE}/app.bsky.feed.getAuthorFeed"

POST_URL_RE = re.compile(r"profile/([^/]+)/post/([^/?]+)")

FACET_TAG = "app.bsky.richtext.facet#tag"
FACET_MENTION = "app.bsky.richtext.facet#mention"
FACET_LINK = "app.bsky.richtext.facet#link"


def _post_url(handle: Optional[str], uri: str) -> str:
    return f"https://bsky.app/profile/{handle}/post/{uri.split('/')[-1]}"


def extract_facets(record: Dict[str, Any]) -> Dict[str, List[str]]:
    """Split rich-text facets into hashtags, mention DIDs and links."""
    facets: Dict[str, List[str]] = {"hashtags": [], "mentions": [], "links": []}
    for facet in record.get("facets") or []:
        for feature in facet.get("features") or []:
            kind = feature.get("$type")
            if kind == FACET_TAG:
                facets["hashtags"].append(feature.get("tag"))
            elif kind == FACET_MENTION:
                facets["mentions"].append(feature.get("did"))
            elif kind == FACET_LINK:
                facets["links"].append(feature.get("uri"))
    return facets


def extract_media(embed: Optional[Dict[str, Any]], with_aspect_ratio: bool = True) -> List[Dict[str, Any]]:
    media = []
    for img in dig(embed, "images", default=[]):
        item = {
            "type": "image",
            "url": img.get("fullsize"),
            "thumbnail": img.get("thumb"),
            "alt": img.get("alt") or "",
        }
        if with_aspect_ratio:
            item["aspect_ratio"] = img.get("aspectRatio")
        media.append(item)

    video = dig(embed, "video")
    if video and with_aspect_ratio:
        media.append({
            "type": "video",
            "url": video.get("playlist"),
            "thumbnail": video.get("thumbnail"),
            "aspect_ratio": video.get("aspectRatio"),
        })
    return media


def extract_external_link(embed: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    external = dig(embed, "external")
    if not external:
        return None
    return {
        "url": external.get("uri"),
        "title": external.get("title"),
        "description": external.get("description"),
        "thumbnail": external.get("thumb"),
    }


def _stats(post: Dict[str, Any], quotes: bool = True) -> Dict[str, int]:
    stats = {
        "likes": post.get("likeCount") or 0,
        "reposts": post.get("repostCount") or 0,
        "replies": post.get("replyCount") or 0,
    }
    if quotes:
        stats["quotes"] = post.get("quoteCount") or 0
    return stats


def extract_profile(data: Dict[str, Any], handle: str, now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Map a getProfile response to the profile output.

    Args:
        data: getProfile JSON
        handle: Handle used for the request (without @)
        now: Reference time for per-day metrics

    Returns:
        Profile dict
    """
    followers = data.get("followersCount") or 0
    follows = data.get("followsCount") or 0
    posts = data.get("postsCount") or 0

    profile = {
        "did": data.get("did"),
        "handle": data.get("handle"),
        "display_name": data.get("displayName") or "",
        "description": data.get("description") or "",
        "avatar": data.get("avatar"),
        "banner": data.get("banner"),
        "follower_count": followers,
        "following_count": follows,
        "post_count": posts,
        "created_at": data.get("createdAt"),
        "indexed_at": data.get("indexedAt"),
        "is_verified": dig(data, "associated", "labeler", default=False),
        "labels": data.get("labels") or [],
        "profile_url": f"https://bsky.app/profile/{handle}",
    }

    if posts > 0 and followers > 0:
        now = now or datetime.now(timezone.utc)
        created = parse_iso(data.get("createdAt"))
        days = (now - created).days if created else 0
        profile["metrics"] = {
            "avg_posts_per_day": to_fixed(posts / max(1, days), 2),
            "follower_to_following_ratio": to_fixed(followers / follows, 2) if follows > 0 else followers,
        }

    return profile


def extract_post_thread(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Map a getPostThread response to the post output.

    Raises:
        ExtractionError: If the thread carries no post
    """
    thread = data.get("thread") or {}
    post = thread.get("post")
    if not post:
        raise ExtractionError("Post not found")

    record = post.get("record") or {}
    embed = post.get("embed")
    author = post.get("author") or {}

    quoted_post = None
    quoted = dig(embed, "record")
    if quoted:
        quoted_post = {
            "uri": quoted.get("uri"),
            "cid": quoted.get("cid"),
            "author": {
                "did": dig(quoted, "author", "did"),
                "handle": dig(quoted, "author", "handle"),
                "display_name": dig(quoted, "author", "displayName"),
            },
            "text": dig(quoted, "value", "text", default=""),
        }

    replies = []
    for reply in (thread.get("replies") or [])[:10]:
        reply_post = reply.get("post")
        if not reply_post:
            continue
        replies.append({
            "uri": reply_post.get("uri"),
            "author": {
                "handle": dig(reply_post, "author", "handle"),
                "display_name": dig(reply_post, "author", "displayName"),
                "avatar": dig(reply_post, "author", "avatar"),
            },
            "text": dig(reply_post, "record", "text"),
            "created_at": dig(reply_post, "record", "createdAt"),
            "stats": _stats(reply_post, quotes=False),
        })

    parent_post = None
    parent = dig(thread, "parent", "post")
    if parent:
        parent_post = {
            "uri": parent.get("uri"),
            "author": {
                "handle": dig(parent, "author", "handle"),
                "display_name": dig(parent, "author", "displayName"),
            },
            "text": dig(parent, "record", "text"),
            "created_at": dig(parent, "record", "createdAt"),
        }

    return {
        "uri": post.get("uri"),
        "cid": post.get("cid"),
        "author": {
            "did": author.get("did"),
            "handle": author.get("handle"),
            "display_name": author.get("displayName"),
            "avatar": author.get("avatar"),
            "description": author.get("description"),
        },
        "text": record.get("text"),
        "created_at": record.get("createdAt"),
        "media": extract_media(embed),
        "external_link": extract_external_link(embed),
        "quoted_post": quoted_post,
        "facets": extract_facets(record),
        "stats": _stats(post),
        "parent_post": parent_post,
        "top_replies": replies,
        "url": _post_url(author.get("handle"), post.get("uri", "")),
    }


def extract_feed_post(item: Dict[str, Any]) -> Dict[str, Any]:
    """Map one getAuthorFeed item."""
    post = item.get("post") or {}
    record = post.get("record") or {}
    author = post.get("author") or {}
    embed = post.get("embed")
    return {
        "uri": post.get("uri"),
        "cid": post.get("cid"),
        "author": {
            "did": author.get("did"),
            "handle": author.get("handle"),
            "display_name": author.get("displayName"),
            "avatar": author.get("avatar"),
        },
        "text": record.get("text"),
        "created_at": record.get("createdAt"),
        "media": extract_media(embed, with_aspect_ratio=False),
        "external_link": extract_external_link(embed),
        "facets": extract_facets(record),
        "stats": _stats(post),
        "url": _post_url(author.get("handle"), post.get("uri", "")),
    }


def extract_author_feed(data: Dict[str, Any], handle: str) -> Dict[str, Any]:
    """Map a getAuthorFeed response with summary statistics."""
    posts = [extract_feed_post(item) for item in data.get("feed") or []]

    total_likes = sum(p["stats"]["likes"] for p in posts)
    total_reposts = sum(p["stats"]["reposts"] for p in posts)
    total_replies = sum(p["stats"]["replies"] for p in posts)

    with_media = sum(1 for p in posts if p["media"])
    with_links = sum(1 for p in posts if p["external_link"] is not None)
    text_only = sum(1 for p in posts if not p["media"] and p["external_link"] is None)

    cursor = data.get("cursor")
    return {
        "handle": handle,
        "profile_url": f"https://bsky.app/profile/{handle}",
        "total_posts": len(posts),
        "posts": posts,
        "summary_stats": {
            "total_likes": total_likes,
            "total_reposts": total_reposts,
            "total_replies": total_replies,
            "avg_likes_per_post": safe_average(total_likes, len(posts)),
            "avg_reposts_per_post": safe_average(total_reposts, len(posts)),
            "avg_replies_per_post": safe_average(total_replies, len(posts)),
        },
        "content_breakdown": {
            "with_media": with_media,
            "with_links": with_links,
            "text_only": text_only,
        },
        "cursor": cursor or None,
        "has_more": bool(cursor),
    }


class BlueskyScraper(BaseScraper):
    """Scraper for Bluesky profiles, posts and author feeds."""

    platform = "Bluesky API"

    def profile(self, handle: str) -> Dict[str, Any]:
        require_text(handle, "handle")
        clean = strip_prefix(handle, "@")
        data = self.fetch_json(PROFILE_ENDPOINT, params={"actor": clean})
        result = extract_profile(data, clean)
        result["scraped_at"] = utc_now_iso()
        return result

    def resolve_post_uri(self, post_uri: str) -> str:
        """Turn a bsky.app post URL into an at:// URI, resolving the author DID."""
        if "bsky.app" not in post_uri:
            return post_uri
        match = POST_URL_RE.search(post_uri)
        if not match:
            return post_uri
        handle, rkey = match.group(1), match.group(2)
        profile = self.fetch_json(PROFILE_ENDPOINT, params={"actor": handle})
        return f"at://{profile.get('did')}/app.bsky.feed.post/{rkey}"

    def post(self, post_uri: str) -> Dict[str, Any]:
        if not post_uri or not isinstance(post_uri, str):
            raise InvalidInputError("Invalid post URI or URL provided")
        at_uri = self.resolve_post_uri(post_uri)
        data = self.fetch_json(THREAD_ENDPOINT, params={"uri": at_uri})
        result = extract_post_thread(data)
        result["scraped_at"] = utc_now_iso()
        return result

    def posts(self, handle: str, limit: int = 20, cursor: Optional[str] = None) -> Dict[str, Any]:
        require_text(handle, "handle")
        check_limit(limit, 1, 100)
        clean = strip_prefix(handle, "@")

        params: Dict[str, Any] = {"actor": clean, "limit": limit}
        if cursor:
            params["cursor"] = cursor
        data = self.fetch_json(AUTHOR_FEED_ENDPOINT, params=params)

        result = extract_author_feed(data, clean)
        result["scraped_at"] = utc_now_iso()
        return result


def scrape_profile(handle: str, client: Optional[httpx.Client] = None) -> Dict[str, Any]:
    """
    Scrape a Bluesky profile.

    Args:
        handle: Bluesky handle (e.g. "jay.bsky.team", leading @ allowed)
        client: Optional httpx client

    Returns:
        Response envelope dict
    """
    scraper = BlueskyScraper(client=client)
    return scraper.run(scraper.profile, handle)


def scrape_post(post_uri: str, client: Optional[httpx.Client] = None) -> Dict[str, Any]:
    """Scrape a single post by at:// URI or bsky.app URL."""
    scraper = BlueskyScraper(client=client)
    return scraper.run(scraper.post, post_uri)


def scrape_posts(
    handle: str,
    limit: int = 20,
    cursor: Optional[str] = None,
    client: Optional[httpx.Client] = None,
) -> Dict[str, Any]:
    """Scrape an author feed page with summary statistics."""
    scraper = BlueskyScraper(client=client)
    return scraper.run(scraper.posts, handle, limit=limit, cursor=cursor)
