"""
Reddit Scraper

Scrapes Reddit listings and comment trees using Reddit's public JSON endpoints.
No authentication required - uses .json suffix on URLs.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from reachstream.scrapers.base import BaseScraper, check_limit, require_text
from reachstream.scrapers.errors import ExtractionError, InvalidInputError
from reachstream.scrapers.extract import dig, utc_now_iso

logger = logging.getLogger(__name__)

# Reddit JSON endpoint patterns
REDDIT_BASE = "https://www.reddit.com"
LISTING_ENDPOINT = "{base}/r/{subreddit}/{sort}.json"
COMMENTS_ENDPOINT = "{base}/r/{subreddit}/comments/{post_id}.json"

SORTS = ("hot", "new", "top", "rising")


def clean_subreddit(subreddit: str) -> str:
    """Normalize "r/python", "/r/python/" and "python" to "python"."""
    return subreddit.replace("r/", "", 1).strip("/")


def _parse_post(post_data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Parse a t3 listing child.

    Args:
        post_data: The ``data`` object of a t3 child

    Returns:
        Post dict
    """
    thumbnail = post_data.get("thumbnail")
    return {
        "post_id": post_data.get("id"),
        "title": post_data.get("title"),
        "author": post_data.get("author"),
        "subreddit": post_data.get("subreddit"),
        "subreddit_subscribers": post_data.get("subreddit_subscribers"),
        "created_utc": post_data.get("created_utc"),
        "score": post_data.get("score"),
        "upvote_ratio": post_data.get("upvote_ratio"),
        "num_comments": post_data.get("num_comments"),
        "permalink": f"{REDDIT_BASE}{post_data.get('permalink', '')}",
        "url": post_data.get("url"),
        "is_self": post_data.get("is_self"),
        "selftext": post_data.get("selftext"),
        "thumbnail": thumbnail if thumbnail != "self" else None,
        "is_video": post_data.get("is_video"),
        "awards": len(post_data.get("all_awardings") or []),
        "distinguished": post_data.get("distinguished"),
        "stickied": post_data.get("stickied"),
        "over_18": post_data.get("over_18"),
        "spoiler": post_data.get("spoiler"),
        "locked": post_data.get("locked"),
    }


def _parse_comment(child: Dict[str, Any], depth: int = 0) -> Optional[Dict[str, Any]]:
    """
    Parse a t1 comment and its reply tree.

    Non-comment children ("more" stubs) return None.

    Args:
        child: Listing child with ``kind`` and ``data``
        depth: Nesting depth of this comment

    Returns:
        Comment dict or None
    """
    if not child or child.get("kind") != "t1":
        return None

    comment = child.get("data") or {}
    replies = []
    for reply in dig(comment, "replies", "data", "children", default=[]):
        parsed = _parse_comment(reply, depth + 1)
        if parsed:
            replies.append(parsed)

    return {
        "comment_id": comment.get("id"),
        "author": comment.get("author"),
        "text": comment.get("body"),
        "score": comment.get("score"),
        "created_utc": comment.get("created_utc"),
        "is_submitter": comment.get("is_submitter"),
        "stickied": comment.get("stickied"),
        "distinguished": comment.get("distinguished"),
        "depth": depth,
        "awards": len(comment.get("all_awardings") or []),
        "replies": replies,
    }


def extract_posts(data: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Posts from a subreddit listing response."""
    children = dig(data, "data", "children")
    if children is None:
        raise ExtractionError("Invalid Reddit response format")
    return [_parse_post(child.get("data") or {}) for child in children if child.get("kind") == "t3"]


def extract_comments(data: Any) -> Dict[str, Any]:
    """Post summary and comment tree from a comments response."""
    if not isinstance(data, list) or len(data) < 2:
        raise ExtractionError("Invalid Reddit response format")

    post_data = dig(data, 0, "data", "children", 0, "data", default={})
    comments = []
    for child in dig(data, 1, "data", "children", default=[]):
        parsed = _parse_comment(child)
        if parsed:
            comments.append(parsed)

    return {
        "post": {
            "post_id": post_data.get("id"),
            "title": post_data.get("title"),
            "author": post_data.get("author"),
            "subreddit": post_data.get("subreddit"),
            "score": post_data.get("score"),
            "num_comments": post_data.get("num_comments"),
            "permalink": f"{REDDIT_BASE}{post_data.get('permalink', '')}",
        },
        "comment_count": len(comments),
        "comments": comments,
    }


class RedditScraper(BaseScraper):
    """
    Scraper for Reddit posts and comments.

    Uses Reddit's public JSON API (appending .json to URLs).
    """

    platform = "Reddit"

    def posts(self, subreddit: str, limit: int = 25, sort: str = "hot") -> Dict[str, Any]:
        require_text(subreddit, "subreddit")
        check_limit(limit, 1, 100)
        if sort not in SORTS:
            raise InvalidInputError(f"Sort must be one of: {', '.join(SORTS)}")

        name = clean_subreddit(subreddit)
        url = LISTING_ENDPOINT.format(base=REDDIT_BASE, subreddit=name, sort=sort)
        data = self.fetch_json(url, params={"limit": limit})

        posts = extract_posts(data)
        logger.debug(f"Found {len(posts)} posts in r/{name}")
        return {
            "subreddit": name,
            "sort": sort,
            "post_count": len(posts),
            "posts": posts,
            "scraped_at": utc_now_iso(),
        }

    def comments(self, post_id: str, subreddit: str, limit: int = 50) -> Dict[str, Any]:
        require_text(post_id, "post ID")
        require_text(subreddit, "subreddit")

        name = clean_subreddit(subreddit)
        url = COMMENTS_ENDPOINT.format(base=REDDIT_BASE, subreddit=name, post_id=post_id)
        data = self.fetch_json(url, params={"limit": limit})

        result = extract_comments(data)
        result["scraped_at"] = utc_now_iso()
        return result


def scrape_posts(
    subreddit: str,
    limit: int = 25,
    sort: str = "hot",
    client: Optional[httpx.Client] = None,
) -> Dict[str, Any]:
    """
    Scrape a subreddit listing.

    Args:
        subreddit: Subreddit name (with or without r/)
        limit: Number of posts (1-100)
        sort: hot, new, top or rising

    Returns:
        Response envelope dict
    """
    scraper = RedditScraper(client=client)
    return scraper.run(scraper.posts, subreddit, limit=limit, sort=sort)


def scrape_comments(
    post_id: str,
    subreddit: str,
    limit: int = 50,
    client: Optional[httpx.Client] = None,
) -> Dict[str, Any]:
    """Scrape a post and its comment tree."""
    scraper = RedditScraper(client=client)
    return scraper.run(scraper.comments, post_id, subreddit, limit=limit)
