"""
Facebook Scraper

Scrapes public Facebook pages from their server-rendered HTML:
- Profile details from Open Graph meta tags
- Posts from data-ft blocks, falling back to ld+json postings
"""

import html as html_lib
import json
import logging
import re
from typing import Any, Dict, List, Optional

import httpx

from reachstream.scrapers.base import BaseScraper, require_text
from reachstream.scrapers.extract import find_ld_json, iso_from_timestamp, meta_content, strip_prefix, utc_now_iso

logger = logging.getLogger(__name__)

FACEBOOK_BASE = "https://www.facebook.com"

FOLLOWER_RE = re.compile(r"(\d{1,3}(?:,\d{3})*(?:\.\d+)?[KMB]?)\s+(?:followers?|friends?)", re.IGNORECASE)
# A post runs until the next data-ft block, nested divs included
POST_BLOCK_RE = re.compile(r'<div[^>]*data-ft="([^"]*)"[^>]*>([\s\S]*?)(?=<div[^>]*data-ft=|\Z)')
USER_CONTENT_RE = re.compile(r'<div[^>]*class="[^"]*userContent[^"]*"[^>]*>(.*?)</div>', re.DOTALL)
UTIME_RE = re.compile(r'data-utime="(\d+)"')
LIKES_RE = re.compile(r"(\d+)\s+(?:likes?|reactions?)", re.IGNORECASE)
COMMENTS_RE = re.compile(r"(\d+)\s+comments?", re.IGNORECASE)
SHARES_RE = re.compile(r"(\d+)\s+shares?", re.IGNORECASE)
IMG_RE = re.compile(r'<img[^>]+src="([^"]+)"')
TAG_RE = re.compile(r"<[^>]+>")

POSTING_TYPES = ("SocialMediaPosting", "BlogPosting")


def _count(pattern: re.Pattern, text: str) -> int:
    match = pattern.search(text)
    return int(match.group(1).replace(",", "")) if match else 0


def extract_profile(html: str, username: str) -> Dict[str, Any]:
    """Profile fields from og:* meta tags plus a follower-count string."""
    follower_match = FOLLOWER_RE.search(html)
    return {
        "username": username,
        "name": meta_content(html, "og:title"),
        "description": meta_content(html, "og:description"),
        "profile_picture_url": meta_content(html, "og:image"),
        "follower_count": follower_match.group(1) if follower_match else None,
        "profile_url": meta_content(html, "og:url") or f"{FACEBOOK_BASE}/{username}",
    }


def _parse_post_block(attr: str, body: str, username: str) -> Optional[Dict[str, Any]]:
    try:
        post_data = json.loads(html_lib.unescape(attr))
    except json.JSONDecodeError:
        return None
    if not isinstance(post_data, dict):
        return None

    text_match = USER_CONTENT_RE.search(body)
    text = TAG_RE.sub("", text_match.group(1)).strip() if text_match else ""
    time_match = UTIME_RE.search(body)
    post_id = post_data.get("top_level_post_id") or post_data.get("content_id")

    media_urls = [
        src for src in IMG_RE.findall(body)
        if "emoji" not in src and "icon" not in src
    ]

    if not post_id or not text:
        return None

    if media_urls:
        post_type = "album" if len(media_urls) > 1 else "photo"
    else:
        post_type = "text"

    return {
        "post_id": post_id,
        "text": text,
        "created_at": iso_from_timestamp(time_match.group(1)) if time_match else None,
        "post_url": f"{FACEBOOK_BASE}/{username}/posts/{post_id}",
        "engagement": {
            "likes": _count(LIKES_RE, body),
            "comments": _count(COMMENTS_RE, body),
            "shares": _count(SHARES_RE, body),
        },
        "media_urls": media_urls,
        "post_type": post_type,
    }


def _parse_ld_posting(data: Dict[str, Any]) -> Dict[str, Any]:
    image = data.get("image")
    if image:
        media_urls = image if isinstance(image, list) else [image]
    else:
        media_urls = []
    return {
        "post_id": data.get("identifier") or data.get("@id"),
        "text": data.get("articleBody") or data.get("headline") or "",
        "created_at": data.get("datePublished") or utc_now_iso(),
        "post_url": data.get("url") or data.get("@id"),
        "engagement": {
            "likes": 0,
            "comments": data.get("commentCount") or 0,
            "shares": 0,
        },
        "media_urls": media_urls,
        "post_type": "photo" if image else "text",
    }


def extract_posts(html: str, username: str) -> List[Dict[str, Any]]:
    """
    Extract posts from a page.

    data-ft blocks are tried first; when none yield a post, ld+json
    SocialMediaPosting / BlogPosting entries are used.
    """
    posts = []
    for attr, body in POST_BLOCK_RE.findall(html):
        post = _parse_post_block(attr, body, username)
        if post:
            posts.append(post)

    if not posts:
        posts = [
            _parse_ld_posting(item) for item in find_ld_json(html)
            if isinstance(item, dict) and item.get("@type") in POSTING_TYPES
        ]
    return posts


class FacebookScraper(BaseScraper):
    """Scraper for public Facebook pages."""

    platform = "Facebook"

    def profile(self, username: str) -> Dict[str, Any]:
        require_text(username, "username")
        clean = strip_prefix(username, "@")
        html = self.fetch_html(f"{FACEBOOK_BASE}/{clean}")
        result = extract_profile(html, clean)
        result["scraped_at"] = utc_now_iso()
        return result

    def posts(self, username: str, limit: int = 20) -> Dict[str, Any]:
        require_text(username, "username")
        clean = strip_prefix(username, "@")
        html = self.fetch_html(f"{FACEBOOK_BASE}/{clean}")
        posts = extract_posts(html, clean)[:limit]
        return {
            "username": clean,
            "post_count": len(posts),
            "posts": posts,
            "scraped_at": utc_now_iso(),
        }


def scrape_profile(username: str, client: Optional[httpx.Client] = None) -> Dict[str, Any]:
    """Scrape a Facebook page profile."""
    scraper = FacebookScraper(client=client)
    return scraper.run(scraper.profile, username)


def scrape_posts(username: str, limit: int = 20, client: Optional[httpx.Client] = None) -> Dict[str, Any]:
    """Scrape recent posts from a Facebook page."""
    scraper = FacebookScraper(client=client)
    return scraper.run(scraper.posts, username, limit=limit)
