"""
Twitter Scraper

Reads the server-rendered ``window.__INITIAL_STATE__`` store of the public
web client for profiles, timelines and search results.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from reachstream.scrapers.base import BaseScraper, require_text
from reachstream.scrapers.errors import ExtractionError, InvalidInputError
from reachstream.scrapers.extract import dig, find_assigned_json, strip_prefix, utc_now_iso

logger = logging.getLogger(__name__)

TWITTER_BASE = "https://twitter.com"
STATE_MARKER = "window.__INITIAL_STATE__"


def _entities(tweet: Dict[str, Any]) -> Dict[str, Any]:
    entities = tweet.get("entities") or {}
    return {
        "media": [
            {"type": m.get("type"), "url": m.get("media_url_https")}
            for m in entities.get("media") or []
        ],
        "hashtags": [h.get("text") for h in entities.get("hashtags") or []],
        "mentions": [m.get("screen_name") for m in entities.get("user_mentions") or []],
        "urls": [u.get("expanded_url") for u in entities.get("urls") or []],
    }


def _engagement(tweet: Dict[str, Any]) -> Dict[str, int]:
    return {
        "retweets": tweet.get("retweet_count") or 0,
        "likes": tweet.get("favorite_count") or 0,
        "replies": tweet.get("reply_count") or 0,
    }


def extract_profile(state: Dict[str, Any], username: str) -> Dict[str, Any]:
    """
    Find ``username`` (case-insensitive) in the users store.

    Raises:
        ExtractionError: If the store or the user is missing
    """
    users = dig(state, "users", "entities", "users")
    if not users:
        raise ExtractionError("Profile data structure not found")

    wanted = username.lower()
    user = next(
        (u for u in users.values() if (u.get("screen_name") or "").lower() == wanted),
        None,
    )
    if not user:
        raise ExtractionError("User not found in data")

    image = user.get("profile_image_url_https")
    return {
        "user_id": user.get("id_str"),
        "username": user.get("screen_name"),
        "display_name": user.get("name"),
        "description": user.get("description"),
        "profile_image_url": image.replace("_normal", "_400x400", 1) if image else None,
        "profile_banner_url": user.get("profile_banner_url"),
        "follower_count": user.get("followers_count") or 0,
        "following_count": user.get("friends_count") or 0,
        "tweet_count": user.get("statuses_count") or 0,
        "is_verified": user.get("verified") or user.get("is_blue_verified") or False,
        "is_protected": user.get("protected") or False,
        "location": user.get("location"),
        "url": user.get("url"),
        "created_at": user.get("created_at"),
        "profile_url": f"{TWITTER_BASE}/{username}",
    }


def extract_feed(state: Dict[str, Any], username: str) -> List[Dict[str, Any]]:
    tweets = dig(state, "tweets", "entities", "tweets", default={})
    results = []
    for tweet in tweets.values():
        results.append({
            "tweet_id": tweet.get("id_str"),
            "text": tweet.get("full_text") or tweet.get("text"),
            "created_at": tweet.get("created_at"),
            "user": {
                "username": dig(tweet, "user", "screen_name"),
                "display_name": dig(tweet, "user", "name"),
                "verified": dig(tweet, "user", "verified"),
                "profile_image": dig(tweet, "user", "profile_image_url_https"),
            },
            "engagement": _engagement(tweet),
            **_entities(tweet),
            "is_retweet": bool(tweet.get("retweeted_status")),
            "is_quote": bool(tweet.get("quoted_status")),
            "tweet_url": f"{TWITTER_BASE}/{username}/status/{tweet.get('id_str')}",
        })
    return results


def extract_search(state: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Tweets from ``tweet-*`` timeline entries, joined with the users store."""
    results = []
    for entry in dig(state, "timeline", "entries", default=[]):
        if not (entry.get("entryId") or "").startswith("tweet-"):
            continue
        tweet = dig(entry, "content", "item", "content", "tweet")
        if not tweet:
            continue

        user = dig(state, "entities", "users", tweet.get("user_id_str") or "", default={})
        engagement = _engagement(tweet)
        engagement["quotes"] = tweet.get("quote_count") or 0
        results.append({
            "tweet_id": tweet.get("id_str"),
            "text": tweet.get("full_text") or tweet.get("text"),
            "created_at": tweet.get("created_at"),
            "user": {
                "username": user.get("screen_name"),
                "display_name": user.get("name"),
                "verified": user.get("verified"),
                "profile_image": user.get("profile_image_url_https"),
                "follower_count": user.get("followers_count"),
            },
            "engagement": engagement,
            **_entities(tweet),
            "is_retweet": bool(tweet.get("retweeted_status")),
            "is_quote": bool(tweet.get("quoted_status")),
            "tweet_url": f"{TWITTER_BASE}/{user.get('screen_name')}/status/{tweet.get('id_str')}",
            "relevance_score": entry.get("sortIndex"),
        })
    return results


class TwitterScraper(BaseScraper):
    """Scraper for Twitter profiles, user timelines and search."""

    platform = "Twitter"

    def profile(self, username: str) -> Dict[str, Any]:
        require_text(username, "username")
        clean = strip_prefix(username, "@")
        html = self.fetch_html(f"{TWITTER_BASE}/{clean}")
        state = find_assigned_json(html, STATE_MARKER, "profile data")
        result = extract_profile(state, clean)
        result["scraped_at"] = utc_now_iso()
        return result

    def feed(self, username: str, limit: int = 20) -> Dict[str, Any]:
        require_text(username, "username")
        clean = strip_prefix(username, "@")
        html = self.fetch_html(f"{TWITTER_BASE}/{clean}")
        state = find_assigned_json(html, STATE_MARKER, "feed data")
        tweets = extract_feed(state, clean)[:limit]
        return {
            "username": clean,
            "tweet_count": len(tweets),
            "tweets": tweets,
            "scraped_at": utc_now_iso(),
        }

    def search(self, query: str, limit: int = 20, filter: str = "top") -> Dict[str, Any]:
        if not query or not isinstance(query, str):
            raise InvalidInputError("Invalid search query provided")

        params = {"q": query}
        if filter and filter != "top":
            params["f"] = filter
        html = self.fetch_html(f"{TWITTER_BASE}/search", params=params)
        state = find_assigned_json(html, STATE_MARKER, "search data")
        tweets = extract_search(state)[:limit]
        return {
            "query": query,
            "result_count": len(tweets),
            "tweets": tweets,
            "scraped_at": utc_now_iso(),
        }


def scrape_profile(username: str, client: Optional[httpx.Client] = None) -> Dict[str, Any]:
    """Scrape a Twitter profile."""
    scraper = TwitterScraper(client=client)
    return scraper.run(scraper.profile, username)


def scrape_feed(username: str, limit: int = 20, client: Optional[httpx.Client] = None) -> Dict[str, Any]:
    """Scrape a user's recent tweets."""
    scraper = TwitterScraper(client=client)
    return scraper.run(scraper.feed, username, limit=limit)


def search_tweets(
    query: str,
    limit: int = 20,
    filter: str = "top",
    client: Optional[httpx.Client] = None,
) -> Dict[str, Any]:
    """
    Search tweets.

    Args:
        query: Search terms
        limit: Maximum tweets returned
        filter: "top" or a search tab value sent as ``f=`` (live, user, media)
    """
    scraper = TwitterScraper(client=client)
    return scraper.run(scraper.search, query, limit=limit, filter=filter, metadata={"filter_used": filter})
