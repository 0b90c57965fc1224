"""
YouTube Shorts

Channel Shorts tabs, continuation paging through the InnerTube browse API,
and the Shorts shelf of the trending feed.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from reachstream.scrapers.base import BaseScraper, check_limit, require_text
from reachstream.scrapers.errors import ExtractionError
from reachstream.scrapers.extract import dig, find_assigned_json, parse_view_count, safe_average, utc_now_iso
from reachstream.scrapers.youtube_scraper import (
    INITIAL_DATA_MARKER,
    YOUTUBE_BASE,
    browse_tabs,
    channel_url,
)

logger = logging.getLogger(__name__)

BROWSE_API = f"{YOUTUBE_BASE}/youtubei/v1/browse"
TRENDING_SHORTS_URL = f"{YOUTUBE_BASE}/feed/trending"
TRENDING_SHORTS_PARAM = "6gQJRkVleHBsb3Jl"

# InnerTube rejects browse calls without a client context
WEB_CLIENT_CONTEXT = {"client": {"clientName": "WEB", "clientVersion": "2.20231201.00.00"}}


def shorts_url(video_id: Optional[str]) -> str:
    return f"{YOUTUBE_BASE}/shorts/{video_id}"


def _reels(contents: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [
        reel for reel in (dig(item, "richItemRenderer", "content", "reelItemRenderer") for item in contents)
        if reel
    ]


def _shorts_tab_contents(data: Dict[str, Any]) -> List[Dict[str, Any]]:
    tab = next(
        (
            t for t in browse_tabs(data)
            if dig(t, "tabRenderer", "title") == "Shorts"
            or "/shorts" in dig(t, "tabRenderer", "endpoint", "browseEndpoint", "canonicalBaseUrl", default="")
        ),
        None,
    )
    if not tab:
        raise ExtractionError("Shorts tab not found - channel may not have Shorts")
    return dig(tab, "tabRenderer", "content", "richGridRenderer", "contents", default=[])


def _short(reel: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "video_id": reel.get("videoId"),
        "title": dig(reel, "headline", "simpleText", default=""),
        "url": shorts_url(reel.get("videoId")),
        "thumbnail": dig(reel, "thumbnail", "thumbnails", 0, "url"),
        "accessibility_label": dig(reel, "accessibility", "accessibilityData", "label", default=""),
    }


def _counted_short(reel: Dict[str, Any]) -> Dict[str, Any]:
    short = _short(reel)
    view_text = dig(reel, "viewCountText", "simpleText", default="")
    short["view_count"] = parse_view_count(view_text)
    short["view_count_text"] = view_text
    return short


def extract_shorts(data: Dict[str, Any], channel_id: str, limit: int) -> Dict[str, Any]:
    shorts = []
    for reel in _reels(_shorts_tab_contents(data))[:limit]:
        short = _short(reel)
        short["view_count"] = dig(reel, "viewCountText", "simpleText", default="0")
        shorts.append(short)
    return {
        "channel_id": channel_id,
        "total_shorts": len(shorts),
        "shorts": shorts,
    }


def extract_shorts_page(data: Dict[str, Any], channel_id: str, limit: int) -> Dict[str, Any]:
    """
    Shorts from either a channel page or a browse continuation response.

    Continuation responses carry the items under
    ``onResponseReceivedActions[].appendContinuationItemsAction``.
    """
    if "onResponseReceivedActions" in data:
        contents = next(
            (
                dig(action, "appendContinuationItemsAction", "continuationItems", default=[])
                for action in data.get("onResponseReceivedActions") or []
                if action.get("appendContinuationItemsAction")
            ),
            [],
        )
    else:
        contents = _shorts_tab_contents(data)

    token = next(
        (
            dig(item, "continuationItemRenderer", "continuationEndpoint", "continuationCommand", "token")
            for item in contents
            if item.get("continuationItemRenderer")
        ),
        None,
    )
    shorts = [_counted_short(reel) for reel in _reels(contents)[:limit]]
    return {
        "channel_id": channel_id,
        "total_shorts": len(shorts),
        "shorts": shorts,
        "continuation_token": token,
        "has_more": bool(token),
    }


def extract_trending_shorts(data: Dict[str, Any], limit: int) -> Dict[str, Any]:
    tab = next((t for t in browse_tabs(data) if dig(t, "tabRenderer", "selected")), None)
    if not tab:
        raise ExtractionError("Trending tab not found")

    contents = dig(tab, "tabRenderer", "content", "richGridRenderer", "contents", default=[])
    shorts = []
    for reel in _reels(contents)[:limit]:
        short = _counted_short(reel)
        header = dig(
            reel, "navigationEndpoint", "reelWatchEndpoint", "overlay", "reelPlayerOverlayRenderer",
            "reelPlayerHeaderSupportedRenderers", "reelPlayerHeaderRenderer", default={},
        )
        short["channel"] = {
            "name": dig(header, "channelTitleText", "simpleText"),
            "id": dig(header, "channelNavigationEndpoint", "browseEndpoint", "browseId"),
        }
        shorts.append(short)

    views = [s["view_count"] for s in shorts]
    return {
        "total_shorts": len(shorts),
        "shorts": shorts,
        "statistics": {
            "total_views": sum(views),
            "avg_views": safe_average(sum(views), len(views)),
            "max_views": max(views, default=0),
            "min_views": min(views, default=0),
        },
    }


class YouTubeShortsScraper(BaseScraper):
    """Scraper for YouTube Shorts."""

    platform = "YouTube"

    def _shorts_page(self, channel_id: str) -> Dict[str, Any]:
        html = self.fetch_html(channel_url(channel_id, "shorts"))
        return find_assigned_json(html, INITIAL_DATA_MARKER, "Shorts data")

    def shorts(self, channel_id: str, limit: int = 20) -> Dict[str, Any]:
        require_text(channel_id, "channel ID")
        check_limit(limit, 1, 50)
        result = extract_shorts(self._shorts_page(channel_id), channel_id, limit)
        result["scraped_at"] = utc_now_iso()
        return result

    def shorts_paginated(
        self,
        channel_id: str,
        limit: int = 20,
        continuation_token: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Fetch one page of Shorts.

        Without a token the channel's Shorts tab is scraped; with one the
        next page is requested from the browse API.
        """
        require_text(channel_id, "channel ID")
        check_limit(limit, 1, 50)

        if continuation_token:
            data = self.fetch_json(
                BROWSE_API,
                method="POST",
                headers={"Accept": "*/*", "Content-Type": "application/json"},
                json_data={"continuation": continuation_token, "context": WEB_CLIENT_CONTEXT},
            )
        else:
            data = self._shorts_page(channel_id)

        result = extract_shorts_page(data, channel_id, limit)
        result["scraped_at"] = utc_now_iso()
        return result

    def trending_shorts(self, country: str = "US", limit: int = 20) -> Dict[str, Any]:
        check_limit(limit, 1, 50)
        html = self.fetch_html(TRENDING_SHORTS_URL, params={"bp": TRENDING_SHORTS_PARAM, "gl": country})
        data = find_assigned_json(html, INITIAL_DATA_MARKER, "trending Shorts data")
        result = extract_trending_shorts(data, limit)
        result["scraped_at"] = utc_now_iso()
        return result


def scrape_shorts(channel_id: str, limit: int = 20, client: Optional[httpx.Client] = None) -> Dict[str, Any]:
    """
    Scrape a channel's Shorts tab.

    Args:
        channel_id: "@handle", a channel id (UC...) or a bare handle
        limit: Maximum Shorts returned (1-50)
    """
    scraper = YouTubeShortsScraper(client=client)
    return scraper.run(scraper.shorts, channel_id, limit=limit)


def scrape_shorts_paginated(
    channel_id: str,
    limit: int = 20,
    continuation_token: Optional[str] = None,
    client: Optional[httpx.Client] = None,
) -> Dict[str, Any]:
    """Scrape one page of Shorts, following ``continuation_token`` when given."""
    scraper = YouTubeShortsScraper(client=client)
    return scraper.run(scraper.shorts_paginated, channel_id, limit=limit, continuation_token=continuation_token)


def scrape_trending_shorts(country: str = "US", limit: int = 20, client: Optional[httpx.Client] = None) -> Dict[str, Any]:
    """Scrape trending Shorts for a region."""
    scraper = YouTubeShortsScraper(client=client)
    return scraper.run(scraper.trending_shorts, country=country, limit=limit, metadata={"country": country})
