"""
Pinterest Scraper

Pinterest server-renders its redux store into a JSON script tag; pins and
boards are read from ``initialReduxState``.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from reachstream.scrapers.base import BaseScraper, check_limit, require_text
from reachstream.scrapers.errors import ExtractionError
from reachstream.scrapers.extract import dig, find_script_json, safe_average, utc_now_iso

logger = logging.getLogger(__name__)

PINTEREST_BASE = "https://www.pinterest.com"


def find_redux_state(html: str, what: str) -> Dict[str, Any]:
    """
    Locate ``initialReduxState`` in the page.

    Older pages carry it at the root of ``__PWS_INITIAL_PROPS__``; newer
    ones nest it under ``props`` in ``__PWS_DATA__``.
    """
    try:
        data = find_script_json(html, "__PWS_INITIAL_PROPS__", what)
        return dig(data, "initialReduxState", default={})
    except ExtractionError:
        data = find_script_json(html, "__PWS_DATA__", what)
        return dig(data, "props", "initialReduxState", default={})


def _board_url(path: Optional[str]) -> Optional[str]:
    return f"{PINTEREST_BASE}{path}" if path else None


def _saves(pin: Dict[str, Any]) -> int:
    return dig(pin, "aggregated_pin_data", "aggregated_stats", "saves", default=0)


def _pinner(pin: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": dig(pin, "pinner", "id"),
        "username": dig(pin, "pinner", "username"),
        "full_name": dig(pin, "pinner", "full_name"),
    }


def _pin_board(pin: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": dig(pin, "board", "id"),
        "name": dig(pin, "board", "name"),
        "url": _board_url(dig(pin, "board", "url")),
    }


def _pin_summary(pin: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "pin_id": pin.get("id"),
        "title": pin.get("title") or "",
        "description": pin.get("description") or "",
        "url": f"{PINTEREST_BASE}/pin/{pin.get('id')}/",
        "image_url": dig(pin, "images", "736x", "url") or dig(pin, "images", "orig", "url"),
        "thumbnail_url": dig(pin, "images", "236x", "url"),
    }


def _board_summary(board: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "board_id": board.get("id"),
        "name": board.get("name"),
        "description": board.get("description") or "",
        "pin_count": board.get("pin_count") or 0,
        "follower_count": board.get("follower_count") or 0,
        "cover_image": board.get("image_cover_url"),
        "privacy": board.get("privacy") or "public",
        "created_at": board.get("created_at"),
    }


def extract_pin(state: Dict[str, Any], pin_id: str) -> Dict[str, Any]:
    pin = dig(state, "pins", pin_id)
    if not pin:
        raise ExtractionError("Pin not found")

    pinner = _pinner(pin)
    pinner["profile_url"] = f"{PINTEREST_BASE}/{pinner['username']}/" if pinner["username"] else None
    return {
        "pin_id": pin.get("id"),
        "title": pin.get("title") or "",
        "description": pin.get("description") or "",
        "url": f"{PINTEREST_BASE}/pin/{pin_id}/",
        "image_url": dig(pin, "images", "orig", "url"),
        "thumbnail_url": dig(pin, "images", "236x", "url"),
        "pinner": pinner,
        "board": _pin_board(pin),
        "stats": {"saves": _saves(pin), "comments": pin.get("comment_count") or 0},
        "created_at": pin.get("created_at"),
    }


def extract_board(state: Dict[str, Any], board_url: str, limit: int) -> Dict[str, Any]:
    """First board in the store plus up to ``limit`` of its pins."""
    boards = state.get("boards") or {}
    if not boards:
        raise ExtractionError("Board not found")
    board = next(iter(boards.values()))

    pins = list((state.get("pins") or {}).values())[:limit]
    board_pins = []
    for pin in pins:
        item = _pin_summary(pin)
        item["stats"] = {"saves": _saves(pin), "comments": pin.get("comment_count") or 0}
        board_pins.append(item)

    details = _board_summary(board)
    details["url"] = board_url
    return {
        "board": details,
        "pins": board_pins,
        "total_pins_returned": len(board_pins),
    }


def extract_boards(state: Dict[str, Any], username: str) -> Dict[str, Any]:
    results = []
    for board in (state.get("boards") or {}).values():
        item = _board_summary(board)
        item["url"] = f"{PINTEREST_BASE}{board.get('url', '')}"
        results.append(item)

    total_pins = sum(b["pin_count"] for b in results)
    total_followers = sum(b["follower_count"] for b in results)
    return {
        "username": username,
        "total_boards": len(results),
        "boards": results,
        "statistics": {
            "total_pins": total_pins,
            "total_followers": total_followers,
            "avg_pins_per_board": safe_average(total_pins, len(results)),
        },
    }


def extract_search(state: Dict[str, Any], query: str, limit: int) -> Dict[str, Any]:
    results: List[Dict[str, Any]] = []
    for pin in list((state.get("pins") or {}).values())[:limit]:
        item = _pin_summary(pin)
        item["pinner"] = _pinner(pin)
        item["board"] = _pin_board(pin)
        item["stats"] = {"saves": _saves(pin), "comments": pin.get("comment_count") or 0}
        item["created_at"] = pin.get("created_at")
        results.append(item)

    total_saves = sum(p["stats"]["saves"] for p in results)
    return {
        "query": query,
        "total_results": len(results),
        "pins": results,
        "statistics": {
            "total_saves": total_saves,
            "avg_saves": safe_average(total_saves, len(results)),
            "max_saves": max((p["stats"]["saves"] for p in results), default=0),
        },
    }


class PinterestScraper(BaseScraper):
    """Scraper for Pinterest pins, boards and pin search."""

    platform = "Pinterest"

    def pin(self, pin_id: str) -> Dict[str, Any]:
        require_text(pin_id, "pin ID")
        html = self.fetch_html(f"{PINTEREST_BASE}/pin/{pin_id}/")
        result = extract_pin(find_redux_state(html, "pin data"), pin_id)
        result["scraped_at"] = utc_now_iso()
        return result

    def board(self, username: str, board_slug: str, limit: int = 20) -> Dict[str, Any]:
        require_text(username, "username")
        require_text(board_slug, "board slug")
        check_limit(limit, 1, 50)
        url = f"{PINTEREST_BASE}/{username}/{board_slug}/"
        html = self.fetch_html(url)
        result = extract_board(find_redux_state(html, "board data"), url, limit)
        result["scraped_at"] = utc_now_iso()
        return result

    def boards(self, username: str) -> Dict[str, Any]:
        require_text(username, "username")
        html = self.fetch_html(f"{PINTEREST_BASE}/{username}/")
        result = extract_boards(find_redux_state(html, "boards data"), username)
        result["scraped_at"] = utc_now_iso()
        return result

    def search(self, query: str, limit: int = 20) -> Dict[str, Any]:
        require_text(query, "query")
        check_limit(limit, 1, 50)
        html = self.fetch_html(f"{PINTEREST_BASE}/search/pins/", params={"q": query})
        result = extract_search(find_redux_state(html, "Pinterest data"), query, limit)
        result["scraped_at"] = utc_now_iso()
        return result


def get_pin(pin_id: str, client: Optional[httpx.Client] = None) -> Dict[str, Any]:
    """Scrape a single pin."""
    scraper = PinterestScraper(client=client)
    return scraper.run(scraper.pin, pin_id)


def get_board(
    username: str,
    board_slug: str,
    limit: int = 20,
    client: Optional[httpx.Client] = None,
) -> Dict[str, Any]:
    """Scrape a board and up to ``limit`` of its pins."""
    scraper = PinterestScraper(client=client)
    return scraper.run(scraper.board, username, board_slug, limit=limit)


def get_user_boards(username: str, client: Optional[httpx.Client] = None) -> Dict[str, Any]:
    """Scrape all boards on a user's profile."""
    scraper = PinterestScraper(client=client)
    return scraper.run(scraper.boards, username)


def search_pins(query: str, limit: int = 20, client: Optional[httpx.Client] = None) -> Dict[str, Any]:
    """Search pins by keyword."""
    scraper = PinterestScraper(client=client)
    return scraper.run(scraper.search, query, limit=limit)
