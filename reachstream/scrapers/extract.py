"""
Extraction helpers shared by the platform scrapers.

Locating embedded data blobs, null-safe nested access, and the numeric
helpers used for derived statistics.
"""

import html as html_lib
import json
import math
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from reachstream.scrapers.errors import ExtractionError

HASHTAG_RE = re.compile(r"#[A-Za-z0-9_]+")
MENTION_RE = re.compile(r"@[A-Za-z0-9_]+")
URL_RE = re.compile(r"https?://[^\s]+")

_SJS_RE = re.compile(r'<script type="application/json"[^>]*data-sjs[^>]*>(.*?)</script>', re.DOTALL)
_LD_JSON_RE = re.compile(r'<script type="application/ld\+json"[^>]*>(.*?)</script>', re.DOTALL)

_MULTIPLIERS = {"K": 1_000, "M": 1_000_000, "B": 1_000_000_000}

_MISSING = object()


def utc_now_iso() -> str:
    """Current UTC time as ISO-8601 with milliseconds and a Z suffix."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def iso_from_timestamp(seconds: Optional[Union[int, float, str]]) -> Optional[str]:
    """Convert a unix timestamp (seconds) to ISO-8601, None when missing."""
    if not seconds:
        return None
    dt = datetime.fromtimestamp(float(seconds), tz=timezone.utc)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_iso(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 string (Z suffix allowed) into an aware datetime."""
    if not value:
        return None
    try:
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def dig(obj: Any, *path: Union[str, int], default: Any = None) -> Any:
    """
    Null-safe nested lookup over dicts and lists.

    Returns ``default`` when any step is missing or the final value is None.

    Example:
        dig(data, "entry_data", "ProfilePage", 0, "graphql", "user")
    """
    current = obj
    for key in path:
        if isinstance(current, dict):
            current = current.get(key, _MISSING)
        elif isinstance(current, list) and isinstance(key, int):
            current = current[key] if -len(current) <= key < len(current) else _MISSING
        else:
            return default
        if current is _MISSING or current is None:
            return default
    return current


def first(*values: Any, default: Any = None) -> Any:
    """Return the first truthy value, like a chain of JS ``||``."""
    for value in values:
        if value:
            return value
    return default


def js_round(value: float) -> int:
    """Round half up, matching JavaScript's Math.round."""
    return int(math.floor(value + 0.5))


def to_fixed(value: float, digits: int = 2) -> float:
    """Round to ``digits`` decimals and return a float."""
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def safe_average(total: float, count: int) -> int:
    """Rounded average, 0 for an empty set."""
    return js_round(total / count) if count > 0 else 0


def parse_view_count(text: Optional[Union[str, int, float]]) -> int:
    """
    Parse a human view count into an integer.

    "1,234 views" -> 1234, "1.5M" -> 1500000, "0" -> 0, "No views" -> 0
    """
    if text is None:
        return 0
    if isinstance(text, (int, float)):
        return int(text)

    cleaned = text.replace(",", "").strip().upper()
    match = re.search(r"(\d+(?:\.\d+)?)\s*([KMB](?![A-Z]))?", cleaned)
    if not match:
        return 0

    number = float(match.group(1))
    suffix = match.group(2)
    if suffix:
        number *= _MULTIPLIERS[suffix]
    return int(round(number))


def as_float(value: Any) -> Optional[float]:
    """Float from a number or numeric string, None when it will not parse."""
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def calculate_discount(original: Optional[float], current: Optional[float]) -> int:
    """Discount percentage, 0 unless original is strictly above current."""
    if not original or not current or original <= current:
        return 0
    return js_round((original - current) / original * 100)


def calculate_average_rating(reviews: List[Dict[str, Any]]) -> float:
    """Average review rating to one decimal, 0 for no reviews."""
    if not reviews:
        return 0
    # Unparseable ratings count as 0, like missing ones
    total = sum(as_float(first(r.get("rating"), r.get("score"), default=0)) or 0 for r in reviews)
    return js_round(total / len(reviews) * 10) / 10


def format_count(count: int) -> str:
    """Compact display form: 1500000 -> "1.5M", 2300 -> "2.3K"."""
    if count >= 1_000_000:
        return f"{count / 1_000_000:.1f}M"
    if count >= 1_000:
        return f"{count / 1_000:.1f}K"
    return str(count)


def extract_hashtags(text: Optional[str]) -> List[str]:
    return HASHTAG_RE.findall(text or "")


def extract_mentions(text: Optional[str]) -> List[str]:
    return MENTION_RE.findall(text or "")


def extract_urls(text: Optional[str]) -> List[str]:
    return URL_RE.findall(text or "")


def find_script_json(html: str, element_id: str, what: str = "data") -> Any:
    """
    Parse the JSON inside ``<script id="element_id" ...>``.

    Raises:
        ExtractionError: If the script tag is absent or not valid JSON
    """
    pattern = re.compile(
        r'<script[^>]*id="' + re.escape(element_id) + r'"[^>]*>(.*?)</script>',
        re.DOTALL,
    )
    match = pattern.search(html)
    if not match:
        raise ExtractionError(f"Could not find {what} in HTML")
    try:
        return json.loads(match.group(1))
    except json.JSONDecodeError as e:
        raise ExtractionError(f"Could not parse {what}: {e}") from e


def find_assigned_json(html: str, marker: str, what: str = "data") -> Any:
    """
    Decode the JSON value assigned after ``marker``.

    Handles ``var ytInitialData = {...};`` and ``window.__INITIAL_STATE__={...}``
    style assignments. The value is decoded with raw_decode so braces or
    ``};`` inside strings never truncate it.

    Raises:
        ExtractionError: If the marker is absent or the value is not JSON
    """
    match = re.search(re.escape(marker) + r"\s*=?\s*", html)
    if not match:
        raise ExtractionError(f"Could not find {what} in HTML")
    try:
        value, _ = json.JSONDecoder().raw_decode(html, match.end())
    except json.JSONDecodeError as e:
        raise ExtractionError(f"Could not parse {what}: {e}") from e
    return value


def find_sjs_data(html: str, key: Optional[str] = None, what: str = "data", missing: Optional[str] = None) -> Any:
    """
    Find ``result.data[key]`` inside Meta's ``data-sjs`` script blocks.

    Walks require[0][3][0].__bbox.require[0][3][1].__bbox.result.data in every
    block and returns the first one carrying ``key``, or the first
    ``result.data`` object when no key is given.

    Raises:
        ExtractionError: If there are no blocks, or no block carries the
            key (``missing`` overrides the message for the latter)
    """
    blocks = _SJS_RE.findall(html)
    if not blocks:
        raise ExtractionError(f"Could not find {what} in HTML")

    for block in blocks:
        try:
            payload = json.loads(block)
        except json.JSONDecodeError:
            continue
        result = dig(
            payload, "require", 0, 3, 0, "__bbox", "require", 0, 3, 1,
            "__bbox", "result", "data",
        )
        if key is not None:
            result = dig(result, key)
        if result is not None:
            return result

    raise ExtractionError(missing or f"Could not find {what} in HTML")


def find_ld_json(html: str) -> List[Any]:
    """All parseable ``application/ld+json`` blocks, flattened one level."""
    items: List[Any] = []
    for block in _LD_JSON_RE.findall(html):
        try:
            parsed = json.loads(block)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, list):
            items.extend(parsed)
        else:
            items.append(parsed)
    return items


def meta_content(html: str, name: str) -> Optional[str]:
    """Value of a ``<meta property|name="name" content="...">`` tag."""
    pattern = re.compile(
        r'<meta\s+(?:property|name)="' + re.escape(name) + r'"\s+content="([^"]*)"',
        re.IGNORECASE,
    )
    match = pattern.search(html)
    return html_lib.unescape(match.group(1)) if match else None


def strip_prefix(value: str, prefix: str) -> str:
    """Remove a single leading ``@`` / ``#`` style prefix."""
    return value[len(prefix):] if value.startswith(prefix) else value
