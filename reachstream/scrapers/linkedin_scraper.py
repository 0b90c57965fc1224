"""
LinkedIn Scraper

Reads the public (logged-out) company and profile pages. Core fields come
from the ld+json block with Open Graph meta tags as fallback; counters and
headline are matched from the rendered markup.
"""

import logging
import re
from typing import Any, Dict, Optional

import httpx

from reachstream.scrapers.base import BaseScraper, require_text
from reachstream.scrapers.errors import ExtractionError
from reachstream.scrapers.extract import find_ld_json, meta_content, utc_now_iso

logger = logging.getLogger(__name__)

LINKEDIN_BASE = "https://www.linkedin.com"

FOLLOWER_RE = re.compile(r"(\d{1,3}(?:,\d{3})*|\d+)\s+followers?", re.IGNORECASE)
EMPLOYEE_RE = re.compile(r"(\d{1,3}(?:,\d{3})*|\d+(?:-\d+)?)\s+employees?", re.IGNORECASE)
INDUSTRY_RE = re.compile(r"<div[^>]*>([^<]+)</div>.*?industry", re.IGNORECASE)
HEADLINE_RE = re.compile(r'<div class="[^"]*top-card-layout__headline[^"]*">([^<]+)<')
LOCATION_RE = re.compile(r'<span class="[^"]*top-card__subline-item[^"]*">([^<]+)<')


def _first_ld_json(html: str, what: str) -> Dict[str, Any]:
    for item in find_ld_json(html):
        if isinstance(item, dict):
            return item
    raise ExtractionError(f"Could not find {what} data in HTML")


def _follower_count(html: str) -> int:
    match = FOLLOWER_RE.search(html)
    return int(match.group(1).replace(",", "")) if match else 0


def _image(data: Dict[str, Any], html: str) -> Optional[str]:
    image = data.get("image")
    # ld+json images are sometimes ImageObject dicts
    if isinstance(image, dict):
        image = image.get("contentUrl") or image.get("url")
    return image or meta_content(html, "og:image")


def _clean_path_id(value: str) -> str:
    return value.strip("/")


def extract_company(html: str, company_id: str) -> Dict[str, Any]:
    """Company fields from ld+json, meta tags and page counters."""
    data = _first_ld_json(html, "company")
    employee_match = EMPLOYEE_RE.search(html)
    industry_match = INDUSTRY_RE.search(html)
    return {
        "company_id": company_id,
        "name": data.get("name") or meta_content(html, "og:title"),
        "description": data.get("description") or meta_content(html, "og:description"),
        "logo_url": _image(data, html),
        "follower_count": _follower_count(html),
        "employee_count": employee_match.group(1) if employee_match else None,
        "industry": industry_match.group(1).strip() if industry_match else None,
        "company_url": f"{LINKEDIN_BASE}/company/{company_id}",
    }


def extract_profile(html: str, username: str) -> Dict[str, Any]:
    """Member profile fields from ld+json, meta tags and the top card."""
    data = _first_ld_json(html, "profile")
    headline_match = HEADLINE_RE.search(html)
    location_match = LOCATION_RE.search(html)
    return {
        "username": username,
        "name": data.get("name") or meta_content(html, "og:title"),
        "headline": headline_match.group(1).strip() if headline_match else None,
        "description": data.get("description") or meta_content(html, "og:description"),
        "profile_image_url": _image(data, html),
        "location": location_match.group(1).strip() if location_match else None,
        "follower_count": _follower_count(html),
        "profile_url": f"{LINKEDIN_BASE}/in/{username}",
    }


class LinkedInScraper(BaseScraper):
    """Scraper for public LinkedIn company and member pages."""

    platform = "LinkedIn"

    def company(self, company_id: str) -> Dict[str, Any]:
        require_text(company_id, "company ID")
        clean = _clean_path_id(company_id)
        html = self.fetch_html(f"{LINKEDIN_BASE}/company/{clean}")
        result = extract_company(html, clean)
        result["scraped_at"] = utc_now_iso()
        return result

    def profile(self, username: str) -> Dict[str, Any]:
        require_text(username, "username")
        clean = _clean_path_id(username)
        html = self.fetch_html(f"{LINKEDIN_BASE}/in/{clean}")
        result = extract_profile(html, clean)
        result["scraped_at"] = utc_now_iso()
        return result


def scrape_company(company_id: str, client: Optional[httpx.Client] = None) -> Dict[str, Any]:
    """Scrape a LinkedIn company page by its vanity id."""
    scraper = LinkedInScraper(client=client)
    return scraper.run(scraper.company, company_id)


def scrape_profile(username: str, client: Optional[httpx.Client] = None) -> Dict[str, Any]:
    """Scrape a public LinkedIn member profile."""
    scraper = LinkedInScraper(client=client)
    return scraper.run(scraper.profile, username)
