"""
Social Platform Scrapers

One module per platform (plus TikTok/YouTube/Instagram extras). Every
scraper inherits from BaseScraper, which owns headers, proxy egress,
retry and the response envelope.
"""

from reachstream.scrapers.base import BaseScraper
from reachstream.scrapers.errors import ExtractionError, InvalidInputError, ScraperError, UpstreamHTTPError

__all__ = ["BaseScraper", "ScraperError", "InvalidInputError", "UpstreamHTTPError", "ExtractionError"]
