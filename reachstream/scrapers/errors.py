"""
Scraper error taxonomy.

Every failure inside a scraper is raised as one of these and converted into
a failure envelope by BaseScraper.run. The error_type string travels in the
envelope metadata so handlers can pick a status code.
"""

from typing import Optional


class ScraperError(Exception):
    """Base class for expected scraping failures."""

    error_type = "scraper"


class InvalidInputError(ScraperError):
    """Missing or malformed caller input (username, limit, ...)."""

    error_type = "invalid_input"


class UpstreamHTTPError(ScraperError):
    """The origin site answered with a non-200 status or could not be reached."""

    error_type = "upstream_http"

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ExtractionError(ScraperError):
    """The expected data blob or path was absent from the response."""

    error_type = "extraction"
