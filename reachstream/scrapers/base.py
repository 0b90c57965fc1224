"""
Base Scraper Framework

Provides the fetch -> extract -> envelope skeleton shared by every platform:
- Fixed browser header presets (HTML and JSON)
- Optional proxy egress configured from Settings
- Exponential backoff retry on a fixed status-code list
- Envelope construction with timing and error classification
"""

import logging
import time
from typing import Any, Callable, Dict, Optional

import httpx

from reachstream.config import Settings, get_settings
from reachstream.scrapers.errors import InvalidInputError, ScraperError, UpstreamHTTPError
from reachstream.scrapers.extract import utc_now_iso
from reachstream.services.types import ErrorResponse, ResponseMetadata, SuccessResponse

logger = logging.getLogger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

HTML_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,*/*;q=0.8"
JSON_ACCEPT = "application/json, text/plain, */*"

# Statuses the transport layer retries before giving up
RETRY_STATUS_CODES = (408, 413, 429, 500, 502, 503, 504)


def require_text(value: Any, what: str) -> str:
    """Validate a required string argument."""
    if not value or not isinstance(value, str):
        raise InvalidInputError(f"Invalid {what} provided")
    return value


def check_limit(limit: Any, low: int, high: int) -> int:
    """Validate a limit argument against an inclusive range."""
    if not isinstance(limit, int) or isinstance(limit, bool) or limit < low or limit > high:
        raise InvalidInputError(f"Limit must be between {low} and {high}")
    return limit


class BaseScraper:
    """
    Base class for platform scrapers.

    Subclasses set ``platform`` (used in "<Platform> returned status N"
    messages) and implement one method per endpoint. Endpoint methods raise
    ScraperError subclasses and return the ``data`` dict; ``run`` wraps them
    into the response envelope.
    """

    platform = "Platform"

    def __init__(
        self,
        client: Optional[httpx.Client] = None,
        settings: Optional[Settings] = None,
    ):
        """
        Initialize the scraper.

        Args:
            client: Pre-built httpx client (tests, connection reuse). When
                omitted a client is opened per request.
            settings: Settings override, defaults to the cached instance
        """
        self.settings = settings or get_settings()
        self.client = client
        self.timeout = self.settings.request_timeout
        self.max_retries = self.settings.retry_limit

    @property
    def proxy_used(self) -> bool:
        return self.client is None and self.settings.proxy_configured

    def get_headers(
        self,
        extra_headers: Optional[Dict[str, str]] = None,
        accept: str = HTML_ACCEPT,
    ) -> Dict[str, str]:
        """
        Get HTTP headers for a request.

        Args:
            extra_headers: Additional headers to include (Referer, ...)
            accept: Accept header value

        Returns:
            Dict of HTTP headers
        """
        headers = {
            "User-Agent": USER_AGENT,
            "Accept": accept,
            "Accept-Language": "en-US,en;q=0.9",
        }
        if extra_headers:
            headers.update(extra_headers)
        return headers

    def _open_client(self) -> httpx.Client:
        return httpx.Client(
            timeout=self.timeout,
            follow_redirects=True,
            proxy=self.settings.proxy_url,
        )

    def _send(self, client: httpx.Client, method: str, url: str, **kwargs) -> httpx.Response:
        if method.upper() == "GET":
            return client.get(url, **kwargs)
        elif method.upper() == "POST":
            return client.post(url, **kwargs)
        raise ValueError(f"Unsupported HTTP method: {method}")

    def fetch(
        self,
        url: str,
        method: str = "GET",
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, Any]] = None,
        json_data: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        """
        Fetch a URL with retry logic.

        Retries on RETRY_STATUS_CODES and transport errors. The last response
        is returned whatever its status; callers decide what a non-200 means.

        Args:
            url: URL to fetch
            method: HTTP method (GET or POST)
            headers: Full header set for the request
            params: Query parameters
            json_data: JSON body for POST requests

        Returns:
            httpx.Response

        Raises:
            UpstreamHTTPError: If the origin could not be reached at all
        """
        kwargs: Dict[str, Any] = {"headers": headers or self.get_headers(), "params": params}
        if json_data is not None:
            kwargs["json"] = json_data

        base_delay = self.settings.retry_backoff
        attempts = self.max_retries + 1
        last_error: Optional[Exception] = None

        logger.debug(f"{method} {url}")
        for attempt in range(attempts):
            try:
                if self.client is not None:
                    response = self._send(self.client, method, url, **kwargs)
                else:
                    with self._open_client() as client:
                        response = self._send(client, method, url, **kwargs)
            except httpx.TransportError as e:
                last_error = e
                if attempt + 1 < attempts:
                    delay = base_delay * (2 ** attempt)
                    logger.warning(f"Request error for {url}: {e}, retrying in {delay}s")
                    time.sleep(delay)
                continue

            if response.status_code in RETRY_STATUS_CODES and attempt + 1 < attempts:
                delay = base_delay * (2 ** attempt)
                logger.warning(f"Status {response.status_code} for {url}, retrying in {delay}s")
                time.sleep(delay)
                continue

            return response

        logger.error(f"Failed to fetch {url} after {attempts} attempts")
        raise UpstreamHTTPError(f"Request to {self.platform} failed: {last_error}")

    def _checked(self, response: httpx.Response) -> httpx.Response:
        if response.status_code != 200:
            raise UpstreamHTTPError(
                f"{self.platform} returned status {response.status_code}",
                status_code=response.status_code,
            )
        return response

    def fetch_html(
        self,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> str:
        """
        Fetch a page and return its body, raising on non-200.

        Args:
            url: URL to fetch
            headers: Extra headers merged into the HTML preset
            params: Query parameters

        Returns:
            Response text
        """
        response = self.fetch(url, headers=self.get_headers(headers), params=params)
        return self._checked(response).text

    def fetch_json(
        self,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, Any]] = None,
        method: str = "GET",
        json_data: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """
        Fetch a URL and parse the JSON response, raising on non-200.

        Args:
            url: URL to fetch
            headers: Extra headers merged into the JSON preset
            params: Query parameters
            method: HTTP method
            json_data: JSON body for POST requests

        Returns:
            Parsed JSON
        """
        response = self.fetch(
            url,
            method=method,
            headers=self.get_headers(headers, accept=JSON_ACCEPT),
            params=params,
            json_data=json_data,
        )
        return self._checked(response).json()

    def _metadata(self, started: float, extra: Optional[Dict[str, Any]] = None) -> ResponseMetadata:
        return ResponseMetadata(
            response_time_ms=int((time.monotonic() - started) * 1000),
            proxy_used=self.proxy_used,
            timestamp=utc_now_iso(),
            **(extra or {}),
        )

    def run(
        self,
        func: Callable[..., Any],
        *args,
        metadata: Optional[Dict[str, Any]] = None,
        **kwargs,
    ) -> Dict[str, Any]:
        """
        Run an endpoint method and wrap the outcome in an envelope.

        The method returns either the data dict or a ``(data, metadata)``
        tuple when metadata depends on how the data was obtained.

        Args:
            func: Endpoint method
            metadata: Static metadata extras for both outcomes

        Returns:
            SuccessResponse or ErrorResponse as a plain dict
        """
        started = time.monotonic()
        name = getattr(func, "__name__", "scrape")
        logger.info(f"Scraping {self.platform} {name}")

        try:
            result = func(*args, **kwargs)
        except ScraperError as e:
            logger.warning(f"{self.platform} {name} failed: {e}")
            extra = dict(metadata or {}, error_type=e.error_type)
            return ErrorResponse(error=str(e), metadata=self._metadata(started, extra)).model_dump()
        except Exception as e:
            logger.exception(f"Unexpected error in {self.platform} {name}: {e}")
            extra = dict(metadata or {}, error_type="unexpected")
            return ErrorResponse(error=str(e), metadata=self._metadata(started, extra)).model_dump()

        extra = dict(metadata or {})
        if isinstance(result, tuple):
            result, runtime_extra = result
            extra.update(runtime_extra)

        envelope = SuccessResponse(data=result, metadata=self._metadata(started, extra))
        logger.info(f"{self.platform} {name} completed in {envelope.metadata.response_time_ms}ms")
        return envelope.model_dump()
