from pydantic import BaseModel, ConfigDict
from typing import Any, Callable, Dict, List, Literal, Optional, Tuple


class ResponseMetadata(BaseModel):
    """Timing and egress details attached to every scraper response."""

    model_config = ConfigDict(extra="allow")

    response_time_ms: int
    proxy_used: bool
    timestamp: str  # ISO-8601 UTC


class SuccessResponse(BaseModel):
    """Envelope for a scrape that produced data."""

    success: Literal[True] = True
    data: Dict[str, Any]
    metadata: ResponseMetadata


class ErrorResponse(BaseModel):
    """Envelope for a scrape that failed at any stage."""

    success: Literal[False] = False
    error: str
    metadata: ResponseMetadata


class Endpoint(BaseModel):
    """A scraping function exposed through the handlers and the HTTP API."""

    platform: str
    name: str
    func: Callable[..., Dict[str, Any]]
    # Each entry lists accepted names for one argument, first one is canonical
    required: List[Tuple[str, ...]] = []
    optional: Dict[str, type] = {}
    example: Optional[str] = None

    @property
    def path(self) -> str:
        return f"{self.platform}/{self.name}"
