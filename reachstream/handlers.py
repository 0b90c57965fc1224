"""
Lambda-style handlers.

Every endpoint in the registry can be served as ``handler(event, context)``.
Parameters come from ``queryStringParameters`` with top-level event keys as
a fallback. The scrape envelope becomes the JSON body and its outcome picks
the status code:

- 200 on success
- 400 for missing or malformed parameters and ``invalid_input`` failures
- 404 for an unknown platform/endpoint pair
- 500 for any other failure
"""

import datetime as dt
import json
import logging
from typing import Any, Callable, Dict, Optional, Tuple

from reachstream.config import get_settings
from reachstream.registry import ENDPOINTS, get_endpoint
from reachstream.services.types import Endpoint

logger = logging.getLogger(__name__)

VERSION = "1.0.0"
JSON_HEADERS = {"Content-Type": "application/json"}


class ParameterError(ValueError):
    """A request parameter is missing or cannot be parsed."""

    def __init__(self, message: str, example: Optional[str] = None):
        super().__init__(message)
        self.example = example


def configure_logging() -> None:
    """Apply the configured log level to the root logger."""
    logging.basicConfig(
        level=getattr(logging, get_settings().log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def healthcheck() -> Dict[str, Any]:
    """Health check with timestamp and component status."""
    try:
        settings = get_settings()
        return {
            "status": "ok",
            "timestamp": dt.datetime.now(dt.timezone.utc).isoformat(),
            "version": VERSION,
            "components": {
                "proxy_configured": settings.proxy_configured,
                "endpoints": len(ENDPOINTS),
            },
        }
    except Exception as e:
        logger.error(f"Health check failed: {e}")
        return {
            "status": "error",
            "timestamp": dt.datetime.now(dt.timezone.utc).isoformat(),
            "error": str(e),
        }


def _present(value: Any) -> bool:
    return value is not None and value != ""


def event_params(event: Dict[str, Any]) -> Dict[str, Any]:
    """Query string parameters layered over top-level event keys."""
    params = {k: v for k, v in event.items() if _present(v)}
    query = event.get("queryStringParameters") or {}
    params.update({k: v for k, v in query.items() if _present(v)})
    return params


def _coerce(name: str, value: Any, kind: type) -> Any:
    if kind is bool:
        return value if isinstance(value, bool) else str(value).lower() == "true"
    if kind is int:
        try:
            return int(value)
        except (TypeError, ValueError):
            raise ParameterError(f"Invalid {name} parameter: must be an integer")
    return str(value)


def build_call(endpoint: Endpoint, params: Dict[str, Any]) -> Tuple[list, Dict[str, Any]]:
    """
    Resolve positional and keyword arguments for an endpoint.

    Args:
        endpoint: Registry entry
        params: Flat request parameters

    Returns:
        (args, kwargs) for ``endpoint.func``

    Raises:
        ParameterError: A required parameter is absent or a typed one is malformed
    """
    args = []
    for names in endpoint.required:
        value = next((params[n] for n in names if _present(params.get(n))), None)
        if value is None:
            example = f"/api/scrape/{endpoint.path}?{endpoint.example}" if endpoint.example else None
            raise ParameterError(f"Missing required parameter: {names[0]}", example=example)
        args.append(str(value))

    kwargs = {
        name: _coerce(name, params[name], kind)
        for name, kind in endpoint.optional.items()
        if _present(params.get(name))
    }
    return args, kwargs


def status_for(envelope: Dict[str, Any]) -> int:
    if envelope.get("success"):
        return 200
    if envelope.get("metadata", {}).get("error_type") == "invalid_input":
        return 400
    return 500


def dispatch(endpoint: Endpoint, params: Dict[str, Any]) -> Tuple[int, Dict[str, Any]]:
    """Run an endpoint for a parameter dict and return (status, body)."""
    try:
        args, kwargs = build_call(endpoint, params)
    except ParameterError as e:
        body = {"success": False, "error": str(e)}
        if e.example:
            body["example"] = e.example
        return 400, body

    try:
        envelope = endpoint.func(*args, **kwargs)
    except Exception as e:
        logger.exception(f"Handler for {endpoint.path} failed: {e}")
        return 500, {"success": False, "error": "Internal server error", "message": str(e)}

    return status_for(envelope), envelope


def dispatch_path(platform: str, name: str, params: Dict[str, Any]) -> Tuple[int, Dict[str, Any]]:
    endpoint = get_endpoint(platform, name)
    if endpoint is None:
        return 404, {"success": False, "error": f"Unknown endpoint: {platform}/{name}"}
    return dispatch(endpoint, params)


def _response(status: int, body: Dict[str, Any]) -> Dict[str, Any]:
    return {"statusCode": status, "headers": dict(JSON_HEADERS), "body": json.dumps(body)}


def handler_for(platform: str, name: str) -> Callable[..., Dict[str, Any]]:
    """
    Build the Lambda handler for one endpoint.

    Raises:
        KeyError: If the platform/endpoint pair is not registered
    """
    endpoint = get_endpoint(platform, name)
    if endpoint is None:
        raise KeyError(f"Unknown endpoint: {platform}/{name}")

    def handler(event: Dict[str, Any], context: Any = None) -> Dict[str, Any]:
        status, body = dispatch(endpoint, event_params(event or {}))
        return _response(status, body)

    handler.__name__ = f"{endpoint.platform}_{endpoint.name}_handler"
    return handler


def lambda_handler(event: Dict[str, Any], context: Any = None) -> Dict[str, Any]:
    """Single entry point routing on ``pathParameters`` or top-level platform/endpoint keys."""
    configure_logging()
    event = event or {}
    path = event.get("pathParameters") or {}
    platform = path.get("platform") or event.get("platform") or ""
    name = path.get("endpoint") or event.get("endpoint") or ""
    logger.info(f"Lambda invocation for {platform}/{name}")

    status, body = dispatch_path(platform, name, event_params(event))
    return _response(status, body)
