"""
HTTP API

Serves every registered scraper as ``GET /api/scrape/{platform}/{endpoint}``
with the same parameter handling and status mapping as the Lambda handlers.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from reachstream.handlers import VERSION, configure_logging, dispatch_path, healthcheck
from reachstream.registry import list_endpoints

configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title="ReachStream Scraper API", version=VERSION)


@app.get("/health")
def health():
    return healthcheck()


@app.get("/api/scrape")
def endpoints():
    items = list_endpoints()
    return {"success": True, "count": len(items), "endpoints": items}


@app.get("/api/scrape/{platform}/{endpoint}")
def scrape(platform: str, endpoint: str, request: Request):
    status, body = dispatch_path(platform, endpoint, dict(request.query_params))
    if status != 200:
        logger.warning(f"{platform}/{endpoint} answered {status}: {body.get('error')}")
    return JSONResponse(status_code=status, content=body)
