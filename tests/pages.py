"""HTML page builders for extraction fixtures."""
import json


def script_page(element_id: str, payload) -> str:
    """HTML page with a JSON script tag."""
    return (
        "<html><head></head><body>"
        f'<script id="{element_id}" type="application/json">{json.dumps(payload)}</script>'
        "</body></html>"
    )


def assigned_page(marker: str, payload) -> str:
    """HTML page assigning JSON to a JS variable."""
    return f"<html><script>{marker} = {json.dumps(payload)};</script></html>"


def sjs_page(data) -> str:
    """HTML page with one Meta data-sjs block carrying ``result.data``."""
    block = {
        "require": [[
            "ScheduledServerJS", "handle", None,
            [{"__bbox": {"require": [["RelayPrefetchedStreamCache", "next", [], [
                "adp_key", {"__bbox": {"result": {"data": data}}},
            ]]]}}],
        ]],
    }
    return f'<html><script type="application/json" data-sjs>{json.dumps(block)}</script></html>'
