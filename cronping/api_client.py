from __future__ import annotations

from typing import Any

import httpx

from .config import USER_AGENT, CronitorConfig
from .errors import ApiError

API_URL = "https://cronitor.io/v3/monitors"
DEV_API_URL = "http://dev.cronitor.io/v3/monitors"


def api_url(config: CronitorConfig) -> str:
    return DEV_API_URL if config.dev else API_URL


def _headers() -> dict[str, str]:
    return {"Content-Type": "application/json", "User-Agent": USER_AGENT}


def _auth(config: CronitorConfig) -> httpx.BasicAuth:
    return httpx.BasicAuth(config.api_key, "")


def _decode(resp: httpx.Response) -> Any:
    if resp.status_code != 200:
        raise ApiError(f"Unexpected {resp.status_code} API response", status_code=resp.status_code)
    try:
        return resp.json()
    except ValueError as exc:
        raise ApiError("API response is not valid JSON", status_code=resp.status_code) from exc


async def get_monitors(client: httpx.AsyncClient, config: CronitorConfig) -> Any:
    """Fetch the monitor definitions for the configured API key."""
    try:
        resp = await client.get(api_url(config), headers=_headers(), auth=_auth(config), timeout=30.0)
    except httpx.HTTPError as exc:
        raise ApiError(f"Monitor API request failed: {type(exc).__name__}: {exc}") from exc
    return _decode(resp)


async def put_monitors(client: httpx.AsyncClient, config: CronitorConfig, monitors: list[dict[str, Any]]) -> Any:
    """Create or update monitor definitions in bulk."""
    try:
        resp = await client.put(
            api_url(config),
            headers=_headers(),
            auth=_auth(config),
            json={"monitors": list(monitors)},
            timeout=30.0,
        )
    except httpx.HTTPError as exc:
        raise ApiError(f"Monitor API request failed: {type(exc).__name__}: {exc}") from exc
    return _decode(resp)
