from __future__ import annotations

import base64
import json

import httpx
import pytest

from cronping.api_client import API_URL, DEV_API_URL, api_url, get_monitors, put_monitors
from cronping.config import USER_AGENT, CronitorConfig
from cronping.errors import ApiError


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def test_api_url_switches_in_dev_mode() -> None:
    assert api_url(CronitorConfig()) == API_URL
    assert api_url(CronitorConfig(dev=True)) == DEV_API_URL


@pytest.mark.asyncio
async def test_get_monitors_sends_basic_auth_and_headers() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"monitors": [{"code": "abc123", "name": "backup"}]})

    async with _client(handler) as client:
        data = await get_monitors(client, CronitorConfig(api_key="secret-key"))

    assert data == {"monitors": [{"code": "abc123", "name": "backup"}]}
    req = seen[0]
    assert req.method == "GET"
    assert str(req.url) == API_URL
    assert req.headers["Authorization"] == "Basic " + base64.b64encode(b"secret-key:").decode("ascii")
    assert req.headers["Content-Type"] == "application/json"
    assert req.headers["User-Agent"] == USER_AGENT


@pytest.mark.asyncio
async def test_get_monitors_non_200_raises() -> None:
    async with _client(lambda request: httpx.Response(403, text="forbidden")) as client:
        with pytest.raises(ApiError, match="Unexpected 403 API response") as excinfo:
            await get_monitors(client, CronitorConfig(api_key="k"))
    assert excinfo.value.status_code == 403


@pytest.mark.asyncio
async def test_get_monitors_transport_error_raises_api_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("unreachable")

    async with _client(handler) as client:
        with pytest.raises(ApiError, match="ConnectError"):
            await get_monitors(client, CronitorConfig(api_key="k"))


@pytest.mark.asyncio
async def test_get_monitors_invalid_json_raises() -> None:
    async with _client(lambda request: httpx.Response(200, text="<html>")) as client:
        with pytest.raises(ApiError, match="not valid JSON"):
            await get_monitors(client, CronitorConfig(api_key="k"))


@pytest.mark.asyncio
async def test_put_monitors_sends_json_body() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=json.loads(request.content))

    monitors = [{"code": "abc123", "type": "job", "schedule": "0 * * * *"}]
    async with _client(handler) as client:
        data = await put_monitors(client, CronitorConfig(api_key="k", dev=True), monitors)

    assert data == {"monitors": monitors}
    assert seen[0].method == "PUT"
    assert str(seen[0].url) == DEV_API_URL
