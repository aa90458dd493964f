"""Heartbeat delivery: bounded retries with a one-way host failover."""

from __future__ import annotations

import asyncio
import enum
from dataclasses import dataclass
from typing import Awaitable, Callable, Iterable

import httpx
import structlog

from .config import USER_AGENT, CronitorConfig
from .metadata import MetadataResolver
from .notification import EncodedPing, HeartbeatNotification, encode_ping

logger = structlog.get_logger(__name__)

PRIMARY_HOST = "https://cronitor.link"
CANONICAL_HOST = "https://cronitor.io"
DEV_HOST = "http://dev.cronitor.io"

MAX_ATTEMPTS = 6
FAILOVER_ATTEMPT = 3
BACKOFF_FROM_ATTEMPT = 3
BACKOFF_SECONDS = 2.0
REQUEST_TIMEOUT_SECONDS = 3.0


class DeliveryState(str, enum.Enum):
    ATTEMPTING = "attempting"
    SUCCEEDED = "succeeded"
    GAVE_UP = "gave_up"


@dataclass(frozen=True)
class DeliveryResult:
    identifier: str
    event: str
    state: DeliveryState
    urls: tuple[str, ...]

    @property
    def attempts(self) -> int:
        return len(self.urls)

    @property
    def ok(self) -> bool:
        return self.state is DeliveryState.SUCCEEDED


def select_host(
    attempt: int,
    *,
    dev: bool,
    primary_host: str = PRIMARY_HOST,
    canonical_host: str = CANONICAL_HOST,
    dev_host: str = DEV_HOST,
) -> str:
    if dev:
        return dev_host
    if attempt >= FAILOVER_ATTEMPT:
        return canonical_host
    return primary_host


class DeliveryEngine:
    """Sends heartbeat notifications to the ping API.

    One engine can serve any number of concurrent deliveries; it holds only
    read-only configuration. Each attempt opens its own HTTP client.
    """

    def __init__(
        self,
        config: CronitorConfig,
        *,
        resolver: MetadataResolver | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
        primary_host: str = PRIMARY_HOST,
        canonical_host: str = CANONICAL_HOST,
        dev_host: str = DEV_HOST,
    ):
        self.config = config
        self.resolver = resolver or MetadataResolver(config)
        self._transport = transport
        self._sleep = sleep
        self.primary_host = primary_host
        self.canonical_host = canonical_host
        self.dev_host = dev_host

    def host_for_attempt(self, attempt: int) -> str:
        return select_host(
            attempt,
            dev=self.config.dev,
            primary_host=self.primary_host,
            canonical_host=self.canonical_host,
            dev_host=self.dev_host,
        )

    def encode(self, notification: HeartbeatNotification) -> EncodedPing:
        return encode_ping(
            notification,
            ping_auth_key=self.config.ping_api_key,
            hostname=self.resolver.resolve_hostname(),
        )

    async def deliver(self, notification: HeartbeatNotification) -> DeliveryResult:
        """
        Attempt delivery until success or MAX_ATTEMPTS failures.

        Failures are logged, never raised. The returned result is informational;
        fire-and-forget callers may ignore it.
        """
        encoded = self.encode(notification)
        log = logger.bind(monitor=encoded.identifier, endpoint=encoded.event.value)
        urls: list[str] = []

        for attempt in range(1, MAX_ATTEMPTS + 1):
            url = encoded.url(self.host_for_attempt(attempt), attempt)
            urls.append(url)
            log.info("Sending ping", url=url, attempt=attempt)

            if await self._attempt(url, log):
                log.info("Ping delivered", attempts=attempt)
                return DeliveryResult(encoded.identifier, encoded.event.value, DeliveryState.SUCCEEDED, tuple(urls))

            if BACKOFF_FROM_ATTEMPT <= attempt < MAX_ATTEMPTS:
                await self._sleep(BACKOFF_SECONDS)

        log.warning("Ping not delivered; giving up", attempts=MAX_ATTEMPTS)
        return DeliveryResult(encoded.identifier, encoded.event.value, DeliveryState.GAVE_UP, tuple(urls))

    async def _attempt(self, url: str, log: structlog.typing.FilteringBoundLogger) -> bool:
        try:
            async with httpx.AsyncClient(
                transport=self._transport,
                timeout=REQUEST_TIMEOUT_SECONDS,
                headers={"User-Agent": USER_AGENT},
            ) as client:
                # The body is read in full here; a broken body surfaces as a transport error.
                resp = await client.get(url)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            log.info("Ping attempt failed", error=f"{type(exc).__name__}: {exc}")
            return False

        if resp.status_code >= 400:
            log.info("Ping attempt rejected", status_code=resp.status_code)
            return False
        return True


class PingGroup:
    """Caller-owned barrier over concurrently running deliveries.

    Usage::

        async with PingGroup(engine) as group:
            group.spawn(start_notification)
            group.spawn(other_notification)
        results = group.results
    """

    def __init__(self, engine: DeliveryEngine):
        self._engine = engine
        self._tasks: list[asyncio.Task[DeliveryResult]] = []
        self.results: list[DeliveryResult] = []

    def spawn(self, notification: HeartbeatNotification) -> asyncio.Task[DeliveryResult]:
        task = asyncio.create_task(self._engine.deliver(notification))
        self._tasks.append(task)
        return task

    async def wait(self) -> list[DeliveryResult]:
        if self._tasks:
            tasks, self._tasks = self._tasks, []
            self.results.extend(await asyncio.gather(*tasks))
        return list(self.results)

    async def __aenter__(self) -> "PingGroup":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.wait()


async def send_pings(engine: DeliveryEngine, notifications: Iterable[HeartbeatNotification]) -> list[DeliveryResult]:
    group = PingGroup(engine)
    for notification in notifications:
        group.spawn(notification)
    return await group.wait()
