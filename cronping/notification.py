from __future__ import annotations

import enum
import time
from dataclasses import dataclass
from urllib.parse import quote_plus

MESSAGE_MAX_BYTES = 2000
AUTH_KEY_MAX_BYTES = 50
HOSTNAME_MAX_BYTES = 50


class EventKind(str, enum.Enum):
    """Ping endpoint; the value is the URL path segment."""

    RUN = "run"
    COMPLETE = "complete"
    FAIL = "fail"
    PING = "ping"


@dataclass(frozen=True)
class HeartbeatNotification:
    identifier: str
    event: EventKind
    stamp: float | None = None
    message: str | None = None
    tag: str | None = None
    duration: float | None = None
    exit_code: int | None = None


def make_stamp() -> float:
    return time.time_ns() / 1_000_000_000


def format_stamp(value: float) -> str:
    return f"{value:.3f}"


def truncate_bytes(value: str, limit: int) -> bytes:
    """
    UTF-8 encode and cut to at most ``limit`` bytes.

    The cut is not character-aware and may split a multi-byte character.
    The service has always received byte-truncated values, so this is kept.
    """
    raw = value.encode("utf-8")
    if len(raw) <= limit:
        return raw
    return raw[:limit]


@dataclass(frozen=True)
class EncodedPing:
    """Wire form of one notification. Only the attempt counter changes between retries."""

    identifier: str
    event: EventKind
    fields: str

    def query(self, attempt: int) -> str:
        return f"try={int(attempt)}{self.fields}"

    def url(self, host: str, attempt: int) -> str:
        return ping_url(host, self.identifier, self.event, self.query(attempt))


def encode_ping(
    notification: HeartbeatNotification,
    *,
    ping_auth_key: str = "",
    hostname: str = "",
) -> EncodedPing:
    parts: list[str] = []

    if notification.stamp is not None:
        parts.append(f"&stamp={format_stamp(notification.stamp)}")

    if notification.message:
        parts.append(f"&msg={quote_plus(truncate_bytes(notification.message, MESSAGE_MAX_BYTES))}")

    if ping_auth_key:
        key = truncate_bytes(ping_auth_key, AUTH_KEY_MAX_BYTES).decode("utf-8", errors="ignore")
        parts.append(f"&auth_key={key}")

    if hostname:
        parts.append(f"&host={quote_plus(truncate_bytes(hostname, HOSTNAME_MAX_BYTES))}")

    # Sending the duration saves the server from pairing the run and complete stamps.
    if notification.duration is not None:
        parts.append(f"&duration={format_stamp(notification.duration)}")

    # The tag pairs start and end events when several instances of a job overlap.
    if notification.tag:
        parts.append(f"&tag={notification.tag}")

    if notification.exit_code is not None:
        parts.append(f"&status_code={int(notification.exit_code)}")

    return EncodedPing(identifier=notification.identifier, event=EventKind(notification.event), fields="".join(parts))


def ping_url(host: str, identifier: str, event: EventKind | str, query: str) -> str:
    segment = event.value if isinstance(event, EventKind) else str(event)
    return f"{host.rstrip('/')}/{identifier}/{segment}?{query}"
