"""Heartbeat delivery client for the Cronitor ping API."""

from .config import VERSION, CronitorConfig, load_config
from .delivery import DeliveryEngine, DeliveryResult, DeliveryState, PingGroup, send_pings
from .errors import ApiError, ConfigError, CronpingError
from .metadata import MetadataResolver
from .notification import EventKind, HeartbeatNotification, encode_ping

__version__ = VERSION

__all__ = [
    "ApiError",
    "ConfigError",
    "CronitorConfig",
    "CronpingError",
    "DeliveryEngine",
    "DeliveryResult",
    "DeliveryState",
    "EventKind",
    "HeartbeatNotification",
    "MetadataResolver",
    "PingGroup",
    "encode_ping",
    "load_config",
    "send_pings",
]
