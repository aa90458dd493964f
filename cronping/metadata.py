from __future__ import annotations

import os
import re
import socket
import subprocess
from typing import Mapping, Sequence

import structlog

from .config import CronitorConfig

logger = structlog.get_logger(__name__)

LOCALTIME_PATH = "/etc/localtime"
TIMEZONE_PATH = "/etc/timezone"
TIMEDATECTL_CMD = ("timedatectl",)

_TIMEZONE_RE = re.compile(r"(?m)Timezone:\s+(\S+)")


class MetadataResolver:
    """Effective hostname and timezone for outgoing notifications.

    Every lookup degrades to the next source, and finally to an empty string.
    Nothing here raises.
    """

    def __init__(
        self,
        config: CronitorConfig,
        *,
        environ: Mapping[str, str] | None = None,
        localtime_path: str = LOCALTIME_PATH,
        timezone_path: str = TIMEZONE_PATH,
        timedatectl_cmd: Sequence[str] = TIMEDATECTL_CMD,
        command_timeout_seconds: float = 5.0,
    ):
        self.config = config
        self.environ = os.environ if environ is None else environ
        self.localtime_path = localtime_path
        self.timezone_path = timezone_path
        self.timedatectl_cmd = tuple(timedatectl_cmd)
        self.command_timeout_seconds = command_timeout_seconds

    def resolve_hostname(self) -> str:
        if self.config.hostname:
            return self.config.hostname
        try:
            return socket.gethostname()
        except OSError as exc:
            logger.warning("Hostname lookup failed", error=str(exc))
            return ""

    def resolve_timezone(self) -> str:
        # Presence of TZ wins even when it is empty.
        if "TZ" in self.environ:
            return self.environ["TZ"]

        for step in (self._timezone_from_timedatectl, self._timezone_from_localtime_link, self._timezone_from_file):
            tz = step()
            if tz is not None:
                return tz
        return ""

    def _timezone_from_timedatectl(self) -> str | None:
        if not self.timedatectl_cmd:
            return None
        try:
            proc = subprocess.run(
                list(self.timedatectl_cmd),
                capture_output=True,
                text=True,
                timeout=self.command_timeout_seconds,
                check=True,
            )
        except (OSError, subprocess.SubprocessError):
            return None
        output = (proc.stdout or "").replace("Time zone", "Timezone")
        m = _TIMEZONE_RE.search(output)
        return m.group(1) if m else None

    def _timezone_from_localtime_link(self) -> str | None:
        if not os.path.islink(self.localtime_path):
            return None
        try:
            target = os.readlink(self.localtime_path)
        except OSError:
            return None
        if not target:
            return None
        return "/".join(target.split("/")[-2:])

    def _timezone_from_file(self) -> str | None:
        # No guarantee the system uses this file; the contents are returned unparsed.
        try:
            with open(self.timezone_path, "r", encoding="utf-8") as f:
                return f.read()
        except (OSError, UnicodeDecodeError):
            return None
