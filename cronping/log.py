"""Log and fatal sinks.

Log lines go to the configured log file (appended) and/or stdout when
verbose output is enabled. With neither configured, log lines are dropped.
"""

from __future__ import annotations

import logging
import sys
from typing import Any, NoReturn, TextIO

import structlog

from .config import CronitorConfig


class _SinkLogger:
    """Minimal structlog-compatible logger that writes rendered lines to the sinks."""

    def __init__(self, sink: "LogSink"):
        self._sink = sink

    def msg(self, message: str) -> None:
        self._sink.write(message)

    log = debug = info = warn = warning = error = critical = exception = fatal = msg


class LogSink:
    def __init__(self, config: CronitorConfig, *, stdout: TextIO | None = None, stderr: TextIO | None = None):
        self.config = config
        self._stdout = stdout
        self._stderr = stderr

    def _append_to_file(self, line: str) -> None:
        if not self.config.log_file:
            return
        try:
            with open(self.config.log_file, "a", encoding="utf-8") as f:
                f.write(line + "\n")
        except OSError as exc:
            print(f"Unable to write log file {self.config.log_file}: {exc}", file=self._stderr or sys.stderr)

    def write(self, line: str) -> None:
        self._append_to_file(line)
        if self.config.verbose:
            print(line, file=self._stdout or sys.stdout, flush=True)

    def logger_factory(self, *args: Any) -> _SinkLogger:
        return _SinkLogger(self)

    def fatal(self, message: str, exit_code: int = 1) -> NoReturn:
        """Record an unrecoverable startup error and exit the process."""
        self._append_to_file(message)
        print(message, file=self._stderr or sys.stderr)
        raise SystemExit(exit_code)


def configure_logging(config: CronitorConfig, **kwargs: Any) -> LogSink:
    """Route structlog output to the sinks described by ``config``."""
    sink = LogSink(config, **kwargs)
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="ISO"),
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.INFO),
        logger_factory=sink.logger_factory,
        cache_logger_on_first_use=False,
    )

    # The ping URL carries the auth key; keep httpx from logging it a second time.
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    return sink
