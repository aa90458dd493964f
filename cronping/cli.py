"""Command line front end for cronping.

Usage:
    cronping ping <code> [--run|--complete|--fail] [--msg TEXT] [--tag TAG]
    cronping exec <code> <command...>
    cronping list
    cronping info
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
import time
import uuid
from typing import Any, Sequence

import httpx
import structlog

from .api_client import get_monitors
from .config import VERSION, CronitorConfig, load_config
from .delivery import DeliveryEngine, PingGroup, send_pings
from .errors import ApiError, ConfigError
from .log import LogSink, configure_logging
from .metadata import MetadataResolver
from .notification import MESSAGE_MAX_BYTES, EventKind, HeartbeatNotification, make_stamp

logger = structlog.get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cronping",
        description=f"CronitorCLI version {VERSION}. Command line tools for Cronitor.io.",
    )
    parser.add_argument("-c", "--config", default=None, help="Config file (default: cronitor.json)")
    parser.add_argument("-k", "--api-key", default=None, help="Cronitor API Key")
    parser.add_argument("-p", "--ping-api-key", default=None, help="Ping API Key")
    parser.add_argument(
        "-n", "--hostname", default=None, help="A unique identifier for this host (default: system hostname)"
    )
    parser.add_argument("-l", "--log", default=None, help="Write debug logs to supplied file")
    parser.add_argument("-v", "--verbose", action="store_true", default=None, help="Verbose output")
    parser.add_argument("--use-dev", action="store_true", default=None, help=argparse.SUPPRESS)

    sub = parser.add_subparsers(dest="command", required=True)

    ping = sub.add_parser("ping", help="Send a single ping for a monitor")
    ping.add_argument("code", help="Monitor code")
    kind = ping.add_mutually_exclusive_group()
    for event in EventKind:
        kind.add_argument(
            f"--{event.value}",
            dest="event",
            action="store_const",
            const=event,
            help=f"Send a {event.value} event",
        )
    ping.add_argument("--msg", default=None, help="Optional message to send with the ping")
    ping.add_argument("--tag", default=None, help="Tag used to pair run and complete events")
    ping.add_argument("--duration", type=float, default=None, help="Duration of the run in seconds")
    ping.add_argument("--status-code", type=int, default=None, help="Exit status of the job")
    ping.set_defaults(event=EventKind.PING)

    exec_cmd = sub.add_parser("exec", help="Run a command and report its lifecycle")
    exec_cmd.add_argument("code", help="Monitor code")
    exec_cmd.add_argument("cmd", nargs=argparse.REMAINDER, help="Command to run")

    sub.add_parser("list", help="List monitors for the configured API key")
    sub.add_parser("info", help="Show the effective host metadata and configuration")
    return parser


def _overrides(args: argparse.Namespace) -> dict[str, Any]:
    return {
        "api_key": args.api_key,
        "ping_api_key": args.ping_api_key,
        "hostname": args.hostname,
        "log_file": args.log,
        "verbose": args.verbose,
        "dev": args.use_dev,
    }


def strip_excluded(text: str, exclude: Sequence[str]) -> str:
    for item in exclude:
        if item:
            text = text.replace(item, "")
    return text


def output_tail(output: str, limit: int = MESSAGE_MAX_BYTES) -> str:
    raw = output.encode("utf-8")
    if len(raw) <= limit:
        return output
    return raw[-limit:].decode("utf-8", errors="ignore")


async def run_ping(engine: DeliveryEngine, args: argparse.Namespace) -> int:
    notification = HeartbeatNotification(
        identifier=args.code,
        event=args.event,
        stamp=make_stamp(),
        message=args.msg,
        tag=args.tag,
        duration=args.duration,
        exit_code=args.status_code,
    )
    await send_pings(engine, [notification])
    return 0


async def _stream_command(command: str) -> tuple[int, str]:
    proc = await asyncio.create_subprocess_shell(
        command,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.STDOUT,
    )
    chunks: list[str] = []
    assert proc.stdout is not None
    async for line in proc.stdout:
        text = line.decode("utf-8", errors="replace")
        sys.stdout.write(text)
        sys.stdout.flush()
        chunks.append(text)
    return await proc.wait(), "".join(chunks)


async def run_exec(engine: DeliveryEngine, config: CronitorConfig, code: str, cmd: Sequence[str]) -> int:
    command = " ".join(cmd).strip()
    if not command:
        raise ValueError("exec requires a command to run")

    tag = uuid.uuid4().hex[:10]
    started = time.monotonic()
    async with PingGroup(engine) as group:
        group.spawn(HeartbeatNotification(identifier=code, event=EventKind.RUN, stamp=make_stamp(), message=command, tag=tag))

        exit_code, output = await _stream_command(command)
        duration = time.monotonic() - started
        logger.info("Command finished", command=command, exit_code=exit_code, duration=round(duration, 3))

        group.spawn(
            HeartbeatNotification(
                identifier=code,
                event=EventKind.COMPLETE if exit_code == 0 else EventKind.FAIL,
                stamp=make_stamp(),
                message=output_tail(strip_excluded(output, config.exclude_text)).strip() or None,
                tag=tag,
                duration=duration,
                exit_code=exit_code,
            )
        )
    return exit_code


async def run_list(config: CronitorConfig) -> int:
    async with httpx.AsyncClient() as client:
        monitors = await get_monitors(client, config)
    print(json.dumps(monitors, indent=2, ensure_ascii=False))
    return 0


def run_info(config: CronitorConfig, resolver: MetadataResolver) -> int:
    print(f"Version:   {VERSION}")
    print(f"Hostname:  {resolver.resolve_hostname()}")
    print(f"Timezone:  {resolver.resolve_timezone().strip()}")
    print(f"Config:    {config.config_file or '(none)'}")
    print(f"Log file:  {config.log_file or '(none)'}")
    print(f"API key:   {'set' if config.api_key else 'not set'}")
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = load_config(args.config, overrides=_overrides(args))
    except ConfigError as exc:
        LogSink(CronitorConfig(log_file=args.log or "")).fatal(str(exc), 1)

    sink = configure_logging(config)
    if config.config_file:
        logger.info("Reading config", path=config.config_file)

    resolver = MetadataResolver(config)
    engine = DeliveryEngine(config, resolver=resolver)

    try:
        if args.command == "ping":
            return asyncio.run(run_ping(engine, args))
        if args.command == "exec":
            return asyncio.run(run_exec(engine, config, args.code, args.cmd))
        if args.command == "list":
            if not config.api_key:
                sink.fatal("An API key is required to list monitors (use --api-key or CRONITOR_API_KEY)", 1)
            return asyncio.run(run_list(config))
        if args.command == "info":
            return run_info(config, resolver)
    except (ApiError, ValueError) as exc:
        sink.fatal(str(exc), 1)

    parser.error(f"unknown command {args.command!r}")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
