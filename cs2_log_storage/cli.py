"""Command line entry point.

    cs2-log-storage serve --config relay.yaml
    cs2-log-storage list --data-dir ./logs
    cs2-log-storage dump <log_id> --data-dir ./logs
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from dataclasses import replace

from .config import RelayConfig
from .exceptions import LogStorageError
from .live import BroadcastHub
from .local import LogStore
from .logging_utils import configure_relay_logging, get_component_logger
from .reassembly import ReassemblyEngine

logger = get_component_logger("cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cs2-log-storage",
        description="Reassemble streamed CS2 server logs and relay them to live viewers",
    )
    parser.add_argument("--config", help="Path to YAML settings file")
    parser.add_argument("--data-dir", help="Storage directory (overrides config)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the HTTP/WebSocket server")
    serve.add_argument("--host", help="Bind address")
    serve.add_argument("--port", type=int, help="Bind port")

    subparsers.add_parser("list", help="Print stored log sessions as JSON")

    dump = subparsers.add_parser("dump", help="Write a stored log to stdout")
    dump.add_argument("log_id", help="Log id as shown by 'list'")

    return parser


def resolve_config(args: argparse.Namespace) -> RelayConfig:
    config = RelayConfig.load(args.config)
    overrides = {}
    if args.data_dir:
        overrides["data_dir"] = args.data_dir
    if getattr(args, "host", None):
        overrides["host"] = args.host
    if getattr(args, "port", None):
        overrides["port"] = args.port
    return replace(config, **overrides)


async def list_logs(config: RelayConfig) -> list[dict]:
    store = LogStore(config.data_dir)
    engine = ReassemblyEngine(store, BroadcastHub(), config.correlation_window_seconds)
    return [summary.to_dict() for summary in await engine.list_logs()]


async def dump_log(config: RelayConfig, log_id: str) -> bytes:
    return await LogStore(config.data_dir).read_full_log(log_id)


def serve(config: RelayConfig) -> None:
    import uvicorn

    from .api import create_app

    uvicorn.run(
        create_app(config),
        host=config.host,
        port=config.port,
        log_level=config.log_level.lower(),
        log_config=None,
    )


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = resolve_config(args)
    except LogStorageError as e:
        print(f"Invalid configuration: {e.message}", file=sys.stderr)
        return 2

    configure_relay_logging(
        level=config.log_level.upper(),
        json_format=config.json_logs,
    )

    try:
        if args.command == "serve":
            serve(config)
        elif args.command == "list":
            print(json.dumps(asyncio.run(list_logs(config)), indent=2))
        elif args.command == "dump":
            sys.stdout.buffer.write(asyncio.run(dump_log(config, args.log_id)))
            sys.stdout.flush()
    except LogStorageError as e:
        logger.error(e.message)
        return 1
    return 0
