"""CLI entry point for nostrfeed.

Follows one or more profiles, listens to the home feed and prints every new
note until interrupted. A Prometheus metrics server is started when the
configuration enables it.

Examples:
    ```bash
    python -m nostrfeed follow npub1... alice@example.com
    python -m nostrfeed follow npub1... --relay wss://relay.example.com
    python -m nostrfeed --log-level DEBUG follow npub1... --config config/client.yaml
    ```
"""

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path
from typing import Any

from nostrfeed.core.exceptions import ConfigurationError, ResolutionError
from nostrfeed.core.logger import Logger, StructuredFormatter
from nostrfeed.core.metrics import MetricsServer
from nostrfeed.core.yaml import load_yaml
from nostrfeed.feed.client import Client
from nostrfeed.models.event import Event


DEFAULT_CONFIG = Path("config") / "client.yaml"
DEFAULT_FALLBACK = ("wss://relay.damus.io", "wss://nos.lol")

logger = Logger("cli")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="nostrfeed",
        description="Nostr home feed follower",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    follow = subparsers.add_parser("follow", help="Follow profiles and print their notes")
    follow.add_argument(
        "identifiers",
        nargs="+",
        help="Hex key, npub, nprofile or NIP-05 identifier",
    )
    follow.add_argument(
        "--config",
        type=Path,
        default=DEFAULT_CONFIG,
        help=f"Client config path (default: {DEFAULT_CONFIG})",
    )
    follow.add_argument(
        "--relay",
        action="append",
        default=[],
        help="Manual relay for every followed profile (repeatable)",
    )
    follow.add_argument(
        "--fallback",
        action="append",
        default=[],
        help="Fallback relay (repeatable, added to the configured pool)",
    )
    follow.add_argument(
        "--limit",
        type=int,
        default=20,
        help="Stored notes printed on start (default: 20)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Log level (default: INFO)",
    )

    return parser.parse_args(argv)


def setup_logging(level: str) -> None:
    """Configure the root logger with structured formatting."""
    handler = logging.StreamHandler()
    handler.setFormatter(StructuredFormatter())
    logging.root.addHandler(handler)
    logging.root.setLevel(getattr(logging, level))


def _load_yaml_dict(path: Path) -> dict[str, Any]:
    """Load a YAML file as a dict, returning ``{}`` if the file does not exist."""
    if not path.exists():
        logger.warning("config_not_found", path=str(path))
        return {}
    return load_yaml(path)


def format_note(event: Event) -> str:
    content = event.content.replace("\n", " ")
    return f"{event.created_at} {event.pubkey[:12]} {content}"


async def run_follow(client: Client, args: argparse.Namespace) -> int:
    """Follow the given identifiers and print notes until shutdown."""
    for identifier in args.identifiers:
        try:
            pubkey = await client.follows.add(identifier, *args.relay)
        except ResolutionError as e:
            logger.error("follow_failed", identifier=identifier, error=str(e))
            return 1
        logger.info("following", pubkey=pubkey, relays=len(client.selection(pubkey)))

    printed: set[str] = set()

    def print_new() -> None:
        for event in client.merger.events:
            if event.id not in printed:
                printed.add(event.id)
                print(format_note(event), flush=True)  # noqa: T201

    shutdown = asyncio.Event()

    def handle_signal(sig: signal.Signals) -> None:
        logger.info("shutdown_signal", signal=sig.name)
        shutdown.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, handle_signal, sig)

    await client.home_feed.on_change(print_new)
    for event in await client.home_feed.events(limit=args.limit):
        if event.id not in printed:
            printed.add(event.id)
            print(format_note(event), flush=True)  # noqa: T201

    await shutdown.wait()
    client.home_feed.remove_listener(print_new)
    return 0


async def main(argv: list[str] | None = None) -> int:
    """Main entry point: parse args, build the client and run the command."""
    args = parse_args(argv)
    setup_logging(args.log_level)

    try:
        config_dict = _load_yaml_dict(args.config)
        fallback = config_dict.get("fallback") or list(DEFAULT_FALLBACK)
        config_dict["fallback"] = [*fallback, *args.fallback]
        client = Client.from_dict(config_dict)
    except ConfigurationError as e:
        logger.error("config_invalid", error=str(e))
        return 1

    metrics_server = MetricsServer(client.config.metrics)
    await metrics_server.start()

    try:
        async with client:
            return await run_follow(client, args)
    except Exception as e:  # Intentionally broad: CLI error boundary
        logger.error("client_failed", error=str(e), error_type=type(e).__name__)
        return 1
    finally:
        await metrics_server.stop()


def cli() -> None:
    """Synchronous entry point for console_scripts."""
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        logger.info("interrupted")
        sys.exit(130)


if __name__ == "__main__":
    cli()
