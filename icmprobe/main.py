"""Command line entry point: ``icmprobe [--ttl N] [--interval SECONDS] <destination>``."""

from __future__ import annotations

import argparse
import signal
from typing import Optional, Sequence

from ._config import DEFAULT_INTERVAL, DEFAULT_TTL, MAX_INTERVAL, ProbeConfig, valid_interval
from ._exceptions import ProbeError, UsageError
from ._log import logger, setup_logging
from ._models import CancelToken, SessionStats
from ._resolver import resolve_destination
from ._session import Session
from ._transport import Transport

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2


def _ttl(value: str) -> int:
    try:
        ttl = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid ttl: {value!r}")
    if not 1 <= ttl <= 255:
        raise argparse.ArgumentTypeError("ttl must be between 1 and 255")
    return ttl


def _interval(value: str) -> float:
    try:
        interval = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid interval: {value!r}")
    if not valid_interval(interval):
        raise argparse.ArgumentTypeError(
            f"interval must be a positive number of seconds up to {MAX_INTERVAL:g}"
        )
    return interval


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="icmprobe",
        description="Measure round-trip latency to a host with ICMP Echo.",
    )
    parser.add_argument("destination", help="Destination hostname or IP address")
    parser.add_argument(
        "--ttl",
        type=_ttl,
        default=DEFAULT_TTL,
        help=f"TTL / hop limit of the requests (default: {DEFAULT_TTL})",
    )
    parser.add_argument(
        "--interval",
        type=_interval,
        default=DEFAULT_INTERVAL,
        help=f"Seconds between requests (default: {DEFAULT_INTERVAL:g})",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable debug logging"
    )
    return parser


def install_signal_handlers(token: CancelToken) -> None:
    def handler(signum, frame) -> None:
        token.cancel()

    signal.signal(signal.SIGINT, handler)
    signal.signal(signal.SIGTERM, handler)


def run(config: ProbeConfig, token: Optional[CancelToken] = None) -> SessionStats:
    """Resolve, open the socket and probe until ``token`` is cancelled."""
    if token is None:
        token = CancelToken()
    destination = resolve_destination(config.destination)
    logger.info("Ping %s (ttl=%s, interval=%gs)", destination, config.ttl, config.interval)

    transport = Transport.open(
        destination.is_ipv6, ttl=config.ttl, buffer_size=config.buffer_size
    )
    session = Session(
        transport,
        destination,
        interval=config.interval,
        max_receive_errors=config.max_receive_errors,
        join_timeout=config.join_timeout,
    )
    return session.run(token)


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose)

    try:
        config = ProbeConfig.from_args(args)
    except UsageError as exc:
        parser.print_usage()
        logger.error("usage error: %s", exc)
        return EXIT_USAGE

    token = CancelToken()
    install_signal_handlers(token)
    try:
        run(config, token)
    except ProbeError as exc:
        logger.error(str(exc))
        return EXIT_FAILURE
    return EXIT_OK
