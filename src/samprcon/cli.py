from __future__ import annotations

import argparse
import codecs
import logging
import os
import sys

from .channel import TerminationPolicy
from .constants import (
    DEFAULT_ENCODING,
    DEFAULT_HOST,
    DEFAULT_PORT,
    DEFAULT_TIMEOUT_MS,
    PASSWORD_ENV,
)
from .errors import RconError
from .session import Session, run_interactive, run_once


def _positive_int(value: str) -> int:
    n = int(value)
    if n <= 0:
        raise argparse.ArgumentTypeError(f"must be positive: {value}")
    return n


def _encoding(value: str) -> str:
    try:
        return codecs.lookup(value).name
    except LookupError as e:
        raise argparse.ArgumentTypeError(f"unknown encoding: {value}") from e


def _port(value: str) -> int:
    n = int(value)
    if not 0 < n <= 0xFFFF:
        raise argparse.ArgumentTypeError(f"not a valid port: {value}")
    return n


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="samp-rcon", description="SA-MP remote console over UDP.")
    p.add_argument("-H", "--host", default=DEFAULT_HOST, help="server name or IP address")
    p.add_argument("-p", "--port", type=_port, default=DEFAULT_PORT, help="server port")
    p.add_argument(
        "-w",
        "--password",
        default=os.environ.get(PASSWORD_ENV),
        help=f"RCON password (default: ${PASSWORD_ENV})",
    )
    p.add_argument("-c", "--command", help="execute command and exit")
    p.add_argument(
        "-t",
        "--timeout",
        type=_positive_int,
        default=DEFAULT_TIMEOUT_MS,
        help="inactivity timeout in milliseconds",
    )
    p.add_argument("-i", "--interactive", action="store_true", help="run in interactive mode")
    p.add_argument(
        "--termination",
        choices=[t.value for t in TerminationPolicy],
        default=TerminationPolicy.EMPTY_FRAGMENT.value,
        help="end a response on an empty line, or only on inactivity",
    )
    p.add_argument("--encoding", type=_encoding, default=DEFAULT_ENCODING, help="text encoding on the wire")
    p.add_argument("--log-level", default="WARNING", choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])
    return p


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.password:
        parser.error(f"the following arguments are required: -w/--password (or set {PASSWORD_ENV})")
    if not args.interactive and args.command is None:
        parser.error("non-interactive mode requires --command")

    logging.basicConfig(level=getattr(logging, args.log_level), format="%(asctime)s [%(levelname)s] %(message)s")

    try:
        session = Session.open(
            args.host,
            args.port,
            args.password,
            timeout_ms=args.timeout,
            policy=TerminationPolicy(args.termination),
            encoding=args.encoding,
        )
    except RconError as e:
        raise SystemExit(f"error: {e}") from e

    with session:
        if args.interactive:
            return run_interactive(session, sys.stdin, sys.stdout)
        return run_once(session, args.command, sys.stdout)


if __name__ == "__main__":
    raise SystemExit(main())
