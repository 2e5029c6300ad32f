from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional, TextIO

from .channel import QueryChannel, TerminationPolicy
from .constants import DEFAULT_ENCODING, DEFAULT_TIMEOUT_MS, PROMPT
from .errors import ConfigurationError, RconError
from .net import ServerEndpoint, resolve
from .packet import Query


@dataclass(slots=True)
class Session:
    """A resolved server plus the channel every command of a run goes through."""

    endpoint: ServerEndpoint
    password: str
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    policy: TerminationPolicy = TerminationPolicy.EMPTY_FRAGMENT
    encoding: str = DEFAULT_ENCODING
    channel: Optional[QueryChannel] = field(default=None, repr=False)

    @classmethod
    def open(
        cls,
        host: str,
        port: int,
        password: str,
        *,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        policy: TerminationPolicy = TerminationPolicy.EMPTY_FRAGMENT,
        encoding: str = DEFAULT_ENCODING,
    ) -> "Session":
        if not password:
            raise ConfigurationError("an RCON password is required")
        endpoint = resolve(host, port)
        channel = QueryChannel(endpoint, timeout_ms=timeout_ms, policy=policy, encoding=encoding)
        return cls(endpoint, password, timeout_ms, policy, encoding, channel)

    def execute(self, command: str) -> list[str]:
        if self.channel is None:
            raise RuntimeError("session is closed")
        return self.channel.exchange(Query.execute(self.password, command))

    def close(self) -> None:
        if self.channel is not None:
            self.channel.close()
            self.channel = None

    def __enter__(self) -> "Session":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def _print_lines(lines: list[str], out: TextIO) -> None:
    for line in lines:
        out.write(line + "\n")
    out.flush()


def run_once(session: Session, command: str, out: TextIO) -> int:
    try:
        lines = session.execute(command)
    except RconError as e:
        logging.error("%s", e)
        return 1
    _print_lines(lines, out)
    return 0


def run_interactive(session: Session, lines_in: Iterable[str], out: TextIO) -> int:
    """Read-send-print loop. Ends cleanly when the input runs out.

    A failed exchange is reported and the loop carries on with the next
    command; the socket stays open for the whole loop.
    """
    out.write(f"Remote console to {session.endpoint}\n")
    out.write('Type "cmdlist" for the list of available commands\n')
    out.write(PROMPT)
    out.flush()

    for raw in lines_in:
        command = raw.strip()
        if command:
            try:
                lines = session.execute(command)
            except RconError as e:
                logging.error("%s", e)
                if session.channel is not None:
                    session.channel.cancel()
            else:
                _print_lines(lines, out)
        out.write(PROMPT)
        out.flush()

    out.write("\n")
    out.flush()
    return 0
