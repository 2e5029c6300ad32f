from __future__ import annotations

import enum
import logging
import socket
import time
from typing import Iterator, Optional

from .constants import DEFAULT_ENCODING, DEFAULT_TIMEOUT_MS, MAX_DATAGRAM
from .errors import MalformedPacket, TransportError
from .net import ServerEndpoint, open_socket
from .packet import Header, Query, Response, decode, is_echo


class ChannelState(enum.Enum):
    IDLE = "idle"
    SENT = "sent"
    WAITING = "waiting"
    COMPLETE = "complete"
    FAILED = "failed"


class TerminationPolicy(enum.Enum):
    """How an exchange decides the server has finished talking.

    INACTIVITY waits for the timeout after the last fragment and keeps empty
    fragments as empty lines. EMPTY_FRAGMENT also stops as soon as a fragment
    with no text arrives; that fragment is not part of the output.
    """

    INACTIVITY = "inactivity"
    EMPTY_FRAGMENT = "empty"


IN_FLIGHT = (ChannelState.SENT, ChannelState.WAITING)


class QueryChannel:
    """One UDP socket talking to one server, one exchange at a time.

    The inactivity deadline starts at the send and is pushed back only by
    fragments whose header echoes the request. Anything else read from the
    socket is dropped without touching the deadline.
    """

    def __init__(
        self,
        endpoint: ServerEndpoint,
        *,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        policy: TerminationPolicy = TerminationPolicy.EMPTY_FRAGMENT,
        encoding: str = DEFAULT_ENCODING,
        sock: Optional[socket.socket] = None,
    ):
        if timeout_ms <= 0:
            raise ValueError(f"timeout must be positive, got {timeout_ms}ms")
        if sock is None:
            try:
                sock = open_socket()
            except OSError as e:
                raise TransportError(f"cannot open UDP socket: {e}") from e

        self.endpoint = endpoint
        self.timeout_ms = timeout_ms
        self.policy = policy
        self.encoding = encoding
        self.sock = sock
        self.state = ChannelState.IDLE
        self.lines: list[str] = []
        self._request_header: Optional[Header] = None
        self._deadline = 0.0
        self._used = False

    @property
    def timeout_s(self) -> float:
        return self.timeout_ms / 1000.0

    def send(self, query: Query) -> None:
        if self.state in IN_FLIGHT:
            raise RuntimeError(f"exchange already in flight (state={self.state.value})")

        request = query.to_bytes(self.endpoint.address, self.endpoint.port, self.encoding)
        # late fragments of an earlier exchange carry the same header
        self._drain()
        self._request_header = Header.from_bytes(request)
        self.lines = []

        try:
            self.sock.sendto(request, self.endpoint.sockaddr)
        except OSError as e:
            self.state = ChannelState.FAILED
            raise TransportError(f"send to {self.endpoint} failed: {e}") from e
        self._used = True

        self._deadline = time.monotonic() + self.timeout_s
        self.state = ChannelState.SENT
        logging.debug("sent %s query to %s (%d bytes)", query.opcode.name, self.endpoint, len(request))

    def receive(self) -> Iterator[Response]:
        """Yield validated fragments until the exchange completes."""
        if self.state is not ChannelState.SENT:
            raise RuntimeError(f"nothing to receive (state={self.state.value})")
        self.state = ChannelState.WAITING

        try:
            while self.state is ChannelState.WAITING:
                response = self._next_valid()
                if response is None:
                    self.state = ChannelState.COMPLETE
                    break

                self._deadline = time.monotonic() + self.timeout_s
                if response.is_empty and self.policy is TerminationPolicy.EMPTY_FRAGMENT:
                    self.state = ChannelState.COMPLETE
                    break

                self.lines.append(response.text.decode(self.encoding, "replace"))
                yield response
        finally:
            if self.state is ChannelState.WAITING:
                # consumer walked away mid-exchange
                self.cancel()

        logging.debug("exchange with %s complete; %d line(s)", self.endpoint, len(self.lines))

    def _next_valid(self) -> Optional[Response]:
        while True:
            remaining = self._deadline - time.monotonic()
            if remaining <= 0:
                return None
            self.sock.settimeout(remaining)
            try:
                raw, addr = self.sock.recvfrom(MAX_DATAGRAM)
            except TimeoutError:
                continue
            except ConnectionError as e:
                # ICMP port unreachable from a server that is down or restarting
                logging.warning("server %s reported unreachable: %s", self.endpoint, e)
                continue
            except OSError as e:
                self.state = ChannelState.FAILED
                raise TransportError(f"receive from {self.endpoint} failed: {e}") from e

            try:
                response = decode(raw)
            except MalformedPacket as e:
                logging.debug("dropping datagram from %s: %s", addr, e)
                continue
            if self._request_header is None or not is_echo(response.header, self._request_header):
                logging.debug("dropping foreign datagram from %s", addr)
                continue
            return response

    def exchange(self, query: Query) -> list[str]:
        self.send(query)
        for _ in self.receive():
            pass
        return list(self.lines)

    def cancel(self) -> None:
        """Abandon the current exchange, if any. Safe to call repeatedly."""
        if self.state is ChannelState.IDLE:
            return
        self._drain()
        self._request_header = None
        self.state = ChannelState.IDLE

    def _drain(self) -> None:
        # an unused socket has no local port to read from yet
        if not self._used or self.sock.fileno() < 0:
            return
        dropped = 0
        self.sock.setblocking(False)
        while True:
            try:
                self.sock.recvfrom(MAX_DATAGRAM)
            except BlockingIOError:
                break
            except ConnectionError:
                continue
            dropped += 1
        if dropped:
            logging.debug("discarded %d stale datagram(s)", dropped)

    def close(self) -> None:
        self.cancel()
        self.sock.close()

    def __enter__(self) -> "QueryChannel":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
