from __future__ import annotations

import socket
import struct
import threading
import time
from typing import Callable, Optional, Sequence, Tuple

import pytest

Step = Tuple[float, Callable[[bytes], bytes]]


def echo(text: bytes) -> Callable[[bytes], bytes]:
    """Reply with the request header and one line of text."""
    return lambda request: request[:11] + struct.pack("<H", len(text)) + text


def foreign(text: bytes = b"spoofed") -> Callable[[bytes], bytes]:
    """Reply with a header the client never sent."""

    def build(request: bytes) -> bytes:
        header = b"SAMP" + request[4:10] + b"i"
        return header + struct.pack("<H", len(text)) + text

    return build


def raw(data: bytes) -> Callable[[bytes], bytes]:
    return lambda request: data


class FakeServer:
    """Loopback UDP server answering the n-th request with the n-th script."""

    def __init__(self, scripts: Sequence[Sequence[Step]]):
        self.scripts = list(scripts)
        self.requests: list[bytes] = []
        self.sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        self.sock.bind(("127.0.0.1", 0))
        self.sock.settimeout(0.05)
        self.port = self.sock.getsockname()[1]
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> "FakeServer":
        self._thread = threading.Thread(target=self._run, daemon=True)
        self._thread.start()
        return self

    def _run(self) -> None:
        while not self._stop.is_set():
            try:
                data, addr = self.sock.recvfrom(65535)
            except (TimeoutError, ConnectionError):
                continue
            except OSError:
                return
            index = len(self.requests)
            self.requests.append(data)
            if index >= len(self.scripts):
                continue
            for delay, build in self.scripts[index]:
                if delay:
                    time.sleep(delay)
                self.sock.sendto(build(data), addr)

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=2.0)
        self.sock.close()


@pytest.fixture
def fake_server():
    servers: list[FakeServer] = []

    def start(*scripts: Sequence[Step]) -> FakeServer:
        srv = FakeServer(scripts).start()
        servers.append(srv)
        return srv

    yield start
    for srv in servers:
        srv.stop()
