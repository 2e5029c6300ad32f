from __future__ import annotations

import logging
import socket
from dataclasses import dataclass
from typing import Tuple

from .errors import ResolutionError


@dataclass(frozen=True, slots=True)
class ServerEndpoint:
    host: str
    port: int

    @property
    def address(self) -> int:
        """IPv4 address as the 32-bit value carried in packet headers."""
        return int.from_bytes(socket.inet_aton(self.host), "big")

    @property
    def sockaddr(self) -> Tuple[str, int]:
        return (self.host, self.port)

    def __str__(self) -> str:
        return f"{self.host}:{self.port}"


def resolve(host: str, port: int) -> ServerEndpoint:
    """Resolve host/port to the first IPv4 UDP address it maps to."""
    if not 0 < port <= 0xFFFF:
        raise ResolutionError(f"invalid port: {port}")
    try:
        infos = socket.getaddrinfo(host, port, socket.AF_INET, socket.SOCK_DGRAM, socket.IPPROTO_UDP)
    except (socket.gaierror, UnicodeError) as e:
        raise ResolutionError(f"cannot resolve {host!r}: {e}") from e
    if not infos:
        raise ResolutionError(f"no IPv4 address for {host!r}")

    ip, resolved_port = infos[0][4][:2]
    logging.debug("resolved %s:%d -> %s:%d", host, port, ip, resolved_port)
    return ServerEndpoint(ip, resolved_port)


def open_socket() -> socket.socket:
    return socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
