from __future__ import annotations

import enum
import struct
from dataclasses import dataclass
from typing import Iterable, Optional

from .constants import (
    DEFAULT_ENCODING,
    HEADER_FORMAT,
    LENGTH_FORMAT,
    MAX_FIELD_LEN,
    MAX_RESPONSE_TEXT,
    SIGNATURE,
)
from .errors import EncodeError, MalformedPacket

HEADER_LEN = struct.calcsize(HEADER_FORMAT)
LENGTH_LEN = struct.calcsize(LENGTH_FORMAT)


class Opcode(enum.IntEnum):
    INFO = ord("i")
    RULES = ord("r")
    CLIENT_LIST = ord("c")
    DETAILED_INFO = ord("d")
    EXECUTE = ord("x")
    PING = ord("p")

    @property
    def requires_password(self) -> bool:
        return self is Opcode.EXECUTE


@dataclass(frozen=True, slots=True)
class Header:
    address: int
    port: int
    opcode: int
    signature: bytes = SIGNATURE

    def to_bytes(self) -> bytes:
        return struct.pack(HEADER_FORMAT, self.signature, self.address, self.port, self.opcode)

    @staticmethod
    def from_bytes(raw: bytes) -> "Header":
        if len(raw) < HEADER_LEN:
            raise MalformedPacket("datagram too small to hold a header")
        signature, address, port, opcode = struct.unpack_from(HEADER_FORMAT, raw)
        return Header(address=address, port=port, opcode=opcode, signature=signature)


@dataclass(frozen=True, slots=True)
class Response:
    header: Header
    text_length: int
    text: bytes = b""

    @property
    def is_empty(self) -> bool:
        return self.text_length == 0


@dataclass(frozen=True, slots=True)
class Query:
    opcode: Opcode
    password: Optional[str] = None
    fields: tuple[str, ...] = ()

    @staticmethod
    def execute(password: str, command: str) -> "Query":
        return Query(opcode=Opcode.EXECUTE, password=password, fields=(command,))

    def to_bytes(self, address: int, port: int, encoding: str = DEFAULT_ENCODING) -> bytes:
        try:
            password = self.password.encode(encoding) if self.password is not None else None
            fields = [f.encode(encoding) for f in self.fields]
        except UnicodeEncodeError as e:
            raise EncodeError(f"password or command has characters {encoding} cannot represent") from e
        return encode(address, port, self.opcode, password, fields)


def _length_prefixed(value: bytes, what: str) -> bytes:
    if len(value) > MAX_FIELD_LEN:
        raise EncodeError(f"{what} too long: {len(value)} bytes (max {MAX_FIELD_LEN})")
    return struct.pack(LENGTH_FORMAT, len(value)) + value


def encode(
    address: int,
    port: int,
    opcode: int,
    password: Optional[bytes] = None,
    fields: Iterable[bytes] = (),
) -> bytes:
    """Build a request datagram.

    The password is written only for the execute opcode, which cannot be sent
    without one. Every field follows as a 16-bit length and its raw bytes.
    """
    out = bytearray(Header(address=address, port=port, opcode=int(opcode)).to_bytes())
    if opcode == Opcode.EXECUTE:
        if not password:
            raise EncodeError("execute queries require a password")
        out += _length_prefixed(password, "password")
    for i, field in enumerate(fields):
        out += _length_prefixed(field, f"field {i}")
    return bytes(out)


def decode(raw: bytes) -> Response:
    if len(raw) < HEADER_LEN + LENGTH_LEN:
        raise MalformedPacket("datagram too small to be a response")

    header = Header.from_bytes(raw)
    (text_length,) = struct.unpack_from(LENGTH_FORMAT, raw, HEADER_LEN)
    text = raw[HEADER_LEN + LENGTH_LEN : HEADER_LEN + LENGTH_LEN + text_length]
    if len(text) != text_length:
        raise MalformedPacket(f"truncated text: declared {text_length}, got {len(text)}")

    # oversized lines are cut, not rejected
    return Response(header=header, text_length=text_length, text=text[:MAX_RESPONSE_TEXT])


def is_echo(header: Header, request_header: Header) -> bool:
    return header.to_bytes() == request_header.to_bytes()
