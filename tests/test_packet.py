from __future__ import annotations

import struct

import pytest

from samprcon.constants import MAX_RESPONSE_TEXT
from samprcon.errors import EncodeError, MalformedPacket
from samprcon.packet import Header, Opcode, Query, decode, encode, is_echo

LOCALHOST = 0x7F000001


def response(header: Header, text: bytes) -> bytes:
    return header.to_bytes() + struct.pack("<H", len(text)) + text


def test_execute_layout():
    raw = encode(LOCALHOST, 7777, Opcode.EXECUTE, b"secret", [b"gmx"])
    assert raw == (
        b"SAMP"
        + bytes([127, 0, 0, 1])
        + (7777).to_bytes(2, "big")
        + b"x"
        + b"\x06\x00secret"
        + b"\x03\x00gmx"
    )


def test_header_is_eleven_bytes():
    assert len(Header(LOCALHOST, 7777, Opcode.INFO).to_bytes()) == 11
    assert encode(LOCALHOST, 7777, Opcode.INFO) == b"SAMP\x7f\x00\x00\x01\x1e\x61i"


def test_password_only_sent_for_execute():
    q = Query(Opcode.PING, password="secret", fields=("abcd",))
    assert q.to_bytes(LOCALHOST, 7777) == encode(LOCALHOST, 7777, Opcode.PING) + b"\x04\x00abcd"


def test_query_execute_factory():
    q = Query.execute("pw", "say hi")
    assert q.opcode is Opcode.EXECUTE
    assert q.fields == ("say hi",)
    assert Opcode.EXECUTE.requires_password
    assert not Opcode.INFO.requires_password


def test_execute_without_password():
    with pytest.raises(EncodeError):
        encode(LOCALHOST, 7777, Opcode.EXECUTE, None, [b"gmx"])


def test_field_too_long():
    with pytest.raises(EncodeError):
        encode(LOCALHOST, 7777, Opcode.EXECUTE, b"pw", [b"a" * 65536])
    # the largest representable field is fine
    assert len(encode(LOCALHOST, 7777, Opcode.RULES, None, [b"a" * 65535])) == 11 + 2 + 65535


@pytest.mark.parametrize(
    "address,port,opcode",
    [(LOCALHOST, 7777, Opcode.EXECUTE), (0, 1, Opcode.INFO), (0xFFFFFFFF, 65535, Opcode.PING)],
)
def test_header_roundtrip(address, port, opcode):
    request = encode(address, port, opcode, b"pw" if opcode.requires_password else None)
    r = decode(request[:11] + b"\x00\x00")
    assert (r.header.address, r.header.port, r.header.opcode) == (address, port, opcode)
    assert r.header.signature == b"SAMP"
    assert r.is_empty


def test_decode_text():
    h = Header(LOCALHOST, 7777, Opcode.EXECUTE)
    r = decode(response(h, b"Done."))
    assert r.header == h
    assert r.text_length == 5
    assert r.text == b"Done."


def test_decode_too_short():
    h = Header(LOCALHOST, 7777, Opcode.EXECUTE)
    with pytest.raises(MalformedPacket):
        decode(h.to_bytes())
    with pytest.raises(ValueError):
        decode(b"SAMP")


def test_decode_declared_length_exceeds_data():
    h = Header(LOCALHOST, 7777, Opcode.EXECUTE)
    with pytest.raises(MalformedPacket):
        decode(h.to_bytes() + struct.pack("<H", 10) + b"short")


def test_decode_truncates_long_text():
    h = Header(LOCALHOST, 7777, Opcode.EXECUTE)
    r = decode(response(h, b"a" * (MAX_RESPONSE_TEXT + 100)))
    assert len(r.text) == MAX_RESPONSE_TEXT
    assert r.text_length == MAX_RESPONSE_TEXT + 100


def test_is_echo():
    h = Header(LOCALHOST, 7777, Opcode.EXECUTE)
    assert is_echo(Header(LOCALHOST, 7777, Opcode.EXECUTE), h)
    assert not is_echo(Header(LOCALHOST + 1, 7777, Opcode.EXECUTE), h)
    assert not is_echo(Header(LOCALHOST, 7778, Opcode.EXECUTE), h)
    assert not is_echo(Header(LOCALHOST, 7777, Opcode.INFO), h)
    assert not is_echo(Header(LOCALHOST, 7777, Opcode.EXECUTE, signature=b"SAMQ"), h)


def test_encode_errors_are_typed():
    with pytest.raises(EncodeError):
        Query.execute("pw", "x" * 70000).to_bytes(LOCALHOST, 7777)
    with pytest.raises(EncodeError):
        encode(LOCALHOST, 7777, Opcode.EXECUTE, b"", [b"gmx"])


def test_unencodable_password_is_rejected():
    # cp1252 has no snowman; it must not be sent as "?"
    with pytest.raises(EncodeError):
        Query.execute("pass☃", "gmx").to_bytes(LOCALHOST, 7777, "cp1252")
