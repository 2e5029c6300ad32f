from __future__ import annotations

SIGNATURE = b"SAMP"
HEADER_FORMAT = "!4sIHB"  # signature, address, port, opcode
LENGTH_FORMAT = "<H"  # string and text length prefixes

MAX_FIELD_LEN = 0xFFFF
MAX_RESPONSE_TEXT = 1024
MAX_DATAGRAM = 0xFFFF  # largest UDP payload; oversized text is cut after decoding

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 7777
DEFAULT_TIMEOUT_MS = 150
DEFAULT_ENCODING = "cp1252"

PASSWORD_ENV = "SAMP_RCON_PASSWORD"
PROMPT = ">>> "
