"""SA-MP remote console (RCON) client

Layout follows the protocol, leaves first:
- packet: wire framing, no I/O
- net: endpoint resolution
- channel: one UDP socket, one exchange at a time, timeout-driven
- session: one-shot and interactive command loops
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
