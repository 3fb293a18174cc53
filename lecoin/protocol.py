"""Wire-level primitives shared by every component: packets, message types and time."""

from __future__ import annotations

import enum
import struct
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import BinaryIO, Optional, Protocol, runtime_checkable

HASH_SIZE = 32
ASN1_PUB_KEY_LEN = 91
NO_TIMESTAMP = -1
PACKET_HEADER_SIZE = 10

_HEADER = struct.Struct(">HHHI")
_LEBIRTH = datetime(1984, 12, 30, tzinfo=timezone.utc)
_LEBIRTH_NS = int(_LEBIRTH.timestamp()) * 1_000_000_000


class MessageType(enum.IntEnum):
    """Kinds of message that travel between nodes."""

    TX = 6
    BLOCK = 23


@runtime_checkable
class Serializable(Protocol):
    """Something that can be put on the wire.

    ``marshal`` leaves out fields such as keys and ids and is what gets hashed
    or signed; ``full_marshal`` is the complete wire form.
    """

    msg_type: MessageType

    def marshal(self) -> bytes: ...

    def full_marshal(self) -> bytes: ...


@dataclass
class Packet:
    """A framed message routed by the switch between two ports (0 = broadcast)."""

    sender_port: int
    receiver_port: int
    msg_type: int
    msg: bytes = b""

    @property
    def msg_len(self) -> int:
        return len(self.msg)

    def marshal(self) -> bytes:
        header = _HEADER.pack(
            self.sender_port, self.receiver_port, int(self.msg_type), len(self.msg)
        )
        return header + bytes(self.msg)


def _read_exact(reader: BinaryIO, size: int) -> Optional[bytes]:
    data = bytearray()
    while len(data) < size:
        try:
            chunk = reader.read(size - len(data))
        except OSError:
            return None
        if not chunk:
            return None
        data += chunk
    return bytes(data)


def read_packet(reader: BinaryIO) -> Optional[Packet]:
    """Read one packet from a binary stream; return None once the stream ends or breaks."""
    header = _read_exact(reader, PACKET_HEADER_SIZE)
    if header is None:
        return None
    sender, receiver, raw_type, length = _HEADER.unpack(header)
    msg = _read_exact(reader, length)
    if msg is None:
        return None
    try:
        msg_type: int = MessageType(raw_type)
    except ValueError:
        msg_type = raw_type
    return Packet(sender, receiver, msg_type, msg)


def lepoch() -> int:
    """Milliseconds elapsed since 1984-12-30 00:00 UTC."""
    return (time.time_ns() - _LEBIRTH_NS) // 1_000_000