"""A node's connection to the virtual switch, dispatching messages by type."""

from __future__ import annotations

import logging
import queue
import socket
import threading
from typing import Callable, Dict, List, Optional, Sequence

from .protocol import Packet, Serializable, read_packet

HOST = "127.0.0.1"

Constructor = Callable[[bytes], Serializable]

log = logging.getLogger(__name__)


class VSocket:
    """Sends messages through the switch and delivers incoming ones to channels.

    A channel is a queue that receives every decoded message of its type.
    """

    def __init__(self, sock: socket.socket, lport: Optional[int] = None) -> None:
        self._sock = sock
        self.lport = sock.getsockname()[1] if lport is None else lport
        self._channels: Dict[int, List["queue.Queue[Serializable]"]] = {}
        self._constructors: Dict[int, Constructor] = {}
        self._send_lock = threading.Lock()

    def __enter__(self) -> "VSocket":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def register_channel(self, msg_type: int, constructor: Constructor) -> "queue.Queue[Serializable]":
        """A new channel for ``msg_type``; ``constructor`` decodes message bytes.

        Registering again for a type adds a channel and replaces the constructor.
        """
        channel: "queue.Queue[Serializable]" = queue.Queue()
        self._channels.setdefault(int(msg_type), []).append(channel)
        self._constructors[int(msg_type)] = constructor
        return channel

    def register_channels(
        self, msg_types: Sequence[int], constructors: Sequence[Constructor]
    ) -> Dict[int, "queue.Queue[Serializable]"]:
        if len(msg_types) != len(constructors):
            raise ValueError("invalid call to register channels")
        return {
            msg_type: self.register_channel(msg_type, constructor)
            for msg_type, constructor in zip(msg_types, constructors)
        }

    def run(self) -> None:
        """Receive packets until the connection ends, delivering each to its channels."""
        with self._sock.makefile("rb") as reader:
            while (packet := read_packet(reader)) is not None:
                msg_type = int(packet.msg_type)
                channels = self._channels.get(msg_type)
                if not channels:
                    log.warning("invalid message type %d", msg_type)
                    continue
                constructor = self._constructors.get(msg_type)
                if constructor is None:
                    log.warning("message type %d does not have constructor", msg_type)
                    continue
                try:
                    obj = constructor(packet.msg)
                except Exception as exc:  # a bad message must not stop the node
                    log.warning("could not decode message of type %d: %s", msg_type, exc)
                    continue
                for channel in channels:
                    channel.put(obj)

    def send(self, msg: Serializable, rport: int) -> None:
        """Send ``msg`` to the node at ``rport``; raises OSError if the write fails."""
        packet = Packet(self.lport, rport, msg.msg_type, msg.full_marshal())
        with self._send_lock:
            self._sock.sendall(packet.marshal())

    def broadcast(self, msg: Serializable) -> None:
        """Send ``msg`` to every other node."""
        self.send(msg, 0)

    def close(self) -> None:
        try:
            self._sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        self._sock.close()


def connect(lport: int, rport: int) -> VSocket:
    """Connect from local port ``lport`` (0 for any) to the switch at ``rport``."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    try:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.bind((HOST, lport))
        sock.connect((HOST, rport))
    except OSError:
        sock.close()
        raise
    return VSocket(sock, sock.getsockname()[1])