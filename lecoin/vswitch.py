"""The virtual switch: relays packets between the nodes connected to it."""

from __future__ import annotations

import logging
import socket
import struct
import sys
import threading
from contextlib import suppress
from typing import Dict, List, Optional, Sequence, Set

from .protocol import Packet, read_packet

DEFAULT_PORT = 23623
HOST = "127.0.0.1"

_ACCEPT_POLL = 0.2

log = logging.getLogger(__name__)


def forward(conn: socket.socket, packet: Packet) -> bool:
    """Write ``packet`` to ``conn``; return whether the write succeeded."""
    try:
        conn.sendall(packet.marshal())
    except OSError:
        return False
    return True


class VSwitch:
    """Accepts nodes on a local TCP port and routes their packets by port.

    A packet to port 0 goes to every node but its sender.
    """

    def __init__(self, port: int = DEFAULT_PORT) -> None:
        if not 0 <= port < 1 << 16:
            raise ValueError(f"bad port {port}")
        listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            listener.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            listener.bind((HOST, port))
            listener.listen()
        except OSError:
            listener.close()
            raise
        listener.settimeout(_ACCEPT_POLL)
        self._listener = listener
        self.port: int = listener.getsockname()[1]
        self._clients: Dict[int, socket.socket] = {}
        self._lock = threading.Lock()
        self._closed = threading.Event()

    def __enter__(self) -> "VSwitch":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def ports(self) -> Set[int]:
        """Ports of the nodes currently connected."""
        with self._lock:
            return set(self._clients)

    def run(self) -> None:
        """Accept nodes until closed, serving each on its own thread."""
        while not self._closed.is_set():
            try:
                conn, address = self._listener.accept()
            except socket.timeout:
                continue
            except OSError as exc:
                if self._closed.is_set():
                    break
                log.warning("accept failed: %s", exc)
                continue
            rport = address[1]
            with self._lock:
                if self._closed.is_set() or rport in self._clients:
                    conn.close()
                    continue
                self._clients[rport] = conn
            threading.Thread(
                target=self._handle_conn, args=(conn, rport), daemon=True
            ).start()

    def _handle_conn(self, conn: socket.socket, port: int) -> None:
        print(f"> Host at port {port} has connected")
        try:
            with conn.makefile("rb") as reader:
                while (packet := read_packet(reader)) is not None:
                    with self._lock:
                        for target in self._targets(packet):
                            forward(target, packet)
        finally:
            with suppress(OSError):
                # lets the node's port be reused as soon as it goes away
                conn.setsockopt(
                    socket.SOL_SOCKET, socket.SO_LINGER, struct.pack("ii", 1, 0)
                )
            conn.close()
            with self._lock:
                if self._clients.get(port) is conn:
                    del self._clients[port]

    def _targets(self, packet: Packet) -> List[socket.socket]:
        if packet.receiver_port == 0:
            return [c for p, c in self._clients.items() if p != packet.sender_port]
        target = self._clients.get(packet.receiver_port)
        return [] if target is None else [target]

    def close(self) -> None:
        """Stop accepting and disconnect every node."""
        self._closed.set()
        self._listener.close()
        with self._lock:
            clients = list(self._clients.values())
        for conn in clients:
            with suppress(OSError):
                conn.shutdown(socket.SHUT_RDWR)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run a switch on the port given as the only argument, or the default port."""
    args = list(sys.argv[1:] if argv is None else argv)
    if len(args) == 1:
        try:
            port = int(args[0])
        except ValueError:
            port = -1
        if not 0 <= port < 1 << 16:
            print("bad port", file=sys.stderr)
            return 1
    elif not args:
        port = DEFAULT_PORT
    else:
        print("usage: vswitch <opt: port>")
        return 1

    try:
        switch = VSwitch(port)
    except OSError as exc:
        print(f"vswitch could not be created: {exc}", file=sys.stderr)
        return 1

    print(f"Running VSwitch on port {switch.port}")
    try:
        switch.run()
    except KeyboardInterrupt:
        pass
    finally:
        switch.close()
    return 0