"""A node's small operating system: storage, networking, user programs and a shell."""

from __future__ import annotations

import os
import threading
from dataclasses import dataclass
from typing import Any, List, Optional, Protocol, Union, runtime_checkable

from .protocol import Serializable
from .repl import VM_REPL_NUM, Repl
from .vfs import VFS
from .vsocket import Constructor, VSocket, connect
from .vswitch import DEFAULT_PORT


@runtime_checkable
class UserProg(Protocol):
    """A program the machine runs at boot and whose commands join the shell."""

    def make_repl(self) -> Repl: ...

    def run(self) -> None: ...


@dataclass
class VMConfig:
    """The host name of a machine and the local port it connects from."""

    name: str
    port: int


class VM:
    """A machine with a confined file system, a switch connection and a shell.

    Its files live under ``<base_dir>/hostdirs/<name>`` (``base_dir`` defaults to
    the working directory). Without an explicit ``vsocket`` it connects to the
    switch at ``switch_port``.
    """

    def __init__(
        self,
        config: VMConfig,
        base_dir: Union[str, "os.PathLike[str]", None] = None,
        vsocket: Optional[VSocket] = None,
        switch_port: int = DEFAULT_PORT,
    ) -> None:
        self.hostname = config.name
        base = os.getcwd() if base_dir is None else os.fspath(base_dir)
        root = os.path.join(base, "hostdirs", config.name)
        os.makedirs(root, exist_ok=True)
        self.vfs = VFS(root)
        self.vsocket = vsocket if vsocket is not None else connect(config.port, switch_port)
        self.userprogs: List[UserProg] = []
        self.shell = self.make_repl()

    def __enter__(self) -> "VM":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def cwd(self) -> str:
        return self.vfs.cwd

    def register_prog(self, prog: UserProg) -> None:
        """Add a program to run at boot; its commands join the shell without replacing any."""
        self.userprogs.append(prog)
        self.shell.combine(prog.make_repl())

    def boot(self) -> None:
        """Start the network and every program in the background, then run the shell."""
        print("Booting LeOS...")
        threading.Thread(target=self.vsocket.run, daemon=True).start()
        for prog in self.userprogs:
            threading.Thread(target=prog.run, daemon=True).start()
        self.shell.run()

    def close(self) -> None:
        self.vsocket.close()

    def make_repl(self) -> Repl:
        handlers = {
            "cd": handle_cd,
            "pwd": handle_pwd,
            "mkdir": handle_mkdir,
            "ls": handle_listdir,
        }
        return Repl(handlers, self, VM_REPL_NUM)

    # ----- file system -----

    def write_file(self, path: str, data: bytes) -> None:
        self.vfs.write_file(path, data)

    def read_file(self, path: str) -> bytes:
        return self.vfs.read_file(path)

    def mkdir(self, path: str) -> None:
        self.vfs.mkdir(path)

    def cd(self, path: str) -> None:
        self.vfs.cd(path)

    def exists(self, path: str) -> bool:
        return self.vfs.exists(path)

    def listdir(self, path: str = ".") -> List[str]:
        return self.vfs.listdir(path)

    # ----- network -----

    def net_send(self, msg: Serializable, rport: int) -> None:
        self.vsocket.send(msg, rport)

    def net_broadcast(self, msg: Serializable) -> None:
        self.vsocket.broadcast(msg)

    def register_net_chan(self, msg_type: int, constructor: Constructor):
        """A queue receiving every incoming message of ``msg_type``, decoded by ``constructor``."""
        return self.vsocket.register_channel(msg_type, constructor)


def handle_cd(prog: Any, args: List[str]) -> None:
    if len(args) != 1:
        raise ValueError("usage: cd <tgtdir>")
    prog.cd(args[0])


def handle_pwd(prog: Any, args: List[str]) -> str:
    if args:
        raise ValueError("usage: pwd")
    print(prog.cwd)
    return prog.cwd


def handle_mkdir(prog: Any, args: List[str]) -> None:
    if len(args) != 1:
        raise ValueError("usage: mkdir <newdir>")
    prog.mkdir(args[0])


def handle_listdir(prog: Any, args: List[str]) -> List[str]:
    if len(args) > 1:
        raise ValueError("usage: ls <opt:dir>")
    directory = args[0] if args else "."
    entries = prog.listdir(directory)
    for name in entries:
        print(name)
    return entries