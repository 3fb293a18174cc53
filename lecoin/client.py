"""The node command: boots a machine running the coin manager and the facts program."""

from __future__ import annotations

import json
import sys
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Union

import os

from .lefacts import LeBronFacts
from .manager import LeCoinManager
from .vm import VM, VMConfig


@dataclass
class HostConfig:
    """A node's name, local port and extra arguments (``miner`` first makes it mine)."""

    name: str = ""
    port: int = 0
    args: List[str] = field(default_factory=list)


def parse_config(path: Union[str, "os.PathLike[str]"]) -> HostConfig:
    """Read a host configuration from a JSON file."""
    with open(path, encoding="utf-8") as fh:
        data = json.load(fh)
    if not isinstance(data, dict):
        raise ValueError("host config must be a JSON object")
    args = data.get("args") or []
    if not isinstance(args, list):
        raise ValueError("host config args must be a list")
    return HostConfig(
        name=str(data.get("name", "")),
        port=int(data.get("port", 0)),
        args=[str(a) for a in args],
    )


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Boot a node from the configuration file given as the only argument."""
    args = list(sys.argv[1:] if argv is None else argv)
    if len(args) != 1:
        print("usage: client <path to cfg>")
        return 1

    try:
        cfg = parse_config(args[0])
    except (OSError, ValueError) as exc:
        print(f"could not read config: {exc}", file=sys.stderr)
        return 1

    try:
        vm = VM(VMConfig(cfg.name, cfg.port))
    except OSError as exc:
        print(f"could not start machine: {exc}", file=sys.stderr)
        return 1

    with vm:
        is_miner = bool(cfg.args) and cfg.args[0] == "miner"
        try:
            manager = LeCoinManager(vm, is_miner)
        except (OSError, ValueError):
            print("could not initialize lecoin manager", file=sys.stderr)
            return 1
        vm.register_prog(manager)
        vm.register_prog(LeBronFacts())
        vm.boot()
    return 0