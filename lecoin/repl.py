"""A small line-oriented shell dispatching commands to the programs that own them."""

from __future__ import annotations

import sys
from contextlib import redirect_stdout
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, TextIO

CLIENT_REPL_NUM = 0
VM_REPL_NUM = 1
LCM_REPL_NUM = 2
LF_REPL_NUM = 23

PROMPT = "> "
INVALID_COMMAND = "Invalid Command"

Handler = Callable[[Any, List[str]], None]


class ReplError(Exception):
    """A line does not name a known command."""


@dataclass(frozen=True)
class _Command:
    protocol: int
    handler: Handler


class Repl:
    """Commands mapped to handlers, each handler run against the program of its protocol."""

    def __init__(self, handlers: Mapping[str, Handler], prog: Any, protocol: int) -> None:
        self.commands: Dict[str, _Command] = {
            trigger: _Command(protocol, handler) for trigger, handler in handlers.items()
        }
        self.config: Dict[int, Any] = {protocol: prog}

    def combine(self, other: "Repl") -> None:
        """Take over the commands and programs of ``other`` that this shell lacks."""
        for trigger, command in other.commands.items():
            self.commands.setdefault(trigger, command)
        for protocol, prog in other.config.items():
            self.config.setdefault(protocol, prog)

    def execute(self, line: str) -> None:
        """Run one command line.

        Raises ReplError for an empty or unknown command; whatever the handler
        raises is passed on.
        """
        args = line.split()
        if not args:
            raise ReplError(INVALID_COMMAND)
        if args[0] == "help":
            self.handle_help()
            return
        command = self.commands.get(args[0])
        if command is None:
            raise ReplError(INVALID_COMMAND)
        if command.protocol not in self.config:
            print("Invalid REPL Protocol Found")
        command.handler(self.config.get(command.protocol), args[1:])

    def run(self, stdin: Optional[TextIO] = None, stdout: Optional[TextIO] = None) -> None:
        """Read commands until the input ends, reporting errors and prompting after each."""
        stdin = sys.stdin if stdin is None else stdin
        stdout = sys.stdout if stdout is None else stdout
        with redirect_stdout(stdout):
            print(PROMPT, end="", flush=True)
            for line in stdin:
                try:
                    self.execute(line)
                except ReplError as exc:
                    print(exc)
                except Exception as exc:  # a failing command must not end the shell
                    print(f"Error: {exc}")
                print(PROMPT, end="", flush=True)

    def handle_help(self) -> List[str]:
        """Print every command name, one per line, and return them."""
        names = sorted(self.commands)
        for name in names:
            print(name)
        return names