"""A tiny user program that shares facts about LeBron."""

from __future__ import annotations

import random
from typing import Any, List

from .repl import LF_REPL_NUM, Repl


class LeBronFacts:
    """Holds the facts and offers the ``lefact`` command."""

    def __init__(self) -> None:
        self.facts: List[str] = [
            "LeBron is the GOAT",
            "LeBron > MJ",
            "It wasn't LeBron's fault the Lakers lost in the 2025 playoffs",
        ]
        self.running = False

    def run(self) -> None:
        """Mark the program as started; facts are served on demand."""
        self.running = True

    def make_repl(self) -> Repl:
        return Repl({"lefact": handle_lefact}, self, LF_REPL_NUM)


def handle_lefact(prog: Any, args: List[str]) -> str:
    """Print a random fact and return it."""
    if args:
        raise ValueError("this takes no args... you can't argue with legoat")
    fact = random.choice(prog.facts)
    print(fact)
    return fact