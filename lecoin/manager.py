"""The coin manager: ties the chain, keys, miner, sender and network of a node together."""

from __future__ import annotations

import queue
import threading
from contextlib import suppress
from typing import Any, Callable, List, Optional, Tuple

from .block import Block, BlockError, unmarshal_block
from .chain import ChainError, LeChain
from .keys import KeyManager
from .miner import LeMiner
from .protocol import MessageType, Serializable
from .repl import LCM_REPL_NUM, Repl
from .sender import LeSender
from .tx import Tx, TxError, unmarshal_two_way_tx

KEY_DIR = ".ssh"
KEY_PATH = ".ssh/ecdkey"

_POLL_INTERVAL = 0.02


class LeCoinManager:
    """A node's coin program: relays transactions and blocks between its parts and peers."""

    def __init__(self, vm: Any, miner: bool = False) -> None:
        self.vm = vm
        self.chain = LeChain()
        with suppress(FileExistsError):
            vm.mkdir(KEY_DIR)
        self.keys = KeyManager(vm, KEY_PATH)
        self.miner: Optional[LeMiner] = LeMiner(self.chain, self.keys) if miner else None
        self.sender = LeSender(self.chain, self.keys)
        self.tx_chan = vm.register_net_chan(MessageType.TX, unmarshal_two_way_tx)
        self.block_chan = vm.register_net_chan(MessageType.BLOCK, unmarshal_block)
        self._closed = threading.Event()

    def run(self) -> None:
        """Handle events from the chain, miner, sender and peers until closed.

        A miner, if this node has one, is started first.
        """
        chain_events = self.chain.register_listener()
        sources: List[Tuple["queue.Queue", Callable[[Any], None]]] = [
            (chain_events, self._on_chain_event),
        ]
        if self.miner is not None:
            sources.append((self.miner.blocks, self._on_mined_block))
            if not self.miner.running:
                self.run_miner()
        sources += [
            (self.sender.upchan, self._on_own_tx),
            (self.tx_chan, self._on_peer_tx),
            (self.block_chan, self._on_peer_block),
        ]
        while not self._closed.is_set():
            handled = False
            for source, handler in sources:
                try:
                    item = source.get_nowait()
                except queue.Empty:
                    continue
                handler(item)
                handled = True
            if not handled:
                self._closed.wait(_POLL_INTERVAL)

    def close(self) -> None:
        """Make ``run`` return."""
        self._closed.set()

    def run_miner(self) -> None:
        self._require_miner().run()

    def stop_miner(self) -> None:
        self._require_miner().stop()

    def _require_miner(self) -> LeMiner:
        if self.miner is None:
            raise RuntimeError("this node is not a miner")
        return self.miner

    def make_repl(self) -> Repl:
        handlers = {
            "balance": handle_balance,
            "list": handle_list,
            "users": handle_users,
            "ss": handle_self_send,
            "send": handle_send,
        }
        return Repl(handlers, self, LCM_REPL_NUM)

    def _broadcast(self, msg: Serializable) -> None:
        try:
            self.vm.net_broadcast(msg)
        except OSError as exc:
            print(exc)

    def _on_chain_event(self, _signal: bool) -> None:
        print("chain got a new block!")

    def _on_mined_block(self, block: Block) -> None:
        print("miner mined a block!")
        self._broadcast(block)

    def _on_own_tx(self, tx: Tx) -> None:
        print("got transaction from myself!")
        self._broadcast(tx)
        if self.miner is not None:
            try:
                self.miner.insert_tx(tx)
            except TxError as exc:
                print(exc)

    def _on_peer_tx(self, tx: Tx) -> None:
        print("got transaction from someone else!")
        if self.miner is not None:
            try:
                self.miner.insert_tx(tx)
            except TxError as exc:
                print(exc)

    def _on_peer_block(self, block: Block) -> None:
        print("got block from someone else!")
        try:
            self.chain.push_block(block)
        except (BlockError, ChainError) as exc:
            print(exc)


def handle_balance(prog: Any, args: List[str]) -> float:
    if args:
        raise ValueError("balance takes no args")
    balance = prog.sender.balance()
    print(f"Wallet: {prog.keys.wallet.pretty_string()}")
    print(f"My LeBalance is: {balance:.2f}")
    return balance


def handle_list(prog: Any, args: List[str]) -> str:
    if args:
        raise ValueError("list takes no args")
    listing = prog.sender.list_balances()
    print(listing, end="")
    return listing


def handle_users(prog: Any, args: List[str]) -> str:
    if args:
        raise ValueError("users takes no args")
    listing = prog.sender.list_users()
    print(listing, end="")
    return listing


def handle_self_send(prog: Any, args: List[str]) -> Tx:
    if args:
        raise ValueError("ss takes no args")
    return prog.sender.self_send()


def handle_send(prog: Any, args: List[str]) -> Tx:
    if len(args) != 2:
        raise ValueError("usage: send <wallet index> <amount>")
    idx = int(args[0])
    amount = float(args[1])
    print(amount)
    return prog.sender.send_user(idx, amount)