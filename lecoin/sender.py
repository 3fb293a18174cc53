"""Inspecting balances and sending coins from this node's wallet."""

from __future__ import annotations

import queue
import threading
from typing import Dict

from .chain import LeChain
from .keys import KeyManager
from .tx import Tx, TwoWayTx, new_two_way_tx
from .wallet import from_string, pretty_from_string


class LeSender:
    """Builds and signs transfers; signed transactions are put on ``upchan``.

    ``list_users`` numbers the known wallets; ``send_user`` sends by that number.
    """

    def __init__(self, chain: LeChain, keys: KeyManager) -> None:
        self.chain = chain
        self.keys = keys
        self.wallets: Dict[int, str] = {}
        self.upchan: "queue.Queue[Tx]" = queue.Queue()
        self._lock = threading.RLock()

    def run(self) -> None:
        """Background work; the sender currently needs none."""
        return None

    def self_send(self) -> TwoWayTx:
        """Send nothing to ourselves, which is useful for testing."""
        wallet = self.keys.wallet
        tx = new_two_way_tx(wallet, wallet, 0)
        self.keys.sign_transaction(tx)
        self.upchan.put(tx)
        return tx

    def balance(self) -> float:
        return self.chain.balance(self.keys.wallet)

    def balances(self) -> Dict[str, float]:
        return self.chain.balances()

    def list_balances(self) -> str:
        return self.chain.balance_string()

    def list_users(self) -> str:
        """Number every known wallet and describe them one per line."""
        with self._lock:
            self.wallets = dict(enumerate(self.balances()))
            return "".join(
                f"{i}: \t {pretty_from_string(w)} \n" for i, w in self.wallets.items()
            )

    def send_user(self, idx: int, amount: float) -> TwoWayTx:
        """Send to the wallet numbered ``idx`` by the last ``list_users``."""
        with self._lock:
            wallet_str = self.wallets.get(idx)
            if wallet_str is None:
                raise LookupError("could not find wallet")
            return self.send_wallet(wallet_str, amount)

    def send_wallet(self, wallet_str: str, amount: float) -> TwoWayTx:
        """Send to a wallet given as its hex string; raises ValueError if it is invalid."""
        remote = from_string(wallet_str)
        tx = new_two_way_tx(self.keys.wallet, remote, amount)
        self.keys.sign_transaction(tx)
        self.upchan.put(tx)
        return tx