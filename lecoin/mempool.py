"""A volatile, thread-safe pool of verified transactions waiting to be mined."""

from __future__ import annotations

import threading
from typing import Dict, Iterable, List, Optional

from .tx import Tx, TxError

MEMPOOL_DEFAULT_CAPACITY = 1000


class Mempool:
    """Holds verified transactions keyed by id; miners pop them to build blocks."""

    def __init__(self) -> None:
        self._txs: Dict[bytes, Tx] = {}
        self._cond = threading.Condition()
        self.capacity = MEMPOOL_DEFAULT_CAPACITY

    def __len__(self) -> int:
        with self._cond:
            return len(self._txs)

    def run(self) -> None:
        """Background upkeep; the pool currently needs none."""
        return None

    def insert_tx(self, tx: Tx) -> None:
        """Insert a transaction after verifying it; raises TxError if it is invalid."""
        tx.verify()
        with self._cond:
            is_new = tx.txid not in self._txs
            self._txs[tx.txid] = tx
            if is_new:
                self._cond.notify_all()

    def insert_txs(self, txs: Iterable[Tx]) -> None:
        """Insert every transaction that verifies, silently dropping the rest."""
        with self._cond:
            before = len(self._txs)
            for tx in txs:
                try:
                    tx.verify()
                except TxError:
                    continue
                self._txs[tx.txid] = tx
            if len(self._txs) > before:
                self._cond.notify_all()

    def pop_txs(self, n: int, timeout: Optional[float] = None) -> List[Tx]:
        """Remove and return ``n`` transactions, waiting until that many are there.

        Raises TimeoutError if ``timeout`` seconds pass first.
        """
        if n < 0:
            raise ValueError("cannot pop a negative number of transactions")
        with self._cond:
            if not self._cond.wait_for(lambda: len(self._txs) >= n, timeout):
                raise TimeoutError(f"fewer than {n} transactions available")
            keys = list(self._txs)[:n]
            return [self._txs.pop(k) for k in keys]