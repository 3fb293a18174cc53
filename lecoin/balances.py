"""Balances per wallet, updated by applying or undoing transactions."""

from __future__ import annotations

import struct
import threading
from typing import Dict, Iterable, List, Mapping, Optional, Union

from .tx import Tx, TxRecord
from .wallet import Wallet, pretty_from_string

_F32 = struct.Struct(">f")


def _float32(value: float) -> float:
    return _F32.unpack(_F32.pack(value))[0]


class BalanceError(Exception):
    """Applying a record or transaction would leave a wallet with a negative balance."""

    def __init__(self, message: str, invalid_txs: Iterable[Tx] = ()) -> None:
        super().__init__(message)
        self.invalid_txs: List[Tx] = list(invalid_txs)


class BalanceMap:
    """A map from wallet (hex string) to balance.

    Processing a set of transactions never mutates the map: it yields a new one,
    since each chain head carries its own balances.
    """

    def __init__(self, balances: Optional[Mapping[str, float]] = None) -> None:
        self._balances: Dict[str, float] = dict(balances or {})
        self._lock = threading.RLock()

    def copy(self) -> "BalanceMap":
        with self._lock:
            return BalanceMap(self._balances)

    def balance(self, wallet: Union[Wallet, str]) -> float:
        """The balance of a wallet; 0 for wallets never seen."""
        with self._lock:
            return self._balances.get(str(wallet), 0.0)

    def balances(self) -> Dict[str, float]:
        """A snapshot of every balance, keyed by wallet hex string."""
        with self._lock:
            return dict(self._balances)

    def process_transactions(
        self, txs: Union[Mapping[bytes, Tx], Iterable[Tx]], insert: bool
    ) -> "BalanceMap":
        """Apply (``insert``) or undo every transaction, returning a new map.

        Raises BalanceError listing the transactions that could not be processed.
        """
        new = self.copy()
        items = txs.values() if isinstance(txs, Mapping) else txs
        invalid: List[Tx] = []
        error: Optional[BalanceError] = None
        for tx in items:
            for record in tx.into_records():
                try:
                    new.process_record(record, insert)
                except BalanceError as exc:
                    error = exc
                    invalid.append(tx)
                    break
        if error is not None:
            raise BalanceError(str(error), invalid)
        return new

    def process_record(self, record: TxRecord, insert: bool) -> None:
        """Apply a record in place, or undo it when ``insert`` is false."""
        key = str(record.wallet)
        with self._lock:
            current = self._balances.setdefault(key, 0.0)
            delta = record.amount if insert else -record.amount
            total = _float32(current + delta)
            if total < 0:
                raise BalanceError("invalid: would become lebroke")
            self._balances[key] = total

    def __len__(self) -> int:
        with self._lock:
            return len(self._balances)

    def __str__(self) -> str:
        with self._lock:
            return "".join(
                f"Wallet: {pretty_from_string(w)} \t Balance: {balance:0.2f}\n"
                for w, balance in self._balances.items()
            )