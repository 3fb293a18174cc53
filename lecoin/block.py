"""Blocks of transactions, their wire form, hashing and proof of work."""

from __future__ import annotations

import hashlib
import struct
from dataclasses import dataclass, field
from typing import Callable, ClassVar, Dict, Iterable, List, Optional

from .balances import BalanceMap
from .protocol import HASH_SIZE, NO_TIMESTAMP, MessageType, lepoch
from .tx import (
    MINER_TX_BASE_SIZE,
    TWO_WAY_TX_BASE_SIZE,
    MinerTx,
    Tx,
    TwoWayTx,
    TxError,
    new_miner_tx,
    unmarshal_miner_tx,
    unmarshal_two_way_tx,
)
from .wallet import Wallet

START_REWARD = 6
START_TARGET = 15
MAX_TXS = 4
GENESIS_HASH = bytes(HASH_SIZE)

_HEADER = struct.Struct(">I32sqI")
_NONCE = struct.Struct(">I")
_COUNT = struct.Struct(">H")


class BlockError(Exception):
    """A block is malformed, full, or fails verification."""

    def __init__(self, message: str, invalid_txs: Iterable[Tx] = ()) -> None:
        super().__init__(message)
        self.invalid_txs: List[Tx] = list(invalid_txs)


@dataclass(eq=False)
class Block:
    """A block: header fields, the miner's reward and up to MAX_TXS transactions."""

    nonce: int = 0
    prev_hash: bytes = GENESIS_HASH
    block_hash: bytes = GENESIS_HASH
    target: int = 0
    timestamp: int = 0
    valid: bool = False
    miner_tx: Optional[MinerTx] = None
    transactions: Dict[bytes, Tx] = field(default_factory=dict)

    msg_type: ClassVar[MessageType] = MessageType.BLOCK

    def marshal(self) -> bytes:
        if self.miner_tx is None:
            raise BlockError("no miner tx")
        miner_id = self.miner_tx.txid
        keys = sorted(k for k in self.transactions if k != miner_id)
        if len(keys) != len(self.transactions) - 1:
            raise BlockError("incorrect # of txs marshaled")
        parts = [
            _HEADER.pack(self.nonce, self.prev_hash, self.timestamp, self.target),
            self.miner_tx.full_marshal(),
            _COUNT.pack(len(keys)),
        ]
        parts.extend(self.transactions[k].full_marshal() for k in keys)
        return b"".join(parts)

    def full_marshal(self) -> bytes:
        return self.marshal()

    def hash(self) -> bytes:
        return hashlib.sha256(self.marshal()).digest()

    def hash_with_nonce(self, nonce: int) -> bytes:
        data = _NONCE.pack(nonce) + self.marshal()[_NONCE.size :]
        return hashlib.sha256(data).digest()

    def insert_transactions(self, txs: Iterable[Tx]) -> None:
        txs = list(txs)
        if len(self.transactions) + len(txs) > MAX_TXS:
            raise BlockError("cannot add: block is full")
        for tx in txs:
            self.transactions[tx.txid] = tx

    def tx_list(self) -> List[Tx]:
        return list(self.transactions.values())

    def stamp(self) -> None:
        self.timestamp = lepoch()

    def verify_txs(self) -> None:
        """Check the transaction set; raises BlockError listing the bad ones."""
        if len(self.transactions) > MAX_TXS:
            raise BlockError("too many txs in the block")
        if self.miner_tx is None:
            raise BlockError("no miner tx")
        if self.miner_tx.txid not in self.transactions:
            raise BlockError("miner tx not in tx map")
        invalid: List[Tx] = []
        message: Optional[str] = None
        for tx in self.transactions.values():
            bad = False
            if isinstance(tx, MinerTx):
                if tx.txid != self.miner_tx.txid:
                    message = "more than one minertx in block"
                    bad = True
            elif not isinstance(tx, TwoWayTx):
                raise TypeError(f"unexpected transaction: {tx!r}")
            try:
                tx.verify()
            except TxError as exc:
                message = str(exc)
                bad = True
            if bad:
                invalid.append(tx)
        if message is not None:
            raise BlockError(message, invalid)

    def verify(self) -> None:
        """Verify the proof of work and every transaction; remembered once passed."""
        if self.valid:
            return
        if not self.try_nonce(self.nonce):
            raise BlockError(f"could not verify nonce {self.nonce}")
        self.verify_txs()
        self.valid = True

    def try_nonce(self, nonce: int) -> bool:
        """Whether ``nonce`` gives a hash with ``target`` leading zero bits.

        On success the block hash is set to that hash (the nonce is not).
        """
        digest = self.hash_with_nonce(nonce)
        shift = (64 - self.target) & 0xFFFFFFFF
        if int.from_bytes(digest[:8], "big") >> shift:
            return False
        self.block_hash = digest
        return True


@dataclass
class HeadBlock:
    """The tip of a branch: its hash, balances and length in blocks."""

    block_hash: bytes
    balances: BalanceMap
    length: int
    valid: bool = False


BlockPredicate = Callable[[Block], bool]
TwoBlockPredicate = Callable[[Block, Block], bool]


def blank_block() -> Block:
    """An empty block, ready to be filled in."""
    return Block()


def genesis_block() -> Block:
    """The trusted first block of every chain."""
    return Block(block_hash=GENESIS_HASH, prev_hash=GENESIS_HASH, valid=True)


def new_block(prev_hash: bytes, miner: Wallet, reward: float, target: int) -> Block:
    """An unverified block on top of ``prev_hash`` paying ``reward`` to ``miner``."""
    miner_tx = new_miner_tx(miner, reward)
    return Block(
        nonce=0,
        prev_hash=prev_hash,
        target=target,
        timestamp=NO_TIMESTAMP,
        valid=False,
        miner_tx=miner_tx,
        transactions={miner_tx.txid: miner_tx},
    )


def unmarshal_block(data: bytes) -> Block:
    """Parse a block from its wire form and compute its hash."""
    data = bytes(data)
    if len(data) < _HEADER.size:
        raise BlockError("truncated block")
    nonce, prev_hash, timestamp, target = _HEADER.unpack_from(data)
    pos = _HEADER.size
    try:
        miner_tx = unmarshal_miner_tx(data[pos:])
        pos += MINER_TX_BASE_SIZE + len(miner_tx.signature)
        if len(data) < pos + _COUNT.size:
            raise BlockError("truncated block")
        (count,) = _COUNT.unpack_from(data, pos)
        pos += _COUNT.size
        transactions: Dict[bytes, Tx] = {miner_tx.txid: miner_tx}
        for _ in range(count):
            tx = unmarshal_two_way_tx(data[pos:])
            transactions[tx.txid] = tx
            pos += TWO_WAY_TX_BASE_SIZE + len(tx.signature)
    except TxError as exc:
        raise BlockError(f"malformed block: {exc}") from exc
    block = Block(
        nonce=nonce,
        prev_hash=prev_hash,
        target=target,
        timestamp=timestamp,
        miner_tx=miner_tx,
        transactions=transactions,
    )
    block.block_hash = block.hash()
    return block