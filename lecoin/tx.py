"""Transactions: the miner's reward and transfers between two wallets."""

from __future__ import annotations

import hashlib
import struct
from dataclasses import dataclass
from typing import ClassVar, List, Union

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec, utils

from .protocol import HASH_SIZE, NO_TIMESTAMP, MessageType, lepoch
from .wallet import WALLET_SIZE, Wallet, from_bytes

MINER_TX_BASE_SIZE = 139
TWO_WAY_TX_BASE_SIZE = 230

_AMOUNT = struct.Struct(">f")
_TIMESTAMP = struct.Struct(">q")
_SIGLEN = struct.Struct(">I")
_NO_TXID = bytes(HASH_SIZE)


class TxError(Exception):
    """A transaction is malformed, unsigned, badly signed or already stamped."""


@dataclass(frozen=True)
class TxRecord:
    """Wallet ``wallet`` gains ``amount`` (which may be negative)."""

    wallet: Wallet
    amount: float


def _float32(value: float) -> float:
    return _AMOUNT.unpack(_AMOUNT.pack(value))[0]


def _ecdsa_digest(message: bytes) -> bytes:
    # The message is used directly as the ECDSA digest, truncated to the
    # curve order's size, so that signatures match those of other nodes.
    return message[:HASH_SIZE].rjust(HASH_SIZE, b"\0")


def _signature_valid(wallet: Wallet, message: bytes, signature: bytes) -> bool:
    try:
        wallet.public_key.verify(
            signature,
            _ecdsa_digest(message),
            ec.ECDSA(utils.Prehashed(hashes.SHA256())),
        )
    except (InvalidSignature, ValueError):
        return False
    return True


def _with_trailer(body: bytes, txid: bytes, signature: bytes) -> bytes:
    return body + txid + _SIGLEN.pack(len(signature)) + signature


class _Cursor:
    def __init__(self, data: bytes) -> None:
        self._data = bytes(data)
        self._pos = 0

    def take(self, size: int) -> bytes:
        end = self._pos + size
        if end > len(self._data):
            raise TxError("truncated transaction")
        chunk = self._data[self._pos : end]
        self._pos = end
        return chunk

    def wallet(self) -> Wallet:
        try:
            return from_bytes(self.take(WALLET_SIZE))
        except ValueError as exc:
            raise TxError(str(exc)) from exc

    def amount(self) -> float:
        return _AMOUNT.unpack(self.take(_AMOUNT.size))[0]

    def timestamp(self) -> int:
        return _TIMESTAMP.unpack(self.take(_TIMESTAMP.size))[0]

    def trailer(self) -> tuple:
        txid = self.take(HASH_SIZE)
        (siglen,) = _SIGLEN.unpack(self.take(_SIGLEN.size))
        return txid, self.take(siglen)


@dataclass
class MinerTx:
    """The reward paid to the wallet that mined a block."""

    miner: Wallet
    amount: float
    timestamp: int = NO_TIMESTAMP
    signature: bytes = b""
    txid: bytes = _NO_TXID

    msg_type: ClassVar[MessageType] = MessageType.TX

    def __post_init__(self) -> None:
        self.amount = _float32(self.amount)

    def into_records(self) -> List[TxRecord]:
        return [TxRecord(self.miner, self.amount)]

    def marshal(self) -> bytes:
        """The signed part: wallet, amount and timestamp."""
        return (
            self.miner.marshal()
            + _AMOUNT.pack(self.amount)
            + _TIMESTAMP.pack(self.timestamp)
        )

    def full_marshal(self) -> bytes:
        return _with_trailer(self.marshal(), self.txid, self.signature)

    def hash(self) -> bytes:
        return hashlib.sha256(self.marshal()).digest()

    def sign(self, signature: bytes) -> None:
        if self.signature:
            raise TxError("transaction already has a signature")
        self.signature = bytes(signature)

    def verify(self) -> None:
        if not _signature_valid(self.miner, self.marshal(), self.signature):
            raise TxError("could not verify miner tx")

    def stamp(self) -> None:
        if self.timestamp != NO_TIMESTAMP:
            raise TxError("miner tx is already timestamped")
        self.timestamp = lepoch()


@dataclass
class TwoWayTx:
    """A transfer of ``amount`` from ``sender`` to ``receiver``."""

    sender: Wallet
    receiver: Wallet
    amount: float
    timestamp: int = NO_TIMESTAMP
    signature: bytes = b""
    txid: bytes = _NO_TXID

    msg_type: ClassVar[MessageType] = MessageType.TX

    def __post_init__(self) -> None:
        self.amount = _float32(self.amount)

    def __str__(self) -> str:
        return (
            f"TwoWayTx{{txid: {self.txid.hex()}, sender: {self.sender}, "
            f"receiver: {self.receiver}, amount: {self.amount:f}, "
            f"timestamp: {self.timestamp}, signature: {self.signature.hex()}}}"
        )

    def into_records(self) -> List[TxRecord]:
        return [
            TxRecord(self.sender, -self.amount),
            TxRecord(self.receiver, self.amount),
        ]

    def marshal(self) -> bytes:
        """The signed part: both wallets, amount and timestamp."""
        return (
            self.sender.marshal()
            + self.receiver.marshal()
            + _AMOUNT.pack(self.amount)
            + _TIMESTAMP.pack(self.timestamp)
        )

    def full_marshal(self) -> bytes:
        return _with_trailer(self.marshal(), self.txid, self.signature)

    def hash(self) -> bytes:
        return hashlib.sha256(self.marshal()).digest()

    def sign(self, signature: bytes) -> None:
        if self.signature:
            raise TxError("transaction already has a signature")
        self.signature = bytes(signature)

    def verify(self) -> None:
        if not _signature_valid(self.sender, self.marshal(), self.signature):
            raise TxError("could not verify two way transaction")

    def stamp(self) -> None:
        if self.timestamp != NO_TIMESTAMP:
            raise TxError("two way tx is already timestamped")
        self.timestamp = lepoch()


Tx = Union[MinerTx, TwoWayTx]


def new_miner_tx(miner: Wallet, amount: float) -> MinerTx:
    """A timestamped, unsigned reward whose id is its hash."""
    tx = MinerTx(miner, amount)
    tx.stamp()
    tx.txid = tx.hash()
    return tx


def new_two_way_tx(sender: Wallet, receiver: Wallet, amount: float) -> TwoWayTx:
    """A timestamped, unsigned transfer whose id is its hash."""
    tx = TwoWayTx(sender, receiver, amount)
    tx.stamp()
    tx.txid = tx.hash()
    return tx


def unmarshal_miner_tx(data: bytes) -> MinerTx:
    """Parse a miner transaction from the start of ``data``."""
    cursor = _Cursor(data)
    miner = cursor.wallet()
    amount = cursor.amount()
    timestamp = cursor.timestamp()
    txid, signature = cursor.trailer()
    return MinerTx(miner, amount, timestamp, signature, txid)


def unmarshal_two_way_tx(data: bytes) -> TwoWayTx:
    """Parse a two-way transaction from the start of ``data``."""
    cursor = _Cursor(data)
    sender = cursor.wallet()
    receiver = cursor.wallet()
    amount = cursor.amount()
    timestamp = cursor.timestamp()
    txid, signature = cursor.trailer()
    return TwoWayTx(sender, receiver, amount, timestamp, signature, txid)