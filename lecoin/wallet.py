"""Wallets: addresses derived from ECDSA P-256 public keys."""

from __future__ import annotations

import hashlib

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

WALLET_SIZE = 91
PRETTY_STR_LEN = 10
INVALID = "INVALID"


class Wallet:
    """A public key that can receive and send coins."""

    __slots__ = ("_public_key", "_der")

    def __init__(self, public_key: ec.EllipticCurvePublicKey) -> None:
        if not isinstance(public_key, ec.EllipticCurvePublicKey):
            raise TypeError("a wallet needs an elliptic-curve public key")
        self._public_key = public_key
        self._der = public_key.public_bytes(
            serialization.Encoding.DER,
            serialization.PublicFormat.SubjectPublicKeyInfo,
        )

    @property
    def public_key(self) -> ec.EllipticCurvePublicKey:
        return self._public_key

    def marshal(self) -> bytes:
        """The DER SubjectPublicKeyInfo of the key, always WALLET_SIZE bytes."""
        if len(self._der) != WALLET_SIZE:
            raise ValueError(f"a wallet must marshal to {WALLET_SIZE} bytes")
        return self._der

    def hash(self) -> bytes:
        return hashlib.sha256(self.marshal()).digest()

    def pretty_string(self) -> str:
        """A short, readable tag for the wallet."""
        return self.hash().hex()[:PRETTY_STR_LEN]

    def __str__(self) -> str:
        return self._der.hex()

    def __repr__(self) -> str:
        return f"Wallet({hashlib.sha256(self._der).hexdigest()[:PRETTY_STR_LEN]})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Wallet):
            return NotImplemented
        return self._der == other._der

    def __hash__(self) -> int:
        return hash(self._der)


def from_bytes(data: bytes) -> Wallet:
    """Parse a wallet from its DER encoding."""
    try:
        key = serialization.load_der_public_key(bytes(data))
    except (ValueError, UnsupportedAlgorithm) as exc:
        raise ValueError(f"invalid wallet encoding: {exc}") from exc
    if not isinstance(key, ec.EllipticCurvePublicKey):
        raise ValueError("wallet key is not an ECDSA public key")
    return Wallet(key)


def from_string(s: str) -> Wallet:
    """Parse a wallet from the hex string produced by ``str(wallet)``."""
    return from_bytes(bytes.fromhex(s))


def pretty_from_string(s: str) -> str:
    """The short tag of a wallet given as a hex string, or INVALID."""
    try:
        return from_string(s).pretty_string()
    except ValueError:
        return INVALID