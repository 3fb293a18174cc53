"""A node's ECDSA key pair, kept in its storage, used to sign transactions."""

from __future__ import annotations

from typing import Optional, Protocol

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, utils

from .protocol import HASH_SIZE
from .tx import Tx
from .wallet import Wallet


class _Storage(Protocol):
    def exists(self, path: str) -> bool: ...

    def read_file(self, path: str) -> bytes: ...

    def write_file(self, path: str, data: bytes) -> None: ...


def _ecdsa_digest(message: bytes) -> bytes:
    # Same convention as verification: the message itself, truncated, is the digest.
    return message[:HASH_SIZE].rjust(HASH_SIZE, b"\0")


def _dump(key: ec.EllipticCurvePrivateKey) -> bytes:
    return key.private_bytes(
        serialization.Encoding.DER,
        serialization.PrivateFormat.TraditionalOpenSSL,
        serialization.NoEncryption(),
    )


def _load(data: bytes) -> ec.EllipticCurvePrivateKey:
    try:
        key = serialization.load_der_private_key(bytes(data), None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
        raise ValueError(f"invalid private key: {exc}") from exc
    if not isinstance(key, ec.EllipticCurvePrivateKey):
        raise ValueError("stored key is not an ECDSA private key")
    return key


class KeyManager:
    """Loads or creates a P-256 key and signs transactions with it.

    With a storage, the key is read from ``path`` if it exists there and
    written to it otherwise. Without one, a fresh key is generated.
    """

    def __init__(self, storage: Optional[_Storage] = None, path: str = "") -> None:
        if storage is not None and storage.exists(path):
            self.private_key = _load(storage.read_file(path))
        else:
            self.private_key = ec.generate_private_key(ec.SECP256R1())
            if storage is not None:
                storage.write_file(path, _dump(self.private_key))
        self.public_key = self.private_key.public_key()
        self.wallet = Wallet(self.public_key)

    def sign_transaction(self, tx: Tx) -> None:
        """Sign a transaction we produced; raises TxError if it is already signed."""
        signature = self.private_key.sign(
            _ecdsa_digest(tx.marshal()),
            ec.ECDSA(utils.Prehashed(hashes.SHA256())),
        )
        tx.sign(signature)