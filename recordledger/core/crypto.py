"""
recordledger/core/crypto.py

Account keys, address identities and canonical encoding.

Key contracts:
    address                  : @property → "aleo1" + 56 base32 chars (61 total)
    public_key_hex           : @property → 64-char lowercase hex
    sign(data)               : bytes → base64url str, no padding
    verify_detached(...)     : static, verifies with ONLY an address
    public_key_from_address  : address → 64-char public key hex (checksummed)
    canonicalize(obj)        : RFC 8785 (JCS) bytes, the only signing/hashing surface
    canonical_hash(obj)      : hex SHA-256 of canonicalize(obj)

An address IS the public key plus a 3-byte SHA-256 checksum, base32 encoded.
Anyone holding an address can verify that address's signatures. No registry
of public keys is needed, and no caller can claim an address it cannot sign
for.

Protocol code compares addresses for equality only. Decoding an address is
reserved for signature verification in runtime/auth.py.
"""

import base64
import hashlib
from pathlib import Path
from typing import Any, Dict

import jcs
from cryptography.exceptions import InvalidSignature as _CryptoInvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)
from cryptography.hazmat.primitives.serialization import (
    Encoding,
    NoEncryption,
    PrivateFormat,
    PublicFormat,
    load_pem_private_key,
)

from recordledger.core.exceptions import TypeMismatch
from recordledger.core.types import ADDRESS, ADDRESS_PREFIX


_CHECKSUM_BYTES = 3


# ── Canonical encoding ─────────────────────────────────────────

def canonicalize(obj: Dict[str, Any]) -> bytes:
    """
    RFC 8785 canonical JSON bytes. Record refs, call signatures and
    transaction log hashes all go through here.

    Integers beyond 2**53 must already be strings; ValueType.encode()
    and encode_plain() take care of that.
    """
    return jcs.canonicalize(obj)


def canonical_hash(obj: Dict[str, Any]) -> str:
    """Lowercase hex SHA-256 of canonicalize(obj)."""
    return hashlib.sha256(canonicalize(obj)).hexdigest()


# ── Addresses ─────────────────────────────────────────────────

def address_from_public_key(public_key_hex: str) -> str:
    """Encode a raw 32-byte Ed25519 public key (hex) as an address."""
    raw = bytes.fromhex(public_key_hex)
    if len(raw) != 32:
        raise ValueError(f"Ed25519 public key must be 32 bytes, got {len(raw)}")
    checksum = hashlib.sha256(raw).digest()[:_CHECKSUM_BYTES]
    body = base64.b32encode(raw + checksum).decode("ascii").lower()
    return ADDRESS_PREFIX + body


def public_key_from_address(address: str) -> str:
    """
    Decode an address back to its public key hex.
    Raises ValueError on a malformed address or bad checksum.
    """
    try:
        ADDRESS.check(address, "address")
    except TypeMismatch as exc:
        raise ValueError(f"Malformed address: {address!r}") from exc
    payload = base64.b32decode(address[len(ADDRESS_PREFIX):].upper())
    raw, checksum = payload[:-_CHECKSUM_BYTES], payload[-_CHECKSUM_BYTES:]
    if hashlib.sha256(raw).digest()[:_CHECKSUM_BYTES] != checksum:
        raise ValueError(f"Address checksum mismatch: {address}")
    return raw.hex()


class Account:
    """
    Ed25519 account key.

    Public surface:
        Account.generate()                         → new random account
        Account.from_file(path)                    → load PEM private key
        Account.from_private_bytes(seed)           → load from raw 32-byte seed
        Account.verify_detached(data, sig, addr)   → @staticmethod, no instance needed

        account.address             (@property)
        account.public_key_hex      (@property)
        account.sign(data: bytes)   → base64url str (no padding)
        account.save(path)          → write PEM private key
    """

    def __init__(self, private_key: Ed25519PrivateKey) -> None:
        self._private_key:    Ed25519PrivateKey = private_key
        self._public_key:     Ed25519PublicKey  = private_key.public_key()
        self._public_key_hex: str = (
            self._public_key
            .public_bytes(Encoding.Raw, PublicFormat.Raw)
            .hex()
        )
        self._address: str = address_from_public_key(self._public_key_hex)

    # ── Construction ──────────────────────────────────────────

    @classmethod
    def generate(cls) -> "Account":
        """Generate a new random account."""
        return cls(Ed25519PrivateKey.generate())

    @classmethod
    def from_file(cls, path: Path) -> "Account":
        """
        Load an account from a PEM private key file.
        Raises FileNotFoundError if path does not exist.
        Raises ValueError if the file is not a valid Ed25519 PEM key.
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Key file not found: {path}")
        try:
            private_key = load_pem_private_key(path.read_bytes(), password=None)
        except (ValueError, TypeError) as exc:
            raise ValueError(f"Failed to load key from {path}: {exc}") from exc
        if not isinstance(private_key, Ed25519PrivateKey):
            raise ValueError(f"Key file {path} does not contain an Ed25519 private key")
        return cls(private_key)

    @classmethod
    def from_private_bytes(cls, seed: bytes) -> "Account":
        """
        Load an account from a raw 32-byte seed.
        Raises ValueError if seed is not exactly 32 bytes.
        """
        if len(seed) != 32:
            raise ValueError(f"Ed25519 seed must be 32 bytes, got {len(seed)}")
        return cls(Ed25519PrivateKey.from_private_bytes(seed))

    # ── Identity ──────────────────────────────────────────────

    @property
    def address(self) -> str:
        return self._address

    @property
    def public_key_hex(self) -> str:
        return self._public_key_hex

    # ── Signing ───────────────────────────────────────────────

    def sign(self, data: bytes) -> str:
        """Sign data with Ed25519. Returns base64url string, no '=' padding."""
        raw_sig = self._private_key.sign(data)
        return base64.urlsafe_b64encode(raw_sig).rstrip(b"=").decode("ascii")

    # ── Verification ──────────────────────────────────────────

    @staticmethod
    def verify_detached(data: bytes, signature_b64: str, address: str) -> bool:
        """
        Verify an Ed25519 signature using ONLY the signer's address.

        Returns:
            True if the signature is valid over data for that address.
            False for a wrong key, bad encoding, wrong length or corrupted
            signature. Never raises.
        """
        try:
            pub = Ed25519PublicKey.from_public_bytes(
                bytes.fromhex(public_key_from_address(address))
            )
            padding = 4 - len(signature_b64) % 4
            raw_sig = base64.urlsafe_b64decode(signature_b64 + "=" * (padding % 4))
            if len(raw_sig) != 64:
                return False
            pub.verify(raw_sig, data)
            return True
        except (ValueError, TypeError, _CryptoInvalidSignature):
            return False

    # ── Persistence ───────────────────────────────────────────

    def save(self, path: Path) -> None:
        """
        Write the private key to disk as a PEM file.
        Creates parent directories if needed.
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        pem = self._private_key.private_bytes(
            encoding=             Encoding.PEM,
            format=               PrivateFormat.PKCS8,
            encryption_algorithm= NoEncryption(),
        )
        path.write_bytes(pem)

    def __repr__(self) -> str:
        return f"Account(address={self._address[:16]}...)"
