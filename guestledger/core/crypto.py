"""
guestledger/core/crypto.py

Settlement signing keys.

Every record the settlement layer appends can be signed so that a
ledger file copied between machines can be checked with nothing but
the public key embedded in each record.

Key contracts:
    public_key_hex       : @property, 64-char lowercase hex
    sign(data)           : bytes -> base64url str, no padding
    verify_detached(...) : @staticmethod, needs only a public key hex string
"""

import base64
from pathlib import Path

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


class Ed25519KeyManager:
    """
    Ed25519 key pair held by a settlement engine.

        Ed25519KeyManager.generate()          -> new random key
        Ed25519KeyManager.from_file(path)     -> load PEM private key
        Ed25519KeyManager.load_or_create(p)   -> load, or generate and save

        key.public_key_hex    (@property)
        key.sign(data)        -> base64url signature
        key.save(path)        -> write PEM private key
    """

    def __init__(self, private_key: Ed25519PrivateKey) -> None:
        self._private_key:    Ed25519PrivateKey = private_key
        self._public_key:     Ed25519PublicKey  = private_key.public_key()
        self._public_key_hex: str = (
            self._public_key
            .public_bytes(Encoding.Raw, PublicFormat.Raw)
            .hex()
        )

    # ── Construction ──────────────────────────────────────────

    @classmethod
    def generate(cls) -> "Ed25519KeyManager":
        """Generate a new random Ed25519 key pair."""
        return cls(Ed25519PrivateKey.generate())

    @classmethod
    def from_file(cls, path: Path) -> "Ed25519KeyManager":
        """
        Load an Ed25519 private key from a PEM file.
        Raises FileNotFoundError if path does not exist.
        Raises ValueError if the file is not a valid Ed25519 PEM key.
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Key file not found: {path}")
        try:
            private_key = load_pem_private_key(path.read_bytes(), password=None)
        except Exception as exc:
            raise ValueError(
                f"Failed to load Ed25519 key from {path}: {exc}"
            ) from exc
        if not isinstance(private_key, Ed25519PrivateKey):
            raise ValueError(
                f"Key file {path} does not contain an Ed25519 private key"
            )
        return cls(private_key)

    @classmethod
    def load_or_create(cls, path: Path) -> "Ed25519KeyManager":
        """Load the key at path, generating and saving one if it is missing."""
        path = Path(path)
        if path.exists():
            return cls.from_file(path)
        key = cls.generate()
        key.save(path)
        return key

    # ── Public Key ────────────────────────────────────────────

    @property
    def public_key_hex(self) -> str:
        """64-character lowercase hex of the raw 32-byte public key."""
        return self._public_key_hex

    # ── Signing ───────────────────────────────────────────────

    def sign(self, data: bytes) -> str:
        """
        Sign data with Ed25519. Returns base64url string, no '=' padding.
        Caller is responsible for canonicalization.
        """
        raw_sig = self._private_key.sign(data)
        return base64.urlsafe_b64encode(raw_sig).rstrip(b"=").decode("ascii")

    # ── Verification ──────────────────────────────────────────

    @staticmethod
    def verify_detached(
        data:           bytes,
        signature_b64:  str,
        public_key_hex: str,
    ) -> bool:
        """
        Verify an Ed25519 signature using only a public key hex string.

        Returns False for any failure (wrong key, bad encoding, wrong
        length, corrupted signature). Never raises.
        """
        try:
            if not isinstance(public_key_hex, str) or len(public_key_hex) != 64:
                return False

            pub = Ed25519PublicKey.from_public_bytes(bytes.fromhex(public_key_hex))

            # Re-add base64url padding if stripped
            padding    = 4 - len(signature_b64) % 4
            padded_sig = signature_b64 + "=" * (padding % 4)
            raw_sig    = base64.urlsafe_b64decode(padded_sig)

            if len(raw_sig) != 64:
                return False

            pub.verify(raw_sig, data)
            return True

        except Exception:
            return False

    # ── Persistence ───────────────────────────────────────────

    def save(self, path: Path) -> None:
        """
        Write the private key to disk as a PEM file.
        Creates parent directories if needed.
        Raises RuntimeError on write failure.
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        try:
            pem = self._private_key.private_bytes(
                encoding=             Encoding.PEM,
                format=               PrivateFormat.PKCS8,
                encryption_algorithm= NoEncryption(),
            )
            path.write_bytes(pem)
        except Exception as exc:
            raise RuntimeError(
                f"Failed to save Ed25519 key to {path}: {exc}"
            ) from exc

    def __repr__(self) -> str:
        return (
            f"Ed25519KeyManager(public_key_hex={self._public_key_hex[:16]}...)"
        )
