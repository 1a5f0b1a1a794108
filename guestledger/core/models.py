"""
guestledger/core/models.py

Guestbook data model.

Entry            : the (author, body) value a visitor signs with
LedgerRecord     : one settled position in the ledger, as persisted
SettlementOutcome: what the settlement layer reports for a dispatched entry
PendingSubmission: client-side tracking record for one submit() call
ViewItem         : one row of the coordinator's local view

Record contracts:
    signed bytes = canonicalize(record.to_signing_dict())
    prev_hash    = SHA-256(canonicalize(prev.to_signing_dict()))
    first record = GENESIS_HASH ("0" * 64)
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from guestledger.core.canonical import canonical_hash, canonicalize
from guestledger.core.crypto import Ed25519KeyManager


GENESIS_HASH = "0" * 64


# ─────────────────────────────────────────────────────────────
# Entry
# ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Entry:
    """
    A guestbook entry. Immutable.

    Both fields are attacker-controlled text with no length limit of
    their own. An entry has no identity beyond its ledger index.
    """
    author: str
    body:   str

    def to_dict(self) -> Dict[str, Any]:
        return {"author": self.author, "body": self.body}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Entry":
        return cls(author=data["author"], body=data["body"])


# ─────────────────────────────────────────────────────────────
# LedgerRecord
# ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class LedgerRecord:
    """A single settled entry in the ledger."""
    index:             int
    entry:             Entry
    handle:            str
    timestamp:         str
    prev_hash:         str
    signer_public_key: Optional[str] = None
    signature:         Optional[str] = None

    def to_signing_dict(self) -> Dict[str, Any]:
        """Every field except the signature."""
        return {
            "index":             self.index,
            "author":            self.entry.author,
            "body":              self.entry.body,
            "handle":            self.handle,
            "timestamp":         self.timestamp,
            "prev_hash":         self.prev_hash,
            "signer_public_key": self.signer_public_key,
        }

    def to_dict(self) -> Dict[str, Any]:
        data = self.to_signing_dict()
        data["signature"] = self.signature
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LedgerRecord":
        """Deserialize one JSONL line. Trusts the data; call verify() to check it."""
        return cls(
            index=             data["index"],
            entry=             Entry(author=data["author"], body=data["body"]),
            handle=            data["handle"],
            timestamp=         data["timestamp"],
            prev_hash=         data["prev_hash"],
            signer_public_key= data.get("signer_public_key"),
            signature=         data.get("signature"),
        )

    def compute_hash(self) -> str:
        """Hash that the next record's prev_hash must equal."""
        return canonical_hash(self.to_signing_dict())

    def signed(self, key_manager: Ed25519KeyManager) -> "LedgerRecord":
        """Return a copy bound to key_manager's public key and signed by it."""
        unsigned = LedgerRecord(
            index=             self.index,
            entry=             self.entry,
            handle=            self.handle,
            timestamp=         self.timestamp,
            prev_hash=         self.prev_hash,
            signer_public_key= key_manager.public_key_hex,
        )
        signature = key_manager.sign(canonicalize(unsigned.to_signing_dict()))
        return LedgerRecord(
            index=             unsigned.index,
            entry=             unsigned.entry,
            handle=            unsigned.handle,
            timestamp=         unsigned.timestamp,
            prev_hash=         unsigned.prev_hash,
            signer_public_key= unsigned.signer_public_key,
            signature=         signature,
        )

    def verify_signature(self) -> bool:
        if not self.signature or not self.signer_public_key:
            return False
        return Ed25519KeyManager.verify_detached(
            canonicalize(self.to_signing_dict()),
            self.signature,
            self.signer_public_key,
        )


# ─────────────────────────────────────────────────────────────
# Settlement outcome
# ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class SettlementOutcome:
    """Notification delivered by a settlement layer for one dispatched entry."""
    handle:    str
    confirmed: bool
    index:     Optional[int] = None
    reason:    Optional[str] = None

    @classmethod
    def accepted(cls, handle: str, index: int) -> "SettlementOutcome":
        return cls(handle=handle, confirmed=True, index=index)

    @classmethod
    def rejected(cls, handle: str, reason: str) -> "SettlementOutcome":
        return cls(handle=handle, confirmed=False, reason=reason)


# ─────────────────────────────────────────────────────────────
# Client-side submission tracking
# ─────────────────────────────────────────────────────────────

class SubmissionStatus(Enum):
    SUBMITTED = "submitted"
    CONFIRMED = "confirmed"
    FAILED    = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not SubmissionStatus.SUBMITTED


@dataclass
class PendingSubmission:
    """
    One submit() call, tracked until settlement resolves it.

    submission_id is generated locally; settlement_handle is whatever the
    settlement layer returned from dispatch(). Once status is terminal it
    never changes again.
    """
    submission_id:     str
    entry:             Entry
    submitted_at:      str
    status:            SubmissionStatus = SubmissionStatus.SUBMITTED
    settlement_handle: Optional[str] = None
    resolved_at:       Optional[str] = None
    index:             Optional[int] = None
    error:             Optional[Exception] = field(default=None, compare=False)

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def to_dict(self) -> Dict[str, Any]:
        return {
            "submission_id":     self.submission_id,
            "author":            self.entry.author,
            "body":              self.entry.body,
            "status":            self.status.value,
            "settlement_handle": self.settlement_handle,
            "submitted_at":      self.submitted_at,
            "resolved_at":       self.resolved_at,
            "index":             self.index,
            "error":             str(self.error) if self.error else None,
        }


@dataclass(frozen=True)
class ViewItem:
    """A row of the local view. index is None while the entry is pending."""
    entry:  Entry
    status: SubmissionStatus
    index:  Optional[int] = None

    @property
    def author(self) -> str:
        return self.entry.author

    @property
    def body(self) -> str:
        return self.entry.body
