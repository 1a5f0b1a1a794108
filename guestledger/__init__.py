"""
guestledger/__init__.py

guestledger: an append-only guestbook ledger with an eventually
consistent client.

    LedgerStore            authoritative append-only entry sequence
    SettlementEngine       orders and finalizes writes
    SubmissionCoordinator  tracks submissions, keeps the local view
"""

__version__ = "0.1.0"

from guestledger.core.models import (
    Entry,
    LedgerRecord,
    PendingSubmission,
    SettlementOutcome,
    SubmissionStatus,
    ViewItem,
    GENESIS_HASH,
)
from guestledger.core.exceptions import (
    GuestLedgerError,
    RejectedWrite,
    NotReady,
    SubmissionTimeout,
    ReadFailure,
    LedgerError,
    ConfigError,
)
from guestledger.core.crypto import Ed25519KeyManager
from guestledger.ledger import LedgerStore, LedgerVerification
from guestledger.settlement import SettlementEngine, SettlementLayer, SettlementPolicy
from guestledger.client import SubmissionCoordinator, CoordinatorEvent, EventType
from guestledger.config import GuestLedgerConfig, load_config

__all__ = [
    # Data model
    "Entry",
    "LedgerRecord",
    "PendingSubmission",
    "SettlementOutcome",
    "SubmissionStatus",
    "ViewItem",
    # Components
    "LedgerStore",
    "LedgerVerification",
    "SettlementEngine",
    "SettlementLayer",
    "SettlementPolicy",
    "SubmissionCoordinator",
    "CoordinatorEvent",
    "EventType",
    "Ed25519KeyManager",
    # Config
    "GuestLedgerConfig",
    "load_config",
    # Errors
    "GuestLedgerError",
    "RejectedWrite",
    "NotReady",
    "SubmissionTimeout",
    "ReadFailure",
    "LedgerError",
    "ConfigError",
    # Constants
    "GENESIS_HASH",
]
