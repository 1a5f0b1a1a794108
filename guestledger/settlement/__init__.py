"""
guestledger Settlement Layer

Orders and finalizes guestbook writes:
- SettlementLayer: the contract clients depend on
- SettlementEngine: in-process implementation backed by a LedgerStore

Critical Invariants:
- Writes are settled in dispatch order
- Every dispatched write gets exactly one outcome
- Rejected writes never reach the ledger
"""

from guestledger.settlement.engine import (
    OutcomeListener,
    SettlementEngine,
    SettlementLayer,
    SettlementPolicy,
)

__all__ = [
    "OutcomeListener",
    "SettlementEngine",
    "SettlementLayer",
    "SettlementPolicy",
]
