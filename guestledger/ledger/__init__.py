"""
guestledger Ledger - Append-Only Entry Store

The ledger is the source of truth for every guestbook entry.
"""

from guestledger.ledger.ledger import LedgerStore, LedgerVerification

__all__ = ["LedgerStore", "LedgerVerification"]
