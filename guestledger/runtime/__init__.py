"""
guestledger Runtime - wires store, settlement engine and coordinator
together from a GuestLedgerConfig.
"""

from guestledger.runtime.context import RuntimeContext

__all__ = ["RuntimeContext"]
