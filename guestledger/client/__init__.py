"""
guestledger Client

SubmissionCoordinator tracks submitted entries through settlement and
keeps a local view reconciled with the ledger.
"""

from guestledger.client.coordinator import SubmissionCoordinator
from guestledger.client.events import CoordinatorEvent, EventType, Observer

__all__ = [
    "SubmissionCoordinator",
    "CoordinatorEvent",
    "EventType",
    "Observer",
]
