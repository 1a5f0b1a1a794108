"""
Coordinator notifications.

Every status change and every view change is delivered to observers as
a CoordinatorEvent. Observers are plain callables; a presentation layer
typically re-renders from event.view.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Optional, Tuple

from guestledger.core.models import PendingSubmission, ViewItem
from guestledger.core.time import ledger_timestamp


class EventType(Enum):
    """Types of observable coordinator events."""
    SUBMITTED      = "submitted"
    CONFIRMED      = "confirmed"
    FAILED         = "failed"
    VIEW_REFRESHED = "view_refreshed"
    READ_FAILED    = "read_failed"


@dataclass(frozen=True)
class CoordinatorEvent:
    """
    One notification.

    submission is a snapshot copy taken when the event was built, so
    observers can keep it without racing later transitions.
    """
    event_type: EventType
    view:       Tuple[ViewItem, ...]
    submission: Optional[PendingSubmission] = None
    error:      Optional[Exception] = None
    timestamp:  str = field(default_factory=ledger_timestamp)

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "event_type": self.event_type.value,
            "timestamp":  self.timestamp,
            "view_size":  len(self.view),
        }

        # Optional fields
        if self.submission is not None:
            data["submission"] = self.submission.to_dict()

        if self.error is not None:
            data["error"] = str(self.error)

        return data


Observer = Callable[[CoordinatorEvent], None]
