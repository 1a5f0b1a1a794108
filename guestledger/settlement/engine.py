"""
Settlement layer: orders and finalizes guestbook writes.

SettlementLayer is the narrow contract clients depend on. SettlementEngine
is the in-process implementation standing in for a consensus network:
one worker thread settles dispatched entries strictly in dispatch order,
which makes it the sole serialization point for ledger appends.
"""

import logging
import queue
import threading
import time
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from guestledger.core.exceptions import LedgerError, NotReady, RejectedWrite
from guestledger.core.models import Entry, SettlementOutcome
from guestledger.ledger.ledger import LedgerStore


logger = logging.getLogger(__name__)

OutcomeListener = Callable[[SettlementOutcome], None]

# Worker shutdown marker
_STOP = object()


class SettlementLayer(ABC):
    """
    What a client needs from the settlement layer, and nothing more.

    dispatch() hands an entry over and returns a correlation handle.
    Outcomes arrive later, on any thread, through subscribed listeners.
    """

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        ...

    @abstractmethod
    def dispatch(self, entry: Entry) -> str:
        ...

    @abstractmethod
    def subscribe(self, listener: OutcomeListener) -> Callable[[], None]:
        ...


@dataclass
class SettlementPolicy:
    """Limits enforced at settlement time. None means unlimited."""
    max_author_length: Optional[int] = None
    max_body_length:   Optional[int] = None

    def check(self, entry: Entry) -> Optional[str]:
        """Return a rejection reason, or None if the entry is acceptable."""
        if (
            self.max_author_length is not None
            and isinstance(entry.author, str)
            and len(entry.author) > self.max_author_length
        ):
            return (
                f"author exceeds {self.max_author_length} characters "
                f"(got {len(entry.author)})"
            )
        if (
            self.max_body_length is not None
            and isinstance(entry.body, str)
            and len(entry.body) > self.max_body_length
        ):
            return (
                f"body exceeds {self.max_body_length} characters "
                f"(got {len(entry.body)})"
            )
        return None


class SettlementEngine(SettlementLayer):
    """
    In-process settlement engine.

    Settling one write means:
        1. Apply the settlement policy
        2. Append to the ledger store
        3. Notify listeners with accepted(handle, index)
    A policy violation, a store refusal or any unexpected error notifies
    rejected(handle, reason) instead and leaves the ledger untouched.

    With autostart=False no worker runs; call settle_pending() to settle
    queued writes on the calling thread.
    """

    def __init__(
        self,
        ledger:       LedgerStore,
        policy:       Optional[SettlementPolicy] = None,
        settle_delay: float = 0.0,
        autostart:    bool = True,
    ) -> None:
        """
        Args:
            ledger:       Store that settled entries are appended to
            policy:       Length limits checked before appending
            settle_delay: Seconds to wait before settling each write
            autostart:    Start the background worker on connect()
        """
        self.ledger       = ledger
        self.policy       = policy or SettlementPolicy()
        self.settle_delay = settle_delay
        self.autostart    = autostart

        self._lock:      threading.Lock = threading.Lock()
        self._queue:     "queue.Queue"  = queue.Queue()
        self._listeners: List[OutcomeListener] = []
        self._connected: bool = False
        self._worker:    Optional[threading.Thread] = None
        self._counts:    Dict[str, int] = {
            "dispatched": 0,
            "confirmed":  0,
            "rejected":   0,
        }

    # ── Connection ────────────────────────────────────────────

    @property
    def is_connected(self) -> bool:
        return self._connected

    def connect(self) -> "SettlementEngine":
        with self._lock:
            if self._connected:
                return self
            self._connected = True
            if self.autostart:
                self._worker = threading.Thread(
                    target=self._run,
                    name="guestledger-settlement",
                    daemon=True,
                )
                self._worker.start()
        logger.debug("Settlement engine connected (autostart=%s)", self.autostart)
        return self

    def close(self, timeout: Optional[float] = None) -> None:
        """
        Stop accepting writes. Writes already dispatched are still settled
        by the worker before it exits.
        """
        with self._lock:
            if not self._connected:
                return
            self._connected = False
            worker, self._worker = self._worker, None
        if worker is not None:
            self._queue.put(_STOP)
            worker.join(timeout)
        logger.debug("Settlement engine closed")

    def __enter__(self) -> "SettlementEngine":
        return self.connect()

    def __exit__(self, *exc) -> None:
        self.close()

    # ── SettlementLayer ───────────────────────────────────────

    def dispatch(self, entry: Entry) -> str:
        with self._lock:
            if not self._connected:
                raise NotReady("settlement engine is not connected")
            handle = f"stl-{uuid.uuid4().hex}"
            self._counts["dispatched"] += 1
            self._queue.put((handle, entry))
        logger.debug("Dispatched %s", handle)
        return handle

    def subscribe(self, listener: OutcomeListener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    # ── Settlement ────────────────────────────────────────────

    def settle_pending(self) -> List[SettlementOutcome]:
        """Settle everything queued so far on the calling thread."""
        outcomes = []
        while True:
            try:
                item = self._queue.get_nowait()
            except queue.Empty:
                return outcomes
            if item is _STOP:
                continue
            outcomes.append(self._settle(*item))

    def pending_count(self) -> int:
        return self._queue.qsize()

    def stats(self) -> dict:
        with self._lock:
            counts = dict(self._counts)
        counts["pending"] = self.pending_count()
        return counts

    def _run(self) -> None:
        while True:
            item = self._queue.get()
            if item is _STOP:
                return
            if self.settle_delay:
                time.sleep(self.settle_delay)
            try:
                self._settle(*item)
            except Exception:
                # The worker must outlive any single write
                logger.exception("Settlement worker failed on %s", item[0])

    def _settle(self, handle: str, entry: Entry) -> SettlementOutcome:
        """Settle one write. Every call produces exactly one outcome."""
        try:
            outcome = self._decide(handle, entry)
        except Exception as exc:
            logger.exception("Unexpected failure settling %s", handle)
            outcome = SettlementOutcome.rejected(handle, f"settlement failed: {exc}")

        with self._lock:
            key = "confirmed" if outcome.confirmed else "rejected"
            self._counts[key] += 1
            listeners = list(self._listeners)

        if outcome.confirmed:
            logger.info("Settled %s at index %d", handle, outcome.index)
        else:
            logger.warning("Rejected %s: %s", handle, outcome.reason)

        self._notify(listeners, outcome)
        return outcome

    def _decide(self, handle: str, entry: Entry) -> SettlementOutcome:
        reason = self.policy.check(entry)
        if reason is not None:
            return SettlementOutcome.rejected(handle, reason)
        try:
            index = self.ledger.append(entry, handle=handle)
        except RejectedWrite as exc:
            return SettlementOutcome.rejected(handle, exc.reason)
        except LedgerError as exc:
            return SettlementOutcome.rejected(handle, str(exc))
        return SettlementOutcome.accepted(handle, index)

    @staticmethod
    def _notify(listeners: List[OutcomeListener], outcome: SettlementOutcome) -> None:
        for listener in listeners:
            try:
                listener(outcome)
            except Exception:
                logger.exception(
                    "Settlement listener failed for %s", outcome.handle
                )
