"""
Submission Coordinator.

Turns "sign the guestbook" into a tracked asynchronous write and keeps a
local view that agrees with the authoritative ledger.

State machine per submission:

    SUBMITTED -> CONFIRMED   settlement accepted the write
    SUBMITTED -> FAILED      settlement rejected it, or the timeout elapsed

CONFIRMED and FAILED are terminal. A confirmation that arrives after the
timeout leaves the submission FAILED but still reconciles the view, so
the entry shows up once, as a ledger entry.
"""

import dataclasses
import logging
import threading
import uuid
from collections import OrderedDict, deque
from typing import Callable, Deque, Dict, List, Optional, Sequence, Tuple

from guestledger.client.events import CoordinatorEvent, EventType, Observer
from guestledger.core.exceptions import (
    ConfigError,
    NotReady,
    ReadFailure,
    RejectedWrite,
    SubmissionTimeout,
)
from guestledger.core.models import (
    Entry,
    PendingSubmission,
    SettlementOutcome,
    SubmissionStatus,
    ViewItem,
)
from guestledger.core.time import ledger_timestamp
from guestledger.settlement.engine import SettlementLayer


logger = logging.getLogger(__name__)

# Timed-out handles remembered for late confirmations
MAX_EXPIRED_HANDLES = 1024


class SubmissionCoordinator:
    """
    Client-side bridge between user intent and the ledger.

    One coordinator serves one client session. Settlement outcomes and
    timeouts arrive on other threads, so internal state sits behind a lock;
    observers are always called with that lock released.
    """

    def __init__(
        self,
        settlement:     SettlementLayer,
        reader,
        timeout:        float,
        retain_history: bool = True,
    ) -> None:
        """
        Args:
            settlement:     Layer that writes are dispatched to
            reader:         Anything with read_all(), usually the LedgerStore
            timeout:        Seconds to wait for an outcome before failing
            retain_history: Keep terminal submissions for history()
        """
        if timeout is None or timeout <= 0:
            raise ConfigError(
                "submission timeout must be a positive number of seconds",
                {"timeout": timeout},
            )

        self.settlement     = settlement
        self.reader         = reader
        self.timeout        = timeout
        self.retain_history = retain_history

        self._lock:        threading.RLock                = threading.RLock()
        self._snapshot:    Tuple[Entry, ...]              = ()
        self._submissions: Dict[str, PendingSubmission]   = {}
        self._by_handle:   Dict[str, str]                 = {}
        self._expired:     "OrderedDict[str, str]"        = OrderedDict()
        self._timers:      Dict[str, threading.Timer]     = {}
        self._done:        Dict[str, threading.Event]     = {}
        self._observers:   List[Observer]                 = []
        self._early:       List[SettlementOutcome]        = []
        self._dispatching: bool                           = False
        self._closed:      bool                           = False

        # Events are queued under _lock in the order they are built and
        # delivered by one thread at a time, so observers see them in order.
        self._outbox:      Deque[CoordinatorEvent]        = deque()
        self._delivering:  threading.Lock                 = threading.Lock()

        self._unsubscribe = settlement.subscribe(self._on_outcome)

    # ── Public API ────────────────────────────────────────────

    def submit(self, author: str, body: str) -> str:
        """
        Hand a new entry to the settlement layer and return its submission id.

        Returns as soon as the write is dispatched. Raises NotReady when
        there is no settlement connection.
        """
        if self._closed or not self.settlement.is_connected:
            raise NotReady("no settlement connection; connect before submitting")

        entry  = Entry(author=author, body=body)
        parked: List[SettlementOutcome] = []

        try:
            with self._lock:
                submission = PendingSubmission(
                    submission_id= f"sub-{uuid.uuid4().hex}",
                    entry=         entry,
                    submitted_at=  ledger_timestamp(),
                )
                # The lock is held across dispatch so an outcome cannot be
                # processed before the handle is registered. Outcomes delivered
                # synchronously from inside dispatch() are parked in _early
                # and replayed, in arrival order, once registration is done.
                self._dispatching = True
                try:
                    handle = self.settlement.dispatch(entry)
                finally:
                    self._dispatching = False
                    parked, self._early = self._early, []
                submission.settlement_handle = handle

                sid = submission.submission_id
                self._submissions[sid] = submission
                self._by_handle[handle] = sid
                self._done[sid]         = threading.Event()
                self._start_timer(sid)

                self._queue([self._event(EventType.SUBMITTED, submission)])

            logger.debug("Submitted %s as %s", sid, handle)
            self._deliver()
        finally:
            for outcome in parked:
                self._on_outcome(outcome)
        return sid

    def current_view(self) -> List[ViewItem]:
        """
        Confirmed ledger entries followed by still-pending submissions.

        No I/O: built from the last reconciled snapshot.
        """
        with self._lock:
            return list(self._view())

    def refresh(self) -> List[ViewItem]:
        """
        Re-read the ledger and replace the snapshot.

        On failure the previous snapshot is kept, observers get READ_FAILED,
        and ReadFailure is raised.
        """
        entries = self._read_ledger()
        with self._lock:
            self._apply_snapshot(entries)
            event = self._event(EventType.VIEW_REFRESHED)
            self._queue([event])
        self._deliver()
        return list(event.view)

    def wait(self, submission_id: str, timeout: Optional[float] = None) -> PendingSubmission:
        """
        Block until the submission is terminal or the wait times out.

        Giving up on the wait does not touch the submission, which still
        resolves later. Raises KeyError for an unknown id.
        """
        with self._lock:
            if submission_id not in self._done:
                raise KeyError(f"unknown submission: {submission_id}")
            done       = self._done[submission_id]
            submission = self._submissions.get(submission_id)

        done.wait(timeout)

        with self._lock:
            submission = self._submissions.get(submission_id, submission)
            return dataclasses.replace(submission)

    def get(self, submission_id: str) -> Optional[PendingSubmission]:
        with self._lock:
            submission = self._submissions.get(submission_id)
            return dataclasses.replace(submission) if submission else None

    def history(self) -> List[PendingSubmission]:
        """All retained submissions, in submission order."""
        with self._lock:
            return [dataclasses.replace(s) for s in self._submissions.values()]

    def pending(self) -> List[PendingSubmission]:
        with self._lock:
            return [
                dataclasses.replace(s)
                for s in self._submissions.values()
                if s.status is SubmissionStatus.SUBMITTED
            ]

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """Register observer for every event. Returns an unsubscribe callable."""
        with self._lock:
            self._observers.append(observer)

        def unsubscribe() -> None:
            with self._lock:
                if observer in self._observers:
                    self._observers.remove(observer)

        return unsubscribe

    def close(self) -> None:
        """Stop listening for outcomes and cancel outstanding timers."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            timers, self._timers = list(self._timers.values()), {}
        for timer in timers:
            timer.cancel()
        self._unsubscribe()

    def __enter__(self) -> "SubmissionCoordinator":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # ── Settlement callbacks ──────────────────────────────────

    def _on_outcome(self, outcome: SettlementOutcome) -> None:
        # The status transition happens before the ledger read, so a
        # failing read cannot lose it.
        with self._lock:
            if self._dispatching:
                self._early.append(outcome)
                return
            sid = self._by_handle.pop(outcome.handle, None)
            if sid is None:
                sid = self._expired.pop(outcome.handle, None)
            if sid is None:
                # Dispatched by another client
                return

            submission = self._submissions.get(sid)
            if submission is not None and not submission.is_terminal:
                if outcome.confirmed:
                    submission.index = outcome.index
                    self._resolve(submission, SubmissionStatus.CONFIRMED)
                else:
                    error = RejectedWrite(
                        outcome.reason or "rejected by settlement layer",
                        {"submission_id": sid},
                    )
                    self._resolve(submission, SubmissionStatus.FAILED, error)
            else:
                logger.info(
                    "Late %s outcome for %s ignored for status",
                    "confirmed" if outcome.confirmed else "rejected", sid,
                )
                submission = None

        entries: Optional[Tuple[Entry, ...]] = None
        read_error: Optional[ReadFailure] = None
        if outcome.confirmed:
            try:
                entries = self._read_ledger(notify=False)
            except ReadFailure as exc:
                read_error = exc

        events = []
        with self._lock:
            if entries is not None:
                self._apply_snapshot(entries)

            if submission is not None:
                event_type = (
                    EventType.CONFIRMED
                    if submission.status is SubmissionStatus.CONFIRMED
                    else EventType.FAILED
                )
                events.append(self._event(event_type, submission, submission.error))
            if entries is not None:
                events.append(self._event(EventType.VIEW_REFRESHED))
            if read_error is not None:
                events.append(self._event(EventType.READ_FAILED, error=read_error))
            if submission is not None:
                self._discard_if_done(sid)
            self._queue(events)

        self._deliver()

    def _on_timeout(self, sid: str) -> None:
        with self._lock:
            self._timers.pop(sid, None)
            submission = self._submissions.get(sid)
            if submission is None or submission.is_terminal:
                return
            error = SubmissionTimeout(
                f"no settlement outcome within {self.timeout}s",
                {"submission_id": sid},
            )
            self._expire_handle(submission.settlement_handle)
            self._resolve(submission, SubmissionStatus.FAILED, error)
            self._queue([self._event(EventType.FAILED, submission, error)])
            self._discard_if_done(sid)

        logger.warning("Submission %s timed out after %ss", sid, self.timeout)
        self._deliver()

    # ── Internal ──────────────────────────────────────────────

    def _resolve(
        self,
        submission: PendingSubmission,
        status:     SubmissionStatus,
        error:      Optional[Exception] = None,
    ) -> None:
        """Move a SUBMITTED submission to a terminal status. Caller holds the lock."""
        submission.status      = status
        submission.error       = error
        submission.resolved_at = ledger_timestamp()

        timer = self._timers.pop(submission.submission_id, None)
        if timer is not None:
            timer.cancel()
        self._done[submission.submission_id].set()

        if status is SubmissionStatus.CONFIRMED:
            logger.info(
                "Submission %s confirmed at index %s",
                submission.submission_id, submission.index,
            )
        else:
            logger.warning("Submission %s failed: %s", submission.submission_id, error)

    def _expire_handle(self, handle: Optional[str]) -> None:
        """
        Move a timed-out handle aside so a late confirmation still
        reconciles. Only the newest MAX_EXPIRED_HANDLES are kept.
        Caller holds the lock.
        """
        sid = self._by_handle.pop(handle, None)
        if sid is None:
            return
        self._expired[handle] = sid
        while len(self._expired) > MAX_EXPIRED_HANDLES:
            self._expired.popitem(last=False)

    def _discard_if_done(self, sid: str) -> None:
        if self.retain_history:
            return
        self._submissions.pop(sid, None)
        self._done.pop(sid, None)

    def _start_timer(self, sid: str) -> None:
        timer = threading.Timer(self.timeout, self._on_timeout, args=(sid,))
        timer.daemon = True
        self._timers[sid] = timer
        timer.start()

    def _read_ledger(self, notify: bool = True) -> Tuple[Entry, ...]:
        try:
            entries = tuple(self.reader.read_all())
        except ReadFailure as exc:
            self._read_failed(exc, notify)
            raise
        except (OSError, ValueError, KeyError, TypeError) as exc:
            # Readers other than LedgerStore may surface raw I/O or decode errors
            error = ReadFailure(f"ledger read failed: {exc}")
            self._read_failed(error, notify)
            raise error from exc
        return entries

    def _read_failed(self, error: ReadFailure, notify: bool) -> None:
        logger.warning("Ledger read failed; keeping last view: %s", error)
        if notify:
            with self._lock:
                self._queue([self._event(EventType.READ_FAILED, error=error)])
            self._deliver()

    def _apply_snapshot(self, entries: Sequence[Entry]) -> None:
        # The ledger only grows; a shorter snapshot is an older read.
        if len(entries) >= len(self._snapshot):
            self._snapshot = tuple(entries)

    def _view(self) -> Tuple[ViewItem, ...]:
        confirmed = [
            ViewItem(entry=entry, status=SubmissionStatus.CONFIRMED, index=i)
            for i, entry in enumerate(self._snapshot)
        ]
        pending = [
            ViewItem(entry=s.entry, status=SubmissionStatus.SUBMITTED)
            for s in self._submissions.values()
            if s.status is SubmissionStatus.SUBMITTED
        ]
        return tuple(confirmed + pending)

    def _event(
        self,
        event_type: EventType,
        submission: Optional[PendingSubmission] = None,
        error:      Optional[Exception] = None,
    ) -> CoordinatorEvent:
        return CoordinatorEvent(
            event_type= event_type,
            view=       self._view(),
            submission= dataclasses.replace(submission) if submission else None,
            error=      error,
        )

    def _queue(self, events: List[CoordinatorEvent]) -> None:
        """Append events to the outbox in build order. Caller holds the lock."""
        self._outbox.extend(events)

    def _deliver(self) -> None:
        """
        Hand queued events to observers. Must be called without the lock.

        Only one thread delivers at a time. A thread that finds delivery
        already in progress leaves its events to that thread, which checks
        the outbox again after releasing the delivery lock.
        """
        while True:
            if not self._delivering.acquire(blocking=False):
                return
            try:
                while True:
                    with self._lock:
                        if not self._outbox:
                            break
                        event     = self._outbox.popleft()
                        observers = list(self._observers)
                    for observer in observers:
                        try:
                            observer(event)
                        except Exception:
                            logger.exception(
                                "Observer failed on %s event", event.event_type.value
                            )
            finally:
                self._delivering.release()
            with self._lock:
                if not self._outbox:
                    return
