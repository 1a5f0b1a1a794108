"""
Shared fixtures for the guestledger test suite.
"""

import threading
import uuid
from typing import Callable, Dict, List

import pytest

from guestledger.core.exceptions import NotReady, ReadFailure
from guestledger.core.models import Entry, SettlementOutcome
from guestledger.ledger.ledger import LedgerStore
from guestledger.settlement.engine import SettlementEngine, SettlementLayer


class ManualSettlement(SettlementLayer):
    """
    Settlement layer driven by the test.

    dispatch() only records the entry; the test decides when and how each
    handle resolves via confirm() / reject().
    """

    def __init__(self, ledger: LedgerStore, connected: bool = True) -> None:
        self.ledger     = ledger
        self.connected  = connected
        self.dispatched: Dict[str, Entry] = {}
        self._listeners: List[Callable] = []
        self._lock = threading.Lock()

    @property
    def is_connected(self) -> bool:
        return self.connected

    def dispatch(self, entry: Entry) -> str:
        if not self.connected:
            raise NotReady("manual settlement disconnected")
        handle = f"man-{uuid.uuid4().hex}"
        with self._lock:
            self.dispatched[handle] = entry
        return handle

    def subscribe(self, listener):
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def confirm(self, handle: str) -> int:
        index = self.ledger.append(self.dispatched[handle], handle=handle)
        self._publish(SettlementOutcome.accepted(handle, index))
        return index

    def reject(self, handle: str, reason: str) -> None:
        self._publish(SettlementOutcome.rejected(handle, reason))

    def publish(self, outcome: SettlementOutcome) -> None:
        self._publish(outcome)

    def _publish(self, outcome: SettlementOutcome) -> None:
        for listener in list(self._listeners):
            listener(outcome)


class EagerSettlement(ManualSettlement):
    """Confirms inside dispatch(), before the handle is returned."""

    def dispatch(self, entry: Entry) -> str:
        handle = super().dispatch(entry)
        self.confirm(handle)
        return handle


class ThreadedSettlement(ManualSettlement):
    """Confirms each write from its own thread; .settled is set once done."""

    def __init__(self, ledger: LedgerStore) -> None:
        super().__init__(ledger)
        self.settled = threading.Event()

    def dispatch(self, entry: Entry) -> str:
        handle = super().dispatch(entry)

        def confirm_later():
            self.confirm(handle)
            self.settled.set()

        threading.Thread(target=confirm_later, daemon=True).start()
        return handle


class FlakyReader:
    """read_all() that fails while .failing is set."""

    def __init__(self, ledger: LedgerStore) -> None:
        self.ledger  = ledger
        self.failing = False
        self.calls   = 0

    def read_all(self):
        self.calls += 1
        if self.failing:
            raise ReadFailure("simulated network partition")
        return self.ledger.read_all()


@pytest.fixture
def store():
    """A fresh in-memory ledger store."""
    return LedgerStore()


@pytest.fixture
def manual(store):
    return ManualSettlement(store)


@pytest.fixture
def engine(store):
    """Settlement engine without a worker thread; settle with settle_pending()."""
    eng = SettlementEngine(store, autostart=False).connect()
    yield eng
    eng.close()


@pytest.fixture
def make_manual():
    return ManualSettlement


@pytest.fixture
def make_eager():
    return EagerSettlement


@pytest.fixture
def make_threaded():
    return ThreadedSettlement


@pytest.fixture
def make_flaky_reader():
    return FlakyReader
