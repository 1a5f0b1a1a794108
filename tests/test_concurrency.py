"""
tests/test_concurrency.py

Concurrency safety for LedgerStore.
Readers running while writers append must never see a corrupted or
shrinking sequence, and no append may be lost.

Run:
    pytest tests/test_concurrency.py -v --tb=short
"""

import threading

import pytest

from guestledger.core.crypto import Ed25519KeyManager
from guestledger.core.models import Entry
from guestledger.ledger.ledger import LedgerStore


@pytest.fixture(params=["memory", "file"])
def shared_store(request, tmp_path):
    if request.param == "memory":
        return LedgerStore()
    return LedgerStore(
        path=tmp_path / "ledger.jsonl",
        signing_key=Ed25519KeyManager.generate(),
    )


class TestConcurrency:

    def test_concurrent_appends_no_loss(self, shared_store):
        """Two threads appending simultaneously must not lose or corrupt entries."""
        errors = []

        def write_10(name):
            try:
                for i in range(10):
                    shared_store.append(Entry(name, str(i)))
            except Exception as e:
                errors.append(str(e))

        t1 = threading.Thread(target=write_10, args=("t1",))
        t2 = threading.Thread(target=write_10, args=("t2",))
        t1.start()
        t2.start()
        t1.join()
        t2.join()

        assert errors == [], f"Concurrent appends raised exceptions: {errors}"

        entries = shared_store.read_all()
        assert len(entries) == 20, (
            f"Expected 20 entries (10 per thread), got {len(entries)}."
        )
        assert [e.body for e in entries if e.author == "t1"] == [str(i) for i in range(10)]
        assert shared_store.verify().valid

    def test_readers_never_see_shrinking_sequence(self, shared_store):
        stop     = threading.Event()
        problems = []

        def reader():
            last = ()
            while not stop.is_set():
                try:
                    snapshot = shared_store.read_all()
                except Exception as e:
                    problems.append(f"read failed: {e}")
                    return
                if len(snapshot) < len(last) or snapshot[:len(last)] != last:
                    problems.append("snapshot diverged from an earlier read")
                    return
                last = snapshot

        readers = [threading.Thread(target=reader) for _ in range(3)]
        for t in readers:
            t.start()
        for i in range(50):
            shared_store.append(Entry("writer", str(i)))
        stop.set()
        for t in readers:
            t.join()

        assert problems == []
        assert len(shared_store.read_all()) == 50
