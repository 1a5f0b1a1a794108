"""
tests/test_ledger.py

LedgerStore: append-only semantics, persistence, chain and signatures.

Run:
    pytest tests/test_ledger.py -v
"""

import json

import pytest

from guestledger.core.crypto import Ed25519KeyManager
from guestledger.core.exceptions import LedgerError, ReadFailure, RejectedWrite
from guestledger.core.models import GENESIS_HASH, Entry
from guestledger.ledger.ledger import LedgerStore


# ─────────────────────────────────────────────────────────────
# Append / read_all
# ─────────────────────────────────────────────────────────────

class TestAppendOnly:

    def test_append_returns_sequential_indices(self, store):
        assert store.append(Entry("alice", "hi")) == 0
        assert store.append(Entry("bob", "yo")) == 1
        assert store.read_all() == (Entry("alice", "hi"), Entry("bob", "yo"))

    def test_earlier_entries_never_change(self, store):
        seen = []
        for i in range(20):
            store.append(Entry(f"user-{i}", f"msg-{i}"))
            snapshot = store.read_all()
            assert len(snapshot) >= len(seen)
            assert snapshot[:len(seen)] == tuple(seen)
            seen = list(snapshot)
        assert len(seen) == 20

    def test_snapshot_is_not_affected_by_later_appends(self, store):
        store.append(Entry("alice", "hi"))
        snapshot = store.read_all()
        store.append(Entry("bob", "later"))
        assert snapshot == (Entry("alice", "hi"),)

    def test_duplicates_are_distinct_entries(self, store):
        first  = store.append(Entry("alice", "hi"))
        second = store.append(Entry("alice", "hi"))
        assert first != second
        assert store.read_all() == (Entry("alice", "hi"), Entry("alice", "hi"))

    def test_empty_text_is_permitted(self, store):
        assert store.append(Entry("", "")) == 0
        assert store.read_all()[0] == Entry("", "")

    @pytest.mark.parametrize("entry", [
        Entry(None, "body"),
        Entry("author", None),
        Entry("author", 42),
    ])
    def test_missing_or_non_text_fields_rejected(self, store, entry):
        with pytest.raises(RejectedWrite):
            store.append(entry)
        assert store.read_all() == ()

    def test_non_entry_rejected(self, store):
        with pytest.raises(RejectedWrite):
            store.append({"author": "alice", "body": "hi"})

    def test_no_mutation_api(self, store):
        for name in ("update", "delete", "remove", "pop", "insert", "clear"):
            assert not hasattr(store, name)

    def test_entries_are_immutable(self):
        entry = Entry("alice", "hi")
        with pytest.raises(AttributeError):
            entry.body = "changed"


# ─────────────────────────────────────────────────────────────
# Persistence
# ─────────────────────────────────────────────────────────────

class TestPersistence:

    def test_entries_survive_reopen(self, tmp_path):
        path = tmp_path / "ledger.jsonl"
        store = LedgerStore(path=path)
        store.append(Entry("alice", "hi"))
        store.append(Entry("bob", "yo"))

        reopened = LedgerStore(path=path)
        assert reopened.read_all() == (Entry("alice", "hi"), Entry("bob", "yo"))
        assert reopened.append(Entry("carol", "hey")) == 2

    def test_appends_from_another_store_are_visible(self, tmp_path):
        path = tmp_path / "ledger.jsonl"
        writer_a = LedgerStore(path=path)
        writer_b = LedgerStore(path=path)

        writer_a.append(Entry("alice", "hi"))
        assert writer_b.append(Entry("bob", "yo")) == 1
        assert writer_a.read_all() == (Entry("alice", "hi"), Entry("bob", "yo"))
        assert writer_a.verify().valid

    def test_partial_trailing_line_is_ignored(self, tmp_path):
        path = tmp_path / "ledger.jsonl"
        store = LedgerStore(path=path)
        store.append(Entry("alice", "hi"))
        with open(path, "a", encoding="utf-8") as f:
            f.write('{"index": 1, "author": "bo')

        assert store.read_all() == (Entry("alice", "hi"),)

    def test_corrupt_line_raises_read_failure(self, tmp_path):
        path = tmp_path / "ledger.jsonl"
        store = LedgerStore(path=path)
        store.append(Entry("alice", "hi"))
        with open(path, "a", encoding="utf-8") as f:
            f.write("not json\n")

        with pytest.raises(ReadFailure):
            store.read_all()

    @pytest.mark.parametrize("line", ["null", "[1]", "42", '"text"', '{"index": 1}'])
    def test_non_record_line_raises_read_failure(self, tmp_path, line):
        path = tmp_path / "ledger.jsonl"
        store = LedgerStore(path=path)
        store.append(Entry("alice", "hi"))
        with open(path, "a", encoding="utf-8") as f:
            f.write(line + "\n")

        with pytest.raises(ReadFailure):
            store.read_all()
        with pytest.raises(LedgerError):
            store.append(Entry("bob", "yo"))

    def test_unwritable_location_raises_ledger_error(self, tmp_path):
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("", encoding="utf-8")
        store = LedgerStore(path=blocker / "ledger.jsonl")

        with pytest.raises(LedgerError):
            store.append(Entry("alice", "hi"))
        assert store.read_all() == ()

    def test_corrupt_file_on_open_raises_ledger_error(self, tmp_path):
        path = tmp_path / "ledger.jsonl"
        path.write_text("garbage\n", encoding="utf-8")
        with pytest.raises(LedgerError):
            LedgerStore(path=path)

    def test_unicode_round_trips(self, tmp_path):
        path = tmp_path / "ledger.jsonl"
        LedgerStore(path=path).append(Entry("zoë", "こんにちは 👋"))
        assert LedgerStore(path=path).read_all() == (Entry("zoë", "こんにちは 👋"),)

    def test_missing_file_reads_empty(self, tmp_path):
        store = LedgerStore(path=tmp_path / "absent.jsonl")
        assert store.read_all() == ()
        assert len(store) == 0


# ─────────────────────────────────────────────────────────────
# Chain + signatures
# ─────────────────────────────────────────────────────────────

class TestVerification:

    def test_first_record_links_to_genesis(self, store):
        store.append(Entry("alice", "hi"))
        assert store.records()[0].prev_hash == GENESIS_HASH

    def test_unsigned_ledger_verifies(self, store):
        for i in range(5):
            store.append(Entry("a", str(i)))
        result = store.verify()
        assert result.valid
        assert result.total_entries == 5
        assert result.signed_entries == 0

    def test_signed_ledger_verifies(self, tmp_path):
        store = LedgerStore(tmp_path / "l.jsonl", signing_key=Ed25519KeyManager.generate())
        for i in range(5):
            store.append(Entry("a", str(i)))
        result = store.verify()
        assert result.valid
        assert result.signed_entries == 5

    def test_tampered_body_is_detected(self, tmp_path):
        path  = tmp_path / "l.jsonl"
        store = LedgerStore(path, signing_key=Ed25519KeyManager.generate())
        store.append(Entry("alice", "hi"))
        store.append(Entry("bob", "yo"))

        lines = path.read_text(encoding="utf-8").splitlines()
        record = json.loads(lines[0])
        record["body"] = "rewritten"
        lines[0] = json.dumps(record)
        path.write_text("\n".join(lines) + "\n", encoding="utf-8")

        result = LedgerStore(path).verify()
        assert not result.valid
        assert any("signature" in v for v in result.violations)
        assert any("Chain break at index 1" in v for v in result.violations)

    def test_stats(self, store):
        store.append(Entry("alice", "1"))
        store.append(Entry("alice", "2"))
        store.append(Entry("bob", "3"))
        stats = store.stats()
        assert stats["total_entries"] == 3
        assert stats["distinct_authors"] == 2
