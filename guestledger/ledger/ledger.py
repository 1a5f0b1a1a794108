"""
Ledger Store for guestledger.

The authoritative append-only sequence of guestbook entries. The only
mutation is append(); there is no update and no delete.
"""

import json
import logging
import os
import threading
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

from guestledger.core.crypto import Ed25519KeyManager
from guestledger.core.exceptions import LedgerError, ReadFailure, RejectedWrite
from guestledger.core.models import GENESIS_HASH, Entry, LedgerRecord
from guestledger.core.time import ledger_timestamp


logger = logging.getLogger(__name__)


@dataclass
class LedgerVerification:
    """Result of LedgerStore.verify(). bool(result) is True iff valid."""
    total_entries:  int
    signed_entries: int = 0
    violations:     List[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.violations

    def __bool__(self) -> bool:
        return self.valid

    def to_dict(self) -> dict:
        return {
            "valid":          self.valid,
            "total_entries":  self.total_entries,
            "signed_entries": self.signed_entries,
            "violations":     list(self.violations),
        }


class LedgerStore:
    """
    Append-only guestbook ledger.

    In memory by default. With a path, every append is written as one
    JSONL line and read_all() re-reads the file, so appends made by other
    processes sharing the file become visible. With a signing_key, every
    record is chained to its predecessor and signed.

    Appends from different callers are expected to be serialized by the
    settlement layer; the internal lock only keeps this process's view
    of the sequence consistent.
    """

    GENESIS_HASH = GENESIS_HASH

    def __init__(
        self,
        path:        Optional[Path] = None,
        signing_key: Optional[Ed25519KeyManager] = None,
    ) -> None:
        self.path        = Path(path) if path is not None else None
        self.signing_key = signing_key

        self._lock:    threading.Lock     = threading.Lock()
        self._records: List[LedgerRecord] = []

        if self.path is not None and self.path.exists():
            try:
                self._records = self._read_file()
            except (OSError, ValueError, KeyError) as exc:
                raise LedgerError(
                    f"Failed to load ledger: {exc}",
                    {"path": str(self.path)},
                ) from exc

    # ── Public API ────────────────────────────────────────────

    def append(self, entry: Entry, handle: Optional[str] = None) -> int:
        """
        Append entry as the new last element and return its index.

        The only validation is that both fields are present as text;
        empty strings and duplicates are accepted.
        """
        self._validate(entry)
        handle = handle or f"direct-{uuid.uuid4().hex}"

        with self._lock:
            if self.path is not None and self.path.exists():
                # Pick up records appended by other processes first
                try:
                    self._records = self._read_file()
                except (OSError, ValueError, KeyError) as exc:
                    raise LedgerError(
                        f"Failed to reload ledger before append: {exc}",
                        {"path": str(self.path)},
                    ) from exc

            index     = len(self._records)
            prev_hash = (
                self._records[-1].compute_hash() if self._records else GENESIS_HASH
            )
            record = LedgerRecord(
                index=     index,
                entry=     entry,
                handle=    handle,
                timestamp= ledger_timestamp(),
                prev_hash= prev_hash,
            )
            if self.signing_key is not None:
                record = record.signed(self.signing_key)

            # State advances only after a confirmed write
            if self.path is not None:
                self._write_record(record)
            self._records.append(record)

        logger.debug("Appended entry %d (handle=%s)", index, handle)
        return index

    def read_all(self) -> Tuple[Entry, ...]:
        """Every entry in insertion order, as of this call."""
        return tuple(record.entry for record in self.records())

    def records(self) -> Tuple[LedgerRecord, ...]:
        """Full records in insertion order. Raises ReadFailure on I/O or decode errors."""
        if self.path is None:
            with self._lock:
                return tuple(self._records)

        if not self.path.exists():
            return ()
        try:
            return tuple(self._read_file())
        except (OSError, ValueError, KeyError) as exc:
            raise ReadFailure(
                f"Failed to read ledger: {exc}",
                {"path": str(self.path)},
            ) from exc

    def __len__(self) -> int:
        return len(self.records())

    def verify(self) -> LedgerVerification:
        """
        Check index continuity, hash chain linkage and signatures.

        Unsigned records are accepted (the store may run without a key);
        a record that carries a signature must verify.
        """
        records = self.records()
        result  = LedgerVerification(total_entries=len(records))

        for i, record in enumerate(records):
            if record.index != i:
                result.violations.append(
                    f"Index gap at position {i}: record claims index {record.index}"
                )

            expected_prev = records[i - 1].compute_hash() if i > 0 else GENESIS_HASH
            if record.prev_hash != expected_prev:
                result.violations.append(
                    f"Chain break at index {i}: "
                    f"expected ...{expected_prev[-12:]}, got ...{record.prev_hash[-12:]}"
                )

            if record.signature is None and record.signer_public_key is None:
                continue
            if record.verify_signature():
                result.signed_entries += 1
            else:
                result.violations.append(f"Invalid signature at index {i}")

        return result

    def stats(self) -> dict:
        records = self.records()
        return {
            "total_entries":    len(records),
            "distinct_authors": len({r.entry.author for r in records}),
            "first_entry_time": records[0].timestamp if records else None,
            "last_entry_time":  records[-1].timestamp if records else None,
            "ledger_file":      str(self.path) if self.path else None,
            "signed":           self.signing_key is not None,
        }

    # ── Internal ──────────────────────────────────────────────

    @staticmethod
    def _validate(entry: Entry) -> None:
        if not isinstance(entry, Entry):
            raise RejectedWrite(
                f"expected an Entry, got {type(entry).__name__}"
            )
        for name in ("author", "body"):
            value = getattr(entry, name)
            if value is None:
                raise RejectedWrite(f"entry field '{name}' is missing")
            if not isinstance(value, str):
                raise RejectedWrite(
                    f"entry field '{name}' must be text, got {type(value).__name__}"
                )

    def _write_record(self, record: LedgerRecord) -> None:
        """Append one record as a newline-terminated JSON line."""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(json.dumps(record.to_dict(), ensure_ascii=False) + "\n")
                f.flush()
                os.fsync(f.fileno())
        except OSError as exc:
            raise LedgerError(
                f"Failed to write ledger entry: {exc}",
                {"path": str(self.path), "index": record.index},
            ) from exc

    def _read_file(self) -> List[LedgerRecord]:
        """
        Parse the JSONL file.

        A final line without its newline is an append still in progress
        and is skipped. Any other malformed line raises ValueError.
        """
        records: List[LedgerRecord] = []
        with open(self.path, "r", encoding="utf-8") as f:
            for line_num, line in enumerate(f, 1):
                if not line.endswith("\n"):
                    break
                stripped = line.strip()
                if not stripped:
                    continue
                try:
                    data = json.loads(stripped)
                except json.JSONDecodeError as exc:
                    raise ValueError(f"Invalid JSON at line {line_num}: {exc}") from exc
                if not isinstance(data, dict):
                    raise ValueError(
                        f"Line {line_num} is not a record object "
                        f"(got {type(data).__name__})"
                    )
                try:
                    records.append(LedgerRecord.from_dict(data))
                except (KeyError, TypeError) as exc:
                    raise ValueError(f"Malformed record at line {line_num}: {exc}") from exc
        return records
