"""
Record store: an arena of records keyed by ref, with spend-once consumption.

Consumption is a flag flip under a lock, never a deletion, so a second
attempt is reported as AlreadySpent instead of looking like a missing
record. Refs of records that were built but discarded by a rolled-back
transaction are remembered and can never be committed again.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Optional, Set

from recordledger.core.exceptions import (
    AlreadySpent,
    NotOwner,
    RecordError,
    UnknownRecord,
)
from recordledger.core.models import Record, RecordSchema


logger = logging.getLogger(__name__)


class RecordStore:
    """
    Thread-safe record arena.

    Invariants:
        - a ref is committed at most once, and never after being discarded
        - consume() succeeds at most once per ref across all threads
        - only the record owner may consume it
    """

    def __init__(self) -> None:
        self._lock:      threading.Lock    = threading.Lock()
        self._records:   Dict[str, Record] = {}
        self._spent:     Set[str]          = set()
        self._discarded: Set[str]          = set()

    # ── Creation ──────────────────────────────────────────────

    def create(
        self,
        schema: RecordSchema,
        owner: str,
        fields: Dict[str, Any],
        program_id: str = "",
    ) -> str:
        """Build and commit a fresh unspent record. Returns its ref."""
        record = schema.instantiate(program_id, owner, fields)
        self.add(record)
        return record.ref

    def add(self, record: Record) -> None:
        """Commit a prebuilt record."""
        with self.committing([record]):
            pass

    @contextmanager
    def committing(self, records: List[Record]) -> Iterator[None]:
        """
        Commit a batch of records all-or-nothing and hold the store lock
        for the block. If the block raises, the batch is taken back and
        its refs are retired.

        Raises:
            RecordError: a ref in the batch was already used
        """
        with self._lock:
            self._check_unused([record.ref for record in records])
            for record in records:
                self._records[record.ref] = record
            try:
                yield
            except BaseException:
                for record in records:
                    del self._records[record.ref]
                    self._discarded.add(record.ref)
                raise
        for record in records:
            logger.debug("record committed ref=%s owner=%s", record.ref[:16], record.owner)

    def _check_unused(self, refs: List[str]) -> None:
        clashes = sorted({
            ref for ref in refs
            if ref in self._records or ref in self._discarded or refs.count(ref) > 1
        })
        if clashes:
            raise RecordError("record reference already used", {"refs": clashes})

    def discard(self, record: Record) -> None:
        """Retire the ref of a record that will never be committed."""
        with self._lock:
            self._discarded.add(record.ref)

    # ── Consumption ───────────────────────────────────────────

    def consume(self, ref: str, by: str) -> Record:
        """
        Mark a record spent and return it.

        Raises:
            UnknownRecord: ref was never committed
            NotOwner:      `by` is not the record owner
            AlreadySpent:  the record was consumed before
        """
        with self._lock:
            record = self._records.get(ref)
            if record is None:
                raise UnknownRecord("unknown record", {"ref": ref})
            if record.owner != by:
                raise NotOwner(
                    "record presented by non-owner",
                    {"ref": ref, "owner": record.owner, "by": by},
                )
            if ref in self._spent:
                raise AlreadySpent("record already spent", {"ref": ref})
            self._spent.add(ref)
        logger.debug("record consumed ref=%s", ref[:16])
        return record

    def release(self, ref: str) -> None:
        """Undo a tentative consumption during rollback."""
        with self._lock:
            self._spent.discard(ref)
        logger.debug("record released ref=%s", ref[:16])

    # ── Queries ───────────────────────────────────────────────

    def get(self, ref: str) -> Optional[Record]:
        with self._lock:
            return self._records.get(ref)

    def is_spent(self, ref: str) -> bool:
        with self._lock:
            return ref in self._spent

    def unspent(self, owner: str) -> List[Record]:
        """All records the owner can still spend, in commit order."""
        with self._lock:
            return [
                r for ref, r in self._records.items()
                if r.owner == owner and ref not in self._spent
            ]

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    # ── Persistence ───────────────────────────────────────────

    def export(self) -> List[Dict[str, Any]]:
        with self._lock:
            return [
                {**record.to_dict(), "spent": ref in self._spent}
                for ref, record in self._records.items()
            ]

    def load(
        self,
        entries: List[Dict[str, Any]],
        resolve_schema: Callable[[str, str], RecordSchema],
    ) -> None:
        """
        Restore exported entries. `resolve_schema(program_id, record_name)`
        supplies the declared schema for each entry. Every entry is checked
        before any is committed, so a bad entry leaves the store unchanged.
        """
        restored = []
        for entry in entries:
            schema = resolve_schema(entry["program_id"], entry["record"])
            restored.append((Record.from_dict(entry, schema), bool(entry.get("spent"))))

        with self._lock:
            self._check_unused([record.ref for record, _ in restored])
            for record, spent in restored:
                self._records[record.ref] = record
                if spent:
                    self._spent.add(record.ref)
        logger.debug("records restored count=%d", len(restored))

    def clear(self) -> None:
        """Drop every committed record and spent flag. Retired refs stay retired."""
        with self._lock:
            self._records.clear()
            self._spent.clear()
