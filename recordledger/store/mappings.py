"""
Ledger mapping store: public key→value tables shared ledger-wide.

Entries are keyed by (program_id, mapping, key). Every write happens inside
transaction(), which holds the store lock for the whole block. That gives
finalize application a single global order, and lets a failed block revert
every write it made.
"""

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Tuple

from recordledger.core.exceptions import ProgramError, TypeMismatch
from recordledger.core.types import IntegerType, ValueType


logger = logging.getLogger(__name__)

_MISSING = object()


@dataclass(frozen=True)
class MappingDeclaration:
    program_id: str
    name:       str
    key_type:   ValueType
    value_type: ValueType


class MappingStore:
    """
    Journaled mapping tables.

    Writes outside transaction() are refused. Increments and decrements use
    the declared value type's checked arithmetic, so they raise
    ArithmeticOverflow instead of wrapping.
    """

    def __init__(self) -> None:
        self._lock:         threading.RLock = threading.RLock()
        self._declarations: Dict[Tuple[str, str], MappingDeclaration] = {}
        self._tables:       Dict[Tuple[str, str], Dict[Any, Any]] = {}
        self._journal:      Optional[List[Tuple[Tuple[str, str], Any, Any]]] = None

    # ── Declaration ───────────────────────────────────────────

    def declare(
        self,
        program_id: str,
        name: str,
        key_type: ValueType,
        value_type: ValueType,
    ) -> MappingDeclaration:
        decl = MappingDeclaration(program_id, name, key_type, value_type)
        with self._lock:
            existing = self._declarations.get((program_id, name))
            if existing is not None and existing != decl:
                raise ProgramError(
                    "mapping redeclared with different types",
                    {"program_id": program_id, "mapping": name},
                )
            self._declarations[(program_id, name)] = decl
            self._tables.setdefault((program_id, name), {})
        return decl

    def declaration(self, program_id: str, name: str) -> MappingDeclaration:
        try:
            return self._declarations[(program_id, name)]
        except KeyError:
            raise ProgramError(
                "undeclared mapping",
                {"program_id": program_id, "mapping": name},
            ) from None

    # ── Transactions ──────────────────────────────────────────

    @contextmanager
    def transaction(self) -> Iterator["MappingStore"]:
        """
        Hold the store lock and journal writes. If the block raises, every
        write made inside it is reverted before the exception propagates.
        Nested use joins the outer transaction.
        """
        with self._lock:
            if self._journal is not None:
                yield self
                return
            self._journal = []
            try:
                yield self
            except BaseException:
                self._revert(self._journal)
                raise
            finally:
                self._journal = None

    def _revert(self, journal: List[Tuple[Tuple[str, str], Any, Any]]) -> None:
        for table_key, key, old in reversed(journal):
            table = self._tables[table_key]
            if old is _MISSING:
                table.pop(key, None)
            else:
                table[key] = old
        logger.debug("mapping transaction reverted writes=%d", len(journal))

    def _write(self, program_id: str, name: str, key: Any, value: Any) -> None:
        if self._journal is None:
            raise ProgramError(
                "mapping writes are only allowed during finalize",
                {"program_id": program_id, "mapping": name},
            )
        table = self._tables[(program_id, name)]
        self._journal.append(((program_id, name), key, table.get(key, _MISSING)))
        if value is _MISSING:
            table.pop(key, None)
        else:
            table[key] = value

    # ── Reads ─────────────────────────────────────────────────

    def get(self, program_id: str, name: str, key: Any) -> Optional[Any]:
        with self._lock:
            decl = self.declaration(program_id, name)
            key = decl.key_type.check(key, f"{name} key")
            return self._tables[(program_id, name)].get(key)

    def get_or_use(self, program_id: str, name: str, key: Any, default: Any) -> Any:
        with self._lock:
            decl = self.declaration(program_id, name)
            default = decl.value_type.check(default, f"{name} default")
            value = self.get(program_id, name, key)
            return default if value is None else value

    def contains(self, program_id: str, name: str, key: Any) -> bool:
        return self.get(program_id, name, key) is not None

    # ── Writes ────────────────────────────────────────────────

    def set(self, program_id: str, name: str, key: Any, value: Any) -> None:
        with self._lock:
            decl = self.declaration(program_id, name)
            key = decl.key_type.check(key, f"{name} key")
            value = decl.value_type.check(value, f"{name} value")
            self._write(program_id, name, key, value)

    def remove(self, program_id: str, name: str, key: Any) -> None:
        with self._lock:
            decl = self.declaration(program_id, name)
            key = decl.key_type.check(key, f"{name} key")
            self._write(program_id, name, key, _MISSING)

    def increment(self, program_id: str, name: str, key: Any, delta: Any) -> int:
        """Add delta to the entry, treating an absent entry as zero."""
        with self._lock:
            value_type = self._integer_value_type(program_id, name)
            current = self.get_or_use(program_id, name, key, 0)
            updated = value_type.add(current, value_type.check(delta, f"{name} delta"))
            self.set(program_id, name, key, updated)
            return updated

    def decrement(self, program_id: str, name: str, key: Any, delta: Any) -> int:
        """Subtract delta from the entry, treating an absent entry as zero."""
        with self._lock:
            value_type = self._integer_value_type(program_id, name)
            current = self.get_or_use(program_id, name, key, 0)
            updated = value_type.sub(current, value_type.check(delta, f"{name} delta"))
            self.set(program_id, name, key, updated)
            return updated

    def _integer_value_type(self, program_id: str, name: str) -> IntegerType:
        value_type = self.declaration(program_id, name).value_type
        if not isinstance(value_type, IntegerType):
            raise TypeMismatch(
                f"mapping {name} does not hold integers",
                {"value_type": value_type.name},
            )
        return value_type

    def __len__(self) -> int:
        with self._lock:
            return sum(len(table) for table in self._tables.values())

    # ── Persistence ───────────────────────────────────────────

    def export(self) -> List[Dict[str, Any]]:
        with self._lock:
            entries = []
            for (program_id, name), table in self._tables.items():
                decl = self._declarations[(program_id, name)]
                for key, value in table.items():
                    entries.append({
                        "program_id": program_id,
                        "mapping":    name,
                        "key":        decl.key_type.encode(key),
                        "value":      decl.value_type.encode(value),
                    })
            return entries

    def load(self, entries: List[Dict[str, Any]]) -> None:
        with self.transaction():
            for entry in entries:
                decl = self.declaration(entry["program_id"], entry["mapping"])
                self.set(
                    decl.program_id,
                    decl.name,
                    decl.key_type.decode(entry["key"]),
                    decl.value_type.decode(entry["value"]),
                )


class MappingView:
    """Mapping capability scoped to one program. Handed to finalize logic only."""

    def __init__(self, store: MappingStore, program_id: str) -> None:
        self._store = store
        self.program_id = program_id

    def get(self, name: str, key: Any) -> Optional[Any]:
        return self._store.get(self.program_id, name, key)

    def get_or_use(self, name: str, key: Any, default: Any) -> Any:
        return self._store.get_or_use(self.program_id, name, key, default)

    def contains(self, name: str, key: Any) -> bool:
        return self._store.contains(self.program_id, name, key)

    def set(self, name: str, key: Any, value: Any) -> None:
        self._store.set(self.program_id, name, key, value)

    def remove(self, name: str, key: Any) -> None:
        self._store.remove(self.program_id, name, key)

    def increment(self, name: str, key: Any, delta: Any) -> int:
        return self._store.increment(self.program_id, name, key, delta)

    def decrement(self, name: str, key: Any, delta: Any) -> int:
        return self._store.decrement(self.program_id, name, key, delta)
