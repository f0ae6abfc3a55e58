"""
Transaction log for recordledger.

One JSONL line per settled transaction, accepted or rejected.

CHAIN
    previous_hash = compute_hash() of the previous entry
    first entry   = GENESIS_HASH ("0" * 64)

SIGNING
    signature = Ed25519 over bytes.fromhex(compute_hash()), by `signer`
    The signer is an address, so any reader can verify the log without
    the node's private key.
"""

import json
import logging
import os
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from recordledger.core.crypto import Account, canonical_hash
from recordledger.core.exceptions import LedgerError
from recordledger.core.models import Transaction


logger = logging.getLogger(__name__)


def _utc_timestamp() -> str:
    """YYYY-MM-DDTHH:MM:SS.mmmZ. Informational only; never read by finalize logic."""
    now = datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


@dataclass
class LedgerEntry:
    """A single entry in the transaction log"""
    index: int
    previous_hash: str
    timestamp: str
    entry_type: str
    data: dict
    data_hash: str
    signer: str
    signature: str

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization"""
        return {
            "index": self.index,
            "previous_hash": self.previous_hash,
            "timestamp": self.timestamp,
            "entry_type": self.entry_type,
            "data": self.data,
            "data_hash": self.data_hash,
            "signer": self.signer,
            "signature": self.signature,
        }

    @staticmethod
    def from_dict(data: dict) -> "LedgerEntry":
        """Create entry from dictionary"""
        return LedgerEntry(
            index=data["index"],
            previous_hash=data["previous_hash"],
            timestamp=data["timestamp"],
            entry_type=data["entry_type"],
            data=data["data"],
            data_hash=data["data_hash"],
            signer=data["signer"],
            signature=data["signature"],
        )

    def compute_hash(self) -> str:
        """Compute hash of this entry for chaining"""
        return canonical_hash({
            "index": self.index,
            "previous_hash": self.previous_hash,
            "timestamp": self.timestamp,
            "entry_type": self.entry_type,
            "data_hash": self.data_hash,
            "signer": self.signer,
        })


class Ledger:
    """
    Append-only, hash-chained, signed transaction log.

    With an account the log is writable; without one it is read-only
    (verification and inspection only). With no path it lives in memory.
    """

    GENESIS_HASH = "0" * 64

    def __init__(
        self,
        account: Optional[Account] = None,
        ledger_path: Optional[Path] = None,
        verify_on_load: bool = True,
    ):
        self.account = account
        self.ledger_path = Path(ledger_path) if ledger_path else None
        self.entries: List[LedgerEntry] = []
        self._lock = threading.Lock()

        if self.ledger_path is not None and self.ledger_path.exists():
            self._load()
            if verify_on_load:
                self.verify_or_raise()

    # ── Appending ─────────────────────────────────────────────

    def append_transaction(self, transaction: Transaction) -> LedgerEntry:
        """Append a settled transaction to the log"""
        return self._create_entry(
            entry_type="transaction",
            data=transaction.to_dict(),
        )

    # ── Queries ───────────────────────────────────────────────

    def get_all_entries(self) -> List[LedgerEntry]:
        """Get all log entries"""
        with self._lock:
            return self.entries.copy()

    def get_entry_by_index(self, index: int) -> Optional[LedgerEntry]:
        """Get entry by index"""
        if 0 <= index < len(self.entries):
            return self.entries[index]
        return None

    def get_transaction(self, transaction_id: str) -> Optional[LedgerEntry]:
        """Find the entry recording a transaction id"""
        for entry in self.get_all_entries():
            if entry.data.get("transaction_id") == transaction_id:
                return entry
        return None

    def get_entries_by_status(self, status: str) -> List[LedgerEntry]:
        """Get all entries whose transaction has the given status"""
        return [e for e in self.get_all_entries() if e.data.get("status") == status]

    def get_stats(self) -> dict:
        """Get log statistics"""
        entries = self.get_all_entries()
        by_status: Dict[str, int] = {}
        for entry in entries:
            status = entry.data.get("status", "unknown")
            by_status[status] = by_status.get(status, 0) + 1

        return {
            "total_entries": len(entries),
            "by_status": by_status,
            "head_hash": entries[-1].compute_hash() if entries else None,
            "first_entry_time": entries[0].timestamp if entries else None,
            "last_entry_time": entries[-1].timestamp if entries else None,
        }

    # ── Verification ──────────────────────────────────────────

    def verify(self) -> List[str]:
        """Return every integrity violation found. Empty list means valid."""
        violations: List[str] = []
        previous_hash = self.GENESIS_HASH
        for position, entry in enumerate(self.get_all_entries()):
            if entry.index != position:
                violations.append(f"index {entry.index} at position {position}")
            if entry.previous_hash != previous_hash:
                violations.append(
                    f"chain break at index {entry.index}: "
                    f"expected {previous_hash}, got {entry.previous_hash}"
                )
            if canonical_hash(entry.data) != entry.data_hash:
                violations.append(f"data hash mismatch at index {entry.index}")
            entry_hash = entry.compute_hash()
            if not Account.verify_detached(bytes.fromhex(entry_hash), entry.signature, entry.signer):
                violations.append(f"invalid signature at index {entry.index}")
            previous_hash = entry_hash
        return violations

    def verify_or_raise(self) -> None:
        """Verify log integrity or raise exception"""
        violations = self.verify()
        if violations:
            raise LedgerError(violations[0], {"violations": len(violations)})

    # ── Internals ─────────────────────────────────────────────

    def _create_entry(self, entry_type: str, data: Dict[str, Any]) -> LedgerEntry:
        """Create, sign and append a new entry"""
        if self.account is None:
            raise LedgerError("ledger opened read-only")

        with self._lock:
            entry = LedgerEntry(
                index=len(self.entries),
                previous_hash=(
                    self.entries[-1].compute_hash() if self.entries else self.GENESIS_HASH
                ),
                timestamp=_utc_timestamp(),
                entry_type=entry_type,
                data=data,
                data_hash=canonical_hash(data),
                signer=self.account.address,
                signature="",
            )
            entry.signature = self.account.sign(bytes.fromhex(entry.compute_hash()))

            # A failed write must not leave an in-memory entry
            if self.ledger_path is not None:
                self._write_entry(entry)
            self.entries.append(entry)

        logger.debug("ledger entry %d appended", entry.index)
        return entry

    def _write_entry(self, entry: LedgerEntry) -> None:
        """Append one line and fsync"""
        try:
            self.ledger_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.ledger_path, "a", encoding="utf-8") as f:
                f.write(json.dumps(entry.to_dict(), ensure_ascii=False) + "\n")
                f.flush()
                os.fsync(f.fileno())
        except OSError as e:
            raise LedgerError(f"Failed to write ledger entry: {e}") from e

    def _load(self) -> None:
        """Load log from disk"""
        self.entries = []
        try:
            with open(self.ledger_path, "r", encoding="utf-8") as f:
                for line_num, line in enumerate(f, 1):
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        self.entries.append(LedgerEntry.from_dict(json.loads(line)))
                    except (json.JSONDecodeError, KeyError, TypeError) as e:
                        raise LedgerError(f"Invalid entry at line {line_num}: {e}") from e
        except OSError as e:
            raise LedgerError(f"Failed to load ledger: {e}") from e
