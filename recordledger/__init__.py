"""
recordledger/__init__.py

recordledger: a record-based confidential-ledger execution model.

Private transitions consume and create owned, spend-once records.
Public finalize calls update shared mappings, deterministically, after
their transition is accepted. Both settle as one atomic unit.
"""

__version__ = "0.1.0"

from recordledger.core.crypto import Account
from recordledger.core.exceptions import (
    AlreadySpent,
    ArithmeticOverflow,
    NotOwner,
    RecordLedgerError,
    TypeMismatch,
    UnauthorizedCaller,
)
from recordledger.core.models import Record, RecordSchema, Transaction, TransactionStatus
from recordledger.programs import auction_program, token_program
from recordledger.runtime.auth import SignedCall
from recordledger.runtime.program import Program, Public
from recordledger.runtime.vm import VM

__all__ = [
    # Core types
    "Account",
    "Program",
    "Public",
    "Record",
    "RecordSchema",
    "SignedCall",
    "Transaction",
    "TransactionStatus",
    "VM",
    # Errors
    "AlreadySpent",
    "ArithmeticOverflow",
    "NotOwner",
    "RecordLedgerError",
    "TypeMismatch",
    "UnauthorizedCaller",
    # Programs
    "auction_program",
    "token_program",
]
