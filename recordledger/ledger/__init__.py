"""
recordledger Transaction Log - Append-Only, Hash-Chained, Signed

Every settled transaction, accepted or rejected, lands here.
"""

from recordledger.ledger.ledger import Ledger, LedgerEntry

__all__ = ["Ledger", "LedgerEntry"]
