"""
recordledger Settlement Engine

Settlement turns an Execution into a Transaction:
- applies the queued finalize call (if any)
- commits the output records
- appends the transaction to the log

Critical Invariants:
- Transition and finalize succeed or fail as one unit
- A rejected transaction releases its inputs and publishes no outputs
- Settlement order == finalize order == transaction log order
"""

from recordledger.settlement.engine import SettlementEngine

__all__ = ["SettlementEngine"]
