"""
Settlement engine: the atomic transition+finalize unit.
"""

import logging
from typing import Any, Optional

from recordledger.core.exceptions import LedgerError
from recordledger.core.models import Execution, Transaction, TransactionStatus
from recordledger.ledger.ledger import Ledger
from recordledger.runtime.executor import FinalizeExecutor, TransitionExecutor
from recordledger.runtime.program import Program


logger = logging.getLogger(__name__)


class SettlementEngine:
    """
    Settles executions produced by the TransitionExecutor.

    The whole settlement runs inside one mapping-store transaction, so:
    - finalize calls and log appends happen in a single global order
    - output records are committed all or none, before the accepted log
      entry is written, and are taken back if that write fails
    - a failure anywhere reverts the mapping writes, releases the inputs
      and retires the outputs
    """

    def __init__(
        self,
        transitions: TransitionExecutor,
        finalizer: FinalizeExecutor,
        ledger: Optional[Ledger] = None,
    ):
        """
        Initialize settlement engine.

        Args:
            transitions: Executor that produced the executions
            finalizer:   Executor applying finalize calls
            ledger:      Transaction log, or None to keep no log
        """
        self.transitions = transitions
        self.finalizer = finalizer
        self.ledger = ledger

    def settle(self, program: Program, execution: Execution) -> Transaction:
        """
        Settle one execution.

        Returns:
            The accepted Transaction

        Raises:
            Whatever the finalize call (or the log append) raised, after
            rolling the execution back and logging it as rejected
        """
        try:
            with self.finalizer.mappings.transaction():
                public_output = self._apply_finalize(program, execution)
                transaction = Transaction(
                    execution=     execution,
                    status=        TransactionStatus.ACCEPTED,
                    public_output= public_output,
                )
                with self.transitions.commit(execution):
                    if self.ledger is not None:
                        self.ledger.append_transaction(transaction)
        except Exception as exc:
            self.transitions.abort(execution)
            self._record_rejection(execution, exc)
            raise

        logger.info(
            "settled %s %s/%s outputs=%d",
            transaction.transaction_id,
            execution.program_id,
            execution.transition,
            len(execution.outputs),
        )
        return transaction

    def _apply_finalize(self, program: Program, execution: Execution) -> Any:
        if execution.finalize is None:
            return None
        return self.finalizer.apply(program, execution.finalize)

    def _record_rejection(self, execution: Execution, exc: Exception) -> None:
        transaction = Transaction(
            execution=     execution,
            status=        TransactionStatus.REJECTED,
            error_kind=    type(exc).__name__,
            error_message= str(exc),
        )
        logger.warning(
            "rejected %s/%s: %s: %s",
            execution.program_id,
            execution.transition,
            transaction.error_kind,
            transaction.error_message,
        )
        if self.ledger is None:
            return
        try:
            self.ledger.append_transaction(transaction)
        except LedgerError:
            logger.exception("could not log rejected %s", transaction.transaction_id)

    def get_settlement_stats(self) -> dict:
        """
        Get settlement statistics from the transaction log.

        Returns:
            Dict with transaction counts by status
        """
        stats = {"total": 0, "by_status": {}}
        if self.ledger is None:
            return stats
        for entry in self.ledger.get_all_entries():
            status = entry.data["status"]
            stats["total"] += 1
            stats["by_status"][status] = stats["by_status"].get(status, 0) + 1
        return stats
