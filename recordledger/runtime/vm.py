"""
VM: the invocation boundary.

    call = SignedCall.create(account, "auction.aleo", "place_bid",
                             {"bidder": account.address, "amount": 100})
    transaction = vm.execute(call)

execute() runs, in this exact order:
    1. Authenticate the caller from the call signature
    2. Resolve the program
    3. Run the transition (TransitionExecutor)
    4. Settle it (SettlementEngine): finalize, commit, log
    5. Persist state, when a state path is configured, whether or not
       steps 2-4 succeeded

A failure at any step surfaces the original error kind with no effects.
"""

import json
import logging
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional

from recordledger.config import NodeConfig
from recordledger.core.crypto import Account
from recordledger.core.exceptions import ProgramError, RecordLedgerError
from recordledger.core.log import configure_logging
from recordledger.core.models import Record, Transaction
from recordledger.ledger.ledger import Ledger
from recordledger.programs import build_program
from recordledger.runtime.auth import CallerAuthenticator, SignedCall
from recordledger.runtime.executor import FinalizeExecutor, TransitionExecutor
from recordledger.runtime.program import Program
from recordledger.settlement.engine import SettlementEngine
from recordledger.store.mappings import MappingStore
from recordledger.store.records import RecordStore


logger = logging.getLogger(__name__)


class VM:
    """Owns the stores, executors, settlement engine and transaction log."""

    def __init__(
        self,
        account: Optional[Account] = None,
        ledger: Optional[Ledger] = None,
        state_path: Optional[Path] = None,
    ):
        self.account = account or Account.generate()
        self.records = RecordStore()
        self.mappings = MappingStore()
        self.authenticator = CallerAuthenticator()
        self.transitions = TransitionExecutor(self.records)
        self.finalizer = FinalizeExecutor(self.mappings)
        self.ledger = ledger if ledger is not None else Ledger(self.account)
        self.settlement = SettlementEngine(self.transitions, self.finalizer, self.ledger)
        self.programs: Dict[str, Program] = {}
        self.state_path = Path(state_path) if state_path else None
        self._state_lock = threading.Lock()

    @classmethod
    def from_config(cls, config: NodeConfig) -> "VM":
        """Create a VM from a loaded NodeConfig."""
        configure_logging(config.log_level, config.log_json)

        if config.key_path and config.key_path.exists():
            account = Account.from_file(config.key_path)
        else:
            account = Account.generate()
            if config.key_path:
                account.save(config.key_path)
                logger.info("generated node key at %s", config.key_path)

        vm = cls(
            account=account,
            ledger=Ledger(account, config.ledger_path),
            state_path=config.state_path,
        )
        for program_config in config.programs:
            vm.deploy(build_program(
                program_config.kind,
                program_config.program_id,
                **program_config.params,
            ))
        if vm.state_path is not None and vm.state_path.exists():
            vm.load_state(vm.state_path)
        return vm

    # ── Programs ──────────────────────────────────────────────

    def deploy(self, program: Program) -> Program:
        if program.program_id in self.programs:
            raise ProgramError("program already deployed", {"program_id": program.program_id})
        program.validate()
        for name, (key_type, value_type) in program.mappings.items():
            self.mappings.declare(program.program_id, name, key_type, value_type)
        self.programs[program.program_id] = program
        logger.info("deployed %s", program.program_id)
        return program

    def program(self, program_id: str) -> Program:
        try:
            return self.programs[program_id]
        except KeyError:
            raise ProgramError("unknown program", {"program_id": program_id}) from None

    # ── Execution ─────────────────────────────────────────────

    def execute(self, call: SignedCall) -> Transaction:
        """Authenticate, run and settle one signed call."""
        caller = self.authenticator.authenticate(call)
        try:
            program = self.program(call.program_id)
            execution = self.transitions.run(program, call.transition, caller, call.args)
            return self.settlement.settle(program, execution)
        finally:
            if self.state_path is not None:
                self.save_state(self.state_path)

    def execute_as(
        self,
        account: Account,
        program_id: str,
        transition: str,
        /,
        **args: Any,
    ) -> Transaction:
        """Sign a call with `account` and execute it."""
        return self.execute(SignedCall.create(account, program_id, transition, args))

    # ── Queries ───────────────────────────────────────────────

    def records_of(
        self,
        owner: str,
        program_id: Optional[str] = None,
        record_name: Optional[str] = None,
    ) -> List[Record]:
        """Unspent records owned by `owner`, optionally filtered."""
        return [
            r for r in self.records.unspent(owner)
            if (program_id is None or r.program_id == program_id)
            and (record_name is None or r.record_name == record_name)
        ]

    def mapping_value(self, program_id: str, mapping: str, key: Any) -> Optional[Any]:
        return self.mappings.get(program_id, mapping, key)

    # ── State ─────────────────────────────────────────────────

    def export_state(self) -> Dict[str, Any]:
        return {
            "records": self.records.export(),
            "mappings": self.mappings.export(),
            "nonces":   self.authenticator.export(),
        }

    def import_state(self, state: Dict[str, Any]) -> None:
        """
        Load exported state into empty stores of this VM. Either all of it
        is loaded or, on error, none of it.
        """
        if len(self.records) or len(self.mappings):
            raise RecordLedgerError("state can only be imported into an empty VM")
        with self.mappings.transaction():
            self.mappings.load(state.get("mappings", []))
            self.records.load(
                state.get("records", []),
                lambda program_id, name: self.program(program_id).get_record(name),
            )
            try:
                self.authenticator.load(state.get("nonces", []))
            except (KeyError, TypeError, ValueError):
                self.records.clear()
                raise

    def save_state(self, path: Path) -> None:
        path = Path(path)
        with self._state_lock:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = path.with_suffix(path.suffix + ".tmp")
            tmp_path.write_text(json.dumps(self.export_state(), indent=2), encoding="utf-8")
            tmp_path.replace(path)

    def load_state(self, path: Path) -> None:
        self.import_state(json.loads(Path(path).read_text(encoding="utf-8")))
        logger.info("loaded state from %s", path)

    def __repr__(self) -> str:
        return (
            f"VM(node={self.account.address[:16]}..., "
            f"programs={sorted(self.programs)}, "
            f"ledger_entries={len(self.ledger.entries)})"
        )
