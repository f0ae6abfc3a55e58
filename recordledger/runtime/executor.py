"""
Transition and finalize executors.

TransitionExecutor.run() order, fastest and clearest failures first:
    1. Transition lookup           → ProgramError
    2. Argument names and types    → TypeMismatch
    3. Authorization gate          → UnauthorizedCaller
    4. Record consumption          → UnknownRecord / NotOwner / AlreadySpent
    5. Private logic               → anything the program raises
    6. Output/finalize consistency → ProgramError

Steps 1-3 touch no state. From step 4 on, any failure releases every record
consumed so far before the exception propagates. Output records are built
but not committed; commit() or abort() decides.

FinalizeExecutor.apply() runs inside MappingStore.transaction(), so finalize
calls are applied one at a time and a failed call leaves no mapping writes.
"""

import logging
from typing import Any, ContextManager, Dict, List, Tuple

from recordledger.core.exceptions import ProgramError, TypeMismatch
from recordledger.core.models import Execution, FinalizeCall, Record
from recordledger.runtime.context import FinalizeContext, TransitionContext
from recordledger.runtime.program import Program
from recordledger.store.mappings import MappingStore, MappingView
from recordledger.store.records import RecordStore


logger = logging.getLogger(__name__)


class TransitionExecutor:
    """Runs private transition logic against the record store."""

    def __init__(self, records: RecordStore):
        self.records = records

    def run(
        self,
        program: Program,
        transition: str,
        caller: str,
        args: Dict[str, Any],
    ) -> Execution:
        """
        Run one transition as `caller`.

        Args:
            program:    Program declaring the transition
            transition: Transition name
            caller:     Authenticated caller address
            args:       Argument values; record inputs are passed as refs
                        or Record objects

        Returns:
            Execution with inputs tentatively spent and outputs uncommitted
        """
        decl = program.get_transition(transition)

        missing = set(decl.inputs) - set(args)
        extra = set(args) - set(decl.inputs)
        if missing or extra:
            raise TypeMismatch(
                "arguments do not match transition inputs",
                {
                    "transition": transition,
                    "missing": sorted(missing),
                    "unexpected": sorted(extra),
                },
            )

        values = {
            name: type_.check(args[name], f"{transition}.{name}")
            for name, type_ in decl.value_inputs.items()
        }
        refs = {
            name: self._record_ref(args[name], f"{transition}.{name}")
            for name in decl.record_inputs
        }

        if decl.requires is not None:
            decl.requires.enforce(caller, values, transition)

        consumed: List[str] = []
        try:
            inputs: Dict[str, Record] = {}
            for name, schema in decl.record_inputs.items():
                record = self.records.consume(refs[name], by=caller)
                consumed.append(record.ref)
                if (record.program_id, record.record_name) != (program.program_id, schema.name):
                    raise TypeMismatch(
                        f"{transition}.{name} expected record {schema.name}",
                        {"got": f"{record.program_id}/{record.record_name}"},
                    )
                inputs[name] = record

            ctx = TransitionContext(program.program_id, transition, caller, decl.finalize)
            call_args = {
                name: inputs[name] if name in inputs else values[name]
                for name in decl.inputs
            }
            result = decl.func(ctx, **call_args)

            outputs, plain = self._split_result(result, ctx, transition)
            if decl.finalize is not None and ctx.queued_finalize is None:
                raise ProgramError(
                    "transition did not queue its finalize",
                    {"transition": transition, "finalize": decl.finalize},
                )
        except Exception:
            for ref in consumed:
                self.records.release(ref)
            logger.debug(
                "transition %s/%s aborted, released %d inputs",
                program.program_id, transition, len(consumed),
            )
            raise

        logger.debug(
            "transition %s/%s ran caller=%s consumed=%d outputs=%d finalize=%s",
            program.program_id, transition, caller, len(consumed), len(outputs),
            decl.finalize,
        )
        return Execution(
            program_id=    program.program_id,
            transition=    transition,
            caller=        caller,
            consumed=      consumed,
            outputs=       outputs,
            values=        plain,
            public_inputs= {name: values[name] for name in decl.public},
            finalize=      ctx.queued_finalize,
        )

    def commit(self, execution: Execution) -> ContextManager[None]:
        """
        Publish the execution's output records, all or none. Used as a
        context manager: if the block raises, the outputs are taken back.
        """
        return self.records.committing(execution.outputs)

    def abort(self, execution: Execution) -> None:
        """Release the execution's inputs and retire its output refs."""
        for ref in execution.consumed:
            self.records.release(ref)
        for record in execution.outputs:
            self.records.discard(record)

    @staticmethod
    def _record_ref(value: Any, where: str) -> str:
        if isinstance(value, Record):
            return value.ref
        if isinstance(value, str):
            return value
        raise TypeMismatch(f"{where} expected a record", {"got": type(value).__name__})

    @staticmethod
    def _split_result(
        result: Any,
        ctx: TransitionContext,
        transition: str,
    ) -> Tuple[List[Record], Tuple[Any, ...]]:
        if result is None:
            items: Tuple[Any, ...] = ()
        elif isinstance(result, tuple):
            items = result
        else:
            items = (result,)

        outputs = [item for item in items if isinstance(item, Record)]
        plain = tuple(item for item in items if not isinstance(item, Record))

        created = {r.ref for r in ctx.created}
        returned = [r.ref for r in outputs]
        if set(returned) != created or len(returned) != len(created):
            raise ProgramError(
                "transition must return exactly the records it created",
                {"transition": transition, "created": len(created), "returned": len(returned)},
            )
        return outputs, plain


class FinalizeExecutor:
    """Applies queued finalize calls to the mapping store."""

    def __init__(self, mappings: MappingStore):
        self.mappings = mappings

    def apply(self, program: Program, call: FinalizeCall) -> Any:
        """
        Apply one finalize call. Returns its public value, if any.

        Precondition: the paired transition was accepted. Not re-checked here.
        """
        if call.program_id != program.program_id:
            raise ProgramError(
                "finalize call targets another program",
                {"program_id": program.program_id, "call": call.program_id},
            )
        decl = program.get_finalize(call.name)
        if len(call.args) != len(decl.inputs):
            raise TypeMismatch(
                "finalize argument count mismatch",
                {"finalize": call.name, "expected": len(decl.inputs), "got": len(call.args)},
            )
        args = [
            type_.check(value, f"{call.name}.{name}")
            for (name, type_), value in zip(decl.inputs, call.args)
        ]

        with self.mappings.transaction():
            ctx = FinalizeContext(
                program.program_id,
                call.name,
                MappingView(self.mappings, program.program_id),
            )
            result = decl.func(ctx, *args)

        logger.debug("finalize %s/%s applied", program.program_id, call.name)
        return result
