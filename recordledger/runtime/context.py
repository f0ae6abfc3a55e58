"""
Execution contexts for program logic.

There are two, and they do not share a base class:

    TransitionContext : private logic. Knows the caller, builds output
                        records, queues a finalize call. Has NO mapping
                        capability.
    FinalizeContext   : public logic. Holds a MappingView. Has NO caller
                        and NO record store.

Program code can only reach what its context hands it.
"""

from typing import Any, List, Optional

from recordledger.core.exceptions import AssertionFailed, ProgramError, UnauthorizedCaller
from recordledger.core.models import FinalizeCall, Record, RecordSchema
from recordledger.store.mappings import MappingView


class TransitionContext:
    """Private execution context for one transition invocation."""

    def __init__(
        self,
        program_id: str,
        transition: str,
        caller: str,
        finalize_name: Optional[str] = None,
    ) -> None:
        self._program_id = program_id
        self._transition = transition
        self._caller = caller
        self._finalize_name = finalize_name
        self._created: List[Record] = []
        self._finalize: Optional[FinalizeCall] = None

    @property
    def caller(self) -> str:
        """Identity that invoked this transition. Fixed for the invocation."""
        return self._caller

    @property
    def program_id(self) -> str:
        return self._program_id

    def require(self, condition: bool, message: str) -> None:
        if not condition:
            raise AssertionFailed(message, {"transition": self._transition})

    def require_caller(self, expected: str, role: str) -> None:
        if self._caller != expected:
            raise UnauthorizedCaller(
                f"caller is not {role}",
                {"transition": self._transition, "caller": self._caller},
            )

    def new_record(self, schema: RecordSchema, owner: str, **fields: Any) -> Record:
        """Build an output record. It is committed only if the transaction settles."""
        record = schema.instantiate(self._program_id, owner, fields)
        self._created.append(record)
        return record

    def finalize(self, *args: Any) -> None:
        """Queue this transition's finalize call. Never runs inline."""
        if self._finalize_name is None:
            raise ProgramError(
                "transition declares no finalize",
                {"transition": self._transition},
            )
        if self._finalize is not None:
            raise ProgramError(
                "finalize queued twice",
                {"transition": self._transition},
            )
        self._finalize = FinalizeCall(self._program_id, self._finalize_name, tuple(args))

    @property
    def created(self) -> List[Record]:
        return list(self._created)

    @property
    def queued_finalize(self) -> Optional[FinalizeCall]:
        return self._finalize


class FinalizeContext:
    """Public, deterministic execution context for one finalize call."""

    def __init__(self, program_id: str, name: str, mappings: MappingView) -> None:
        self._program_id = program_id
        self._name = name
        self.mappings = mappings

    @property
    def program_id(self) -> str:
        return self._program_id

    def require(self, condition: bool, message: str) -> None:
        if not condition:
            raise AssertionFailed(message, {"finalize": self._name})
