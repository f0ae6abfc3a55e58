"""
Program declarations.

A Program groups record schemas, mapping declarations, transitions and
finalize functions under one program id:

    token = Program("token.aleo")
    Token = token.record("token", amount=U64)
    token.mapping("account", ADDRESS, U64)

    @token.transition(inputs={"receiver": ADDRESS, "amount": Public(U64)},
                      finalize=True)
    def mint_public(ctx, receiver, amount):
        ctx.finalize(receiver, amount)

    @token.finalize(inputs={"receiver": ADDRESS, "amount": U64})
    def mint_public(ctx, receiver, amount):
        ctx.mappings.increment("account", receiver, amount)

Declarations only. Nothing here touches a store; the executors do.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Set, Tuple, Union

from recordledger.core.exceptions import ProgramError
from recordledger.core.models import RecordSchema
from recordledger.core.types import ValueType
from recordledger.runtime.auth import Gate


_PROGRAM_ID_RE = re.compile(r"^[a-z][a-z0-9_]*\.aleo$")


@dataclass(frozen=True)
class Public:
    """Marks a transition input as public. Inputs are private by default."""
    type_: ValueType


InputType = Union[ValueType, RecordSchema]


@dataclass
class TransitionDecl:
    name:     str
    func:     Callable[..., Any]
    inputs:   Dict[str, InputType]
    public:   Set[str] = field(default_factory=set)
    requires: Optional[Gate] = None
    finalize: Optional[str] = None

    @property
    def record_inputs(self) -> Dict[str, RecordSchema]:
        return {n: t for n, t in self.inputs.items() if isinstance(t, RecordSchema)}

    @property
    def value_inputs(self) -> Dict[str, ValueType]:
        return {n: t for n, t in self.inputs.items() if isinstance(t, ValueType)}


@dataclass
class FinalizeDecl:
    name:   str
    func:   Callable[..., Any]
    inputs: Tuple[Tuple[str, ValueType], ...]


class Program:
    """A named set of records, mappings, transitions and finalize functions."""

    def __init__(self, program_id: str) -> None:
        if not _PROGRAM_ID_RE.match(program_id):
            raise ProgramError("invalid program id", {"program_id": program_id})
        self.program_id = program_id
        self.records:     Dict[str, RecordSchema] = {}
        self.mappings:    Dict[str, Tuple[ValueType, ValueType]] = {}
        self.transitions: Dict[str, TransitionDecl] = {}
        self.finalizers:  Dict[str, FinalizeDecl] = {}

    # ── Declarations ──────────────────────────────────────────

    def record(self, name: str, **fields: ValueType) -> RecordSchema:
        if name in self.records:
            raise ProgramError("duplicate record", {"record": name})
        schema = RecordSchema(name, fields.items())
        self.records[name] = schema
        return schema

    def mapping(self, name: str, key_type: ValueType, value_type: ValueType) -> None:
        if name in self.mappings:
            raise ProgramError("duplicate mapping", {"mapping": name})
        self.mappings[name] = (key_type, value_type)

    def transition(
        self,
        name: Optional[str] = None,
        *,
        inputs: Optional[Dict[str, Any]] = None,
        requires: Optional[Gate] = None,
        finalize: Union[bool, str, None] = None,
    ) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        """
        Declare a transition. `finalize=True` pairs it with the finalize
        function of the same name; a string names a different one.
        """
        def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
            transition_name = name or func.__name__
            if transition_name in self.transitions:
                raise ProgramError("duplicate transition", {"transition": transition_name})

            declared: Dict[str, InputType] = {}
            public: Set[str] = set()
            for input_name, type_ in (inputs or {}).items():
                if isinstance(type_, Public):
                    public.add(input_name)
                    type_ = type_.type_
                if isinstance(type_, RecordSchema):
                    if self.records.get(type_.name) is not type_:
                        raise ProgramError(
                            "record input not declared by this program",
                            {"transition": transition_name, "record": type_.name},
                        )
                    if input_name in public:
                        raise ProgramError(
                            "record inputs cannot be public",
                            {"transition": transition_name, "input": input_name},
                        )
                elif not isinstance(type_, ValueType):
                    raise ProgramError(
                        "input has no declared type",
                        {"transition": transition_name, "input": input_name},
                    )
                declared[input_name] = type_

            finalize_name = transition_name if finalize is True else (finalize or None)
            self.transitions[transition_name] = TransitionDecl(
                name=     transition_name,
                func=     func,
                inputs=   declared,
                public=   public,
                requires= requires,
                finalize= finalize_name,
            )
            return func
        return decorator

    def finalize(
        self,
        name: Optional[str] = None,
        *,
        inputs: Optional[Dict[str, ValueType]] = None,
    ) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
            finalize_name = name or func.__name__
            if finalize_name in self.finalizers:
                raise ProgramError("duplicate finalize", {"finalize": finalize_name})
            self.finalizers[finalize_name] = FinalizeDecl(
                name=   finalize_name,
                func=   func,
                inputs= tuple((inputs or {}).items()),
            )
            return func
        return decorator

    # ── Lookup ────────────────────────────────────────────────

    def get_transition(self, name: str) -> TransitionDecl:
        try:
            return self.transitions[name]
        except KeyError:
            raise ProgramError(
                "unknown transition",
                {"program_id": self.program_id, "transition": name},
            ) from None

    def get_finalize(self, name: str) -> FinalizeDecl:
        try:
            return self.finalizers[name]
        except KeyError:
            raise ProgramError(
                "unknown finalize",
                {"program_id": self.program_id, "finalize": name},
            ) from None

    def get_record(self, name: str) -> RecordSchema:
        try:
            return self.records[name]
        except KeyError:
            raise ProgramError(
                "unknown record",
                {"program_id": self.program_id, "record": name},
            ) from None

    def validate(self) -> None:
        """Check cross references. Called on deploy."""
        for decl in self.transitions.values():
            if decl.finalize is not None and decl.finalize not in self.finalizers:
                raise ProgramError(
                    "transition pairs with an undeclared finalize",
                    {"transition": decl.name, "finalize": decl.finalize},
                )

    def __repr__(self) -> str:
        return (
            f"Program({self.program_id!r}, "
            f"transitions={sorted(self.transitions)}, "
            f"mappings={sorted(self.mappings)})"
        )
