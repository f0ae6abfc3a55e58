"""
recordledger/core/models.py

Data model: record schemas, records, finalize calls, executions, transactions.

═══════════════════════════════════════════════════════════════════
CONTRACTS
═══════════════════════════════════════════════════════════════════

CONTRACT 1: Record reference
    ref   = "rec1" + SHA-256(canonicalize(record.to_commitment_dict()))
    nonce = exactly 32 hex characters, fresh per record
    Two records never share a ref, even with identical owner and fields.

CONTRACT 2: Ownership
    owner is always an address. A schema may not redeclare it.

CONTRACT 3: Public form
    Execution.to_public_dict() and Transaction.to_dict() never contain
    record field values or private inputs. Only refs, public inputs,
    returned plain values and finalize arguments leave the node.
═══════════════════════════════════════════════════════════════════
"""

import secrets
import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Optional, Tuple

from recordledger.core.crypto import canonical_hash
from recordledger.core.exceptions import ProgramError, RecordError, TypeMismatch
from recordledger.core.types import ADDRESS, ValueType


RECORD_REF_PREFIX = "rec1"

_NONCE_HEX_LENGTH = 32


def encode_plain(value: Any) -> Any:
    """JSON-safe rendering of an untyped value; integers become strings."""
    if isinstance(value, bool) or value is None:
        return value
    if isinstance(value, int):
        return str(value)
    if isinstance(value, (list, tuple)):
        return [encode_plain(v) for v in value]
    if isinstance(value, Mapping):
        return {str(k): encode_plain(v) for k, v in value.items()}
    if isinstance(value, Record):
        return value.ref
    return value


# ─────────────────────────────────────────────────────────────
# Records
# ─────────────────────────────────────────────────────────────

class RecordSchema:
    """
    Declared shape of a record type.

    `owner` is implicit and always an address. The remaining fields keep
    their declaration order, which is also their literal rendering order.
    """

    def __init__(self, name: str, fields: Iterable[Tuple[str, ValueType]]):
        self.name = name
        self.fields: Dict[str, ValueType] = {}
        for field_name, type_ in fields:
            if field_name == "owner":
                raise ProgramError(
                    f"record {name} redeclares 'owner'",
                    {"type": type_.name},
                )
            if field_name in self.fields:
                raise ProgramError(f"duplicate field '{field_name}' in record {name}")
            if not isinstance(type_, ValueType):
                raise ProgramError(
                    f"field '{field_name}' in record {name} has no value type",
                    {"got": repr(type_)},
                )
            self.fields[field_name] = type_

    def validate(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Type-check a full field set. Raises TypeMismatch."""
        missing = set(self.fields) - set(data)
        extra = set(data) - set(self.fields)
        if missing or extra:
            raise TypeMismatch(
                f"fields do not match record {self.name}",
                {"missing": sorted(missing), "unexpected": sorted(extra)},
            )
        return {
            name: type_.check(data[name], f"{self.name}.{name}")
            for name, type_ in self.fields.items()
        }

    def instantiate(
        self,
        program_id: str,
        owner: str,
        data: Dict[str, Any],
        nonce: Optional[str] = None,
    ) -> "Record":
        """Build a new record. The nonce is fresh unless one is supplied."""
        return Record(
            program_id=  program_id,
            record_name= self.name,
            owner=       ADDRESS.check(owner, f"{self.name}.owner"),
            data=        self.validate(data),
            nonce=       nonce or secrets.token_hex(_NONCE_HEX_LENGTH // 2),
            schema=      self,
        )

    def __repr__(self) -> str:
        inner = ", ".join(f"{n}: {t.name}" for n, t in self.fields.items())
        return f"record {self.name} {{owner: address, {inner}}}"


@dataclass(frozen=True)
class Record:
    """An owned, typed, spend-once bundle of fields."""

    program_id:  str
    record_name: str
    owner:       str
    data:        Mapping[str, Any]
    nonce:       str
    schema:      RecordSchema = field(repr=False, compare=False)
    ref:         str = field(init=False)

    def __post_init__(self):
        object.__setattr__(self, "data", MappingProxyType(dict(self.data)))
        object.__setattr__(
            self, "ref", RECORD_REF_PREFIX + canonical_hash(self.to_commitment_dict())
        )

    def __hash__(self) -> int:
        return hash(self.ref)

    def __getitem__(self, name: str) -> Any:
        if name == "owner":
            return self.owner
        return self.data[name]

    def to_commitment_dict(self) -> Dict[str, Any]:
        return {
            "program_id": self.program_id,
            "record":     self.record_name,
            "owner":      self.owner,
            "data":       {n: t.encode(self.data[n]) for n, t in self.schema.fields.items()},
            "nonce":      self.nonce,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {"ref": self.ref, **self.to_commitment_dict()}

    @staticmethod
    def from_dict(obj: Dict[str, Any], schema: RecordSchema) -> "Record":
        """Rebuild a record and check that its ref still matches its contents."""
        data = obj["data"]
        if not isinstance(data, dict) or set(data) != set(schema.fields):
            raise TypeMismatch(f"stored fields do not match record {schema.name}")
        record = schema.instantiate(
            program_id= obj["program_id"],
            owner=      obj["owner"],
            data=       {n: t.decode(data[n]) for n, t in schema.fields.items()},
            nonce=      obj["nonce"],
        )
        if obj.get("ref") not in (None, record.ref):
            raise RecordError(
                "stored record reference does not match its contents",
                {"stored": obj["ref"], "computed": record.ref},
            )
        return record

    def to_literal(self) -> str:
        parts = [f"owner: {self.owner}"]
        parts += [
            f"{n}: {t.to_literal(self.data[n])}" for n, t in self.schema.fields.items()
        ]
        parts.append(f"_nonce: {self.nonce}")
        return "{" + ", ".join(parts) + "}"


# ─────────────────────────────────────────────────────────────
# Executions and transactions
# ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class FinalizeCall:
    """A finalize call queued by a transition, applied later exactly once."""

    program_id: str
    name:       str
    args:       Tuple[Any, ...]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "program_id": self.program_id,
            "name":       self.name,
            "args":       encode_plain(list(self.args)),
        }


@dataclass
class Execution:
    """
    Result of running one transition's private logic.

    Inputs in `consumed` are tentatively spent. `outputs` are built but not
    yet committed; the settlement engine publishes or discards them.
    """

    program_id:    str
    transition:    str
    caller:        str
    consumed:      List[str]
    outputs:       List[Record]
    values:        Tuple[Any, ...] = ()
    public_inputs: Dict[str, Any] = field(default_factory=dict)
    finalize:      Optional[FinalizeCall] = None
    execution_id:  str = field(default_factory=lambda: f"exec-{uuid.uuid4()}")

    def to_public_dict(self) -> Dict[str, Any]:
        return {
            "execution_id":  self.execution_id,
            "program_id":    self.program_id,
            "transition":    self.transition,
            "consumed":      list(self.consumed),
            "outputs":       [r.ref for r in self.outputs],
            "values":        encode_plain(list(self.values)),
            "public_inputs": encode_plain(self.public_inputs),
            "finalize":      self.finalize.to_dict() if self.finalize else None,
        }


class TransactionStatus(Enum):
    ACCEPTED = "accepted"
    REJECTED = "rejected"


@dataclass
class Transaction:
    """A settled execution: accepted with its public output, or rejected."""

    execution:      Execution
    status:         TransactionStatus
    public_output:  Any = None
    error_kind:     Optional[str] = None
    error_message:  Optional[str] = None
    transaction_id: str = field(default_factory=lambda: f"tx-{uuid.uuid4()}")

    @property
    def accepted(self) -> bool:
        return self.status is TransactionStatus.ACCEPTED

    @property
    def outputs(self) -> List[Record]:
        return self.execution.outputs

    def to_dict(self) -> Dict[str, Any]:
        return {
            "transaction_id": self.transaction_id,
            "status":         self.status.value,
            "execution":      self.execution.to_public_dict(),
            "public_output":  encode_plain(self.public_output),
            "error_kind":     self.error_kind,
            "error_message":  self.error_message,
        }
