"""
recordledger/core/types.py

Value types for record fields, mapping keys/values and transition arguments.

Key contracts:
    check(value)        : returns value unchanged or raises TypeMismatch
    to_literal(value)   : Leo-style literal ("100u64", "true", "3field")
    encode(value)       : JSON-safe form, integers as decimal strings
    decode(obj)         : inverse of encode(), re-checked on the way in

Integers never wrap. add()/sub()/mul() raise ArithmeticOverflow when the
result leaves the declared domain. bool is NOT accepted where an integer
is declared, even though bool subclasses int in Python.
"""

import re
from collections.abc import Mapping
from types import MappingProxyType
from typing import Any, Dict, Iterable, Tuple

from recordledger.core.exceptions import ArithmeticOverflow, TypeMismatch


ADDRESS_PREFIX = "aleo1"

# aleo1 + base32(32-byte public key + 3-byte checksum) = 5 + 56 chars
ADDRESS_LENGTH = 61

_ADDRESS_RE = re.compile(r"^aleo1[a-z2-7]{56}$")

# Base field modulus of the BLS12-377 scalar field used by Aleo.
FIELD_MODULUS = 8444461749428370424248824938781546531375899335154063827935233455917409239041


class ValueType:
    """Base class for declared value types."""

    name: str = "value"

    def check(self, value: Any, where: str = "value") -> Any:
        raise NotImplementedError

    def to_literal(self, value: Any) -> str:
        return str(value)

    def encode(self, value: Any) -> Any:
        return value

    def decode(self, obj: Any) -> Any:
        return self.check(obj)

    def _mismatch(self, value: Any, where: str) -> TypeMismatch:
        return TypeMismatch(
            f"{where} expected {self.name}",
            {"got": type(value).__name__, "value": repr(value)},
        )

    def __repr__(self) -> str:
        return self.name


class IntegerType(ValueType):
    """Fixed-width signed or unsigned integer with checked arithmetic."""

    def __init__(self, bits: int, signed: bool):
        self.bits = bits
        self.signed = signed
        self.name = f"{'i' if signed else 'u'}{bits}"
        if signed:
            self.min_value = -(1 << (bits - 1))
            self.max_value = (1 << (bits - 1)) - 1
        else:
            self.min_value = 0
            self.max_value = (1 << bits) - 1

    def check(self, value: Any, where: str = "value") -> int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise self._mismatch(value, where)
        if not self.min_value <= value <= self.max_value:
            raise TypeMismatch(
                f"{where} out of range for {self.name}",
                {"value": value, "min": self.min_value, "max": self.max_value},
            )
        return value

    def _checked(self, op: str, result: int) -> int:
        if not self.min_value <= result <= self.max_value:
            raise ArithmeticOverflow(
                f"{self.name} {op} overflowed",
                {"result": result, "min": self.min_value, "max": self.max_value},
            )
        return result

    def add(self, a: int, b: int) -> int:
        return self._checked("add", self.check(a) + self.check(b))

    def sub(self, a: int, b: int) -> int:
        return self._checked("sub", self.check(a) - self.check(b))

    def mul(self, a: int, b: int) -> int:
        return self._checked("mul", self.check(a) * self.check(b))

    def to_literal(self, value: int) -> str:
        return f"{value}{self.name}"

    def encode(self, value: int) -> str:
        return str(value)

    def decode(self, obj: Any) -> int:
        if isinstance(obj, str):
            try:
                obj = int(obj, 10)
            except ValueError:
                raise self._mismatch(obj, "encoded value") from None
        return self.check(obj, "encoded value")


class BooleanType(ValueType):

    name = "bool"

    def check(self, value: Any, where: str = "value") -> bool:
        if not isinstance(value, bool):
            raise self._mismatch(value, where)
        return value

    def to_literal(self, value: bool) -> str:
        return "true" if value else "false"


class AddressType(ValueType):
    """Opaque account identity. Only the shape is validated here."""

    name = "address"

    def check(self, value: Any, where: str = "value") -> str:
        if not isinstance(value, str) or not _ADDRESS_RE.match(value):
            raise self._mismatch(value, where)
        return value


class FieldType(ValueType):

    name = "field"

    def check(self, value: Any, where: str = "value") -> int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise self._mismatch(value, where)
        if not 0 <= value < FIELD_MODULUS:
            raise TypeMismatch(f"{where} is not a field element", {"value": value})
        return value

    def to_literal(self, value: int) -> str:
        return f"{value}field"

    def encode(self, value: int) -> str:
        return str(value)

    def decode(self, obj: Any) -> int:
        if isinstance(obj, str) and obj.isdigit():
            obj = int(obj)
        return self.check(obj, "encoded value")


class StructType(ValueType):
    """Named compound of typed members. Checked values are read-only mappings."""

    def __init__(self, name: str, members: Iterable[Tuple[str, ValueType]]):
        self.name = name
        self.members: Dict[str, ValueType] = {}
        for member, type_ in members:
            if member in self.members:
                raise TypeMismatch(f"duplicate member '{member}' in struct {name}")
            self.members[member] = type_

    def check(self, value: Any, where: str = "value") -> Mapping:
        if not isinstance(value, Mapping):
            raise self._mismatch(value, where)
        missing = set(self.members) - set(value)
        extra = set(value) - set(self.members)
        if missing or extra:
            raise TypeMismatch(
                f"{where} does not match struct {self.name}",
                {"missing": sorted(missing), "unexpected": sorted(extra)},
            )
        return MappingProxyType({
            member: type_.check(value[member], f"{where}.{member}")
            for member, type_ in self.members.items()
        })

    def to_literal(self, value: Dict[str, Any]) -> str:
        inner = ", ".join(
            f"{member}: {type_.to_literal(value[member])}"
            for member, type_ in self.members.items()
        )
        return "{" + inner + "}"

    def encode(self, value: Dict[str, Any]) -> Dict[str, Any]:
        return {m: t.encode(value[m]) for m, t in self.members.items()}

    def decode(self, obj: Any) -> Mapping:
        if not isinstance(obj, dict) or set(obj) != set(self.members):
            raise self._mismatch(obj, "encoded value")
        return self.check({m: t.decode(obj[m]) for m, t in self.members.items()}, "encoded value")


U8 = IntegerType(8, signed=False)
U16 = IntegerType(16, signed=False)
U32 = IntegerType(32, signed=False)
U64 = IntegerType(64, signed=False)
U128 = IntegerType(128, signed=False)
I8 = IntegerType(8, signed=True)
I16 = IntegerType(16, signed=True)
I32 = IntegerType(32, signed=True)
I64 = IntegerType(64, signed=True)
I128 = IntegerType(128, signed=True)
BOOLEAN = BooleanType()
ADDRESS = AddressType()
FIELD = FieldType()

PRIMITIVE_TYPES: Dict[str, ValueType] = {
    t.name: t
    for t in (U8, U16, U32, U64, U128, I8, I16, I32, I64, I128, BOOLEAN, ADDRESS, FIELD)
}

_INT_LITERAL_RE = re.compile(r"^(-?\d+)(u8|u16|u32|u64|u128|i8|i16|i32|i64|i128|field)$")


def type_named(name: str) -> ValueType:
    """Look up a primitive type by its declared name ("u64", "address", ...)."""
    try:
        return PRIMITIVE_TYPES[name]
    except KeyError:
        raise TypeMismatch(f"unknown type '{name}'") from None


def parse_literal(text: str) -> Tuple[Any, ValueType]:
    """
    Parse a primitive Leo-style literal.

        "100u64"  -> (100, U64)
        "-3i8"    -> (-3, I8)
        "7field"  -> (7, FIELD)
        "true"    -> (True, BOOLEAN)
        "aleo1..."-> (address, ADDRESS)
    """
    text = text.strip()
    if text in ("true", "false"):
        return text == "true", BOOLEAN
    if text.startswith(ADDRESS_PREFIX):
        return ADDRESS.check(text, "literal"), ADDRESS
    match = _INT_LITERAL_RE.match(text)
    if not match:
        raise TypeMismatch(f"cannot parse literal '{text}'")
    type_ = PRIMITIVE_TYPES[match.group(2)]
    return type_.check(int(match.group(1)), "literal"), type_
