"""
Caller authentication and authorization gates.

The current caller is never taken from arguments. It is the address that
signed the SignedCall, checked by CallerAuthenticator against the public key
encoded in that address.

Gates are composable predicates over (caller, arguments). They are evaluated
by the transition executor before any record is consumed, so a failing gate
never leaves partial effects behind.
"""

import secrets
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from recordledger.core.crypto import Account, canonicalize
from recordledger.core.exceptions import (
    AuthorizationError,
    InvalidSignature,
    UnauthorizedCaller,
)
from recordledger.core.models import encode_plain


# ─────────────────────────────────────────────────────────────
# Gates
# ─────────────────────────────────────────────────────────────

class Gate:
    """An authorization predicate evaluated before any state mutation."""

    description: str = "gate"

    def allows(self, caller: str, args: Dict[str, Any]) -> bool:
        raise NotImplementedError

    def enforce(self, caller: str, args: Dict[str, Any], transition: str = "") -> None:
        if not self.allows(caller, args):
            raise UnauthorizedCaller(
                f"caller is not {self.description}",
                {"transition": transition, "caller": caller},
            )

    def __and__(self, other: "Gate") -> "Gate":
        return AllOf((self, other))

    def __or__(self, other: "Gate") -> "Gate":
        return AnyOf((self, other))

    def __repr__(self) -> str:
        return f"<Gate {self.description}>"


@dataclass(repr=False)
class CallerIs(Gate):
    """Caller must equal a fixed identity, e.g. the auctioneer."""
    address: str
    role: Optional[str] = None

    @property
    def description(self) -> str:
        return self.role or self.address

    def allows(self, caller: str, args: Dict[str, Any]) -> bool:
        return caller == self.address


@dataclass(repr=False)
class CallerIsArg(Gate):
    """Caller must equal the identity passed in a named argument."""
    arg: str

    @property
    def description(self) -> str:
        return f"'{self.arg}'"

    def allows(self, caller: str, args: Dict[str, Any]) -> bool:
        return args.get(self.arg) == caller


@dataclass(repr=False)
class AllOf(Gate):
    gates: Tuple[Gate, ...]

    @property
    def description(self) -> str:
        return " and ".join(g.description for g in self.gates)

    def allows(self, caller: str, args: Dict[str, Any]) -> bool:
        return all(g.allows(caller, args) for g in self.gates)


@dataclass(repr=False)
class AnyOf(Gate):
    gates: Tuple[Gate, ...]

    @property
    def description(self) -> str:
        return " or ".join(g.description for g in self.gates)

    def allows(self, caller: str, args: Dict[str, Any]) -> bool:
        return any(g.allows(caller, args) for g in self.gates)


def caller_is(address: str, role: Optional[str] = None) -> Gate:
    return CallerIs(address, role)


def caller_is_arg(name: str) -> Gate:
    return CallerIsArg(name)


def all_of(*gates: Gate) -> Gate:
    return AllOf(tuple(gates))


def any_of(*gates: Gate) -> Gate:
    return AnyOf(tuple(gates))


# ─────────────────────────────────────────────────────────────
# Signed calls
# ─────────────────────────────────────────────────────────────

# Seconds a signed call stays valid after it is created.
DEFAULT_CALL_TTL = 300

# Latest accepted expiry, in seconds from now.
MAX_CALL_TTL = 3600


@dataclass
class SignedCall:
    """
    An invocation request signed by the caller.

    Signing surface: canonicalize(to_signing_dict()). Record inputs are
    represented by their refs. `expires_at` is a signed unix timestamp.
    """

    program_id: str
    transition: str
    caller:     str
    args:       Dict[str, Any]
    nonce:      str = field(default_factory=lambda: secrets.token_hex(16))
    expires_at: int = field(default_factory=lambda: int(time.time()) + DEFAULT_CALL_TTL)
    signature:  Optional[str] = None

    @classmethod
    def create(
        cls,
        account: Account,
        program_id: str,
        transition: str,
        args: Dict[str, Any],
        ttl: int = DEFAULT_CALL_TTL,
    ) -> "SignedCall":
        call = cls(
            program_id= program_id,
            transition= transition,
            caller=     account.address,
            args=       dict(args),
            expires_at= int(time.time()) + ttl,
        )
        call.signature = account.sign(canonicalize(call.to_signing_dict()))
        return call

    def to_signing_dict(self) -> Dict[str, Any]:
        return {
            "program_id": self.program_id,
            "transition": self.transition,
            "caller":     self.caller,
            "args":       encode_plain(self.args),
            "nonce":      self.nonce,
            "expires_at": self.expires_at,
        }

    def verify_signature(self) -> bool:
        if not self.signature:
            return False
        return Account.verify_detached(
            canonicalize(self.to_signing_dict()), self.signature, self.caller
        )


class CallerAuthenticator:
    """
    Resolves the current caller of a SignedCall.

    A call verifies only against the address it names, and each
    (caller, nonce) pair is accepted once. A seen nonce is remembered until
    its call expires; export()/load() carry the seen set across restarts.
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._seen: Dict[Tuple[str, str], int] = {}

    def authenticate(self, call: SignedCall) -> str:
        if not call.verify_signature():
            raise InvalidSignature(
                "call signature does not verify for caller",
                {"caller": call.caller, "transition": call.transition},
            )
        now = int(self._clock())
        if call.expires_at < now:
            raise AuthorizationError(
                "call expired",
                {"caller": call.caller, "expires_at": call.expires_at, "now": now},
            )
        if call.expires_at > now + MAX_CALL_TTL:
            raise AuthorizationError(
                "call expiry too far ahead",
                {"caller": call.caller, "expires_at": call.expires_at, "max_ttl": MAX_CALL_TTL},
            )
        with self._lock:
            self._prune(now)
            if (call.caller, call.nonce) in self._seen:
                raise AuthorizationError(
                    "call already submitted",
                    {"caller": call.caller, "nonce": call.nonce},
                )
            self._seen[(call.caller, call.nonce)] = call.expires_at
        return call.caller

    def _prune(self, now: int) -> None:
        expired = [key for key, expires_at in self._seen.items() if expires_at < now]
        for key in expired:
            del self._seen[key]

    def __len__(self) -> int:
        with self._lock:
            return len(self._seen)

    # ── Persistence ───────────────────────────────────────────

    def export(self) -> List[Dict[str, Any]]:
        with self._lock:
            self._prune(int(self._clock()))
            return [
                {"caller": caller, "nonce": nonce, "expires_at": expires_at}
                for (caller, nonce), expires_at in self._seen.items()
            ]

    def load(self, entries: List[Dict[str, Any]]) -> None:
        seen = {
            (entry["caller"], entry["nonce"]): int(entry["expires_at"])
            for entry in entries
        }
        with self._lock:
            self._seen.update(seen)
            self._prune(int(self._clock()))
