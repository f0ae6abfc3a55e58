"""
Bundled programs.

PROGRAM_KINDS maps the `kind` used in configuration files to a builder.
Builders take the program id plus kind-specific keyword parameters.
"""

from typing import Any, Callable, Dict

from recordledger.core.exceptions import ConfigError
from recordledger.programs.auction import auction_program
from recordledger.programs.token import token_program
from recordledger.runtime.program import Program


PROGRAM_KINDS: Dict[str, Callable[..., Program]] = {
    "auction": auction_program,
    "token": token_program,
}


def build_program(kind: str, program_id: str, **params: Any) -> Program:
    """Build a bundled program by kind."""
    try:
        builder = PROGRAM_KINDS[kind]
    except KeyError:
        raise ConfigError(
            f"unknown program kind '{kind}'",
            {"known": ", ".join(sorted(PROGRAM_KINDS))},
        ) from None
    try:
        return builder(program_id=program_id, **params)
    except TypeError as exc:
        raise ConfigError(
            f"bad parameters for program kind '{kind}': {exc}",
            {"program_id": program_id},
        ) from exc


__all__ = [
    "PROGRAM_KINDS",
    "auction_program",
    "build_program",
    "token_program",
]
