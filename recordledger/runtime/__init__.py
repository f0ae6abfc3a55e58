"""
recordledger Runtime - programs, contexts, executors and authentication.

The VM facade lives in recordledger.runtime.vm and is re-exported from the
top-level package.
"""

from recordledger.runtime.auth import (
    CallerAuthenticator,
    Gate,
    SignedCall,
    all_of,
    any_of,
    caller_is,
    caller_is_arg,
)
from recordledger.runtime.context import FinalizeContext, TransitionContext
from recordledger.runtime.executor import FinalizeExecutor, TransitionExecutor
from recordledger.runtime.program import Program, Public

__all__ = [
    "CallerAuthenticator",
    "FinalizeContext",
    "FinalizeExecutor",
    "Gate",
    "Program",
    "Public",
    "SignedCall",
    "TransitionContext",
    "TransitionExecutor",
    "all_of",
    "any_of",
    "caller_is",
    "caller_is_arg",
]
