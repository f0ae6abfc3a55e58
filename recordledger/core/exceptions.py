"""
recordledger Exception Hierarchy

All exceptions inherit from RecordLedgerError for easy catching.

Every error aborts the whole transition+finalize unit it was raised in.
Nothing is retried and no default value is ever substituted.
"""


class RecordLedgerError(Exception):
    """Base exception for all recordledger errors"""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    @property
    def kind(self) -> str:
        """Error kind as surfaced to callers and the transaction log"""
        return type(self).__name__

    def __str__(self):
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


class TypeMismatch(RecordLedgerError):
    """Raised when a value does not match its declared type"""
    pass


class AuthorizationError(RecordLedgerError):
    """Raised when authorization fails"""
    pass


class UnauthorizedCaller(AuthorizationError):
    """Raised when the current caller fails an identity check"""
    pass


class InvalidSignature(AuthorizationError):
    """Raised when a signed call does not verify against its caller address"""
    pass


class RecordError(RecordLedgerError):
    """Raised on record store misuse"""
    pass


class AlreadySpent(RecordError):
    """Raised when a record is consumed a second time"""
    pass


class NotOwner(RecordError):
    """Raised when a record is presented by someone other than its owner"""
    pass


class UnknownRecord(RecordError):
    """Raised when a record reference was never committed"""
    pass


class ArithmeticOverflow(RecordLedgerError):
    """Raised when checked arithmetic leaves the declared integer domain"""
    pass


class AssertionFailed(RecordLedgerError):
    """Raised when a program assertion does not hold"""
    pass


class ProgramError(RecordLedgerError):
    """Raised on malformed program declarations or unknown programs/transitions"""
    pass


class LedgerError(RecordLedgerError):
    """Raised when transaction log operations fail"""
    pass


class ConfigError(RecordLedgerError):
    """Raised when configuration is missing or invalid"""
    pass
