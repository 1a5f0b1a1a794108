"""
guestledger Exception Hierarchy

All exceptions inherit from GuestLedgerError for easy catching.
"""


class GuestLedgerError(Exception):
    """Base exception for all guestledger errors"""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self):
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


class RejectedWrite(GuestLedgerError):
    """Raised when the settlement layer or the ledger refuses an entry"""

    @property
    def reason(self) -> str:
        return self.message


class NotReady(GuestLedgerError):
    """Raised when no settlement connection exists"""
    pass


class SubmissionTimeout(GuestLedgerError):
    """
    No settlement outcome arrived within the configured window.

    Not a rejection: the write may still land later.
    """
    pass


class ReadFailure(GuestLedgerError):
    """Raised when a full ledger read could not complete"""
    pass


class LedgerError(GuestLedgerError):
    """Raised when ledger storage operations fail"""
    pass


class ConfigError(GuestLedgerError):
    """Raised when configuration is missing or invalid"""
    pass
