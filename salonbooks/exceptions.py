class LedgerError(Exception):
    """Base exception for ledger, loyalty and earnings failures."""

    error_code = "ledger_error"

    def __init__(self, message: str, *, cause: Exception | None = None):
        super().__init__(message)
        self.message = message
        self.cause = cause


class NotFound(LedgerError):
    """Raised when a referenced customer, service, therapist or ledger date is missing."""

    error_code = "not_found"


class InvalidState(LedgerError):
    """Raised when a caller tries to override a decision the loyalty engine has made."""

    error_code = "invalid_state"


class StorageFailure(LedgerError):
    """Raised when a persistence call fails. The unit of work has been rolled back."""

    error_code = "database_error"
