"""Exception hierarchy for the Family Finance Ledger.

Format-not-recognized is not an error: the structured parser returns a
``NotRecognized`` value. Nothing-extracted and fully-duplicate imports are merge
outcomes. Everything below is scoped to a single user action.
"""


class LedgerError(Exception):
    """Base class for all ledger errors."""


class EmptyStatementError(LedgerError):
    """Raised when an import is requested without any statement content."""


class ExtractionFailedError(LedgerError):
    """Raised when the LLM could not turn a statement or receipt into valid transactions."""


class PersistenceError(LedgerError):
    """Raised when a write to the household store fails."""


class AdvisorUnavailableError(LedgerError):
    """Raised when the financial advisor LLM call fails."""


class NotFoundError(LedgerError):
    """Raised when a household-scoped record does not exist."""


class SyncError(PersistenceError):
    """Raised when an optimistic write failed and authoritative state was reloaded.

    ``authoritative`` holds the records re-read from the store after the failure.
    """

    def __init__(self, msg: str, authoritative: list | None = None) -> None:
        """Initialize the error with the reloaded records."""
        super().__init__(msg)
        self.authoritative = authoritative or []


class UnreadableStatementError(LedgerError):
    """Raised when an uploaded statement file cannot be decoded."""
