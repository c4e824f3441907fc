"""Error taxonomy shared by the ledger, command handlers and API."""


class BudgetError(Exception):
    """Base class for tracker errors."""


class ValidationError(BudgetError):
    """Bad user input: malformed date, non-numeric amount, start after end..."""


class NotFoundError(BudgetError):
    """No active budget or no ledger for the requested period."""


class StorageError(BudgetError):
    """The store could not be read or written after the bounded retries."""
