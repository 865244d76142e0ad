class DataTablesError(Exception):
    """Base class for every error raised by the engine."""


class ConfigurationError(DataTablesError):
    """Invalid column, override or settings configuration."""


class UnknownColumnError(DataTablesError):
    """A requested column index or path does not map to a declared column."""

    def __init__(self, message: str, index=None):
        super().__init__(message)
        self.index = index


# Older name, kept for callers catching the original error.
InvalidColumnError = UnknownColumnError


class InvalidSearchPatternError(DataTablesError):
    """A search term flagged as regex could not be compiled."""

    def __init__(self, pattern: str, reason: str = ""):
        message = f"Invalid search pattern {pattern!r}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.pattern = pattern


class BackendExecutionError(DataTablesError):
    """The backend failed while counting or executing a query."""
