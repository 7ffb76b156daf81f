"""
Pipeline errors for clean top-level error handling.

Stages raise these; only the CLI (or the HTTP layer) turns them into an exit
code or a response. Cancellation is not an error: it is reported on the
pipeline result.
"""

WEEKLY_LIMIT_REACHED = "WEEKLY_LIMIT_REACHED"
RATE_LIMIT = "RATE_LIMIT"
API_ERROR = "API_ERROR"


class ConfigurationError(Exception):
    """Raised when a configuration file, the method index or a credential is missing or invalid."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class RateLimitReached(Exception):
    """Raised when the model API refuses the call because a usage limit is exhausted."""

    def __init__(self, message: str, weekly: bool = False) -> None:
        self.message = message
        self.weekly = weekly
        self.code = WEEKLY_LIMIT_REACHED if weekly else RATE_LIMIT
        super().__init__(message)


class DispatchFailure(Exception):
    """Raised on transport errors or non-success responses from the model API."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.message = message
        self.status_code = status_code
        self.code = API_ERROR
        super().__init__(message)


class PersistenceFailure(Exception):
    """Raised when the query cache cannot be written to disk."""

    def __init__(self, message: str, path: str = "") -> None:
        self.message = message
        self.path = path
        super().__init__(message)
