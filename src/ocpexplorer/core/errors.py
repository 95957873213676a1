"""Error taxonomy for the OCP explorer.

Anything not covered here is treated as unexpected and converted into an
error-shaped SearchResult at the orchestrator boundary.
"""


class OCPError(Exception):
    """Base class for all explorer errors."""


class DataUnavailable(OCPError):
    """A data table or the boundary dataset could not be fetched or parsed."""


class QueryInvalid(OCPError):
    """The search query is empty, too long, or contains a disallowed pattern."""


class AIServiceFailure(OCPError):
    """The AI proxy call failed: network error, non-200 status, or malformed payload."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code
