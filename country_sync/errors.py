"""Error taxonomy for the refresh pipeline and the read-side API.

Fetch-stage errors abort a refresh, record-stage errors are contained in the
batch loop, and summary-stage errors are contained after it. Nothing here is
retried automatically.
"""

from typing import Any, Dict, Optional


class CountrySyncError(Exception):
    """Base class for all service failures."""

    error = "Error"
    http_status = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def details(self) -> Optional[Any]:
        return None

    def to_response(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.error}
        details = self.details()
        if details is not None:
            body["details"] = details
        return body


class ConfigurationError(CountrySyncError):
    """A required setting is missing. Fatal to the operation that needs it."""

    error = "Configuration error"
    http_status = 500

    def details(self) -> Optional[Any]:
        return self.message


class ExternalServiceError(CountrySyncError):
    """A source endpoint failed: network, timeout, redirects, status or payload."""

    error = "External data source unavailable"
    http_status = 503

    def __init__(self, source: str, cause: str):
        super().__init__(f"{source}: {cause}")
        self.source = source
        self.cause = cause

    def details(self) -> Optional[Any]:
        return f"Could not fetch data from {self.source}"


class RecordProcessingError(CountrySyncError):
    """One raw country could not be reconciled or persisted."""

    error = "Record processing failed"

    def __init__(self, name: Optional[str], cause: str):
        super().__init__(f"Failed to process country {name!r}: {cause}")
        self.name = name
        self.cause = cause


class SummaryGenerationError(CountrySyncError):
    error = "Summary generation failed"


class NotFoundError(CountrySyncError):
    http_status = 404

    def __init__(self, message: str = "Country not found"):
        super().__init__(message)
        self.error = message


class RefreshInProgressError(CountrySyncError):
    error = "Refresh already in progress"
    http_status = 409

    def __init__(self, message: str = "A refresh is already running; try again later"):
        super().__init__(message)

    def details(self) -> Optional[Any]:
        return self.message
