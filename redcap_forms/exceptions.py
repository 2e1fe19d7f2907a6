"""Exceptions raised by redcap-forms.

Construction problems are fatal and raised immediately. Row shape problems
found while loading a record are reported as a failed load rather than
escaping to the caller.
"""

from typing import Any


class RedcapFormsError(Exception):
    """Base exception for all redcap-forms errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigurationError(RedcapFormsError):
    """Raised when construction input is malformed (e.g. missing metadata keys)."""

    pass


class ValidationError(RedcapFormsError):
    """Raised when rows from the data source do not have the expected shape."""

    pass


class StateError(RedcapFormsError):
    """Raised when a second, different record id is merged into one record."""

    pass


class AmbiguousEventError(RedcapFormsError):
    """Raised when a longitudinal operation has no usable event."""

    def __init__(self, event: str | None, tracked: list[str] | None = None) -> None:
        super().__init__(
            "A valid event must be specified for multi-event projects",
            {"event": event, "tracked_events": tracked or []},
        )
        self.event = event


class DataSourceError(RedcapFormsError):
    """Raised by a data source when a remote call fails."""

    def __init__(self, call: str, message: str, status_code: int | None = None) -> None:
        super().__init__(
            f"{call} failed: {message}",
            {"call": call, "status_code": status_code} if status_code else {"call": call},
        )
        self.call = call
        self.status_code = status_code
