"""Client-side exceptions.

These cover the local half of the error taxonomy: everything here is raised
before a request reaches the backend. Backend and transport failures travel
as `Err` results from the API client instead.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from drivers24.services.validators import ValidationResult


class Drivers24Error(Exception):
    """Base client exception."""

    def __init__(self, detail: str = "An unexpected error occurred") -> None:
        self.detail = detail
        super().__init__(detail)


class ValidationFailed(Drivers24Error):
    """One or more fields failed local validation."""

    def __init__(self, detail: str = "Validation failed", errors: list[ValidationResult] | None = None) -> None:
        self.errors = errors or []
        super().__init__(detail)

    @property
    def field_errors(self) -> dict[str, str]:
        return {e.field: e.reason for e in self.errors if e.field and e.reason}


class InvalidTransition(Drivers24Error):
    """Booking status change not allowed by the state machine."""


class SearchError(Drivers24Error):
    """Search input rejected before any request was made."""


class ActionInProgress(Drivers24Error):
    """A request for the same action is still in flight."""

    def __init__(self, action: str) -> None:
        self.action = action
        super().__init__(f"'{action}' is already in progress")
