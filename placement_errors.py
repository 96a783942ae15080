"""Exception types shared by the placement data layer and the HTTP routes."""

from __future__ import annotations

from typing import List, Optional


class PlacementError(Exception):
    """Base class for every error raised by the placement service."""


class BackendTransportError(PlacementError):
    """The backend could not be reached or answered with an HTTP error status."""


class MalformedResponseError(PlacementError):
    """The backend answered with something other than a JSON object."""


class BackendResponseError(PlacementError):
    """The backend answered ``success: false``; ``error`` is meant for the user."""

    def __init__(self, error: Optional[str], action: Optional[str] = None) -> None:
        self.error = error or "Backend request failed"
        self.action = action
        super().__init__(self.error)


class SessionNotFoundError(PlacementError):
    pass


class StudentNotFoundError(PlacementError):
    pass


class SubmissionValidationError(PlacementError):
    """Raised when form input is incomplete; nothing is sent to the backend."""

    def __init__(self, errors: List[str]) -> None:
        self.errors = list(errors)
        super().__init__("; ".join(self.errors) or "Invalid submission")
