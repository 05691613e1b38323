"""Exception hierarchy for equiflow."""

from __future__ import annotations

from typing import Optional


class EquiflowError(Exception):
    """Base class for all equiflow errors."""


class RoutineApiError(EquiflowError):
    """A remote call to the routine store failed."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class NotFoundError(RoutineApiError):
    """The requested template, instance or horse does not exist."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=404)


class InvalidTransitionError(RoutineApiError):
    """The store rejected a status transition for an instance."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=400)


class RosterLoadError(EquiflowError):
    """The horse roster for a stable could not be loaded."""
