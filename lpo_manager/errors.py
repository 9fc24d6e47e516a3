"""
Domain errors. The API maps each class to an HTTP status.
"""
from __future__ import annotations


class LpoError(Exception):
    """Base class for expected domain failures."""

    status_code = 400


class NotFoundError(LpoError):
    status_code = 404


class InvalidStateError(LpoError):
    """Entity is in the wrong status for the requested operation."""

    status_code = 400


class InsufficientFundsError(InvalidStateError):
    """Gold or diamond balance below the cost."""


class ValidationError(LpoError):
    status_code = 400


class PermissionDeniedError(LpoError):
    status_code = 403


class LeagueTransitionError(InvalidStateError):
    """Invalid league status transition (e.g. FINISHED -> ACTIVE)."""
