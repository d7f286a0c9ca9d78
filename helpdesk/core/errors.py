"""
Error taxonomy shared by services and routes.

Services raise these; ``helpdesk.main`` turns each one into
``{"error": message}`` with the class's status code.
"""

from __future__ import annotations


class HelpdeskError(Exception):
    """Base error; ``message`` is safe to show to API callers."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class Unauthenticated(HelpdeskError):
    status_code = 401

    def __init__(self, message: str = "Not authenticated"):
        super().__init__(message)


class PermissionDenied(HelpdeskError):
    status_code = 403

    def __init__(self, message: str = "Insufficient permissions"):
        super().__init__(message)


class ValidationFailed(HelpdeskError):
    status_code = 400


class NotFound(HelpdeskError):
    status_code = 404


class IntegrityGuard(HelpdeskError):
    """Request is well formed but would break a data invariant."""

    status_code = 400


class PersistenceFailure(HelpdeskError):
    """Datastore call failed; the original error is only logged."""

    status_code = 500
