"""
Domain exceptions raised by the service layer.

Each exception carries a human readable message and the HTTP status the
API layer answers with. Routes never catch these; the handler registered
in ``app.main`` serializes them.
"""
from fastapi import status


class ServiceError(Exception):
    """Base class for errors raised by services."""
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidArgumentError(ServiceError):
    """Malformed identifiers, scope mismatches, unknown permission names."""
    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(ServiceError):
    """A referenced user, role, scope instance or permission does not exist."""
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(ServiceError):
    """The write would violate a uniqueness rule or one-time operation."""
    status_code = status.HTTP_409_CONFLICT


class ForbiddenError(ServiceError):
    """The caller may not perform this action."""
    status_code = status.HTTP_403_FORBIDDEN
