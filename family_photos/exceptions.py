"""Service-layer errors.

Each error carries the HTTP status it maps to and a message that is safe to
show to the caller. Anything not derived from ``ServiceError`` is treated as an
internal failure by the global exception handler.
"""

from fastapi import status


class ServiceError(Exception):
    status_code: int = status.HTTP_400_BAD_REQUEST
    default_message: str = "Request failed"

    def __init__(self, message: str | None = None, code: str | None = None):
        self.message = message or self.default_message
        self.code = code
        super().__init__(self.message)


class UnauthorizedError(ServiceError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Not authenticated"


class AccessDeniedError(ServiceError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Access denied. You must be an active family member."


class ForbiddenError(ServiceError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "You are not allowed to perform this action"


class InvalidInputError(ServiceError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid input"


class ConflictError(ServiceError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "Conflicting record already exists"


class AlreadyInvitedError(ConflictError):
    default_message = "This email has already been invited"


class AlreadyActiveError(ConflictError):
    default_message = "This email is already an active family member"


class NotFoundError(ServiceError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"
