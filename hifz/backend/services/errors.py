# --- Service layer exception classes ---
# Each class carries the HTTP status the API layer answers with.

from typing import Optional


class ServiceError(Exception):
    """General exception class for the service layer."""
    status_code = 500

    def __init__(self, message: str, error: Optional[str] = None):
        super().__init__(message)
        self.message = message
        # Raw detail of the underlying failure, only shown outside production.
        self.error = error


class InvalidRequestError(ServiceError):
    """Missing or malformed required fields."""
    status_code = 400


class ConflictError(ServiceError):
    """A unique field (email, phone number, class name, student id) is already taken."""
    status_code = 400


class AuthenticationError(ServiceError):
    """Bad credentials or a deactivated account at login."""
    status_code = 400


class AuthorizationError(ServiceError):
    """The caller is authenticated but not allowed to do this."""
    status_code = 403


class NotFoundError(ServiceError):
    status_code = 404


class PersistenceError(ServiceError):
    """The store failed while serving the request."""
    status_code = 500
