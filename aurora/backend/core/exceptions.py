# aurora/backend/core/exceptions.py
from typing import Optional


class ServiceError(Exception):
    """General exception class for the service layer."""
    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ServiceError):
    """A required field is missing or malformed."""
    status_code = 400


class AuthenticationError(ServiceError):
    status_code = 401


class AuthorizationError(ServiceError):
    """Exception class for authorization-related errors."""
    status_code = 403


class NotFoundError(ServiceError):
    """The referenced staff member, student or day record does not exist."""
    status_code = 404


class DuplicateError(ServiceError):
    """A student attendance row already exists for the same admission number and date."""
    status_code = 409


class StoreError(ServiceError):
    """
    The underlying store call failed. `sqlstate` holds the PostgreSQL error
    code when the failure came from the server.
    """
    status_code = 500

    def __init__(self, message: str, sqlstate: Optional[str] = None):
        super().__init__(message)
        self.sqlstate = sqlstate

    @property
    def is_unique_violation(self) -> bool:
        return self.sqlstate == "23505"
