"""Custom application exceptions."""

from datetime import datetime
from typing import Any


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, status_code: int = 500):
        """Initialize exception with message and status code."""
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)

    @property
    def details(self) -> dict[str, Any]:
        """Structured context rendered alongside the message."""
        return {}


class NotFoundException(AppException):
    """No matching, non-deleted record inside the caller's scope."""

    def __init__(self, message: str = "Appointment not found", target_id: Any = None):
        """Initialize with 404 status code."""
        self.target_id = target_id
        super().__init__(message, status_code=404)

    @property
    def details(self) -> dict[str, Any]:
        return {"id": str(self.target_id)} if self.target_id is not None else {}


class AuthorizationDeniedException(AppException):
    """Actor is not permitted to perform the operation."""

    def __init__(self, message: str = "Access denied"):
        """Initialize with 403 status code."""
        super().__init__(message, status_code=403)


class ValidationFailedException(AppException):
    """Malformed or out-of-range input, with one entry per offending field."""

    def __init__(
        self,
        errors: list[dict[str, str]],
        message: str = "Validation failed",
    ):
        """Initialize with 400 status code."""
        self.errors = errors
        super().__init__(message, status_code=400)

    @property
    def details(self) -> dict[str, Any]:
        return {"errors": self.errors}


class ValidationRejectedException(AppException):
    """A collaborator reported the referenced person or facility as invalid."""

    def __init__(self, message: str, target_id: Any, status_code: int = 422):
        """Initialize with 422 status code unless told otherwise."""
        self.target_id = target_id
        super().__init__(message, status_code=status_code)

    @property
    def details(self) -> dict[str, Any]:
        return {"target_id": str(self.target_id)}


class DependencyUnavailableException(AppException):
    """A collaborator stayed unreachable after every retry attempt."""

    def __init__(self, target_id: Any, cause: str, service: str = "dependency"):
        """Initialize with 503 status code."""
        self.target_id = target_id
        self.cause = cause
        self.service = service
        super().__init__(f"{service} unavailable", status_code=503)

    @property
    def details(self) -> dict[str, Any]:
        return {"target_id": str(self.target_id), "cause": self.cause}


class SchedulingConflictException(AppException):
    """The doctor is already booked inside the proposed window or its buffer."""

    def __init__(self, doctor_id: Any, start: datetime, end: datetime):
        """Initialize with 409 status code."""
        self.doctor_id = doctor_id
        self.start = start
        self.end = end
        super().__init__("Doctor is unavailable at the requested time", status_code=409)

    @property
    def details(self) -> dict[str, Any]:
        return {
            "doctor_id": str(self.doctor_id),
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
        }
