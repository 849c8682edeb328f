# clinic/core/exceptions.py
"""
Domain exceptions raised by the scheduling and payment services.

Services raise these; the API layer turns them into JSON error responses
through a single exception handler registered in ``clinic.main``.
"""
from typing import Any, Dict, Optional

from fastapi import Request, status
from fastapi.responses import JSONResponse


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": False,
            "message": self.message,
            "code": self.code,
            "details": self.details,
        }


class ValidationException(DomainException):
    """Raised when input fails business validation. Nothing has been written."""

    status_code = status.HTTP_400_BAD_REQUEST


class ForbiddenException(DomainException):
    """Raised for wrong-role or cross-tenant access."""

    status_code = status.HTTP_403_FORBIDDEN


class NotFoundException(DomainException):
    """Raised when a requested resource is not found."""

    status_code = status.HTTP_404_NOT_FOUND


class LockUnavailableException(DomainException):
    """Raised when a series/booking lock cannot be acquired in time."""

    status_code = status.HTTP_409_CONFLICT


async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())
