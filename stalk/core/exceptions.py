# stalk/core/exceptions.py
"""
Domain exceptions for the sTalk backend.

Only validation, lookup and store failures ever reach the caller of a
message send; everything after persistence is best-effort and logged.
Each exception knows the HTTP status it maps to.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status


class DomainException(Exception):
    """Base exception for all domain errors."""

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

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={"message": self.message, "code": self.code, "details": self.details},
        )


class ValidationException(DomainException):
    """Input rejected before any side effect."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundException(DomainException):
    """A referenced user or record does not exist."""

    status_code = status.HTTP_404_NOT_FOUND


class ServiceException(DomainException):
    """A service operation failed on the server side."""


class StoreException(ServiceException):
    """
    Raised when a durable read or write fails.

    Fatal to the single request: a message whose write raised this was
    never stored and must not be shown as sent.
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message=message, code="STORE_ERROR", details=details)


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    Used when data access operations fail, such as query failures or
    constraint violations that the repository cannot absorb.
    """
