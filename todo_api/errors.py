"""Typed failures raised by repositories and dependencies.

Each error carries the HTTP status it maps to; the handlers in ``main``
turn them into responses.
"""
from typing import Any, Dict, Optional

from fastapi import status


class ApiError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, detail: Optional[str] = None):
        super().__init__(detail or self.__class__.__name__)
        self.detail = detail

    def body(self) -> Dict[str, Any]:
        if self.detail is None:
            return {}
        return {"detail": self.detail}


class ValidationError(ApiError):
    """Malformed or missing input, duplicate email, bad credentials."""
    status_code = status.HTTP_400_BAD_REQUEST


class AuthError(ApiError):
    """Missing, invalid or revoked token."""
    status_code = status.HTTP_401_UNAUTHORIZED

    def body(self) -> Dict[str, Any]:
        return {}


class NotFoundError(ApiError):
    """No matching record, or an id that is not well-formed."""
    status_code = status.HTTP_404_NOT_FOUND

    def body(self) -> Dict[str, Any]:
        return {}
