"""
Domain error taxonomy shared by the services and translated to HTTP in main.py
"""

from typing import Any, Dict, Optional

from fastapi import status


class TravelMateError(Exception):
    """Base class for errors surfaced to API callers"""

    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, extra: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.extra = extra or {}

    def to_dict(self) -> Dict[str, Any]:
        return {"detail": self.message, **self.extra}


class ValidationError(TravelMateError):
    """Malformed input: bad rating range, unknown type tag, missing field"""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(TravelMateError):
    status_code = status.HTTP_404_NOT_FOUND


class AuthorizationError(TravelMateError):
    """Actor is neither the owner nor an admin"""

    status_code = status.HTTP_403_FORBIDDEN


class ConflictError(TravelMateError):
    status_code = status.HTTP_409_CONFLICT
