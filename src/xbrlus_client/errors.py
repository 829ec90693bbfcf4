"""Typed failures raised by the XBRL US client."""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Iterable, Optional


class ServerErrorCode(str, Enum):
    """``error_description`` values the API uses for token problems."""

    BAD_OR_EXPIRED_TOKEN = "Bad or expired token"
    INVALID_REFRESH_TOKEN = "Invalid refresh token"

    @classmethod
    def classify(cls, description: Optional[str]) -> Optional["ServerErrorCode"]:
        """Return the known code for ``description`` or None when unclassified."""

        try:
            return cls(description)
        except ValueError:
            return None


class XBRLUSError(Exception):
    """Base class for every error the client raises."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigurationError(XBRLUSError):
    """Required configuration is missing."""

    def __init__(self, message: str, missing: Iterable[str] = ()) -> None:
        self.missing = list(missing)
        super().__init__(message, {"missing": self.missing} if self.missing else None)


class AuthenticationError(XBRLUSError):
    """The token endpoint rejected a grant."""

    def __init__(
        self,
        message: str,
        *,
        error: Optional[str] = None,
        error_description: Optional[str] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.error = error
        self.error_description = error_description
        self.payload = payload or {}

    @property
    def code(self) -> Optional[ServerErrorCode]:
        return ServerErrorCode.classify(self.error_description)


class ApiError(XBRLUSError):
    """A business call still returned an ``error`` after the retry budget."""

    def __init__(self, payload: Dict[str, Any], attempts: int) -> None:
        self.payload = payload
        self.error = payload.get("error")
        self.error_description = payload.get("error_description")
        self.attempts = attempts
        super().__init__(
            f"API call failed after {attempts} attempts: "
            f"{self.error_description or self.error}",
            {"error": self.error},
        )


class TransportError(XBRLUSError):
    """The HTTP exchange failed or returned something unparseable."""

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message, {"status_code": status_code} if status_code else None)
        self.status_code = status_code
        self.cause = cause


class PaginationError(XBRLUSError):
    """A further page is needed but the request cannot express its offset."""
