"""Exception types raised by the Kejani client."""

from __future__ import annotations

from typing import Dict, Optional


class KejaniError(Exception):
    """Base class for every error raised by this package."""


class TransportError(KejaniError):
    def __init__(self, message: str, status_code: Optional[int] = None, url: Optional[str] = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.url = url


class AuthenticationError(TransportError):
    DEFAULT_MESSAGE = "Authentication error: please log in again"

    def __init__(self, message: Optional[str] = None, status_code: Optional[int] = 401, url: Optional[str] = None) -> None:
        super().__init__(message or self.DEFAULT_MESSAGE, status_code=status_code, url=url)


class NotFoundError(TransportError):
    def __init__(self, message: str = "Resource not found", url: Optional[str] = None) -> None:
        super().__init__(message, status_code=404, url=url)


class ParseError(KejaniError):
    """The server answered with a body that is not the JSON we expected."""


class FormValidationError(KejaniError):
    """A form failed client-side validation before anything was sent."""

    def __init__(self, message: str, errors: Optional[Dict[str, str]] = None) -> None:
        super().__init__(message)
        self.errors = errors or {}

    @classmethod
    def from_pydantic(cls, form_name: str, exc) -> "FormValidationError":
        errors: Dict[str, str] = {}
        for item in exc.errors():
            field = ".".join(str(part) for part in item.get("loc", ())) or "__root__"
            errors.setdefault(field, item.get("msg", "invalid value"))
        fields = ", ".join(sorted(errors))
        return cls(f"Invalid {form_name}: {fields}", errors)


__all__ = [
    "KejaniError",
    "TransportError",
    "AuthenticationError",
    "NotFoundError",
    "ParseError",
    "FormValidationError",
]
