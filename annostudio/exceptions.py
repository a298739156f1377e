from __future__ import annotations

from typing import Any, Optional


class StudioError(Exception):
    """Base class for every error raised by annostudio."""


class ApiError(StudioError):
    """A backend call failed (transport error or non-2xx response)."""

    def __init__(self, message: str, *, status_code: int = 0, payload: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    def __str__(self) -> str:
        if self.status_code:
            return f"[{self.status_code}] {self.message}"
        return self.message


class AuthExpiredError(ApiError):
    """401 from the backend: the stored token is no longer valid."""


class NotFoundError(ApiError):
    """404 from the backend."""


class UploadError(StudioError):
    """The selected file cannot be previewed or uploaded."""


class FieldConfigError(StudioError):
    """A field-configuration change violates a panel or primary-key rule."""

    def __init__(self, message: str, code: str = ""):
        super().__init__(message)
        self.code = code
