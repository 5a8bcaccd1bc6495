"""Structured API errors rendered as ``{ok: false, error, details?}``."""

from typing import Any


class ApiError(Exception):
    """Error with an HTTP status and a machine-readable kind string."""

    def __init__(self, status_code: int, error: str, details: Any = None):
        self.status_code = status_code
        self.error = error
        self.details = details
        super().__init__(error)

    def to_body(self) -> dict:
        body: dict[str, Any] = {"ok": False, "error": self.error}
        if self.details is not None:
            body["details"] = self.details
        return body
