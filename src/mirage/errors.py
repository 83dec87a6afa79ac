from __future__ import annotations

from enum import StrEnum


class ErrorCode(StrEnum):
    PATH_TOO_LONG = "PATH_TOO_LONG"
    PATH_RESERVED = "PATH_RESERVED"
    INVALID_PATH = "INVALID_PATH"
    INVALID_HANDLE = "INVALID_HANDLE"
    INVALID_INPUT = "INVALID_INPUT"
    GENERATION_FAILED = "GENERATION_FAILED"
    GENERATION_RATE_LIMITED = "GENERATION_RATE_LIMITED"
    STORE_ERROR = "STORE_ERROR"
    UNAUTHORIZED = "UNAUTHORIZED"


_STATUS_CODES: dict[ErrorCode, int] = {
    ErrorCode.PATH_TOO_LONG: 400,
    ErrorCode.PATH_RESERVED: 404,
    ErrorCode.INVALID_PATH: 400,
    ErrorCode.INVALID_HANDLE: 400,
    ErrorCode.INVALID_INPUT: 400,
    ErrorCode.GENERATION_FAILED: 502,
    ErrorCode.GENERATION_RATE_LIMITED: 503,
    ErrorCode.STORE_ERROR: 500,
    ErrorCode.UNAUTHORIZED: 401,
}


class MirageError(Exception):
    """Raised for all expected failure conditions.

    Caught by the HTTP layer and rendered as an error page (or a JSON
    envelope for ``/api/*`` routes). Business logic raises it and lets it
    propagate; the orchestrator is the only place that downgrades store
    errors to soft failures.
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        suggestion: str = "",
        recoverable: bool = False,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.suggestion = suggestion
        self.recoverable = recoverable

    @property
    def status_code(self) -> int:
        return _STATUS_CODES.get(self.code, 500)

    def to_dict(self) -> dict:
        return {
            "error": self.message,
            "code": self.code,
            "suggestion": self.suggestion,
            "recoverable": self.recoverable,
        }
