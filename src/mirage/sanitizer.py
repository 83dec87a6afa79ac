"""Request path and attribution handle sanitization.

Pure business logic. Turns an arbitrary request path into the storage key
used by the local cache and the content store, or rejects it with a
``MirageError`` carrying the right HTTP status. No I/O.
"""

from __future__ import annotations

import re

from mirage.errors import ErrorCode, MirageError

MAX_PATH_LENGTH = 100

RESERVED_NAMES: frozenset[str] = frozenset({"favicon.ico", "robots.txt", "sitemap.xml", "stats"})
RESERVED_PREFIXES: tuple[str, ...] = ("admin/",)

_DISALLOWED_CHARS_RE = re.compile(r"[^A-Za-z0-9-]")
_HYPHEN_RUN_RE = re.compile(r"-{2,}")
_HANDLE_RE = re.compile(r"[a-z0-9_]{1,15}", re.IGNORECASE)


def normalise_path(raw: str) -> str:
    """Normalise a raw path into key form.

    Steps (order matters):
      1. Replace every character outside ``[A-Za-z0-9-]`` with ``-``
      2. Lowercase
      3. Collapse hyphen runs
      4. Strip leading/trailing hyphens

    Replacing before lowercasing keeps the mapping one character to one
    character, so the result is never longer than the input.
    """
    key = _DISALLOWED_CHARS_RE.sub("-", raw)
    key = key.lower()
    key = _HYPHEN_RUN_RE.sub("-", key)
    return key.strip("-")


def is_reserved(raw: str) -> bool:
    """True for static-asset and system paths that are never generated."""
    lowered = raw.lower()
    if "." in lowered:
        return True
    if lowered in RESERVED_NAMES or lowered == "admin":
        return True
    return lowered.startswith(RESERVED_PREFIXES)


def sanitize_path(raw: str) -> str:
    """Validate and normalise a request path into a storage key.

    Raises ``MirageError`` with PATH_TOO_LONG (400), PATH_RESERVED (404) or
    INVALID_PATH (400). No cache, store, or generation access happens for a
    rejected path.
    """
    path = raw.lstrip("/")

    if len(path) > MAX_PATH_LENGTH:
        raise MirageError(
            code=ErrorCode.PATH_TOO_LONG,
            message="Path too long",
            suggestion=f"Use a path of at most {MAX_PATH_LENGTH} characters.",
        )

    if is_reserved(path):
        raise MirageError(
            code=ErrorCode.PATH_RESERVED,
            message="Not found",
            suggestion="This path is reserved and cannot be generated.",
        )

    key = normalise_path(path)
    if not key:
        raise MirageError(
            code=ErrorCode.INVALID_PATH,
            message="Invalid path",
            suggestion="Use letters, numbers, or hyphens in the path.",
        )

    # "Stats!" normalises to a reserved key
    if is_reserved(key):
        raise MirageError(
            code=ErrorCode.PATH_RESERVED,
            message="Not found",
            suggestion="This path is reserved and cannot be generated.",
        )

    return key


def validate_handle(raw: str | None) -> str | None:
    """Normalise a social handle, returning None when absent or invalid.

    Strips one leading ``@``, lowercases, trims, then requires
    ``[a-z0-9_]{1,15}``.
    """
    if not raw:
        return None
    handle = raw.removeprefix("@").lower().strip()
    if not _HANDLE_RE.fullmatch(handle):
        return None
    return handle


def require_handle(raw: str | None) -> str | None:
    """Like ``validate_handle`` but a non-empty invalid value is an error.

    Empty input means "anonymous" and returns None.
    """
    if not raw:
        return None
    handle = validate_handle(raw)
    if handle is None:
        raise MirageError(
            code=ErrorCode.INVALID_HANDLE,
            message="Invalid X handle",
            suggestion="Use 1-15 letters, numbers, or underscores.",
        )
    return handle
