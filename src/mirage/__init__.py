"""Mirage: every URL path is a website, generated once and served forever."""

from __future__ import annotations

import warnings
from importlib.metadata import PackageNotFoundError, version

FALLBACK_VERSION = "0.0.0+unknown"


def _installed_version(distribution: str = "mirage") -> str:
    """Version from installed package metadata.

    A bare source checkout has no metadata; that case warns and reports
    ``FALLBACK_VERSION`` so /health and the User-Agent still carry a value.
    """
    try:
        return version(distribution)
    except PackageNotFoundError:
        warnings.warn(
            f"No installed metadata for {distribution!r}; reporting version {FALLBACK_VERSION}",
            RuntimeWarning,
            stacklevel=2,
        )
        return FALLBACK_VERSION


__version__ = _installed_version()
