"""Unit tests for version reporting."""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

import pytest

import mirage
from mirage.generation import build_http_client


def test_version_comes_from_metadata_when_installed() -> None:
    try:
        expected = version("mirage")
    except PackageNotFoundError:
        expected = mirage.FALLBACK_VERSION
    assert mirage.__version__ == expected


def test_uninstalled_distribution_warns_and_falls_back() -> None:
    with pytest.warns(RuntimeWarning, match="No installed metadata for 'mirage-missing'"):
        reported = mirage._installed_version("mirage-missing")
    assert reported == "0.0.0+unknown"


async def test_http_client_user_agent_carries_version() -> None:
    client = build_http_client(30.0)
    try:
        assert client.headers["user-agent"] == f"mirage/{mirage.__version__}"
    finally:
        await client.aclose()
