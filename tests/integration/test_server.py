"""Tests for the server lifespan: real store, real generation client (mocked
over HTTP with respx), and the full route table.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
import respx

from mirage.config import Settings
from mirage.server import build_app, lifespan
from mirage.store.sqlite import SqliteContentStore

if TYPE_CHECKING:
    from pathlib import Path

ANTHROPIC_URL = "https://api.anthropic.com/v1/messages"

COMPLETION = (
    "Sure! Here is the page:\n```html\n<!DOCTYPE html><html><head><title>Kites</title></head>"
    "<body><h1>Kites</h1><p>Kites for windy days.</p></body></html>\n```"
)


def _settings(tmp_path: Path) -> Settings:
    return Settings(
        server={"base_url": "https://example.test"},
        generation={"provider": "anthropic", "api_key": "sk-test"},
        store={"backend": "sqlite", "db_path": str(tmp_path / "data" / "websites.db")},
    )


async def _get(app: object, path: str) -> httpx.Response:
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app), base_url="http://testserver"
    ) as client:
        return await client.get(path)


async def test_lifespan_wires_and_closes_state(tmp_path: Path) -> None:
    app = build_app(_settings(tmp_path))

    async with lifespan(app):
        state = app.state.mirage
        assert isinstance(state.store, SqliteContentStore)
        assert state.http_client is not None
        assert len(state.local_cache) == 0

    assert state.http_client.is_closed
    assert (tmp_path / "data" / "websites.db").exists()


async def test_page_survives_restart(tmp_path: Path) -> None:
    settings = _settings(tmp_path)

    with respx.mock:
        route = respx.post(ANTHROPIC_URL).mock(
            return_value=httpx.Response(200, json={"content": [{"text": COMPLETION}]})
        )

        app = build_app(settings)
        async with lifespan(app):
            first = await _get(app, "/kites")

        # Fresh process: empty local cache, same database file
        app = build_app(settings)
        async with lifespan(app):
            second = await _get(app, "/kites")

    assert route.call_count == 1
    assert route.calls.last.request.headers["x-api-key"] == "sk-test"
    assert first.status_code == 200
    assert first.text.startswith("<!DOCTYPE html>")
    assert "Visited: 1 time" in first.text
    assert "Visited: 2 times" in second.text


async def test_upstream_failure_renders_error_page(tmp_path: Path) -> None:
    with respx.mock:
        respx.post(ANTHROPIC_URL).mock(return_value=httpx.Response(500, text="overloaded"))
        app = build_app(_settings(tmp_path))
        async with lifespan(app):
            response = await _get(app, "/kites")

    assert response.status_code == 502
    assert "/kites" in response.text
