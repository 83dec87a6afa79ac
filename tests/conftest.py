"""Shared test fixtures for the mirage test suite."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

import aiosqlite
import pytest

from mirage.config import Settings
from mirage.errors import MirageError
from mirage.models.website import WebsiteRecord
from mirage.store.sqlite import SqliteContentStore

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Callable

GENERATED_AT = datetime(2026, 3, 14, 9, 30, tzinfo=UTC)

RAW_COMPLETION = """Here's the HTML for widgets:

```html
<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8">
<title>Widgets &amp; Co</title>
</head>
<body>
<h1>Widgets since 2024</h1>
<p>Fine widgets for every occasion. Established 2025, still spinning.</p>
</body>
</html>
```
"""


class FakeGenerator:
    """In-memory stand-in for GenerationClient.

    Returns ``completion`` for every prompt, or raises ``error`` when set.
    """

    def __init__(self, completion: str = RAW_COMPLETION) -> None:
        self.completion = completion
        self.error: MirageError | None = None
        self.prompts: list[str] = []

    @property
    def calls(self) -> int:
        return len(self.prompts)

    async def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.completion


@pytest.fixture()
def settings() -> Settings:
    return Settings(
        server={"base_url": "https://example.test", "admin_key": "admin-secret"},
        store={"backend": "sqlite", "db_path": ":memory:"},
    )


@pytest.fixture()
def fake_generator() -> FakeGenerator:
    return FakeGenerator()


@pytest.fixture()
def make_record() -> Callable[..., WebsiteRecord]:
    """Factory for WebsiteRecord with sensible defaults."""

    def _make(path: str = "widgets", **overrides: object) -> WebsiteRecord:
        data: dict = {
            "path": path,
            "html": f"<!DOCTYPE html><html><head><title>{path}</title></head>"
            f"<body><p>{path}</p></body></html>",
            "title": path,
            "description": f"All about {path}",
            "view_count": 1,
            "created_at": GENERATED_AT,
            "last_viewed": GENERATED_AT,
            "generator_handle": None,
        }
        data.update(overrides)
        return WebsiteRecord(**data)

    return _make


@pytest.fixture()
async def sqlite_store() -> AsyncGenerator[SqliteContentStore, None]:
    """SqliteContentStore over a fresh in-memory database."""
    async with aiosqlite.connect(":memory:") as db:
        store = SqliteContentStore(db)
        await store.init_db()
        yield store
