"""HTTP-level integration tests.

Drives the Starlette app through httpx's ASGI transport with a prebuilt
AppState, so routing, error rendering, middleware, and the orchestrator are
exercised together without starting a server.
"""

from __future__ import annotations

import re
import xml.etree.ElementTree as ET
from typing import TYPE_CHECKING, Any

import pytest

from mirage import __version__
from mirage.errors import ErrorCode, MirageError

if TYPE_CHECKING:
    from collections.abc import Callable

    import httpx

    from mirage.models.website import WebsiteRecord
    from mirage.state import AppState

SITEMAP_NS = "{http://www.sitemaps.org/schemas/sitemap/0.9}"
ADMIN_HEADERS = {"Authorization": "Bearer admin-secret"}


# ---------------------------------------------------------------------------
# Generate-or-serve
# ---------------------------------------------------------------------------


class TestWebsiteRoute:
    async def test_messy_path_maps_to_clean_key(
        self, client: httpx.AsyncClient, app_state: AppState, fake_generator: Any
    ) -> None:
        response = await client.get("/Coffee Shop!!/")
        await app_state.writes.drain()

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/html")
        assert "coffee-shop" in fake_generator.prompts[0]
        assert await app_state.store.get("coffee-shop") is not None

    async def test_page_cache_header(self, client: httpx.AsyncClient) -> None:
        response = await client.get("/widgets")
        assert response.headers["cache-control"] == "public, max-age=300"

    async def test_new_page_asks_for_attribution(self, client: httpx.AsyncClient) -> None:
        response = await client.get("/widgets")
        assert "Visited: 1 time" in response.text
        assert 'id="mirage-generator-prompt"' in response.text

    async def test_handle_query_attributes_generation(
        self, client: httpx.AsyncClient, app_state: AppState
    ) -> None:
        response = await client.get("/widgets", params={"x": "@Alice"})
        await app_state.writes.drain()

        assert "https://x.com/alice" in response.text
        stored = await app_state.store.get("widgets")
        assert stored is not None
        assert stored.generator_handle == "alice"

    async def test_invalid_handle_query_is_ignored(
        self, client: httpx.AsyncClient, app_state: AppState
    ) -> None:
        response = await client.get("/widgets", params={"x": "not valid!"})
        await app_state.writes.drain()

        assert response.status_code == 200
        stored = await app_state.store.get("widgets")
        assert stored is not None
        assert stored.generator_handle is None

    async def test_query_options_reach_the_prompt(
        self, client: httpx.AsyncClient, fake_generator: Any
    ) -> None:
        await client.get("/widgets", params={"style": "vaporwave", "content": "blog"})
        assert "STYLE DIRECTION: vaporwave" in fake_generator.prompts[0]
        assert "CONTENT TYPE: blog" in fake_generator.prompts[0]

    async def test_revisit_shows_current_view_count(
        self,
        client: httpx.AsyncClient,
        app_state: AppState,
        make_record: Callable[..., WebsiteRecord],
    ) -> None:
        await app_state.store.upsert(
            make_record("bobs-bikes", view_count=41, generator_handle="bob")
        )

        response = await client.get("/bobs-bikes")

        assert response.status_code == 200
        assert "Visited: 42 times" in response.text
        assert "https://x.com/bob" in response.text
        assert 'id="mirage-generator-prompt"' not in response.text

    async def test_second_visit_served_from_store_after_expiry(
        self,
        client: httpx.AsyncClient,
        app_state: AppState,
        fake_generator: Any,
        cache_clock: Any,
    ) -> None:
        await client.get("/widgets")
        await app_state.writes.drain()
        cache_clock.advance(app_state.settings.cache.ttl_seconds + 1)

        response = await client.get("/widgets")

        assert "Visited: 2 times" in response.text
        assert fake_generator.calls == 1

    @pytest.mark.parametrize("path", ["/favicon.ico", "/Stats!", "/logo.png"])
    async def test_reserved_paths_are_404(
        self, client: httpx.AsyncClient, fake_generator: Any, path: str
    ) -> None:
        response = await client.get(path)
        assert response.status_code == 404
        assert fake_generator.calls == 0

    async def test_long_path_is_400(self, client: httpx.AsyncClient, fake_generator: Any) -> None:
        response = await client.get("/" + "a" * 101)
        assert response.status_code == 400
        assert response.text == "Path too long"
        assert fake_generator.calls == 0

    async def test_symbol_only_path_is_400(self, client: httpx.AsyncClient) -> None:
        response = await client.get("/!!!")
        assert response.status_code == 400

    @pytest.mark.parametrize(
        ("code", "status"),
        [(ErrorCode.GENERATION_FAILED, 502), (ErrorCode.GENERATION_RATE_LIMITED, 503)],
    )
    async def test_generation_failure_renders_error_page(
        self, client: httpx.AsyncClient, fake_generator: Any, code: ErrorCode, status: int
    ) -> None:
        fake_generator.error = MirageError(
            code=code, message="Generation API returned HTTP 500", recoverable=True
        )

        response = await client.get("/widgets")

        assert response.status_code == status
        assert response.headers["content-type"].startswith("text/html")
        assert "/widgets" in response.text
        assert "Generation API returned HTTP 500" in response.text
        assert "Traceback" not in response.text


# ---------------------------------------------------------------------------
# Attribution updates
# ---------------------------------------------------------------------------


class TestUpdateGeneratorRoute:
    async def test_update_stores_normalized_handle(
        self, client: httpx.AsyncClient, app_state: AppState
    ) -> None:
        await client.get("/widgets")
        await app_state.writes.drain()

        response = await client.post(
            "/api/update-generator", json={"path": "widgets", "xHandle": "@Alice123"}
        )

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "generator": "alice123",
            "message": "Generator updated to @alice123",
            "updatedRows": 1,
        }
        assert app_state.local_cache.get("widgets") is None
        stored = await app_state.store.get("widgets")
        assert stored is not None
        assert stored.generator_handle == "alice123"

        page = await client.get("/widgets")
        assert "https://x.com/alice123" in page.text
        assert '<meta name="author" content="@alice123">' in page.text

    async def test_footer_form_reaches_page_with_encoded_url(
        self, client: httpx.AsyncClient, app_state: AppState
    ) -> None:
        page = await client.get("/Coffee Shop!!/")
        await app_state.writes.drain()
        match = re.search(r'id="mirage-footer" data-path="([^"]+)"', page.text)
        assert match is not None

        response = await client.post(
            "/api/update-generator", json={"path": match.group(1), "xHandle": "alice"}
        )

        assert response.json()["updatedRows"] == 1
        stored = await app_state.store.get("coffee-shop")
        assert stored is not None
        assert stored.generator_handle == "alice"

    async def test_missing_handle_means_anonymous(self, client: httpx.AsyncClient) -> None:
        response = await client.post("/api/update-generator", json={"path": "widgets"})
        assert response.status_code == 200
        assert response.json()["generator"] == "Anonymous"
        assert response.json()["updatedRows"] == 0

    async def test_missing_path_is_400(self, client: httpx.AsyncClient) -> None:
        response = await client.post("/api/update-generator", json={"xHandle": "alice"})
        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_INPUT"
        assert response.json()["error"] == "Path is required"

    async def test_invalid_json_is_400(self, client: httpx.AsyncClient) -> None:
        response = await client.post(
            "/api/update-generator",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )
        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_INPUT"

    async def test_invalid_handle_is_400(self, client: httpx.AsyncClient) -> None:
        response = await client.post(
            "/api/update-generator", json={"path": "widgets", "xHandle": "way too long a handle"}
        )
        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_HANDLE"


# ---------------------------------------------------------------------------
# Stats, sitemap, robots, health
# ---------------------------------------------------------------------------


@pytest.fixture()
async def populated(app_state: AppState, make_record: Callable[..., WebsiteRecord]) -> None:
    await app_state.store.upsert(
        make_record("coffee-shop", view_count=120, generator_handle="bob")
    )
    await app_state.store.upsert(make_record("bobs-bikes", view_count=3))


class TestStatsRoutes:
    async def test_stats_json(self, client: httpx.AsyncClient, populated: None) -> None:
        response = await client.get("/stats", headers={"Accept": "application/json"})

        assert response.status_code == 200
        stats = response.json()["stats"]
        assert stats["totalWebsites"] == 2
        assert stats["totalViews"] == 123
        assert [site["path"] for site in stats["popularPaths"]] == ["coffee-shop", "bobs-bikes"]
        assert stats["popularPaths"][0]["generator"] == "bob"

    async def test_stats_html(self, client: httpx.AsyncClient, populated: None) -> None:
        response = await client.get("/stats")
        assert response.headers["content-type"].startswith("text/html")
        assert "coffee-shop" in response.text

    async def test_api_stats_always_json(
        self, client: httpx.AsyncClient, populated: None
    ) -> None:
        response = await client.get("/api/stats")
        assert response.json()["stats"]["totalWebsites"] == 2

    async def test_stats_store_failure_still_200(
        self, client: httpx.AsyncClient, app_state: AppState, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        async def _broken(limit: int = 10) -> None:
            raise MirageError(
                code=ErrorCode.STORE_ERROR, message="Content store stats query failed"
            )

        monkeypatch.setattr(app_state.store, "get_stats", _broken)
        response = await client.get("/api/stats")

        assert response.status_code == 200
        assert response.json()["stats"]["totalWebsites"] == 0
        assert response.json()["error"] == "Content store stats query failed"


class TestSitemapAndRobots:
    @pytest.mark.parametrize("route", ["/sitemap.xml", "/api/sitemap"])
    async def test_sitemap(
        self, client: httpx.AsyncClient, populated: None, route: str
    ) -> None:
        response = await client.get(route)

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("application/xml")
        assert response.headers["cache-control"] == "public, max-age=3600"
        root = ET.fromstring(response.content)
        locs = [el.text for el in root.iter(f"{SITEMAP_NS}loc")]
        assert locs == [
            "https://example.test",
            "https://example.test/coffee-shop",
            "https://example.test/bobs-bikes",
        ]

    async def test_robots(self, client: httpx.AsyncClient) -> None:
        response = await client.get("/robots.txt")
        assert response.status_code == 200
        assert "Sitemap: https://example.test/sitemap.xml" in response.text
        assert "User-agent: AhrefsBot" in response.text

    async def test_health(self, client: httpx.AsyncClient, app_state: AppState) -> None:
        await client.get("/widgets")
        response = await client.get("/health")
        body = response.json()
        assert body["status"] == "ok"
        assert body["version"] == __version__
        assert body["cache_size"] == len(app_state.local_cache) == 1

    async def test_homepage(self, client: httpx.AsyncClient, fake_generator: Any) -> None:
        response = await client.get("/")
        assert response.status_code == 200
        assert fake_generator.calls == 0


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------


class TestAdminRoutes:
    async def test_clear_cache_with_key(
        self, client: httpx.AsyncClient, app_state: AppState
    ) -> None:
        await client.get("/widgets")
        await client.get("/gadgets")

        response = await client.get("/admin/clear-cache", headers=ADMIN_HEADERS)

        assert response.status_code == 200
        assert response.json() == {"message": "Cache cleared", "cleared": 2, "cache_size": 0}
        assert len(app_state.local_cache) == 0

    async def test_cache_listing_with_key(self, client: httpx.AsyncClient) -> None:
        await client.get("/widgets")
        response = await client.get("/admin/cache", headers=ADMIN_HEADERS)
        assert response.json() == {"size": 1, "items": ["widgets"]}

    @pytest.mark.parametrize("path", ["/admin/clear-cache", "/admin/cache"])
    async def test_admin_without_key_is_401(
        self, client: httpx.AsyncClient, app_state: AppState, path: str
    ) -> None:
        await client.get("/widgets")
        response = await client.get(path)
        assert response.status_code == 401
        assert len(app_state.local_cache) == 1
