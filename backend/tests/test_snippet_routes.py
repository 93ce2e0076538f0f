"""
SnipSync Backend — Snippet API Integration Tests
==================================================

What:  HTTP-level tests of /api/snippets, /api/health, / and the error envelope.
Why:   The front-end depends on exact status codes and envelope shapes.
How:   HTTPX AsyncClient over ASGITransport against a fresh app per test,
       with get_db_session pointed at an in-memory SQLite database.

What we test:
    ✅ create → get → update → list → delete → get(404) round trip
    ✅ 400 on missing name (no 422 from FastAPI for our own rules)
    ✅ 404 for unknown and malformed ids
    ✅ Envelope shape, X-Total-Count, camelCase timestamps
    ✅ Unknown routes and driver failures use the error envelope
"""

from datetime import datetime
from unittest.mock import AsyncMock, patch
from uuid import uuid4

import pytest

from app.exceptions import DatabaseError


def _ts(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


class TestSnippetLifecycle:

    @pytest.mark.asyncio
    async def test_create_loop_then_update_then_delete(self, test_client):
        response = await test_client.post(
            "/api/snippets", json={"name": "loop", "language": "go", "code": "for{}"}
        )
        assert response.status_code == 201
        created = response.json()["data"]
        assert created["tags"] == []
        assert created["description"] == ""

        response = await test_client.put(
            f"/api/snippets/{created['id']}", json={"description": "infinite"}
        )
        assert response.status_code == 200
        assert response.json()["data"]["description"] == "infinite"
        assert response.json()["data"]["code"] == "for{}"

        assert (await test_client.delete(f"/api/snippets/{created['id']}")).status_code == 200
        assert (await test_client.get(f"/api/snippets/{created['id']}")).status_code == 404

    @pytest.mark.asyncio
    async def test_full_round_trip(self, test_client, sample_snippet):
        # Create
        response = await test_client.post("/api/snippets", json=sample_snippet)
        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "Snippet created successfully"
        created = body["data"]
        assert created["name"] == "debounce"
        assert created["tags"] == ["util", "timing"]
        assert created["createdAt"] == created["updatedAt"]
        snippet_id = created["id"]

        # Get
        response = await test_client.get(f"/api/snippets/{snippet_id}")
        assert response.status_code == 200
        assert response.json()["data"] == created

        # Update one field
        response = await test_client.put(
            f"/api/snippets/{snippet_id}", json={"description": "Wait for quiet"}
        )
        assert response.status_code == 200
        updated = response.json()["data"]
        assert updated["description"] == "Wait for quiet"
        assert updated["name"] == created["name"]
        assert updated["code"] == created["code"]
        assert updated["tags"] == created["tags"]
        assert updated["createdAt"] == created["createdAt"]
        assert _ts(updated["updatedAt"]) > _ts(created["updatedAt"])

        # List
        response = await test_client.get("/api/snippets")
        assert response.status_code == 200
        body = response.json()
        assert body["count"] == 1
        assert response.headers["X-Total-Count"] == "1"
        assert [s["id"] for s in body["data"]] == [snippet_id]

        # Delete
        response = await test_client.delete(f"/api/snippets/{snippet_id}")
        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "message": "Snippet deleted successfully",
            "data": {},
        }

        # Gone
        response = await test_client.get(f"/api/snippets/{snippet_id}")
        assert response.status_code == 404
        assert response.json()["message"] == "Snippet not found"

    @pytest.mark.asyncio
    async def test_create_defaults(self, test_client):
        response = await test_client.post("/api/snippets", json={"name": "bare"})
        assert response.status_code == 201
        data = response.json()["data"]
        assert data["language"] == "javascript"
        assert data["code"] == ""
        assert data["description"] == ""
        assert data["tags"] == []

    @pytest.mark.asyncio
    async def test_update_null_description_clears(self, test_client, sample_snippet):
        created = (await test_client.post("/api/snippets", json=sample_snippet)).json()["data"]
        response = await test_client.put(
            f"/api/snippets/{created['id']}", json={"description": None, "name": None}
        )
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["description"] == ""
        assert data["name"] == "debounce"


class TestSnippetQueries:

    async def _seed(self, client):
        for payload in (
            {"name": "Quick Sort", "language": "python", "tags": ["algorithms"]},
            {"name": "fetch wrapper", "language": "typescript", "tags": ["http"]},
            {"name": "binary search", "language": "python"},
        ):
            response = await client.post("/api/snippets", json=payload)
            assert response.status_code == 201

    @pytest.mark.asyncio
    async def test_search(self, test_client):
        await self._seed(test_client)
        response = await test_client.get("/api/snippets", params={"search": "SEARCH"})
        names = [s["name"] for s in response.json()["data"]]
        assert names == ["binary search"]

    @pytest.mark.asyncio
    async def test_sort_by_language_ascending(self, test_client):
        await self._seed(test_client)
        response = await test_client.get(
            "/api/snippets", params={"sortBy": "language", "order": "asc"}
        )
        languages = [s["language"] for s in response.json()["data"]]
        assert languages == ["python", "python", "typescript"]

    @pytest.mark.asyncio
    async def test_unknown_sort_field(self, test_client):
        response = await test_client.get("/api/snippets", params={"sortBy": "code"})
        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["details"]["field"] == "sortBy"

    @pytest.mark.asyncio
    async def test_by_language(self, test_client):
        await self._seed(test_client)
        response = await test_client.get("/api/snippets/language/python")
        body = response.json()
        assert body["count"] == 2
        assert {s["language"] for s in body["data"]} == {"python"}

    @pytest.mark.asyncio
    async def test_languages_all(self, test_client):
        await self._seed(test_client)
        response = await test_client.get("/api/snippets/languages/all")
        assert response.status_code == 200
        assert response.json()["data"] == ["python", "typescript"]


class TestErrorResponses:

    @pytest.mark.asyncio
    async def test_missing_name_is_400(self, test_client):
        response = await test_client.post("/api/snippets", json={"language": "go"})
        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["error"] == "validation_error"
        assert body["message"] == "Please provide a snippet name"
        assert "request_id" in body

        listing = await test_client.get("/api/snippets")
        assert listing.json()["count"] == 0

    @pytest.mark.asyncio
    async def test_wrong_body_type_is_400(self, test_client):
        response = await test_client.post("/api/snippets", json={"name": "x", "tags": "not-a-list"})
        assert response.status_code == 400
        assert response.json()["details"]["errors"][0]["field"] == "tags"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("method", ["get", "put", "delete"])
    async def test_malformed_id_is_404(self, test_client, method):
        kwargs = {"json": {"name": "x"}} if method == "put" else {}
        response = await getattr(test_client, method)("/api/snippets/not-a-uuid", **kwargs)
        assert response.status_code == 404
        assert response.json()["message"] == "Snippet not found"

    @pytest.mark.asyncio
    async def test_unknown_id_is_404(self, test_client):
        response = await test_client.delete(f"/api/snippets/{uuid4()}")
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_blank_name_on_update_is_400(self, test_client, sample_snippet):
        created = (await test_client.post("/api/snippets", json=sample_snippet)).json()["data"]
        response = await test_client.put(f"/api/snippets/{created['id']}", json={"name": "  "})
        assert response.status_code == 400
        assert response.json()["details"]["field"] == "name"

    @pytest.mark.asyncio
    async def test_unknown_route(self, test_client):
        response = await test_client.get("/api/nothing-here")
        assert response.status_code == 404
        body = response.json()
        assert body["success"] is False
        assert body["message"] == "Route /api/nothing-here not found"

    @pytest.mark.asyncio
    async def test_database_error_is_500_with_diagnostics(self, test_client):
        with patch("app.services.snippet_service.snippet_store") as mock_store:
            mock_store.list = AsyncMock(side_effect=DatabaseError(context={"operation": "list"}))

            response = await test_client.get("/api/snippets")

        assert response.status_code == 500
        body = response.json()
        assert body["error"] == "server_error"
        assert body["details"]["type"] == "DatabaseError"
        assert body["details"]["operation"] == "list"

    @pytest.mark.asyncio
    async def test_database_error_hides_details_in_production(self, test_client):
        with patch("app.services.snippet_service.snippet_store") as mock_store, \
             patch("app.main.settings") as mock_settings:
            mock_settings.is_production = True
            mock_store.list = AsyncMock(side_effect=DatabaseError())

            response = await test_client.get("/api/snippets")

        assert response.status_code == 500
        body = response.json()
        assert "details" not in body
        assert body["message"] == "An internal error occurred. Please try again later."

    @pytest.mark.asyncio
    async def test_request_id_is_echoed(self, test_client):
        response = await test_client.get(
            "/api/snippets/not-a-uuid", headers={"X-Request-ID": "abc123"}
        )
        assert response.headers["X-Request-ID"] == "abc123"
        assert response.json()["request_id"] == "abc123"


class TestHealthAndIndex:

    @pytest.mark.asyncio
    async def test_health(self, test_client):
        response = await test_client.get("/api/health")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["database"] == "connected"
        assert body["sessions"] == 0

    @pytest.mark.asyncio
    async def test_index(self, test_client):
        response = await test_client.get("/")
        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "SnipSync API"
        assert body["endpoints"]["realtime"] == "/ws"


class TestRateLimit:

    @pytest.mark.asyncio
    async def test_limit_returns_429_envelope(self, test_client):
        from app.config import settings

        with patch.object(settings, "rate_limit_enabled", True), \
             patch.object(settings, "rate_limit_requests", 10):
            for _ in range(10):
                assert (await test_client.get("/")).status_code == 200

            response = await test_client.get("/")

        assert response.status_code == 429
        assert "Retry-After" in response.headers
        body = response.json()
        assert body["success"] is False
        assert body["error"] == "rate_limit_exceeded"

    @pytest.mark.asyncio
    async def test_health_is_never_limited(self, test_client):
        from app.config import settings

        with patch.object(settings, "rate_limit_enabled", True), \
             patch.object(settings, "rate_limit_requests", 10):
            for _ in range(12):
                assert (await test_client.get("/api/health")).status_code == 200
