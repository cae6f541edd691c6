"""
Tests for the HTTP endpoints.

Tests:
- Extraction endpoint
- Memory listing and pagination
- Error mapping
- Health check
"""

from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from maid_memory.api.main import create_app
from maid_memory.api.routes.memories import get_extractor
from maid_memory.db.database import get_db
from maid_memory.engine.errors import EmbeddingError, UpstreamModelError
from maid_memory.engine.pipeline import MemoryExtractor
from maid_memory.engine.schemas import FactRetrieval
from .factories import USER_ID, FakeEmbedder, FakeLLM, basis, decision, fact, seed_memory, seed_messages


@pytest.fixture
def llm() -> FakeLLM:
    return FakeLLM(facts=[fact("User loves hiking")], decisions=[decision(1, "ADD")])


@pytest_asyncio.fixture(scope="function")
async def app(session_factory, llm):
    """Create FastAPI app with test dependencies."""
    application = create_app()
    extractor = MemoryExtractor(session_factory, llm=llm, embedder=FakeEmbedder(), top_k=3, min_similarity=0.7)

    async def override_get_db():
        async with session_factory() as session:
            yield session

    application.dependency_overrides[get_db] = override_get_db
    application.dependency_overrides[get_extractor] = lambda: extractor

    yield application

    application.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client for testing."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.mark.asyncio
class TestExtractEndpoint:
    """Tests for POST /v1/users/{user_id}/memories/extract."""

    async def test_extract_success(self, client, session_factory):
        await seed_messages(session_factory, USER_ID, ["I love hiking"])

        response = await client.post(f"/v1/users/{USER_ID}/memories/extract")

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["data"] == {
            "facts_extracted": 1,
            "memories_added": 1,
            "memories_updated": 0,
            "messages_extracted": 1,
        }
        assert data["meta"]["request_id"] == response.headers["X-Request-ID"]

    async def test_extract_nothing_pending(self, client):
        response = await client.post(f"/v1/users/{USER_ID}/memories/extract")

        assert response.status_code == 200
        assert response.json()["data"]["messages_extracted"] == 0

    async def test_request_id_is_echoed(self, client):
        response = await client.post(
            f"/v1/users/{USER_ID}/memories/extract",
            headers={"X-Request-ID": "req_fixed"},
        )

        assert response.headers["X-Request-ID"] == "req_fixed"
        assert response.json()["meta"]["request_id"] == "req_fixed"

    async def test_upstream_failure_is_502(self, client, session_factory, llm):
        await seed_messages(session_factory, USER_ID, ["I love hiking"])
        llm.fail_on = FactRetrieval
        llm.error = UpstreamModelError("model unavailable")

        response = await client.post(f"/v1/users/{USER_ID}/memories/extract")

        assert response.status_code == 502
        assert response.json() == {
            "success": False,
            "error": {
                "code": "UPSTREAM_MODEL_ERROR",
                "message": "model unavailable",
            },
        }

    async def test_embedding_failure_is_502(self, app, client, session_factory, llm):
        await seed_messages(session_factory, USER_ID, ["I love hiking"])
        failing = MemoryExtractor(
            session_factory,
            llm=llm,
            embedder=FakeEmbedder(fail=EmbeddingError("quota exceeded")),
        )
        app.dependency_overrides[get_extractor] = lambda: failing

        response = await client.post(f"/v1/users/{USER_ID}/memories/extract")

        assert response.status_code == 502
        assert response.json()["error"]["code"] == "EMBEDDING_ERROR"


@pytest.mark.asyncio
class TestListMemories:
    """Tests for GET /v1/users/{user_id}/memories."""

    async def test_list_empty(self, client):
        response = await client.get(f"/v1/users/{USER_ID}/memories")

        assert response.status_code == 200
        data = response.json()
        assert data["data"] == []
        assert data["pagination"]["total"] == 0

    async def test_list_pagination(self, client, session_factory):
        for idx in range(3):
            await seed_memory(session_factory, USER_ID, f"User fact {idx}", basis(idx))

        response = await client.get(f"/v1/users/{USER_ID}/memories", params={"page": 1, "per_page": 2})

        assert response.status_code == 200
        data = response.json()
        assert len(data["data"]) == 2
        assert data["pagination"]["total"] == 3
        assert data["pagination"]["total_pages"] == 2
        assert data["pagination"]["has_next"] is True
        assert "embedding" not in data["data"][0]

    async def test_invalid_page_is_400(self, client):
        response = await client.get(f"/v1/users/{USER_ID}/memories", params={"page": 0})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"


@pytest.mark.asyncio
class TestHealth:
    """Tests for health endpoints."""

    async def test_health_check(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["data"]["status"] == "healthy"
        assert data["data"]["database"] == "healthy"
