"""Integration tests for the sqlite-vec backed store"""

import os
import sqlite3
import tempfile

import pytest

from fakes import DIMENSION, axis_vector
from knowledge_base.errors import PersistenceError
from knowledge_base.models.embedding import Embedding
from knowledge_base.models.resource import Resource
from knowledge_base.services.vector_store import VectorStore


def make_resource(user_id: str, vectors: dict[str, list[float]]) -> tuple[Resource, list[Embedding]]:
    resource = Resource(user_id=user_id, content=". ".join(vectors))
    embeddings = [
        Embedding(resource_id=resource.id, user_id=user_id, content=content, embedding=vector)
        for content, vector in vectors.items()
    ]
    return resource, embeddings


class TestVectorStore:
    """Test persistence, per-user search and cascade deletion"""

    @pytest.fixture
    def temp_dir(self):
        """Create temporary directory for test databases"""
        with tempfile.TemporaryDirectory() as tmpdir:
            yield tmpdir

    @pytest.mark.asyncio
    async def test_search_orders_by_similarity(self, vector_store):
        resource, embeddings = make_resource(
            "user1",
            {
                "exact": axis_vector(1.0, 0.0),
                "close": axis_vector(0.8, 0.6),
                "orthogonal": axis_vector(0.0, 1.0),
            },
        )
        await vector_store.insert_resource(resource, embeddings)

        results = await vector_store.search(axis_vector(1.0, 0.0), user_id="user1", limit=4)

        assert [content for content, _ in results] == ["exact", "close", "orthogonal"]
        assert results[0][1] == pytest.approx(1.0, abs=1e-5)
        assert results[1][1] == pytest.approx(0.8, abs=1e-5)
        assert results[2][1] == pytest.approx(0.0, abs=1e-5)

    @pytest.mark.asyncio
    async def test_search_respects_limit(self, vector_store):
        resource, embeddings = make_resource(
            "user1", {f"chunk {i}": axis_vector(1.0, i / 10) for i in range(6)}
        )
        await vector_store.insert_resource(resource, embeddings)

        results = await vector_store.search(axis_vector(1.0, 0.0), user_id="user1", limit=4)

        assert [content for content, _ in results] == ["chunk 0", "chunk 1", "chunk 2", "chunk 3"]

    @pytest.mark.asyncio
    async def test_search_isolated_per_user(self, vector_store):
        mine, my_embeddings = make_resource("user1", {"mine": axis_vector(0.6, 0.8)})
        theirs, their_embeddings = make_resource("user2", {"theirs": axis_vector(1.0, 0.0)})
        await vector_store.insert_resource(mine, my_embeddings)
        await vector_store.insert_resource(theirs, their_embeddings)

        results = await vector_store.search(axis_vector(1.0, 0.0), user_id="user1", limit=4)

        assert [content for content, _ in results] == ["mine"]
        assert await vector_store.search(axis_vector(1.0, 0.0), user_id="nobody") == []

    @pytest.mark.asyncio
    async def test_insert_and_get_resource(self, vector_store):
        resource, embeddings = make_resource("user1", {"a": axis_vector(1.0), "b": axis_vector(0.0, 1.0)})

        await vector_store.insert_resource(resource, embeddings)

        stored = await vector_store.get_resource(resource.id)
        assert stored == resource
        assert await vector_store.count_resources("user1") == 1
        assert await vector_store.count_embeddings("user1") == 2
        assert await vector_store.get_resource("00000000-0000-0000-0000-000000000000") is None

    @pytest.mark.asyncio
    async def test_failed_insert_rolls_back_everything(self, vector_store):
        resource, embeddings = make_resource(
            "user1", {"good": axis_vector(1.0), "bad": [1.0, 0.0, 0.0]}
        )

        with pytest.raises(PersistenceError, match="dimension mismatch"):
            await vector_store.insert_resource(resource, embeddings)

        assert await vector_store.get_resource(resource.id) is None
        assert await vector_store.count_resources() == 0
        assert await vector_store.count_embeddings() == 0
        assert await vector_store.search(axis_vector(1.0), user_id="user1") == []

    @pytest.mark.asyncio
    async def test_duplicate_resource_raises_persistence_error(self, vector_store):
        resource, embeddings = make_resource("user1", {"a": axis_vector(1.0)})
        await vector_store.insert_resource(resource, embeddings)

        _, more_embeddings = make_resource("user1", {"b": axis_vector(0.0, 1.0)})
        for embedding in more_embeddings:
            embedding.resource_id = resource.id

        with pytest.raises(PersistenceError):
            await vector_store.insert_resource(resource, more_embeddings)

        assert await vector_store.count_embeddings() == 1

    @pytest.mark.asyncio
    async def test_embedding_owner_must_match_resource(self, vector_store):
        resource, _ = make_resource("user1", {"a": axis_vector(1.0)})
        foreign = Embedding(
            resource_id=resource.id, user_id="user2", content="a", embedding=axis_vector(1.0)
        )

        with pytest.raises(PersistenceError, match="does not belong"):
            await vector_store.insert_resource(resource, [foreign])

        assert await vector_store.count_resources() == 0

    @pytest.mark.asyncio
    async def test_delete_resource_cascades(self, vector_store):
        kept, kept_embeddings = make_resource("user1", {"kept": axis_vector(0.0, 1.0)})
        gone, gone_embeddings = make_resource(
            "user1", {"gone one": axis_vector(1.0), "gone two": axis_vector(0.9, 0.1)}
        )
        await vector_store.insert_resource(kept, kept_embeddings)
        await vector_store.insert_resource(gone, gone_embeddings)

        assert await vector_store.delete_resource(gone.id, "user1") is True

        assert await vector_store.get_resource(gone.id) is None
        assert await vector_store.count_embeddings("user1") == 1
        results = await vector_store.search(axis_vector(1.0), user_id="user1", limit=4)
        assert [content for content, _ in results] == ["kept"]

    @pytest.mark.asyncio
    async def test_delete_requires_owner(self, vector_store):
        resource, embeddings = make_resource("user1", {"a": axis_vector(1.0)})
        await vector_store.insert_resource(resource, embeddings)

        assert await vector_store.delete_resource(resource.id, "user2") is False
        assert await vector_store.count_embeddings("user1") == 1

    @pytest.mark.asyncio
    async def test_file_database_persists_between_connections(self, temp_dir):
        db_path = os.path.join(temp_dir, "nested", "knowledge.db")
        store = VectorStore(db_path=db_path, dimension=DIMENSION, model_name="fake-bow-384")
        await store.initialize()

        resource, embeddings = make_resource("user1", {"a": axis_vector(1.0)})
        await store.insert_resource(resource, embeddings)

        reopened = VectorStore(db_path=db_path, dimension=DIMENSION, model_name="fake-bow-384")
        await reopened.initialize()

        assert await reopened.health_check() is True
        results = await reopened.search(axis_vector(1.0), user_id="user1")
        assert [content for content, _ in results] == ["a"]

    @pytest.mark.asyncio
    async def test_model_change_rejected(self, temp_dir):
        db_path = os.path.join(temp_dir, "knowledge.db")
        await VectorStore(db_path=db_path, dimension=DIMENSION, model_name="model-a").initialize()

        with pytest.raises(PersistenceError, match="model-a"):
            await VectorStore(db_path=db_path, dimension=DIMENSION, model_name="model-b").initialize()

        with pytest.raises(PersistenceError, match="384 dimensions"):
            await VectorStore(db_path=db_path, dimension=768, model_name="model-a").initialize()

    @pytest.mark.asyncio
    async def test_health_check_fails_before_initialize(self, temp_dir):
        db_path = os.path.join(temp_dir, "empty.db")
        sqlite3.connect(db_path).close()

        store = VectorStore(db_path=db_path, dimension=DIMENSION)

        assert await store.health_check() is False
