"""Shared fixtures: a deterministic embedding provider and in-memory stores"""

import pytest

from fakes import DIMENSION, FakeEmbeddingProvider
from knowledge_base.services.embedder import Embedder
from knowledge_base.services.knowledge_base import KnowledgeBase
from knowledge_base.services.vector_store import VectorStore


@pytest.fixture
def fake_provider():
    return FakeEmbeddingProvider()


@pytest.fixture
def embedder(fake_provider):
    return Embedder(fake_provider, dimension=DIMENSION, batch_size=96)


@pytest.fixture
async def vector_store():
    store = VectorStore(db_path=":memory:", dimension=DIMENSION, model_name="fake-bow-384")
    await store.initialize()
    yield store
    store.close()


@pytest.fixture
def knowledge_base(vector_store, embedder):
    return KnowledgeBase(vector_store, embedder)
