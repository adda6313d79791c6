"""Embedding generation service"""

import logging
import math

from knowledge_base.config import config
from knowledge_base.errors import EmbeddingProviderError
from knowledge_base.models.embedding import EmbeddedChunk
from knowledge_base.services.embedding_provider import EmbeddingProvider, InputType

logger = logging.getLogger(__name__)


class Embedder:
    """Generate document and query embeddings through an injected provider"""

    def __init__(
        self,
        provider: EmbeddingProvider,
        dimension: int | None = None,
        batch_size: int | None = None,
    ):
        self.provider = provider
        self.dimension = dimension or config.embedding_dimension
        self.batch_size = batch_size or config.embedding_batch_size

    @property
    def model_name(self) -> str:
        return self.provider.model_name

    def _validate(self, texts: list[str], vectors: list[list[float]]) -> None:
        if len(vectors) != len(texts):
            raise EmbeddingProviderError(
                f"Embedding count mismatch: sent {len(texts)} texts, got {len(vectors)} vectors"
            )
        for vector in vectors:
            if len(vector) != self.dimension:
                raise EmbeddingProviderError(
                    f"Embedding dimension mismatch: expected {self.dimension}, got {len(vector)}"
                )
            if not all(math.isfinite(value) for value in vector):
                raise EmbeddingProviderError("Embedding contains NaN or infinite values")
            # Cosine distance is undefined for a zero vector
            if not any(vector):
                raise EmbeddingProviderError("Embedding is a zero vector")

    async def embed_documents(self, chunks: list[str]) -> list[EmbeddedChunk]:
        """
        Embed chunks for storage

        Args:
            chunks: Chunk texts to embed

        Returns:
            list[EmbeddedChunk]: Each chunk paired with its vector, in input order
        """
        if not chunks:
            return []

        embedded: list[EmbeddedChunk] = []

        for i in range(0, len(chunks), self.batch_size):
            batch = chunks[i : i + self.batch_size]
            vectors = await self.provider.embed(batch, InputType.SEARCH_DOCUMENT)
            self._validate(batch, vectors)
            embedded.extend(
                EmbeddedChunk(content=content, embedding=vector)
                for content, vector in zip(batch, vectors)
            )

        logger.debug(f"Embedded {len(embedded)} chunks with {self.model_name}")
        return embedded

    async def embed_query(self, text: str) -> list[float]:
        """
        Embed a search query

        Literal backslash-n sequences are replaced with spaces first.

        Args:
            text: Query text

        Returns:
            list[float]: Query vector
        """
        normalized = text.replace("\\n", " ")
        vectors = await self.provider.embed([normalized], InputType.SEARCH_QUERY)
        self._validate([normalized], vectors)
        return vectors[0]

    async def close(self) -> None:
        """Cleanup provider resources"""
        await self.provider.close()
