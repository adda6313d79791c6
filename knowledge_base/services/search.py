"""Similarity search over a user's remembered content"""

import logging
import time

from knowledge_base.config import config
from knowledge_base.models.search_result import RecallResult
from knowledge_base.services.embedder import Embedder
from knowledge_base.services.vector_store import VectorStore

logger = logging.getLogger(__name__)


class SimilarityRetriever:
    """Rank a user's stored chunks against a query by cosine similarity"""

    def __init__(
        self,
        vector_store: VectorStore,
        embedder: Embedder,
        similarity_threshold: float | None = None,
        limit: int | None = None,
    ):
        self.vector_store = vector_store
        self.embedder = embedder
        self.similarity_threshold = (
            similarity_threshold
            if similarity_threshold is not None
            else config.recall_similarity_threshold
        )
        self.limit = limit or config.recall_result_limit

    async def find_relevant_content(self, query: str, user_id: str) -> list[RecallResult]:
        """
        Find the user's chunks most similar to the query

        Args:
            query: Query text
            user_id: Owner whose embeddings are searched

        Returns:
            list[RecallResult]: At most ``limit`` results with similarity above the
            threshold, highest similarity first
        """
        start_time = time.time()

        query_embedding = await self.embedder.embed_query(query)

        # Nearest neighbours first, then drop anything at or below the threshold
        raw_results = await self.vector_store.search(
            query_embedding, user_id=user_id, limit=self.limit
        )

        results = [
            RecallResult(content=content, similarity=similarity)
            for content, similarity in raw_results
            if similarity > self.similarity_threshold
        ]
        results.sort(key=lambda r: r.similarity, reverse=True)

        query_time_ms = (time.time() - start_time) * 1000
        logger.info(
            f"Recall for user {user_id}: {len(results)}/{len(raw_results)} results "
            f"above {self.similarity_threshold} in {query_time_ms:.1f}ms"
        )

        return results[: self.limit]
