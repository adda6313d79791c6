"""Remember/recall entry points for the personal knowledge base"""

import logging

from pydantic import ValidationError as PydanticValidationError

from knowledge_base.errors import KnowledgeBaseError, ValidationError
from knowledge_base.models.embedding import Embedding
from knowledge_base.models.resource import NewResourceParams, Resource
from knowledge_base.models.search_result import RecallResult, RememberResult
from knowledge_base.services.chunker import Chunker
from knowledge_base.services.embedder import Embedder
from knowledge_base.services.search import SimilarityRetriever
from knowledge_base.services.vector_store import VectorStore

logger = logging.getLogger(__name__)

REMEMBER_SUCCESS_MESSAGE = "Resource successfully created and embedded."
GENERIC_FAILURE_MESSAGE = "Error, please try again."


def _describe_validation_error(error: PydanticValidationError) -> str:
    messages = []
    for detail in error.errors():
        field = ".".join(str(part) for part in detail["loc"]) or "input"
        messages.append(f"{field}: {detail['msg']}")
    return "; ".join(messages)


class KnowledgeBase:
    """Store user facts as embedded chunks and recall them by similarity"""

    def __init__(
        self,
        vector_store: VectorStore,
        embedder: Embedder,
        chunker: Chunker | None = None,
        retriever: SimilarityRetriever | None = None,
    ):
        self.vector_store = vector_store
        self.embedder = embedder
        self.chunker = chunker or Chunker()
        self.retriever = retriever or SimilarityRetriever(vector_store, embedder)

    async def create_resource(self, content: str, user_id: str) -> Resource:
        """
        Chunk, embed and persist content for a user

        Raises:
            ValidationError: If content or user_id is empty, or content has no chunks
            EmbeddingProviderError: If embedding fails
            PersistenceError: If the resource or its embeddings cannot be stored
        """
        try:
            params = NewResourceParams(content=content, user_id=user_id)
        except PydanticValidationError as e:
            raise ValidationError(_describe_validation_error(e)) from e

        chunks = self.chunker.chunk(params.content)
        if not chunks:
            raise ValidationError("content: contains no text to remember")

        # Embed before writing anything so a provider failure leaves no trace
        embedded_chunks = await self.embedder.embed_documents(chunks)

        resource = Resource(user_id=params.user_id, content=params.content)
        embeddings = [
            Embedding(
                resource_id=resource.id,
                user_id=resource.user_id,
                content=chunk.content,
                embedding=chunk.embedding,
            )
            for chunk in embedded_chunks
        ]

        await self.vector_store.insert_resource(resource, embeddings)
        return resource

    async def remember(self, content: str, user_id: str) -> RememberResult:
        """
        Remember content for a user, reporting failures instead of raising

        Args:
            content: Text to remember
            user_id: Owner of the content

        Returns:
            RememberResult: Success with the new resource id, or a failure message
        """
        try:
            resource = await self.create_resource(content, user_id)
        except KnowledgeBaseError as e:
            logger.warning(f"Remember failed for user {user_id!r}: {type(e).__name__}: {e}")
            return RememberResult(
                success=False,
                message=str(e) or GENERIC_FAILURE_MESSAGE,
                error_type=type(e).__name__,
            )

        return RememberResult(
            success=True, message=REMEMBER_SUCCESS_MESSAGE, resource_id=resource.id
        )

    async def recall(self, query: str, user_id: str) -> list[RecallResult]:
        """
        Recall the user's stored chunks most relevant to a query

        Returns:
            list[RecallResult]: Possibly empty, ordered by similarity descending

        Raises:
            ValidationError: If query or user_id is empty
            EmbeddingProviderError: If the query cannot be embedded
            PersistenceError: If the search fails
        """
        if not query or not query.strip():
            raise ValidationError("query: must not be empty")
        if not user_id or not user_id.strip():
            raise ValidationError("user_id: must not be empty")

        return await self.retriever.find_relevant_content(query, user_id)

    async def forget(self, resource_id: str, user_id: str) -> bool:
        """Delete a user's resource along with all of its embeddings"""
        return await self.vector_store.delete_resource(resource_id, user_id)

    async def close(self) -> None:
        """Cleanup resources"""
        await self.embedder.close()
        self.vector_store.close()
