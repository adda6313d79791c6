"""Data models for the knowledge base"""

from knowledge_base.models.embedding import EmbeddedChunk, Embedding
from knowledge_base.models.provider_response import (
    EmptyEmbedResponse,
    FlatEmbedResponse,
    TypedEmbedResponse,
    parse_embed_response,
)
from knowledge_base.models.resource import NewResourceParams, Resource
from knowledge_base.models.search_result import RecallOutput, RecallResult, RememberResult

__all__ = [
    "Embedding",
    "EmbeddedChunk",
    "FlatEmbedResponse",
    "TypedEmbedResponse",
    "EmptyEmbedResponse",
    "parse_embed_response",
    "Resource",
    "NewResourceParams",
    "RecallResult",
    "RecallOutput",
    "RememberResult",
]
