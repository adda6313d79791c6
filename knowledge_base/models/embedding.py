"""Vector embedding data models"""

from uuid import uuid4

from pydantic import BaseModel, Field


class EmbeddedChunk(BaseModel):
    """A chunk of text paired with its document-mode vector"""

    content: str = Field(min_length=1, description="Chunk text")
    embedding: list[float] = Field(min_length=1, description="Vector representation")


class Embedding(BaseModel):
    """Stored vector representation of one chunk of a resource"""

    id: str = Field(
        default_factory=lambda: str(uuid4()), description="Unique identifier (UUID format)"
    )
    resource_id: str = Field(description="Foreign key to Resource.id")
    user_id: str = Field(min_length=1, description="Owning user id (copied from the resource)")
    content: str = Field(min_length=1, description="Chunk text")
    embedding: list[float] = Field(
        min_length=1,
        description="Vector representation (dimension fixed by the embedding model)",
    )
