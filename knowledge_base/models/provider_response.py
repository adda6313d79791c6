"""Embedding provider response shapes

The embed endpoint returns vectors either directly as a list of lists, or
grouped by embedding type (``{"float": [[...]]}``) when embedding types are
requested. Both are parsed into one of the tagged models below and normalized
through ``vectors()``.
"""

from typing import Annotated, Any, Literal

from pydantic import BaseModel, Discriminator, Field, Tag, TypeAdapter


class EmbeddingsByType(BaseModel):
    """Vectors grouped by embedding type"""

    float_: list[list[float]] = Field(default_factory=list, alias="float")


class FlatEmbedResponse(BaseModel):
    """Response carrying vectors directly under ``embeddings``"""

    kind: Literal["flat"] = "flat"
    embeddings: list[list[float]]

    def vectors(self) -> list[list[float]]:
        return self.embeddings


class TypedEmbedResponse(BaseModel):
    """Response carrying vectors under ``embeddings.float``"""

    kind: Literal["by_type"] = "by_type"
    embeddings: EmbeddingsByType

    def vectors(self) -> list[list[float]]:
        return self.embeddings.float_


class EmptyEmbedResponse(BaseModel):
    """Response without any recognizable vectors"""

    kind: Literal["empty"] = "empty"

    def vectors(self) -> list[list[float]]:
        return []


def _response_shape(value: Any) -> str:
    if isinstance(value, BaseModel):
        return getattr(value, "kind", "empty")

    embeddings = value.get("embeddings") if isinstance(value, dict) else None
    if isinstance(embeddings, list):
        return "flat"
    if isinstance(embeddings, dict) and "float" in embeddings:
        return "by_type"
    return "empty"


EmbedResponse = Annotated[
    Annotated[FlatEmbedResponse, Tag("flat")]
    | Annotated[TypedEmbedResponse, Tag("by_type")]
    | Annotated[EmptyEmbedResponse, Tag("empty")],
    Discriminator(_response_shape),
]

_embed_response_adapter: TypeAdapter[EmbedResponse] = TypeAdapter(EmbedResponse)


def parse_embed_response(payload: Any) -> FlatEmbedResponse | TypedEmbedResponse | EmptyEmbedResponse:
    """
    Parse a raw provider payload into one of the known response shapes

    Raises:
        pydantic.ValidationError: If a recognized shape carries malformed vectors
    """
    return _embed_response_adapter.validate_python(payload)
