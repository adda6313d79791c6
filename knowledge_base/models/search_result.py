"""Remember/recall result models"""

from pydantic import BaseModel, Field


class RecallResult(BaseModel):
    """A stored chunk matching a recall query"""

    content: str = Field(description="The matching chunk text")
    similarity: float = Field(
        ge=-1.0, le=1.0, description="Cosine similarity to the query (higher is better)"
    )


class RecallOutput(BaseModel):
    """Complete output from the get_information tool"""

    success: bool = Field(description="Whether the lookup ran without errors")
    message: str = Field(description="Human-readable summary for the agent")
    results: list[RecallResult] = Field(
        default_factory=list, description="Matches ordered by similarity, highest first"
    )


class RememberResult(BaseModel):
    """Outcome of a remember call"""

    success: bool = Field(description="Whether the resource and its embeddings were stored")
    message: str = Field(description="Human-readable outcome")
    resource_id: str | None = Field(default=None, description="Id of the stored resource")
    error_type: str | None = Field(
        default=None, description="Error class name when the call failed"
    )
