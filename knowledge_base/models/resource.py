"""Resource data model"""

from datetime import UTC, datetime
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, field_validator


class NewResourceParams(BaseModel):
    """Input accepted by the remember operation"""

    content: str = Field(min_length=1, description="Text the user wants remembered")
    user_id: str = Field(min_length=1, description="Owner of the resource")

    @field_validator("content", "user_id")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be blank")
        return v


class Resource(BaseModel):
    """A unit of remembered knowledge owned by a single user"""

    id: str = Field(
        default_factory=lambda: str(uuid4()), description="Unique identifier (UUID format)"
    )
    user_id: str = Field(min_length=1, description="Owning user id")
    content: str = Field(min_length=1, description="Raw text content as submitted")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC), description="When the resource was created"
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC), description="When the resource was last updated"
    )

    @field_validator("id")
    @classmethod
    def validate_uuid(cls, v: str) -> str:
        """Validate that id is a valid UUID"""
        try:
            UUID(v)
        except ValueError as e:
            raise ValueError(f"Invalid UUID format: {v}") from e
        return v
