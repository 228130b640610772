"""Pydantic models for stored prompts."""

from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

VariableType = Literal["string", "number", "boolean", "array"]
DefaultValue = Union[str, int, float, bool, List[str]]

INITIAL_VERSION = "1.0.0"


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string with millisecond precision."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_timestamp(value: str) -> datetime:
    """Parse a stored timestamp; unparseable values sort as the oldest."""
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (AttributeError, ValueError):
        return datetime.min.replace(tzinfo=timezone.utc)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class PromptVariable(BaseModel):
    """Placeholder declared by a prompt template."""

    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(description="Placeholder name")
    description: str = Field(description="What the placeholder stands for")
    type: VariableType = Field(description="Value type")
    required: bool = Field(description="Whether a value must be supplied")
    default_value: Optional[DefaultValue] = Field(
        default=None, alias="defaultValue", description="Value used when none is supplied"
    )


class PromptMetadata(BaseModel):
    """Bookkeeping attached to every prompt."""

    model_config = ConfigDict(populate_by_name=True)

    created_at: str = Field(alias="createdAt", description="Creation time (ISO-8601)")
    updated_at: str = Field(alias="updatedAt", description="Last update time (ISO-8601)")
    version: str = Field(default=INITIAL_VERSION, description="Semantic version, patch bumped per update")
    author: Optional[str] = Field(default=None, description="Author, set at creation only")
    usage: int = Field(default=0, description="Number of single-item retrievals")

    @field_validator("created_at", "updated_at", mode="before")
    @classmethod
    def _timestamp_to_str(cls, value: Any) -> Any:
        # Hand-edited YAML may contain unquoted timestamps
        if isinstance(value, datetime):
            if value.tzinfo is None:
                value = value.replace(tzinfo=timezone.utc)
            return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")
        return value

    @field_validator("usage", mode="before")
    @classmethod
    def _usage_default(cls, value: Any) -> Any:
        return 0 if value is None else value


class Prompt(BaseModel):
    """A stored prompt template."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(description="Unique prompt identifier")
    title: str = Field(description="Prompt title")
    content: str = Field(description="Template text")
    description: Optional[str] = Field(default=None, description="Optional description")
    tags: List[str] = Field(default_factory=list, description="Keyword labels")
    category: str = Field(description="Grouping label")
    variables: List[PromptVariable] = Field(default_factory=list, description="Declared placeholders")
    metadata: PromptMetadata

    def to_document(self) -> Dict[str, Any]:
        """Serializable form with camelCase keys and absent optionals omitted."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
