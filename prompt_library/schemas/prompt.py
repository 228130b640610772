"""Schemas for prompt API requests and responses."""

from typing import Annotated, Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, model_validator

from ..models import DefaultValue, VariableType

T = TypeVar("T")

TagStr = Annotated[str, StringConstraints(min_length=1, max_length=50)]
MAX_FILTER_TAGS = 10


class PromptVariableSchema(BaseModel):
    """Schema for a placeholder declaration."""

    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., min_length=1, max_length=100)
    description: str = Field(..., min_length=1, max_length=500)
    type: VariableType
    required: bool
    default_value: Optional[DefaultValue] = Field(default=None, alias="defaultValue")


class CreatePromptRequest(BaseModel):
    """Schema for prompt creation request."""

    title: str = Field(..., min_length=1, max_length=200)
    content: str = Field(..., min_length=1, max_length=50000)
    description: Optional[str] = Field(default=None, max_length=1000)
    tags: List[TagStr] = Field(..., max_length=20)
    category: str = Field(..., min_length=1, max_length=100)
    variables: Optional[List[PromptVariableSchema]] = Field(default=None, max_length=20)
    author: Optional[str] = Field(default=None, max_length=100)


class UpdatePromptRequest(BaseModel):
    """Schema for partial prompt update; only fields that are sent are applied."""

    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    content: Optional[str] = Field(default=None, min_length=1, max_length=50000)
    description: Optional[str] = Field(default=None, max_length=1000)
    tags: Optional[List[TagStr]] = Field(default=None, max_length=20)
    category: Optional[str] = Field(default=None, min_length=1, max_length=100)
    variables: Optional[List[PromptVariableSchema]] = Field(default=None, max_length=20)

    @model_validator(mode="after")
    def _require_one_field(self) -> "UpdatePromptRequest":
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided")
        return self


class SearchFilters(BaseModel):
    """Filters and pagination for listing and searching prompts."""

    tags: Optional[List[TagStr]] = Field(default=None, max_length=MAX_FILTER_TAGS)
    category: Optional[str] = Field(default=None, min_length=1, max_length=100)
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    limit: Optional[int] = Field(default=None, ge=0)
    offset: Optional[int] = Field(default=None, ge=0)


class PaginatedResponse(BaseModel, Generic[T]):
    """One page of results."""

    items: List[T]
    total: int = Field(description="Number of matches before pagination")
    limit: int
    offset: int


class MostUsedPrompt(BaseModel):
    """Prompt reduced to its usage figures."""

    id: str
    title: str
    usage: int


class StatsResponse(BaseModel):
    """Aggregate statistics over the whole library."""

    model_config = ConfigDict(populate_by_name=True)

    total_prompts: int = Field(alias="totalPrompts")
    total_categories: int = Field(alias="totalCategories")
    total_tags: int = Field(alias="totalTags")
    most_used_prompts: List[MostUsedPrompt] = Field(alias="mostUsedPrompts")


class ApiResponse(BaseModel, Generic[T]):
    """Envelope shared by every prompt endpoint."""

    success: bool
    data: Optional[T] = None
    error: Optional[str] = None
    message: Optional[str] = None
