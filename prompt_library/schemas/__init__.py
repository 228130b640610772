"""Pydantic schemas for API request/response models."""

from .prompt import (
    ApiResponse,
    CreatePromptRequest,
    MostUsedPrompt,
    PaginatedResponse,
    PromptVariableSchema,
    SearchFilters,
    StatsResponse,
    UpdatePromptRequest,
)

__all__ = [
    "ApiResponse",
    "CreatePromptRequest",
    "MostUsedPrompt",
    "PaginatedResponse",
    "PromptVariableSchema",
    "SearchFilters",
    "StatsResponse",
    "UpdatePromptRequest",
]
