"""API endpoints for prompt operations."""

import logging
import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError

from ..exceptions import PromptNotFoundException
from ..models import Prompt
from ..schemas.prompt import (
    ApiResponse,
    CreatePromptRequest,
    PaginatedResponse,
    SearchFilters,
    StatsResponse,
    UpdatePromptRequest,
)
from ..services.prompt_service import PromptService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/prompts", tags=["prompts"])

PROMPT_NOT_FOUND = "Prompt not found"
MAX_PAGE_LIMIT = 100


def get_prompt_service(request: Request) -> PromptService:
    """Dependency to get the application's prompt service."""
    return request.app.state.prompt_service


def split_tags(tags: Optional[List[str]]) -> Optional[List[str]]:
    """Accept both repeated `tags` params and comma-separated values."""
    if not tags:
        return None
    parsed = [tag.strip() for raw in tags for tag in raw.split(",") if tag.strip()]
    return parsed or None


def build_filters(**fields) -> SearchFilters:
    """Validate query filters, reporting failures like any other query error."""
    try:
        return SearchFilters(**fields)
    except ValidationError as e:
        raise RequestValidationError(
            [{**err, "loc": ("query", *err["loc"])} for err in e.errors(include_url=False)]
        ) from e


@router.post(
    "",
    response_model=ApiResponse[Prompt],
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
)
@router.post(
    "/",
    response_model=ApiResponse[Prompt],
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
    include_in_schema=False,
)
async def create_prompt(
    prompt_data: CreatePromptRequest,
    service: PromptService = Depends(get_prompt_service),
):
    """Create a new prompt."""
    prompt = await service.create_prompt(prompt_data)
    return ApiResponse[Prompt](success=True, data=prompt, message="Prompt created successfully")


@router.get("", response_model=ApiResponse[PaginatedResponse[Prompt]], response_model_exclude_none=True)
@router.get(
    "/",
    response_model=ApiResponse[PaginatedResponse[Prompt]],
    response_model_exclude_none=True,
    include_in_schema=False,
)
async def list_prompts(
    tags: Optional[List[str]] = Query(default=None, description="Filter by tags (comma-separated)"),
    category: Optional[str] = Query(default=None, min_length=1, max_length=100, description="Filter by category"),
    title: Optional[str] = Query(
        default=None, min_length=1, max_length=200, description="Filter by title or description"
    ),
    limit: Optional[int] = Query(default=None, ge=1, le=MAX_PAGE_LIMIT, description="Items per page (default 50)"),
    offset: Optional[int] = Query(default=None, ge=0, description="Number of items to skip"),
    service: PromptService = Depends(get_prompt_service),
):
    """Get a paginated list of prompts, most used first."""
    filters = build_filters(
        tags=split_tags(tags), category=category, title=title, limit=limit, offset=offset
    )
    result = await service.list_prompts(filters)
    return ApiResponse[PaginatedResponse[Prompt]](success=True, data=result)


@router.get("/search", response_model=ApiResponse[PaginatedResponse[Prompt]], response_model_exclude_none=True)
async def search_prompts(
    q: str = Query(..., min_length=1, max_length=200, description="Search query"),
    tags: Optional[List[str]] = Query(default=None, description="Filter by tags (comma-separated)"),
    category: Optional[str] = Query(default=None, min_length=1, max_length=100, description="Filter by category"),
    limit: Optional[int] = Query(default=None, ge=1, le=MAX_PAGE_LIMIT, description="Items per page (default 50)"),
    offset: Optional[int] = Query(default=None, ge=0, description="Number of items to skip"),
    service: PromptService = Depends(get_prompt_service),
):
    """Search prompts by free text, most relevant first."""
    filters = build_filters(tags=split_tags(tags), category=category, limit=limit, offset=offset)
    result = await service.search_prompts(q, filters)
    return ApiResponse[PaginatedResponse[Prompt]](success=True, data=result)


@router.get("/categories", response_model=ApiResponse[List[str]], response_model_exclude_none=True)
async def get_categories(service: PromptService = Depends(get_prompt_service)):
    """Get all categories."""
    return ApiResponse[List[str]](success=True, data=await service.get_categories())


@router.get("/tags", response_model=ApiResponse[List[str]], response_model_exclude_none=True)
async def get_tags(service: PromptService = Depends(get_prompt_service)):
    """Get all tags."""
    return ApiResponse[List[str]](success=True, data=await service.get_tags())


@router.get("/stats", response_model=ApiResponse[StatsResponse], response_model_exclude_none=True)
async def get_stats(service: PromptService = Depends(get_prompt_service)):
    """Get usage statistics."""
    return ApiResponse[StatsResponse](success=True, data=await service.get_stats())


@router.get("/{prompt_id}", response_model=ApiResponse[Prompt], response_model_exclude_none=True)
async def get_prompt(
    prompt_id: uuid.UUID,
    service: PromptService = Depends(get_prompt_service),
):
    """Get a prompt by ID. Each call increments the prompt's usage counter."""
    prompt = await service.get_prompt(str(prompt_id))
    if not prompt:
        raise PromptNotFoundException(PROMPT_NOT_FOUND)
    return ApiResponse[Prompt](success=True, data=prompt)


@router.put("/{prompt_id}", response_model=ApiResponse[Prompt], response_model_exclude_none=True)
async def update_prompt(
    prompt_id: uuid.UUID,
    prompt_data: UpdatePromptRequest,
    service: PromptService = Depends(get_prompt_service),
):
    """Update the fields sent in the body."""
    prompt = await service.update_prompt(str(prompt_id), prompt_data)
    if not prompt:
        raise PromptNotFoundException(PROMPT_NOT_FOUND)
    return ApiResponse[Prompt](success=True, data=prompt, message="Prompt updated successfully")


@router.delete("/{prompt_id}", response_model=ApiResponse, response_model_exclude_none=True)
async def delete_prompt(
    prompt_id: uuid.UUID,
    service: PromptService = Depends(get_prompt_service),
):
    """Delete a prompt."""
    deleted = await service.delete_prompt(str(prompt_id))
    if not deleted:
        raise PromptNotFoundException(PROMPT_NOT_FOUND)
    logger.debug(f"Prompt {prompt_id} deleted via API")
    return ApiResponse(success=True, message="Prompt deleted successfully")
