"""Service for storing, querying and ranking prompts."""

import asyncio
import logging
import re
import uuid
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from pydantic import ValidationError

from ..exceptions import InvalidPromptException
from ..models import INITIAL_VERSION, Prompt, PromptMetadata, PromptVariable, parse_timestamp, utc_now_iso
from ..schemas.prompt import (
    CreatePromptRequest,
    MostUsedPrompt,
    PaginatedResponse,
    SearchFilters,
    StatsResponse,
    UpdatePromptRequest,
)
from ..storage import StorageProvider

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 50
MOST_USED_COUNT = 5

# Relevance weights per matching field; each field counts once
TITLE_SCORE = 10
TAG_SCORE = 5
CATEGORY_SCORE = 3
DESCRIPTION_SCORE = 2
CONTENT_SCORE = 1


def dedupe_tags(tags: Iterable[str]) -> List[str]:
    """Drop exact duplicates, keeping first-seen order (case-sensitive)."""
    return list(dict.fromkeys(tags))


def increment_version(version: str) -> str:
    """Bump the patch component of a semantic version string."""
    parts = version.split(".")
    major = parts[0] or "0"
    minor = parts[1] if len(parts) > 1 else "0"
    match = re.match(r"\d+", parts[2]) if len(parts) > 2 else None
    patch = int(match.group()) if match else 0
    return f"{major}.{minor}.{patch + 1}"


def relevance_score(prompt: Prompt, query: str) -> int:
    """Score a prompt by which of its fields contain the query."""
    query_lower = query.lower()
    score = 0
    if query_lower in prompt.title.lower():
        score += TITLE_SCORE
    if any(query_lower in tag.lower() for tag in prompt.tags):
        score += TAG_SCORE
    if query_lower in prompt.category.lower():
        score += CATEGORY_SCORE
    if prompt.description and query_lower in prompt.description.lower():
        score += DESCRIPTION_SCORE
    if query_lower in prompt.content.lower():
        score += CONTENT_SCORE
    return score


def _matches_category(prompt: Prompt, category: str) -> bool:
    return category.lower() in prompt.category.lower()


def _matches_any_tag(prompt: Prompt, tags: List[str]) -> bool:
    return any(tag.lower() in own.lower() for tag in tags for own in prompt.tags)


def _matches_title(prompt: Prompt, title: str) -> bool:
    title_lower = title.lower()
    return title_lower in prompt.title.lower() or bool(
        prompt.description and title_lower in prompt.description.lower()
    )


def _paginate(
    prompts: List[Prompt], filters: SearchFilters, default_limit: int = DEFAULT_LIMIT
) -> PaginatedResponse[Prompt]:
    limit = filters.limit or default_limit
    offset = filters.offset or 0
    return PaginatedResponse[Prompt](
        items=prompts[offset:offset + limit],
        total=len(prompts),
        limit=limit,
        offset=offset,
    )


class PromptService:
    """In-memory prompt library with write-through persistence.

    The collection is loaded from storage once and kept in memory. Every
    operation that changes a prompt writes the whole collection back through
    the storage provider before the change becomes visible.

    Note that ``get_prompt`` is a write: it bumps the usage counter and
    persists, so it is neither free nor idempotent.
    """

    def __init__(self, storage: StorageProvider, default_limit: int = DEFAULT_LIMIT):
        self.storage = storage
        self.default_limit = default_limit
        self._prompts: Dict[str, Prompt] = {}
        self._initialized = False
        self._init_lock = asyncio.Lock()
        self._write_lock = asyncio.Lock()

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def initialize(self) -> None:
        """Load prompts from storage; later calls are no-ops."""
        async with self._init_lock:
            if self._initialized:
                return
            self._prompts = self.storage.load()
            self._initialized = True
            logger.info(f"Prompt service initialized with {len(self._prompts)} prompts")

    async def ensure_initialized(self) -> None:
        if not self._initialized:
            await self.initialize()

    async def create_prompt(
        self, request: Union[CreatePromptRequest, Mapping[str, Any]]
    ) -> Prompt:
        """Create and persist a new prompt."""
        request = _coerce(CreatePromptRequest, request)
        await self.ensure_initialized()

        now = utc_now_iso()
        prompt = Prompt(
            id=str(uuid.uuid4()),
            title=request.title,
            content=request.content,
            description=request.description,
            tags=dedupe_tags(request.tags),
            category=request.category,
            variables=_to_variables(request.variables or []),
            metadata=PromptMetadata(
                created_at=now,
                updated_at=now,
                version=INITIAL_VERSION,
                author=request.author,
                usage=0,
            ),
        )

        async with self._write_lock:
            self._commit({**self._prompts, prompt.id: prompt})

        logger.info(f"Created prompt {prompt.id} ('{prompt.title}')")
        return prompt

    async def get_prompt(self, prompt_id: str) -> Optional[Prompt]:
        """Return a prompt and count the retrieval, or None if absent."""
        await self.ensure_initialized()

        async with self._write_lock:
            existing = self._prompts.get(prompt_id)
            if existing is None:
                return None

            metadata = existing.metadata.model_copy(update={"usage": existing.metadata.usage + 1})
            prompt = existing.model_copy(update={"metadata": metadata})
            self._commit({**self._prompts, prompt_id: prompt})

        return prompt

    async def update_prompt(
        self, prompt_id: str, request: Union[UpdatePromptRequest, Mapping[str, Any]]
    ) -> Optional[Prompt]:
        """Apply the fields present in ``request``; None if the prompt is absent."""
        request = _coerce(UpdatePromptRequest, request)
        await self.ensure_initialized()

        changes: Dict[str, Any] = {}
        for field in request.model_fields_set:
            value = getattr(request, field)
            if value is None and field != "description":
                continue
            if field == "tags":
                value = dedupe_tags(value)
            elif field == "variables":
                value = _to_variables(value)
            changes[field] = value

        async with self._write_lock:
            existing = self._prompts.get(prompt_id)
            if existing is None:
                return None

            metadata = existing.metadata.model_copy(
                update={
                    "updated_at": utc_now_iso(),
                    "version": increment_version(existing.metadata.version),
                }
            )
            prompt = existing.model_copy(update={**changes, "metadata": metadata})
            self._commit({**self._prompts, prompt_id: prompt})

        logger.info(f"Updated prompt {prompt_id} to version {prompt.metadata.version}")
        return prompt

    async def delete_prompt(self, prompt_id: str) -> bool:
        """Delete a prompt; False if it does not exist."""
        await self.ensure_initialized()

        async with self._write_lock:
            if prompt_id not in self._prompts:
                return False
            remaining = {key: p for key, p in self._prompts.items() if key != prompt_id}
            self._commit(remaining)

        logger.info(f"Deleted prompt {prompt_id}")
        return True

    async def list_prompts(self, filters: Optional[SearchFilters] = None) -> PaginatedResponse[Prompt]:
        """Filter, order by usage then recency, and paginate."""
        filters = filters or SearchFilters()
        await self.ensure_initialized()

        prompts = list(self._prompts.values())
        if filters.category:
            prompts = [p for p in prompts if _matches_category(p, filters.category)]
        if filters.tags:
            prompts = [p for p in prompts if _matches_any_tag(p, filters.tags)]
        if filters.title:
            prompts = [p for p in prompts if _matches_title(p, filters.title)]

        prompts.sort(
            key=lambda p: (p.metadata.usage, parse_timestamp(p.metadata.updated_at)),
            reverse=True,
        )
        return _paginate(prompts, filters, self.default_limit)

    async def search_prompts(
        self, query: str, filters: Optional[SearchFilters] = None
    ) -> PaginatedResponse[Prompt]:
        """Free-text search ranked by relevance, then usage."""
        filters = filters or SearchFilters()
        await self.ensure_initialized()

        scored = [(relevance_score(p, query), p) for p in self._prompts.values()]
        scored = [(score, p) for score, p in scored if score > 0]
        if filters.category:
            scored = [(score, p) for score, p in scored if _matches_category(p, filters.category)]
        if filters.tags:
            scored = [(score, p) for score, p in scored if _matches_any_tag(p, filters.tags)]

        scored.sort(key=lambda item: (item[0], item[1].metadata.usage), reverse=True)
        logger.debug(f"Search '{query}' matched {len(scored)} prompts")
        return _paginate([p for _, p in scored], filters, self.default_limit)

    async def get_categories(self) -> List[str]:
        await self.ensure_initialized()
        return sorted({p.category for p in self._prompts.values()})

    async def get_tags(self) -> List[str]:
        await self.ensure_initialized()
        return sorted({tag for p in self._prompts.values() for tag in p.tags})

    async def get_stats(self) -> StatsResponse:
        """Totals plus the most retrieved prompts."""
        await self.ensure_initialized()

        prompts = list(self._prompts.values())
        most_used = sorted(prompts, key=lambda p: p.metadata.usage, reverse=True)[:MOST_USED_COUNT]
        return StatsResponse(
            total_prompts=len(prompts),
            total_categories=len(await self.get_categories()),
            total_tags=len(await self.get_tags()),
            most_used_prompts=[
                MostUsedPrompt(id=p.id, title=p.title, usage=p.metadata.usage) for p in most_used
            ],
        )

    def _commit(self, prompts: Dict[str, Prompt]) -> None:
        # Persist first so a failed save leaves memory matching the file
        self.storage.save(prompts)
        self._prompts = prompts


def _coerce(schema, request):
    if isinstance(request, schema):
        return request
    try:
        return schema.model_validate(request)
    except ValidationError as e:
        raise InvalidPromptException(f"Invalid prompt data: {e}") from e


def _to_variables(variables) -> List[PromptVariable]:
    return [PromptVariable.model_validate(v.model_dump(by_alias=True)) for v in variables]
