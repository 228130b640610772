"""
Pytest configuration and fixtures for prompt library tests.
"""

import uuid
from pathlib import Path
from typing import Callable, Dict, List, Optional

import pytest
from fastapi.testclient import TestClient

from prompt_library.config import Settings
from prompt_library.exceptions import StorageError
from prompt_library.main import create_app
from prompt_library.models import Prompt, PromptMetadata
from prompt_library.services.prompt_service import PromptService
from prompt_library.storage import FileStorage, StorageProvider


class InMemoryStorage(StorageProvider):
    """Storage double that keeps the collection in a dict."""

    def __init__(self, prompts: Optional[Dict[str, Prompt]] = None, fail_on_save: bool = False):
        self.prompts: Dict[str, Prompt] = dict(prompts or {})
        self.fail_on_save = fail_on_save
        self.load_calls = 0
        self.save_calls = 0

    def load(self) -> Dict[str, Prompt]:
        self.load_calls += 1
        return dict(self.prompts)

    def save(self, prompts: Dict[str, Prompt]) -> None:
        if self.fail_on_save:
            raise StorageError("Failed to save prompts: disk full")
        self.save_calls += 1
        self.prompts = dict(prompts)

    def backup(self) -> None:
        pass


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    """Directory for the prompts file; not created up front."""
    return tmp_path / "data"


@pytest.fixture
def file_storage(data_dir: Path) -> FileStorage:
    return FileStorage(data_dir=data_dir, max_backups=10)


@pytest.fixture
def memory_storage() -> InMemoryStorage:
    return InMemoryStorage()


@pytest.fixture
def service(file_storage: FileStorage) -> PromptService:
    return PromptService(file_storage)


@pytest.fixture
def prompt_data() -> Callable[..., dict]:
    """Build a valid create request body."""

    def _build(**overrides) -> dict:
        data = {
            "title": "Code Review Assistant",
            "content": "Review the following {{language}} code:\n\n{{code}}",
            "description": "Reviews code for bugs and style issues",
            "tags": ["coding", "review"],
            "category": "coding",
            "variables": [
                {
                    "name": "language",
                    "description": "Programming language",
                    "type": "string",
                    "required": True,
                    "defaultValue": "python",
                },
                {
                    "name": "code",
                    "description": "Code to review",
                    "type": "string",
                    "required": True,
                },
            ],
            "author": "jane",
        }
        data.update(overrides)
        return data

    return _build


@pytest.fixture
def prompt_factory() -> Callable[..., Prompt]:
    """Build stored prompts with explicit metadata."""

    def _build(
        title: str = "Prompt",
        content: str = "Content",
        description: Optional[str] = None,
        tags: Optional[List[str]] = None,
        category: str = "general",
        usage: int = 0,
        version: str = "1.0.0",
        updated_at: str = "2024-01-01T00:00:00.000Z",
        prompt_id: Optional[str] = None,
    ) -> Prompt:
        return Prompt(
            id=prompt_id or str(uuid.uuid4()),
            title=title,
            content=content,
            description=description,
            tags=tags if tags is not None else [],
            category=category,
            metadata=PromptMetadata(
                created_at="2024-01-01T00:00:00.000Z",
                updated_at=updated_at,
                version=version,
                usage=usage,
            ),
        )

    return _build


@pytest.fixture
def test_settings(data_dir: Path) -> Settings:
    return Settings(data_dir=data_dir, log_to_file=False, environment="development")


@pytest.fixture
def client(test_settings: Settings, file_storage: FileStorage):
    """Test client running the full application lifespan."""
    app = create_app(settings=test_settings, storage=file_storage)
    with TestClient(app) as test_client:
        yield test_client
