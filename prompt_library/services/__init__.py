"""Business logic services."""

from .prompt_service import PromptService

__all__ = [
    "PromptService",
]
