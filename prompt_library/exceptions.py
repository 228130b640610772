"""Custom exceptions for the prompt library service."""

from fastapi import HTTPException, status


class PromptLibraryException(Exception):
    """Base exception for prompt library service."""

    pass


class StorageError(PromptLibraryException):
    """Raised when the prompts file cannot be read, parsed or written."""

    pass


class PromptNotFoundException(PromptLibraryException):
    """Raised when a prompt is not found."""

    pass


class InvalidPromptException(PromptLibraryException):
    """Raised when prompt data fails validation."""

    pass


# HTTP exception mappers
def map_to_http_exception(
    exc: PromptLibraryException, hide_details: bool = False
) -> HTTPException:
    """Map service exceptions to HTTP exceptions."""
    if isinstance(exc, PromptNotFoundException):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    elif isinstance(exc, InvalidPromptException):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    else:
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal server error" if hide_details else str(exc),
        )
