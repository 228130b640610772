"""Entry point for running the service as a module with `python -m prompt_library`."""

import uvicorn

from .config import get_settings
from .utils.logging_utils import setup_logging

if __name__ == "__main__":
    settings = get_settings()
    setup_logging(
        service_name=settings.service_name,
        log_file=settings.log_file,
        log_level=settings.log_level,
        log_dir=settings.log_dir,
        log_to_file=settings.log_to_file,
    )
    uvicorn.run(
        "prompt_library.main:app",
        host=settings.host,
        port=settings.port,
        log_config=None,
    )
