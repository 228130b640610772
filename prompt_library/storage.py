"""File storage for the prompt library.

The whole collection lives in one YAML document. Every overwrite is preceded
by a timestamped copy of the previous document in the backup directory, and
only the most recent copies are retained.
"""

import logging
import os
import shutil
import tempfile
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml
from pydantic import ValidationError

from .config import get_settings
from .exceptions import StorageError
from .models import Prompt

logger = logging.getLogger(__name__)

BACKUP_PREFIX = "prompts-backup-"
BACKUP_SUFFIX = ".yaml"
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

# Fields a record must carry, with the type each must have, to be loaded
REQUIRED_RECORD_FIELDS: Tuple[Tuple[str, type], ...] = (
    ("id", str),
    ("title", str),
    ("content", str),
    ("tags", list),
    ("category", str),
    ("metadata", dict),
)


class StorageProvider(ABC):
    """Persistence contract used by the prompt service."""

    @abstractmethod
    def load(self) -> Dict[str, Prompt]:
        """Return the full stored collection."""

    @abstractmethod
    def save(self, prompts: Dict[str, Prompt]) -> None:
        """Replace the stored collection with ``prompts``."""

    @abstractmethod
    def backup(self) -> None:
        """Snapshot the stored collection, if any."""


def check_record(key: str, value: Any) -> Tuple[Optional[Prompt], Optional[str]]:
    """Validate one stored record.

    Returns the parsed prompt, or ``None`` and the reason it was rejected.
    """
    if not isinstance(value, dict):
        return None, f"Invalid prompt data for key {key}: not a mapping"

    for field, expected in REQUIRED_RECORD_FIELDS:
        if not isinstance(value.get(field), expected):
            return None, f"Invalid prompt data for key {key}: '{field}' missing or not a {expected.__name__}"

    try:
        return Prompt.model_validate(value), None
    except ValidationError as e:
        errors = "; ".join(
            f"{'.'.join(str(loc) for loc in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        return None, f"Invalid prompt data for key {key}: {errors}"


class FileStorage(StorageProvider):
    """YAML file storage with backup rotation."""

    def __init__(
        self,
        data_dir: Optional[Path] = None,
        file_name: Optional[str] = None,
        backup_dir_name: Optional[str] = None,
        max_backups: Optional[int] = None,
    ):
        """Initialize storage; unset arguments fall back to settings."""
        settings = get_settings()
        self.data_dir = Path(data_dir or settings.data_dir)
        self.data_path = self.data_dir / (file_name or settings.data_file_name)
        self.backup_path = self.data_dir / (backup_dir_name or settings.backup_dir_name)
        self.max_backups = max_backups or settings.max_backups
        self.load_warnings: List[str] = []
        self._last_backup_us = 0

    def load(self) -> Dict[str, Prompt]:
        """Load all prompts, dropping records that fail validation."""
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)

            if not self.data_path.exists():
                logger.info(f"Prompts file {self.data_path} not found, creating an empty one")
                self.save({})
                return {}

            with open(self.data_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except StorageError:
            raise
        except (OSError, UnicodeDecodeError, yaml.YAMLError) as e:
            logger.error(f"Error loading prompts from {self.data_path}: {e}")
            raise StorageError(f"Failed to load prompts: {e}") from e

        return self._validate_records(data)

    def save(self, prompts: Dict[str, Prompt]) -> None:
        """Write all prompts, backing up the previous file first."""
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)

            if self.data_path.exists():
                self.backup()

            document = {key: prompt.to_document() for key, prompt in prompts.items()}
            content = yaml.safe_dump(
                document,
                default_flow_style=False,
                allow_unicode=True,
                sort_keys=False,
                indent=2,
                width=120,
            )
            self._write_atomic(content)
        except StorageError:
            raise
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Error saving prompts to {self.data_path}: {e}")
            raise StorageError(f"Failed to save prompts: {e}") from e

        logger.debug(f"Saved {len(prompts)} prompts to {self.data_path}")

    def backup(self) -> None:
        """Copy the current prompts file into the backup directory."""
        if not self.data_path.exists():
            return

        try:
            self.backup_path.mkdir(parents=True, exist_ok=True)
            backup_file = self.backup_path / f"{BACKUP_PREFIX}{self._next_backup_stamp()}{BACKUP_SUFFIX}"
            shutil.copy2(self.data_path, backup_file)
        except OSError as e:
            logger.error(f"Error creating backup of {self.data_path}: {e}")
            raise StorageError(f"Failed to create backup: {e}") from e

        logger.debug(f"Created backup {backup_file.name}")
        self._cleanup_old_backups()

    def list_backups(self) -> List[Path]:
        """Backup files, newest first."""
        if not self.backup_path.exists():
            return []
        backups = [
            p
            for p in self.backup_path.iterdir()
            if p.is_file() and p.name.startswith(BACKUP_PREFIX) and p.name.endswith(BACKUP_SUFFIX)
        ]
        return sorted(backups, key=lambda p: p.name, reverse=True)

    def _validate_records(self, data: Any) -> Dict[str, Prompt]:
        self.load_warnings = []

        if data is None:
            return {}
        if not isinstance(data, dict):
            warning = f"Prompts file {self.data_path} does not contain a mapping, ignoring its content"
            logger.warning(warning)
            self.load_warnings.append(warning)
            return {}

        result: Dict[str, Prompt] = {}
        for key, value in data.items():
            prompt, warning = check_record(str(key), value)
            if prompt is None:
                logger.warning(f"{warning}, skipping")
                self.load_warnings.append(warning)
                continue
            result[str(key)] = prompt

        if self.load_warnings:
            logger.warning(
                f"Loaded {len(result)} prompts, skipped {len(self.load_warnings)} invalid records"
            )
        else:
            logger.info(f"Loaded {len(result)} prompts from {self.data_path}")
        return result

    def _write_atomic(self, content: str) -> None:
        fd, tmp_name = tempfile.mkstemp(
            dir=self.data_dir, prefix=f".{self.data_path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
            os.replace(tmp_name, self.data_path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def _next_backup_stamp(self) -> str:
        # Strictly increasing within the process so filenames never collide
        now_us = (datetime.now(timezone.utc) - EPOCH) // timedelta(microseconds=1)
        stamp_us = max(now_us, self._last_backup_us + 1)
        self._last_backup_us = stamp_us
        stamp = EPOCH + timedelta(microseconds=stamp_us)
        return stamp.strftime("%Y-%m-%dT%H-%M-%S-%fZ")

    def _cleanup_old_backups(self) -> None:
        """Keep only the most recent backups."""
        try:
            for old_backup in self.list_backups()[self.max_backups:]:
                old_backup.unlink()
                logger.debug(f"Removed old backup {old_backup.name}")
        except OSError as e:
            logger.warning(f"Could not cleanup old backups: {e}")
