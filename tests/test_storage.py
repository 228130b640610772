"""
Tests for the YAML file storage and its backup rotation.
"""

import pathlib
from pathlib import Path

import pytest
import yaml

from prompt_library.exceptions import StorageError
from prompt_library.storage import BACKUP_PREFIX, FileStorage, check_record


VALID_RECORD_YAML = """
valid-prompt:
  id: "123"
  title: "Valid Prompt"
  content: "Valid content"
  tags: ["test"]
  category: "testing"
  metadata:
    createdAt: "2023-01-01T00:00:00.000Z"
    updatedAt: "2023-01-01T00:00:00.000Z"
    version: "1.0.0"
    usage: 0
"""


def write_prompts_file(storage: FileStorage, content: str) -> None:
    storage.data_dir.mkdir(parents=True, exist_ok=True)
    storage.data_path.write_text(content, encoding="utf-8")


class TestLoad:
    """Tests for FileStorage.load."""

    def test_missing_file_returns_empty_and_creates_file(self, file_storage: FileStorage) -> None:
        """Should create an empty prompts file when none exists."""
        assert file_storage.load() == {}
        assert file_storage.data_path.exists()
        assert yaml.safe_load(file_storage.data_path.read_text(encoding="utf-8")) == {}

    def test_round_trip(self, file_storage: FileStorage, prompt_factory) -> None:
        """Saved prompts should load back unchanged."""
        first = prompt_factory(title="First", description="Has a description", tags=["a", "b"], usage=3)
        second = prompt_factory(title="Second", category="writing", version="1.0.7")
        prompts = {first.id: first, second.id: second}

        file_storage.save(prompts)

        assert file_storage.load() == prompts

    @pytest.mark.asyncio
    async def test_round_trip_keeps_variables(self, file_storage: FileStorage, service, prompt_data) -> None:
        """Variables with and without defaults should survive a reload."""
        created = await service.create_prompt(prompt_data())

        loaded = FileStorage(data_dir=file_storage.data_dir).load()

        assert loaded[created.id] == created
        assert loaded[created.id].variables[0].default_value == "python"
        assert loaded[created.id].variables[1].default_value is None

    def test_corrupted_yaml_raises_storage_error(self, file_storage: FileStorage) -> None:
        """Malformed YAML is fatal for the whole load."""
        write_prompts_file(file_storage, "invalid: yaml: content: [")

        with pytest.raises(StorageError, match="Failed to load prompts"):
            file_storage.load()

    def test_undecodable_file_raises_storage_error(self, file_storage: FileStorage) -> None:
        """Bytes that are not UTF-8 are a load failure, not a crash."""
        file_storage.data_dir.mkdir(parents=True)
        file_storage.data_path.write_bytes(b"abc:\n  title: \xff\xfe bad\n")

        with pytest.raises(StorageError, match="Failed to load prompts"):
            file_storage.load()

    def test_invalid_records_are_skipped(self, file_storage: FileStorage) -> None:
        """Records missing required fields should be dropped individually."""
        write_prompts_file(
            file_storage,
            VALID_RECORD_YAML
            + """
invalid-prompt:
  id: "456"
  title: "Invalid Prompt"

another-invalid:
  not: "a prompt"
""",
        )

        result = file_storage.load()

        assert list(result) == ["valid-prompt"]
        assert result["valid-prompt"].title == "Valid Prompt"
        assert len(file_storage.load_warnings) == 2
        assert any("invalid-prompt" in w for w in file_storage.load_warnings)

    def test_record_with_null_metadata_is_skipped(self, file_storage: FileStorage) -> None:
        write_prompts_file(
            file_storage,
            VALID_RECORD_YAML
            + """
no-metadata:
  id: "789"
  title: "No metadata"
  content: "x"
  tags: []
  category: "testing"
  metadata: null
""",
        )

        assert list(file_storage.load()) == ["valid-prompt"]

    def test_non_mapping_document_yields_empty(self, file_storage: FileStorage) -> None:
        write_prompts_file(file_storage, "- just\n- a\n- list\n")

        assert file_storage.load() == {}
        assert len(file_storage.load_warnings) == 1

    def test_unquoted_timestamps_and_missing_usage(self, file_storage: FileStorage) -> None:
        """Hand-edited files may carry YAML timestamps and omit usage."""
        write_prompts_file(
            file_storage,
            """
abc:
  id: abc
  title: Hand written
  content: Body
  tags: [one]
  category: misc
  metadata:
    createdAt: 2023-05-01T10:00:00Z
    updatedAt: 2023-05-02T10:00:00Z
    version: 1.0.0
""",
        )

        prompt = file_storage.load()["abc"]

        assert prompt.metadata.created_at == "2023-05-01T10:00:00.000Z"
        assert prompt.metadata.updated_at == "2023-05-02T10:00:00.000Z"
        assert prompt.metadata.usage == 0


class TestCheckRecord:
    """Tests for per-record validation."""

    def test_accepts_well_formed_record(self) -> None:
        record = yaml.safe_load(VALID_RECORD_YAML)["valid-prompt"]
        prompt, warning = check_record("valid-prompt", record)
        assert prompt is not None
        assert warning is None

    def test_rejects_tags_that_are_not_a_list(self) -> None:
        record = yaml.safe_load(VALID_RECORD_YAML)["valid-prompt"]
        record["tags"] = "test"
        prompt, warning = check_record("valid-prompt", record)
        assert prompt is None
        assert "tags" in warning

    def test_rejects_record_failing_model_validation(self) -> None:
        record = yaml.safe_load(VALID_RECORD_YAML)["valid-prompt"]
        del record["metadata"]["createdAt"]
        prompt, warning = check_record("valid-prompt", record)
        assert prompt is None
        assert "createdAt" in warning


class TestSave:
    """Tests for FileStorage.save."""

    def test_writes_readable_yaml(self, file_storage: FileStorage, prompt_factory) -> None:
        prompt = prompt_factory(title="Test Prompt", content="Test content")

        file_storage.save({prompt.id: prompt})

        content = file_storage.data_path.read_text(encoding="utf-8")
        assert "title: Test Prompt" in content
        assert "Test content" in content
        assert "createdAt" in content
        # Absent optional fields are omitted rather than written as null
        assert "description" not in content
        assert "null" not in content

    def test_leaves_no_temporary_files(self, file_storage: FileStorage, prompt_factory) -> None:
        prompt = prompt_factory()
        file_storage.save({prompt.id: prompt})
        file_storage.save({})

        leftovers = [p for p in file_storage.data_dir.iterdir() if p.name.endswith(".tmp")]
        assert leftovers == []

    def test_creates_backup_before_overwrite(self, file_storage: FileStorage, prompt_factory) -> None:
        prompt = prompt_factory(title="Initial Prompt")
        file_storage.save({prompt.id: prompt})
        assert file_storage.list_backups() == []

        updated = prompt.model_copy(update={"title": "Updated Prompt"})
        file_storage.save({prompt.id: updated})

        backups = file_storage.list_backups()
        assert len(backups) == 1
        assert backups[0].name.startswith(BACKUP_PREFIX)
        assert backups[0].name.endswith(".yaml")
        assert "Initial Prompt" in backups[0].read_text(encoding="utf-8")

    def test_io_failure_raises_storage_error(self, tmp_path: Path) -> None:
        blocker = tmp_path / "not-a-directory"
        blocker.write_text("x", encoding="utf-8")
        storage = FileStorage(data_dir=blocker)

        with pytest.raises(StorageError, match="Failed to save prompts"):
            storage.save({})


class TestBackup:
    """Tests for FileStorage.backup and rotation."""

    def test_backup_without_file_is_noop(self, file_storage: FileStorage) -> None:
        file_storage.backup()
        assert file_storage.list_backups() == []

    def test_backup_creates_timestamped_copy(self, file_storage: FileStorage) -> None:
        file_storage.save({})
        file_storage.backup()

        backups = file_storage.list_backups()
        assert len(backups) == 1
        assert backups[0].name.startswith(BACKUP_PREFIX)

    def test_backup_names_are_strictly_increasing(self, file_storage: FileStorage) -> None:
        file_storage.save({})
        for _ in range(5):
            file_storage.backup()

        names = [p.name for p in file_storage.list_backups()]
        assert len(names) == 5
        assert names == sorted(names, reverse=True)
        assert len(set(names)) == 5

    def test_retains_ten_most_recent_backups(self, file_storage: FileStorage, prompt_factory) -> None:
        """After 12 saves over an existing file exactly the 10 newest backups remain."""
        file_storage.save({})
        created = []
        for i in range(12):
            prompt = prompt_factory(title=f"Prompt {i}")
            file_storage.save({prompt.id: prompt})
            created.append(file_storage.list_backups()[0].name)

        remaining = [p.name for p in file_storage.list_backups()]
        assert len(remaining) == 10
        assert sorted(remaining) == sorted(created[-10:])

    def test_prune_failure_does_not_abort_save(
        self, data_dir: Path, prompt_factory, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        storage = FileStorage(data_dir=data_dir, max_backups=1)
        storage.save({})
        storage.save({})

        def refuse_unlink(self, missing_ok=False):
            raise PermissionError("read-only backup directory")

        monkeypatch.setattr(pathlib.Path, "unlink", refuse_unlink)

        prompt = prompt_factory(title="Still saved")
        storage.save({prompt.id: prompt})

        monkeypatch.undo()
        assert len(storage.list_backups()) == 2
        assert storage.load()[prompt.id].title == "Still saved"
