from __future__ import annotations

import pytest
from pathlib import Path
from unittest.mock import patch

from npmaudit.utils.filesystem import (
    _validated_file,
    _atomic_write,
    safe_read_file,
    safe_write_file,
    safe_delete_file,
    validate_path,
)
from npmaudit.exceptions import FileOperationError


@pytest.fixture
def manifest_file(tmp_path: Path) -> Path:
    """Create a small package.json on disk.

    Returns:
        Path to the created file.
    """
    path = tmp_path / "package.json"
    path.write_text('{"dependencies": {"left-pad": "^1.0.0"}}', encoding="utf-8")
    return path


@pytest.mark.unit
class TestValidatedFile:
    """Tests for _validated_file helper."""

    def test_validates_existing_file(self, manifest_file: Path) -> None:
        assert _validated_file(manifest_file) == manifest_file.resolve()

    def test_rejects_nonexistent_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileOperationError) as exc_info:
            _validated_file(tmp_path / "missing.json")

        assert "not found" in str(exc_info.value).lower()
        assert exc_info.value.operation == "read"

    def test_rejects_directory(self, tmp_path: Path) -> None:
        with pytest.raises(FileOperationError, match="Not a file"):
            _validated_file(tmp_path)


@pytest.mark.unit
class TestAtomicWrite:
    """Tests for _atomic_write helper."""

    def test_writes_content_and_creates_parents(self, tmp_path: Path) -> None:
        target = tmp_path / "nested" / "dir" / "report.json"

        _atomic_write(target, "{}")

        assert target.read_text(encoding="utf-8") == "{}"

    def test_leaves_no_temp_files(self, tmp_path: Path) -> None:
        target = tmp_path / "report.json"

        _atomic_write(target, "content")

        assert [p.name for p in tmp_path.iterdir()] == ["report.json"]

    def test_cleans_up_temp_file_on_failure(self, tmp_path: Path) -> None:
        """Test the temp file is removed and the error wrapped on failure."""
        target = tmp_path / "report.json"

        with patch("npmaudit.utils.filesystem.os.fsync", side_effect=OSError("disk full")):
            with pytest.raises(FileOperationError) as exc_info:
                _atomic_write(target, "content")

        assert exc_info.value.operation == "write"
        assert isinstance(exc_info.value.original_error, OSError)
        assert list(tmp_path.iterdir()) == []


@pytest.mark.unit
class TestSafeReadFile:
    """Tests for safe_read_file."""

    def test_reads_file_content(self, manifest_file: Path) -> None:
        assert "left-pad" in safe_read_file(manifest_file)

    def test_accepts_string_path(self, manifest_file: Path) -> None:
        assert "left-pad" in safe_read_file(str(manifest_file))

    def test_enforces_size_limit(self, tmp_path: Path) -> None:
        path = tmp_path / "big.json"
        path.write_text("x" * 100, encoding="utf-8")

        with pytest.raises(FileOperationError, match="too large"):
            safe_read_file(path, max_size=10)

    def test_no_size_limit_when_none(self, tmp_path: Path) -> None:
        path = tmp_path / "big.json"
        path.write_text("x" * 100, encoding="utf-8")

        assert len(safe_read_file(path, max_size=None)) == 100

    def test_handles_binary_decode_error(self, tmp_path: Path) -> None:
        path = tmp_path / "binary.json"
        path.write_bytes(b"\xff\xfe\x00\x81")

        with pytest.raises(FileOperationError, match="Failed to read"):
            safe_read_file(path)


@pytest.mark.unit
class TestSafeWriteFile:
    """Tests for safe_write_file."""

    def test_writes_content_to_new_file(self, tmp_path: Path) -> None:
        target = tmp_path / "cache" / "last-report.json"

        result = safe_write_file(target, '{"name": "demo"}')

        assert result == target
        assert target.read_text(encoding="utf-8") == '{"name": "demo"}'

    def test_overwrites_existing_content(self, manifest_file: Path) -> None:
        safe_write_file(manifest_file, "new")

        assert manifest_file.read_text(encoding="utf-8") == "new"


@pytest.mark.unit
class TestSafeDeleteFile:
    """Tests for safe_delete_file."""

    def test_deletes_existing_file(self, manifest_file: Path) -> None:
        assert safe_delete_file(manifest_file) is True
        assert not manifest_file.exists()

    def test_returns_false_for_missing_file(self, tmp_path: Path) -> None:
        assert safe_delete_file(tmp_path / "missing.json") is False

    def test_wraps_os_errors(self, manifest_file: Path) -> None:
        with patch.object(Path, "unlink", side_effect=PermissionError("denied")):
            with pytest.raises(FileOperationError) as exc_info:
                safe_delete_file(manifest_file)

        assert exc_info.value.operation == "delete"


@pytest.mark.unit
class TestValidatePath:
    """Tests for validate_path."""

    def test_resolves_absolute_path(self, manifest_file: Path) -> None:
        assert validate_path(manifest_file) == manifest_file.resolve()

    def test_expands_tilde(self) -> None:
        result = validate_path("~/npmaudit/packages.db")

        assert result == (Path.home() / "npmaudit" / "packages.db").resolve()

    def test_allows_path_within_base_dir(self, tmp_path: Path) -> None:
        inner = tmp_path / "sub" / "file.db"

        assert validate_path(inner, base_dir=tmp_path) == inner.resolve()

    def test_rejects_path_outside_base_dir(self, tmp_path: Path) -> None:
        with pytest.raises(FileOperationError, match="outside"):
            validate_path(tmp_path / ".." / "elsewhere", base_dir=tmp_path)
