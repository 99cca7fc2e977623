"""Tests for wisdom/workspace/files.py — applying operations to a project root."""

import os
import stat

import pytest

from wisdom.agent.types import Operation, OperationKind
from wisdom.workspace.files import FileOperationError, PathEscapeError, ProjectFiles


def _make_op(kind: str, path: str, content: str | None = None, op_id: str = "op-1") -> Operation:
    return Operation(id=op_id, language="swift", kind=OperationKind(kind), path=path, content=content)


# ---------------------------------------------------------------------------
# Path resolution
# ---------------------------------------------------------------------------

class TestResolve:
    def test_relative_path_inside_root(self, tmp_path) -> None:
        files = ProjectFiles(tmp_path)
        assert files.resolve("Sources/App/main.swift") == tmp_path.resolve() / "Sources/App/main.swift"

    @pytest.mark.parametrize("path", ["../outside.txt", "Sources/../../outside.txt"])
    def test_parent_traversal_rejected(self, tmp_path, path) -> None:
        files = ProjectFiles(tmp_path / "project")
        with pytest.raises(PathEscapeError):
            files.resolve(path)

    def test_absolute_path_rejected(self, tmp_path) -> None:
        files = ProjectFiles(tmp_path)
        with pytest.raises(PathEscapeError, match="Absolute path"):
            files.resolve(str(tmp_path / "main.swift"))

    def test_symlink_out_of_root_rejected(self, tmp_path) -> None:
        root = tmp_path / "project"
        root.mkdir()
        outside = tmp_path / "outside"
        outside.mkdir()
        (root / "link").symlink_to(outside)
        with pytest.raises(PathEscapeError):
            ProjectFiles(root).resolve("link/secret.txt")

    @pytest.mark.parametrize("path", ["", "   ", ".", "Sources/.."])
    def test_empty_or_root_path_rejected(self, tmp_path, path) -> None:
        with pytest.raises(FileOperationError):
            ProjectFiles(tmp_path).resolve(path)

    def test_inner_dotdot_that_stays_inside_is_allowed(self, tmp_path) -> None:
        files = ProjectFiles(tmp_path)
        assert files.resolve("Sources/../README.md") == tmp_path.resolve() / "README.md"


# ---------------------------------------------------------------------------
# Apply
# ---------------------------------------------------------------------------

class TestApply:
    @pytest.mark.asyncio
    async def test_create_writes_file_and_parents(self, tmp_path) -> None:
        files = ProjectFiles(tmp_path)
        await files.apply(_make_op("create", "Sources/App/main.swift", "print(\"hi\")\n"))
        target = tmp_path / "Sources/App/main.swift"
        assert target.read_text() == "print(\"hi\")\n"
        assert stat.S_IMODE(target.stat().st_mode) == 0o644

    @pytest.mark.asyncio
    async def test_update_replaces_content_and_keeps_mode(self, tmp_path) -> None:
        target = tmp_path / "build.sh"
        target.write_text("old")
        os.chmod(target, 0o755)
        await ProjectFiles(tmp_path).apply(_make_op("update", "build.sh", "new"))
        assert target.read_text() == "new"
        assert stat.S_IMODE(target.stat().st_mode) == 0o755

    @pytest.mark.asyncio
    async def test_update_creates_missing_file(self, tmp_path) -> None:
        await ProjectFiles(tmp_path).apply(_make_op("update", "new.swift", "// new"))
        assert (tmp_path / "new.swift").read_text() == "// new"

    @pytest.mark.asyncio
    async def test_non_ascii_content_round_trips(self, tmp_path) -> None:
        files = ProjectFiles(tmp_path)
        await files.apply(_make_op("create", "greeting.swift", "let s = \"こんにちは\"\r\n"))
        assert (tmp_path / "greeting.swift").read_bytes() == "let s = \"こんにちは\"\r\n".encode("utf-8")

    @pytest.mark.asyncio
    async def test_no_temp_files_left_behind(self, tmp_path) -> None:
        await ProjectFiles(tmp_path).apply(_make_op("create", "a.swift", "x"))
        assert [p.name for p in tmp_path.iterdir()] == ["a.swift"]

    @pytest.mark.asyncio
    async def test_delete_removes_file(self, tmp_path) -> None:
        target = tmp_path / "old.swift"
        target.write_text("x")
        await ProjectFiles(tmp_path).apply(_make_op("delete", "old.swift"))
        assert not target.exists()

    @pytest.mark.asyncio
    async def test_delete_missing_file_fails(self, tmp_path) -> None:
        with pytest.raises(FileOperationError, match="File not found"):
            await ProjectFiles(tmp_path).apply(_make_op("delete", "ghost.swift"))

    @pytest.mark.asyncio
    async def test_delete_directory_refused(self, tmp_path) -> None:
        (tmp_path / "Sources").mkdir()
        with pytest.raises(FileOperationError, match="directory"):
            await ProjectFiles(tmp_path).apply(_make_op("delete", "Sources"))
        assert (tmp_path / "Sources").is_dir()

    @pytest.mark.asyncio
    async def test_write_over_directory_refused(self, tmp_path) -> None:
        (tmp_path / "Sources").mkdir()
        with pytest.raises(FileOperationError, match="directory"):
            await ProjectFiles(tmp_path).apply(_make_op("update", "Sources", "x"))

    @pytest.mark.asyncio
    async def test_escape_is_rejected_before_touching_disk(self, tmp_path) -> None:
        root = tmp_path / "project"
        root.mkdir()
        with pytest.raises(PathEscapeError):
            await ProjectFiles(root).apply(_make_op("create", "../evil.swift", "x"))
        assert not (tmp_path / "evil.swift").exists()
