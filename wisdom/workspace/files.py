"""Project-rooted file applier.

Applies proposal operations to the project tree:
  create / update — write UTF-8 text, creating parent directories
  delete          — remove the file

Every operation's path is resolved against the project root and rejected
if it escapes it (absolute paths, `..` segments, or symlinks pointing
outside). Writes go through a temporary sibling file and `os.replace` so a
reader never sees a half-written file.
"""

import asyncio
import logging
import os
import tempfile
from pathlib import Path

from wisdom.agent.errors import MissingContentError
from wisdom.agent.types import Operation, OperationKind

logger = logging.getLogger(__name__)

# mkstemp creates 0600 files; new project files get the usual mode instead
_NEW_FILE_MODE = 0o644


class FileOperationError(Exception):
    """Raised when an operation cannot be applied to the project tree."""

    def __init__(self, message: str, path: str = ""):
        self.path = path
        super().__init__(message)


class PathEscapeError(FileOperationError):
    """The operation's path resolves outside the project root."""


class ProjectFiles:
    """Applies operations inside a single project root."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root).resolve()

    def resolve(self, relative_path: str) -> Path:
        """Resolve a repo-relative path, rejecting anything outside the root."""
        if not relative_path or not relative_path.strip():
            raise FileOperationError("Empty path", path=relative_path)
        candidate = Path(relative_path)
        if candidate.is_absolute():
            raise PathEscapeError(
                f"Absolute path not allowed: {relative_path}", path=relative_path
            )
        resolved = (self.root / candidate).resolve()
        if resolved != self.root and self.root not in resolved.parents:
            raise PathEscapeError(
                f"Path escapes project root: {relative_path}", path=relative_path
            )
        if resolved == self.root:
            raise FileOperationError(
                f"Path refers to the project root itself: {relative_path}", path=relative_path
            )
        return resolved

    async def apply(self, operation: Operation) -> None:
        """Apply one operation. Matches the agent's apply collaborator contract."""
        await asyncio.to_thread(self.apply_sync, operation)

    def apply_sync(self, operation: Operation) -> None:
        target = self.resolve(operation.path)

        if operation.kind is OperationKind.DELETE:
            self._delete(target, operation.path)
            return

        if operation.content is None:
            raise MissingContentError(operation.id, operation.kind.value)
        self._write(target, operation.content)
        logger.debug("%s %s", operation.kind.value, operation.path)

    def read(self, relative_path: str) -> str:
        return self.resolve(relative_path).read_text(encoding="utf-8")

    def _write(self, target: Path, content: str) -> None:
        if target.is_dir():
            raise FileOperationError(f"Cannot write over a directory: {target}", path=str(target))
        target.parent.mkdir(parents=True, exist_ok=True)
        mode = target.stat().st_mode & 0o7777 if target.exists() else _NEW_FILE_MODE

        fd, tmp_name = tempfile.mkstemp(dir=str(target.parent), prefix=f".{target.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="") as handle:
                handle.write(content)
            os.chmod(tmp_name, mode)
            os.replace(tmp_name, target)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    def _delete(self, target: Path, relative_path: str) -> None:
        if not target.exists():
            raise FileOperationError(f"File not found: {relative_path}", path=relative_path)
        if target.is_dir():
            raise FileOperationError(f"Refusing to delete a directory: {relative_path}", path=relative_path)
        target.unlink()
        logger.debug("delete %s", relative_path)
