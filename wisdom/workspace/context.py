"""Source context snapshot sent to the generation service.

Walks the project tree once (no directory watching) and renders a directory
tree followed by each monitored source file in a fenced block:

    path: Sources/App/main.swift
    ```swift:main.swift
    <content>
    ```
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)


@dataclass
class ContextConfig:
    """Which files make it into the snapshot."""

    monitored_file_types: list[str] = field(
        default_factory=lambda: ["swift", "tsx", "ts", "js", "py", "rs"]
    )
    excluded_directories: list[str] = field(default_factory=list)
    max_depth: int = 5
    max_file_size: int = 1_000_000


@dataclass
class SourceFile:
    relative_path: str
    content: str

    @property
    def file_type(self) -> str:
        return Path(self.relative_path).suffix.lstrip(".").lower()

    @property
    def name(self) -> str:
        return Path(self.relative_path).name

    def render(self) -> str:
        return (
            f"path: {self.relative_path}\n"
            f"```{self.file_type}:{self.name}\n"
            f"{self.content}\n"
            f"```"
        )


@dataclass
class ContextSnapshot:
    root: Path
    files: list[SourceFile] = field(default_factory=list)
    tree: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)

    def render(self) -> str:
        tree = "\n".join(self.tree)
        body = "\n\n".join(f.render() for f in self.files)
        return f"{tree}\n\n{body}" if body else tree


def collect_context(root: Path, config: ContextConfig) -> ContextSnapshot:
    """Walk `root` and collect monitored source files.

    Hidden entries and excluded directories are skipped, as are files over
    `max_file_size`, files that are not valid UTF-8 or cannot be read, and
    symlinks resolving outside `root`. Directories deeper than `max_depth`
    are not entered.
    """
    root = Path(root).resolve()
    snapshot = ContextSnapshot(root=root, tree=[f"{root.name}/"])
    monitored = {t.lower().lstrip(".") for t in config.monitored_file_types}
    excluded = set(config.excluded_directories)

    def _walk(directory: Path, depth: int) -> None:
        if depth > config.max_depth:
            return
        try:
            entries = sorted(directory.iterdir(), key=lambda p: (not p.is_dir(), p.name))
        except PermissionError:
            logger.warning("Access denied to directory %s", directory)
            snapshot.skipped.append(str(directory.relative_to(root)))
            return

        for entry in entries:
            if entry.name.startswith("."):
                continue
            relative = entry.relative_to(root).as_posix()
            if entry.is_symlink() and not _is_within(entry, root):
                logger.debug("Skipping symlink out of project root: %s", relative)
                snapshot.skipped.append(relative)
                continue
            indent = "  " * depth
            if entry.is_dir():
                if entry.name in excluded:
                    continue
                snapshot.tree.append(f"{indent}{entry.name}/")
                _walk(entry, depth + 1)
                continue

            snapshot.tree.append(f"{indent}{entry.name}")
            if entry.suffix.lstrip(".").lower() not in monitored:
                continue
            try:
                if entry.stat().st_size > config.max_file_size:
                    snapshot.skipped.append(relative)
                    continue
                content = entry.read_text(encoding="utf-8")
            except UnicodeDecodeError:
                snapshot.skipped.append(relative)
                continue
            except OSError as exc:
                # Dangling symlinks and unreadable files
                logger.debug("Cannot read %s: %s", relative, exc)
                snapshot.skipped.append(relative)
                continue
            snapshot.files.append(SourceFile(relative_path=relative, content=content))

    _walk(root, 1)
    logger.info(
        "Collected %d source files from %s (%d skipped)",
        len(snapshot.files), root, len(snapshot.skipped),
    )
    return snapshot


def _is_within(path: Path, root: Path) -> bool:
    """True if `path` resolves (following symlinks) to somewhere under `root`."""
    try:
        resolved = path.resolve()
    except (OSError, RuntimeError):
        # Symlink loops
        return False
    return resolved == root or root in resolved.parents
