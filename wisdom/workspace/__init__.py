"""Reference apply collaborator and source-context snapshot."""

from wisdom.workspace.context import ContextConfig, ContextSnapshot, SourceFile, collect_context
from wisdom.workspace.files import FileOperationError, PathEscapeError, ProjectFiles

__all__ = [
    "ProjectFiles",
    "FileOperationError",
    "PathEscapeError",
    "collect_context",
    "ContextConfig",
    "ContextSnapshot",
    "SourceFile",
]
