"""Reference build collaborator: runs the build command and counts errors."""

from wisdom.build.runner import DEFAULT_ERROR_PATTERN, BuildRunner
from wisdom.build.types import BuildResult, BuildRunError

__all__ = ["BuildRunner", "BuildResult", "BuildRunError", "DEFAULT_ERROR_PATTERN"]
