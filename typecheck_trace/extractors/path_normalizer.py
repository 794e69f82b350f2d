"""
Workspace-relative path handling for source paths recorded in phase events.
"""

import os
from typing import Optional


class WorkspacePathNormalizer:
    """Rewrites absolute source paths relative to the workspace root and back."""

    def __init__(self, workspace_path: str):
        """
        Args:
            workspace_path: Absolute (or cwd-relative) workspace root directory
        """
        self.workspace_path = os.path.abspath(workspace_path)

    def to_relative(self, path: Optional[str]) -> Optional[str]:
        """
        Make an absolute path relative to the workspace root.

        Relative paths and empty values are returned unchanged. The result
        always uses forward slashes so it matches the compiler's own output.

        Args:
            path: Source path as recorded in the trace

        Returns:
            Workspace-relative path
        """
        if not path or not os.path.isabs(path):
            return path
        try:
            relative = os.path.relpath(path, self.workspace_path)
        except ValueError:
            # Different drive than the workspace on Windows
            return path
        return relative.replace(os.sep, '/')

    def to_absolute(self, path: str) -> str:
        if os.path.isabs(path):
            return path
        return os.path.join(self.workspace_path, path)

    @staticmethod
    def is_absolute(path: Optional[str]) -> bool:
        return bool(path) and os.path.isabs(path)
