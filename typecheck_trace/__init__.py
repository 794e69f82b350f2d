"""
Typecheck Trace - type-checker trace reconstruction and query engine
"""

__version__ = "1.0.0"

from .core.engine import TraceEngine
from .core.tree import TreeNode
from .core.types import FileStat, TracerConfig

__all__ = ["TraceEngine", "TreeNode", "FileStat", "TracerConfig"]
