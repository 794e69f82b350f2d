"""Core data model for trace reconstruction."""

from .errors import (
    LookupMissError,
    NodeNotFoundError,
    RecordValidationError,
    TraceError,
    TreeConstructionError,
    TypeNotFoundError,
)
from .records import PhaseEvent, TypeRecord, classify_record
from .tree import TreeNode
from .types import FileStat, TracerConfig

__all__ = [
    "TraceError",
    "RecordValidationError",
    "TreeConstructionError",
    "LookupMissError",
    "NodeNotFoundError",
    "TypeNotFoundError",
    "PhaseEvent",
    "TypeRecord",
    "classify_record",
    "TreeNode",
    "FileStat",
    "TracerConfig",
]
