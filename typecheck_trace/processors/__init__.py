"""Processors for trace ingestion, tree construction and queries."""

from .file_processor import TraceFileProcessor
from .normalizer import EventNormalizer, result_timestamps
from .hierarchy_builder import TreeBuilder
from .tree_index import TreeIndex
from .query_engine import TreeQuery
from .trace_collector import TraceCollector

__all__ = [
    "TraceFileProcessor",
    "EventNormalizer",
    "result_timestamps",
    "TreeBuilder",
    "TreeIndex",
    "TreeQuery",
    "TraceCollector",
]
