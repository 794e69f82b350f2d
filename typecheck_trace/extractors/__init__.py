"""Path and type display helpers for trace records."""

from .path_normalizer import WorkspacePathNormalizer
from .type_printer import RecordTypePrinter, TypeDisplayResolver, TypePrinter

__all__ = ["WorkspacePathNormalizer", "RecordTypePrinter", "TypeDisplayResolver", "TypePrinter"]
