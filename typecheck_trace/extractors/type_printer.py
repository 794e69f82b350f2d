"""
Lazy display-string resolution for type records.
"""

import logging
from typing import Dict, Mapping, Optional, Protocol

from ..core.records import TypeRecord

logger = logging.getLogger(__name__)


class TypePrinter(Protocol):
    """Renders a type id to a human-readable string, or None if it cannot."""

    def print_type(self, type_id: int) -> Optional[str]:
        ...


class RecordTypePrinter:
    """
    Renders types from the fields the compiler dumps into ``types*.json``.

    This is a fallback for when no live checker is attached: it only knows what
    the dump recorded (intrinsic names, symbol names, union and intersection
    members, type arguments), not the checker's full rendering.
    """

    def __init__(self, type_dictionary: Mapping[int, TypeRecord], max_depth: int = 3):
        self.type_dictionary = type_dictionary
        self.max_depth = max_depth

    def print_type(self, type_id: int) -> Optional[str]:
        return self._render(type_id, self.max_depth)

    def _render(self, type_id: int, depth: int) -> Optional[str]:
        record = self.type_dictionary.get(type_id)
        if record is None:
            return None
        if record.display:
            return record.display
        if record.intrinsic_name:
            return record.intrinsic_name

        extra = record.model_extra or {}
        if 'value' in extra:
            # Literal types
            value = extra['value']
            if isinstance(value, str):
                return f'"{value}"'
            if isinstance(value, bool):
                return 'true' if value else 'false'
            return str(value)
        if depth <= 0:
            return extra.get('symbolName') or '...'

        for key, separator in (('unionTypes', ' | '), ('intersectionTypes', ' & ')):
            members = extra.get(key)
            if members:
                return separator.join(self._render(m, depth - 1) or f"#{m}" for m in members)

        symbol = extra.get('symbolName')
        if symbol:
            arguments = extra.get('typeArguments') or extra.get('aliasTypeArguments')
            if arguments:
                rendered = ', '.join(self._render(a, depth - 1) or f"#{a}" for a in arguments)
                return f"{symbol}<{rendered}>"
            return symbol
        return None


class TypeDisplayResolver:
    """Fills in ``display`` on demand, at most one printer call per type id."""

    def __init__(self, printer: Optional[TypePrinter] = None):
        self.printer = printer
        self._cache: Dict[int, Optional[str]] = {}

    def resolve(self, record: TypeRecord) -> TypeRecord:
        """
        Make sure a type record carries its display string if one can be produced.

        Records that already have a display are returned untouched. A printer
        failure leaves the record without a display instead of failing the
        request that asked for it.

        Args:
            record: Type record to resolve (updated in place)

        Returns:
            The same record
        """
        if record.display or self.printer is None:
            return record

        if record.id not in self._cache:
            try:
                self._cache[record.id] = self.printer.print_type(record.id)
            except Exception as e:
                logger.warning(f"could not print type {record.id}: {e}")
                self._cache[record.id] = None

        display = self._cache[record.id]
        if display:
            record.display = display
        return record

    def clear(self) -> None:
        self._cache.clear()
