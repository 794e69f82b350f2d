"""
Record shapes for the two kinds of lines a type-checker trace contains.

Phase events come from ``trace*.json`` files (Chrome trace-event format) and
type records from ``types*.json`` files. Both keep unknown fields so nothing
the compiler emits is lost on the way back to the consumer.
"""

from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, PrivateAttr, ValidationError
from pydantic.alias_generators import to_camel

from .errors import RecordValidationError

Number = Union[int, float]

# Phase letters of the Chrome trace-event format that the tree cares about
PHASE_BEGIN = 'B'
PHASE_END = 'E'
PHASE_COMPLETE = 'X'


class RecordModel(BaseModel):
    """Base model serialising to the camelCase names used on disk and on the wire."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra='allow',
    )

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class Location(RecordModel):
    line: int
    character: int


class ResultRef(RecordModel):
    type_id: Optional[int] = None


class PhaseArgs(RecordModel):
    path: Optional[str] = None
    kind: Optional[int] = None
    pos: Optional[int] = None
    end: Optional[int] = None
    location: Optional[Location] = None
    results: Optional[ResultRef] = None


class PhaseEvent(RecordModel):
    """One interval of compiler work (a ``trace*.json`` line)."""

    pid: int
    tid: int
    ph: str
    cat: str
    name: str
    ts: Number
    dur: Optional[Number] = None
    args: Optional[PhaseArgs] = None

    # Timestamp of the matching end marker; ts + dur can be off by one ulp
    _end_marker_ts: Optional[Number] = PrivateAttr(default=None)

    @property
    def end_ts(self) -> Number:
        if self._end_marker_ts is not None:
            return self._end_marker_ts
        return self.ts + (self.dur or 0)

    def close_at(self, end_ts: Number) -> None:
        """Fold an end marker into this begin marker."""
        self.dur = end_ts - self.ts
        self._end_marker_ts = end_ts

    @property
    def path(self) -> Optional[str]:
        return self.args.path if self.args else None

    @property
    def pos(self) -> Optional[int]:
        return self.args.pos if self.args else None

    @property
    def end_pos(self) -> Optional[int]:
        return self.args.end if self.args else None

    @property
    def result_type_id(self) -> Optional[int]:
        if self.args and self.args.results:
            return self.args.results.type_id
        return None


class TypeRecord(RecordModel):
    """One type seen by the checker (a ``types*.json`` line)."""

    id: int
    intrinsic_name: Optional[str] = None
    flags: Optional[List[str]] = None
    display: Optional[str] = None
    recursion_id: Optional[int] = None
    recursion_related_type_ids: Optional[Tuple[int, List[int]]] = None
    ts: Optional[Number] = 0
    dur: Optional[Number] = None


DataRecord = Union[PhaseEvent, TypeRecord]


def root_event() -> PhaseEvent:
    """Synthetic event owned by the root node; its duration is set once the tree is built."""
    return PhaseEvent(pid=1, tid=1, ph='root', cat='root', name='root', ts=0)


def classify_record(raw: Any, file_name: Optional[str] = None) -> DataRecord:
    """
    Validate a raw record and return it as a phase event or a type record.

    Only type records carry an ``id`` field, so its presence decides which
    shape the record is validated against.

    Args:
        raw: Decoded JSON value of one record
        file_name: Source file, used in the error message

    Returns:
        PhaseEvent or TypeRecord

    Raises:
        RecordValidationError: If the record matches neither shape
    """
    if not isinstance(raw, dict):
        raise RecordValidationError(file_name, f"expected an object record, got {type(raw).__name__}")

    model = TypeRecord if 'id' in raw else PhaseEvent
    try:
        return model.model_validate(raw)
    except ValidationError as e:
        raise RecordValidationError(
            file_name, f"invalid {model.__name__} record: {e.error_count()} validation error(s)"
        ) from e
