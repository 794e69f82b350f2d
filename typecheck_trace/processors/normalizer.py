"""
Record normalizer: validation, path rewriting and begin/end pairing.
"""

import logging
from collections import defaultdict
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from ..core.errors import RecordValidationError
from ..core.records import (
    PHASE_BEGIN,
    PHASE_END,
    Number,
    PhaseArgs,
    PhaseEvent,
    TypeRecord,
    classify_record,
)

logger = logging.getLogger(__name__)


class EventNormalizer:
    """Turns the raw lines of one trace or type file into validated records."""

    def __init__(self, path_normalizer):
        """
        Initialize with the workspace path normalizer.

        Args:
            path_normalizer: WorkspacePathNormalizer instance
        """
        self.path_normalizer = path_normalizer

    def normalize_trace_file(self, file_name: str, raw_records: Iterable) -> List[PhaseEvent]:
        """
        Validate the phase events of one trace file and fold begin/end markers.

        A ``B`` marker is closed by the next ``E`` marker of the same process and
        thread; the pair becomes one event carrying ``dur`` and keeps the position
        of its ``B`` marker so parents still precede children that start at the
        same timestamp.

        Args:
            file_name: Name of the file, used in error messages
            raw_records: Decoded JSON records of the file

        Returns:
            Phase events in arrival order

        Raises:
            RecordValidationError: If any record is not a valid phase event
        """
        events: List[PhaseEvent] = []
        open_markers: Dict[Tuple[int, int], List[int]] = defaultdict(list)
        unmatched_ends = 0

        for raw in raw_records:
            record = classify_record(raw, file_name)
            if not isinstance(record, PhaseEvent):
                raise RecordValidationError(file_name, f"type record {record.id} found in a trace file")

            self._rewrite_path(record)
            key = (record.pid, record.tid)

            if record.ph == PHASE_BEGIN:
                open_markers[key].append(len(events))
                events.append(record)
            elif record.ph == PHASE_END:
                starts = open_markers[key]
                if not starts:
                    unmatched_ends += 1
                    continue
                begin = events[starts.pop()]
                begin.close_at(record.ts)
                self._merge_end_args(begin, record)
            else:
                events.append(record)

        unclosed = {idx for starts in open_markers.values() for idx in starts}
        if unmatched_ends or unclosed:
            logger.warning(
                f"{file_name}: dropped {unmatched_ends} unmatched end and "
                f"{len(unclosed)} unclosed begin markers"
            )
        if unclosed:
            events = [event for idx, event in enumerate(events) if idx not in unclosed]

        return events

    def normalize_type_file(
        self,
        file_name: str,
        raw_records: Iterable,
        type_timestamps: Optional[Mapping[int, Number]] = None
    ) -> List[TypeRecord]:
        """
        Validate the type records of one type file and resolve their timestamps.

        Args:
            file_name: Name of the file, used in error messages
            raw_records: Decoded JSON records of the file
            type_timestamps: type id -> timestamp at which the type was created

        Returns:
            Type records in arrival order

        Raises:
            RecordValidationError: If any record is not a valid type record
        """
        type_timestamps = type_timestamps or {}
        records: List[TypeRecord] = []

        for raw in raw_records:
            record = classify_record(raw, file_name)
            if not isinstance(record, TypeRecord):
                raise RecordValidationError(file_name, f"phase event '{record.name}' found in a type file")
            record.ts = type_timestamps.get(record.id, record.ts or 0)
            records.append(record)

        return records

    def _rewrite_path(self, event: PhaseEvent) -> None:
        if event.args and event.args.path:
            event.args.path = self.path_normalizer.to_relative(event.args.path)

    @staticmethod
    def _merge_end_args(begin: PhaseEvent, end: PhaseEvent) -> None:
        # The compiler reports an operation's result type on its end marker
        if not end.args or not end.args.results:
            return
        if begin.args is None:
            begin.args = PhaseArgs()
        if begin.args.results is None:
            begin.args.results = end.args.results


def result_timestamps(events: Iterable[PhaseEvent]) -> Dict[int, Number]:
    """
    Map each type id referenced as an operation result to the earliest start of
    an operation producing it.

    Used as the fallback timestamp lookup for type records, which carry no
    timestamp of their own.
    """
    timestamps: Dict[int, Number] = {}
    for event in events:
        type_id = event.result_type_id
        if type_id is None:
            continue
        if type_id not in timestamps or event.ts < timestamps[type_id]:
            timestamps[type_id] = event.ts
    return timestamps
