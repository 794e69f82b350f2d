"""
JSON trace file processing using streaming parser.
"""

import logging
import os
from typing import Dict, List, Optional

import ijson

logger = logging.getLogger(__name__)

TRACE_KIND = 'trace'
TYPE_KIND = 'type'


class TraceFileProcessor:
    """Reads the record arrays written by ``tsc --generateTrace``."""

    @staticmethod
    def file_kind(file_name: str) -> Optional[str]:
        """
        Decide which schema applies to a file from its name.

        Args:
            file_name: File name or path, e.g. ``trace.1.json`` or ``types.json``

        Returns:
            'trace', 'type' or None if the file holds neither
        """
        base = os.path.basename(file_name)
        if TRACE_KIND in base:
            return TRACE_KIND
        if TYPE_KIND in base:
            return TYPE_KIND
        return None

    @staticmethod
    def process_file(file_path: str) -> List[Dict]:
        """
        Read every record of a trace or type file.

        Args:
            file_path: Path to a JSON file containing one top-level array

        Returns:
            List of raw record dictionaries
        """
        records = []

        logger.info(f"Processing {file_path}...")

        with open(file_path, 'rb') as f:
            for record in ijson.items(f, 'item', use_float=True):
                records.append(record)
                if len(records) % 100000 == 0:
                    logger.info(f"  Read {len(records)} records...")

        logger.info(f"Completed reading {file_path}: {len(records)} records found.")
        return records

    @classmethod
    def list_trace_dir(cls, trace_dir: str) -> List[str]:
        """
        List the trace and type files of a trace directory, sorted by name.

        Args:
            trace_dir: Directory passed to ``--generateTrace``

        Returns:
            Absolute file paths
        """
        names = sorted(
            name for name in os.listdir(trace_dir)
            if name.endswith('.json') and cls.file_kind(name)
        )
        return [os.path.join(os.path.abspath(trace_dir), name) for name in names]
