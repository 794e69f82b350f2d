"""
Main trace engine orchestrator.
"""

import logging
from typing import Dict, List, Mapping, Optional, Set, Union

from ..core.errors import (
    NodeNotFoundError,
    RecordValidationError,
    TreeConstructionError,
    TypeNotFoundError,
)
from ..core.records import Number, PhaseEvent, TypeRecord
from ..core.tree import TreeNode
from ..core.types import FileStat, TracerConfig
from ..extractors import RecordTypePrinter, TypeDisplayResolver, WorkspacePathNormalizer
from ..processors import (
    EventNormalizer,
    TraceCollector,
    TraceFileProcessor,
    TreeBuilder,
    TreeIndex,
    TreeQuery,
    result_timestamps,
)
from ..processors.file_processor import TRACE_KIND, TYPE_KIND

logger = logging.getLogger(__name__)


class TraceEngine:
    """
    Owns one trace session: the loaded files, the published tree and its index.

    Ingestion is additive: files that were already processed are skipped, and
    every pass rebuilds the tree from all records accepted so far. A new tree
    replaces the published one only once it has been built completely.
    """

    def __init__(
        self,
        config: Optional[TracerConfig] = None,
        type_printer=None,
        collector: Optional[TraceCollector] = None
    ):
        """
        Initialize the TraceEngine.

        Args:
            config: TracerConfig, defaults to TracerConfig()
            type_printer: TypePrinter used to render type display strings;
                          defaults to a RecordTypePrinter over the loaded types
            collector: TraceCollector used by start_trace
        """
        self.config = config or TracerConfig()

        # Loaded files and ingestion state
        self.trace_files: Dict[str, List[Dict]] = {}
        self.processed_files: Set[str] = set()
        self.file_errors: Dict[str, str] = {}
        self.phase_events: List[PhaseEvent] = []
        self.type_records: List[TypeRecord] = []
        self.type_dictionary: Dict[int, TypeRecord] = {}

        # Published tree
        self.tree: Optional[TreeNode] = None
        self.index = TreeIndex()
        self.query: Optional[TreeQuery] = None

        # Initialize components
        self.path_normalizer = WorkspacePathNormalizer(self.config.workspace_path)
        self.file_processor = TraceFileProcessor()
        self.normalizer = EventNormalizer(self.path_normalizer)
        self.tree_builder = TreeBuilder()
        self.display_resolver = TypeDisplayResolver(
            type_printer if type_printer is not None else RecordTypePrinter(self.type_dictionary)
        )
        self.collector = collector or TraceCollector(self.config.trace_command)

    # Loading

    def add_trace_file(self, name: str, records: List[Dict]) -> None:
        """
        Register the raw records of a trace or type file.

        The name decides the schema: names containing 'trace' hold phase
        events, names containing 'type' hold type records.
        """
        if name in self.processed_files:
            logger.info(f"{name} was already processed, ignoring")
            return
        self.trace_files[name] = records

    def load_trace_file(self, file_path: str) -> None:
        self.add_trace_file(file_path, self.file_processor.process_file(file_path))

    def load_trace_dir(self, trace_dir: str) -> List[str]:
        """
        Load every trace and type file of a trace directory.

        Returns:
            Paths of the files found
        """
        paths = self.file_processor.list_trace_dir(trace_dir)
        for path in paths:
            self.load_trace_file(path)
        return paths

    def clear_trace_files(self) -> None:
        """Forget every loaded file and discard the published tree."""
        self.trace_files = {}
        self.processed_files.clear()
        self.file_errors.clear()
        self.phase_events = []
        self.type_records = []
        self.type_dictionary.clear()
        self.display_resolver.clear()
        self._replace_index()
        self.tree = None
        self.query = None

    # Ingestion

    def process_trace_files(self, type_timestamps: Optional[Mapping[int, Number]] = None) -> Optional[TreeNode]:
        """
        Ingest the files that have not been processed yet and rebuild the tree.

        Args:
            type_timestamps: type id -> creation timestamp, if known from the run

        Returns:
            The published tree (unchanged if there were no new files)

        Raises:
            TreeConstructionError: If the records cannot be nested; the
                                   previously published tree stays in place
        """
        new_files = []
        new_events: List[PhaseEvent] = []
        new_types: List[TypeRecord] = []

        for name, lines in list(self.trace_files.items()):
            if name in self.processed_files:
                continue
            self.processed_files.add(name)
            new_files.append(name)

            kind = self.file_processor.file_kind(name)
            try:
                if kind == TRACE_KIND:
                    new_events.extend(self.normalizer.normalize_trace_file(name, lines))
                elif kind == TYPE_KIND:
                    new_types.extend(self.normalizer.normalize_type_file(name, lines, type_timestamps))
                else:
                    raise RecordValidationError(name, "file name contains neither 'trace' nor 'type'")
            except RecordValidationError as e:
                logger.warning(f"Skipping invalid file: {e}")
                self.file_errors[name] = str(e)

        if not new_files:
            return self.tree

        events = self.phase_events + new_events
        types = self.type_records + new_types
        try:
            tree = self.tree_builder.build(self._merge(events, types))
        except TreeConstructionError as e:
            for name in new_files:
                self.file_errors.setdefault(name, f"tree construction failed: {e}")
            raise

        self.phase_events = events
        self.type_records = types
        self._publish(tree, new_types)

        logger.info(
            f"Built tree from {len(events)} phase events and {len(types)} types "
            f"({tree.child_count} top-level nodes, depth {tree.max_depth})"
        )
        return tree

    @staticmethod
    def _merge(events: List[PhaseEvent], types: List[TypeRecord]) -> List[Union[PhaseEvent, TypeRecord]]:
        # Types without a known timestamp are placed at the operation that produced them
        produced_at = result_timestamps(events)
        placed = [
            record.model_copy(update={'ts': produced_at[record.id]})
            if not record.ts and record.id in produced_at else record
            for record in types
        ]
        merged = [*events, *placed]
        merged.sort(key=lambda record: record.ts or 0)
        return merged

    def _publish(self, tree: TreeNode, new_types: List[TypeRecord]) -> None:
        for record in new_types:
            self.type_dictionary[record.id] = record
        self._replace_index()
        self.tree = tree
        self.query = TreeQuery(
            tree, self.index, self.type_dictionary, self.display_resolver, self.path_normalizer
        )

    def _replace_index(self) -> None:
        # Node ids of the previous tree are meaningless for the new one; streams
        # still delivering old nodes fail on the retired index
        self.index.retire()
        self.index = TreeIndex()

    # Queries

    def filter_tree(
        self,
        starts_with: str,
        source_file_name: str = '',
        position: Union[int, str, None] = 0,
        reveal: bool = False
    ) -> List[TreeNode]:
        """
        Search the published tree; see TreeQuery.filter_tree.

        Args:
            reveal: Register the matches in the tree index right away, for
                    consumers that receive the whole result at once
        """
        if self.query is None:
            return []
        nodes = self.query.filter_tree(starts_with, source_file_name, position)
        if reveal:
            self.index.register_all(nodes)
        return nodes

    def show_tree(
        self,
        starts_with: str = '',
        source_file_name: str = '',
        position: Union[int, str, None] = 0
    ) -> List[Dict]:
        """Filter the tree and return the revealed matches as thinned node messages."""
        nodes = self.filter_tree(starts_with, source_file_name, position, reveal=True)
        return [node.thin().to_message() for node in nodes]

    def get_stats_from_tree(self, file_name: str) -> List[FileStat]:
        if self.query is None:
            return []
        return self.query.get_stats_from_tree(file_name)

    def children_by_id(self, node_id: int) -> List[TreeNode]:
        if self.query is None:
            raise NodeNotFoundError(node_id)
        return self.query.children_by_id(node_id)

    def types_by_id(self, node_id: int) -> List[TypeRecord]:
        if self.query is None:
            raise NodeNotFoundError(node_id)
        return self.query.types_by_id(node_id)

    def types_by_type_id(self, type_ids: List[int]) -> List[TypeRecord]:
        if self.query is None:
            if type_ids:
                raise TypeNotFoundError(type_ids[0])
            return []
        return self.query.types_by_type_id(type_ids)

    # Collection

    async def start_trace(self, project_path: str, trace_dir: str) -> Optional[TreeNode]:
        """
        Collect a fresh trace for a project and load it as a new session.

        Args:
            project_path: tsconfig.json or the directory containing it
            trace_dir: Directory the trace is written to

        Returns:
            The newly built tree
        """
        await self.collector.collect(project_path, trace_dir)
        self.clear_trace_files()
        self.load_trace_dir(trace_dir)
        return self.process_trace_files()
