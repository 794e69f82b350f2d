"""
Queries over a reconstructed trace tree.
"""

from typing import Iterable, List, Mapping, Optional, Union

from ..core.errors import TypeNotFoundError
from ..core.records import TypeRecord
from ..core.tree import TreeNode
from ..core.types import FileStat


def _position_filter(position: Union[int, str, None]) -> int:
    # The consumer sends '' when no position is set
    if position in ('', None):
        return 0
    return int(position)


class TreeQuery:
    """Search, statistics and point lookups against one published tree."""

    def __init__(self, tree: TreeNode, index, type_dictionary: Mapping[int, TypeRecord],
                 display_resolver, path_normalizer):
        """
        Args:
            tree: Root of the reconstructed tree
            index: TreeIndex that revealed nodes are registered in
            type_dictionary: type id -> TypeRecord for the whole session
            display_resolver: TypeDisplayResolver used for type descriptors
            path_normalizer: WorkspacePathNormalizer for file name arguments
        """
        self.tree = tree
        self.index = index
        self.type_dictionary = type_dictionary
        self.display_resolver = display_resolver
        self.path_normalizer = path_normalizer

    def filter_tree(
        self,
        starts_with: str,
        source_file_name: str = '',
        position: Union[int, str, None] = 0,
        node: Optional[TreeNode] = None
    ) -> List[TreeNode]:
        """
        Find the outermost nodes matching a name prefix, source file and position.

        A node matches when its event name starts with ``starts_with``, its
        source path ends with ``source_file_name`` (if given) and its start
        offset equals ``position`` (if positive). Once a node matches, its
        subtree is not searched any further.

        Args:
            starts_with: Event name prefix ('' matches every name)
            source_file_name: Suffix of the source path, '' for any file
            position: Start offset in the source file; 0 or '' for any
            node: Subtree to search, defaults to the whole tree

        Returns:
            Matching nodes in pre-order
        """
        position = _position_filter(position)
        matches = []
        stack = [node or self.tree]
        while stack:
            current = stack.pop()
            event = current.event
            if (event.name.startswith(starts_with)
                    and (not source_file_name or (event.path or '').endswith(source_file_name))
                    and (position <= 0 or (event.pos or 0) == position)):
                matches.append(current)
                continue
            stack.extend(reversed(current.children))
        return matches

    def get_stats_from_tree(self, file_name: str) -> List[FileStat]:
        """
        Collect the type-checking cost of every timed source span in one file.

        Args:
            file_name: Absolute or workspace-relative source file name

        Returns:
            One FileStat per node of that file with a duration and a start/end offset
        """
        relative = self.path_normalizer.to_relative(file_name)
        stats: List[FileStat] = []
        for file_node in self.filter_tree('', relative, 0):
            for node in file_node.iter_preorder():
                event = node.event
                if (event.dur
                        and event.path == relative
                        and event.pos is not None
                        and event.end_pos is not None):
                    stats.append({
                        'dur': event.dur,
                        'pos': event.pos,
                        'end': event.end_pos,
                        'types': node.type_count,
                        'totalTypes': node.total_type_count,
                    })
        return stats

    def children_by_id(self, node_id: int) -> List[TreeNode]:
        """
        Return the thinned children of a revealed node and reveal them in turn.

        Raises:
            NodeNotFoundError: If the node has not been revealed
        """
        node = self.index.get(node_id)
        self.index.register_all(node.children)
        return [child.thin() for child in node.children]

    def types_by_id(self, node_id: int) -> List[TypeRecord]:
        """
        Return the type records attached directly to a revealed node.

        Raises:
            NodeNotFoundError: If the node has not been revealed
            TypeNotFoundError: If an attached type id has no record
        """
        return self.types_by_type_id(self.index.get(node_id).type_ids)

    def types_by_type_id(self, type_ids: Iterable[int]) -> List[TypeRecord]:
        descriptors = []
        for type_id in type_ids:
            record = self.type_dictionary.get(type_id)
            if record is None:
                raise TypeNotFoundError(type_id)
            descriptors.append(self.display_resolver.resolve(record))
        return descriptors
