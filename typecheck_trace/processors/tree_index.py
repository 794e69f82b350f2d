"""
Index of tree nodes that have been revealed to a consumer.
"""

from typing import Dict, Iterable

from ..core.errors import NodeNotFoundError, StaleTreeError
from ..core.tree import TreeNode


class TreeIndex:
    """
    Append-only node id -> node mapping for one published tree.

    Nodes are added only when a query result or a streamed chunk reveals them,
    so later point lookups (children, types) resolve without walking the tree.
    Once its tree is replaced the index is retired and refuses new nodes.
    """

    def __init__(self):
        self._nodes: Dict[int, TreeNode] = {}
        self.retired = False

    def register(self, node: TreeNode) -> None:
        self.register_all([node])

    def register_all(self, nodes: Iterable[TreeNode]) -> None:
        if self.retired:
            raise StaleTreeError("tree was rebuilt")
        for node in nodes:
            self._nodes[node.id] = node

    def get(self, node_id: int) -> TreeNode:
        try:
            return self._nodes[node_id]
        except KeyError:
            raise NodeNotFoundError(node_id) from None

    def clear(self) -> None:
        self._nodes.clear()

    def retire(self) -> None:
        self.retired = True
        self._nodes.clear()

    def __contains__(self, node_id: int) -> bool:
        return node_id in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)
