"""
Tree node reconstructed from the phase events of a trace.
"""

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List

from .records import Number, PhaseEvent

ROOT_ID = 0


@dataclass
class TreeNode:
    """
    A phase event with its nested children and the types created while it was open.

    Counters are filled in by the TreeBuilder as nodes are closed:
    ``type_count`` is the number of types attached directly, ``child_type_count``
    the number of types attached anywhere below this node.
    """
    id: int
    parent_id: int
    event: PhaseEvent
    children: List['TreeNode'] = field(default_factory=list)
    type_ids: List[int] = field(default_factory=list)
    type_count: int = 0
    child_type_count: int = 0
    child_count: int = 0
    max_depth: int = 0

    @property
    def start(self) -> Number:
        return self.event.ts

    @property
    def end(self) -> Number:
        return self.event.end_ts

    @property
    def total_type_count(self) -> int:
        return self.type_count + self.child_type_count

    def thin(self) -> 'TreeNode':
        """Copy of this node without children or attached types (one level of disclosure)."""
        return replace(self, children=[], type_ids=[])

    def iter_preorder(self):
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    def to_message(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'parentId': self.parent_id,
            'line': self.event.to_wire(),
            'children': [child.to_message() for child in self.children],
            'typeIds': list(self.type_ids),
            'childCnt': self.child_count,
            'maxDepth': self.max_depth,
            'childTypeCnt': self.child_type_count,
            'typeCnt': self.type_count,
        }
