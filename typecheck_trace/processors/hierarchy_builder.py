"""
Hierarchy builder for type-checker traces.
"""

import math
from typing import Iterable, List, Tuple

from ..core.errors import TreeConstructionError
from ..core.records import DataRecord, Number, TypeRecord, root_event
from ..core.tree import ROOT_ID, TreeNode

NO_PARENT = -1


class TreeBuilder:
    """Builds a tree from a flat, timestamp-ordered list of phase events and type records."""

    def build(self, records: Iterable[DataRecord]) -> TreeNode:
        """
        Fold the merged record sequence into a tree in a single pass.

        The node currently open is the innermost phase event whose interval
        still contains the record's timestamp. Nodes are closed (popped) as
        soon as a record lies past their end, at which point their type counts
        are added to the parent. Type records attach to whatever node is open.

        Args:
            records: Phase events and type records sorted by timestamp; records
                     with equal timestamps must keep their arrival order

        Returns:
            Root node spanning the whole trace

        Raises:
            TreeConstructionError: If the records are unsorted or the phase
                                   events are not properly nested
        """
        root = TreeNode(id=ROOT_ID, parent_id=NO_PARENT, event=root_event())
        stack: List[Tuple[TreeNode, Number]] = []
        current = root
        close_ts: Number = math.inf
        next_id = ROOT_ID
        last_ts: Number = -math.inf
        max_ts: Number = 0

        for record in records:
            ts = record.ts or 0
            if ts < last_ts:
                raise TreeConstructionError(f"records are not sorted by timestamp ({ts} after {last_ts})")
            last_ts = ts

            is_type = isinstance(record, TypeRecord)
            end = ts if is_type else record.end_ts
            # An event starting exactly where the open node ends is its sibling
            while ts > close_ts or (ts == close_ts and end > close_ts):
                if not stack:
                    raise TreeConstructionError(f"tree stack empty at timestamp {ts}")
                current, close_ts = self._close(current, stack)

            max_ts = max(max_ts, end)

            if is_type:
                current.type_ids.append(record.id)
                current.type_count = len(current.type_ids)
            elif record.dur:
                if end > close_ts:
                    raise TreeConstructionError(
                        f"'{record.name}' at {ts} ends at {end}, after its parent "
                        f"'{current.event.name}' closes at {close_ts}"
                    )
                next_id += 1
                child = TreeNode(id=next_id, parent_id=current.id, event=record)
                current.children.append(child)
                current.child_count = len(current.children)
                stack.append((current, close_ts))
                current, close_ts = child, end

        while stack:
            current, close_ts = self._close(current, stack)

        root.event.dur = max_ts
        return root

    @staticmethod
    def _close(node: TreeNode, stack: List[Tuple[TreeNode, Number]]) -> Tuple[TreeNode, Number]:
        parent, parent_close = stack.pop()
        parent.child_type_count += node.type_count + node.child_type_count
        parent.max_depth = max(parent.max_depth, node.max_depth + 1)
        return parent, parent_close
