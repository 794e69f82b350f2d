"""
Result builder for web interface output.
"""

from collections import defaultdict

from ..formatters import format_duration


def _node_entry(node):
    event = node.event
    dur = event.dur or 0
    return {
        'id': node.id,
        'name': event.name,
        'path': event.path,
        'pos': event.pos,
        'end': event.end_pos,
        'dur': dur,
        'dur_formatted': format_duration(dur),
        'types': node.type_count,
        'total_types': node.total_type_count,
        'max_depth': node.max_depth,
    }


def _file_times(tree):
    """
    Sum the time and types of the outermost nodes of every source file.

    A node counts towards its file only if no ancestor belongs to the same
    file, so nested work is not counted twice.
    """
    files = defaultdict(lambda: {'dur': 0, 'total_types': 0, 'nodes': 0})
    stack = [(child, None) for child in reversed(tree.children)]
    while stack:
        node, enclosing_path = stack.pop()
        path = node.event.path
        if path and path != enclosing_path:
            stats = files[path]
            stats['dur'] += node.event.dur or 0
            stats['total_types'] += node.total_type_count
            stats['nodes'] += 1
        stack.extend((child, path or enclosing_path) for child in reversed(node.children))

    per_file = [
        {
            'path': path,
            'dur': stats['dur'],
            'dur_formatted': format_duration(stats['dur']),
            'total_types': stats['total_types'],
            'nodes': stats['nodes'],
        }
        for path, stats in files.items()
    ]
    per_file.sort(key=lambda x: -x['dur'])
    return per_file


def prepare_results(engine, limit=20):
    """
    Convert the engine's session to a structured format for JSON output.

    The listed hotspot nodes are revealed in the engine's tree index so a
    consumer can drill into them with children and types lookups.

    Args:
        engine: TraceEngine with a processed trace
        limit: Number of entries per hotspot list

    Returns:
        Dictionary with summary, slowest nodes, nodes with most types and per-file time
    """
    tree = engine.tree
    summary = {
        'total_files': len(engine.processed_files),
        'file_errors': dict(engine.file_errors),
        'total_phase_events': len(engine.phase_events),
        'total_types': len(engine.type_dictionary),
        'total_time_us': 0,
        'total_time_formatted': format_duration(0),
        'top_level_nodes': 0,
        'max_depth': 0,
    }
    if tree is None:
        return {'summary': summary, 'slowest_nodes': [], 'most_types': [], 'files': []}

    nodes = [node for node in tree.iter_preorder() if node is not tree]
    slowest = sorted(nodes, key=lambda node: -(node.event.dur or 0))[:limit]
    most_types = sorted(nodes, key=lambda node: -node.total_type_count)[:limit]
    engine.index.register_all(slowest)
    engine.index.register_all(most_types)

    total_time = tree.event.dur or 0
    summary.update({
        'total_time_us': total_time,
        'total_time_formatted': format_duration(total_time),
        'top_level_nodes': tree.child_count,
        'max_depth': tree.max_depth,
        'attached_types': tree.total_type_count,
    })

    return {
        'summary': summary,
        'slowest_nodes': [_node_entry(node) for node in slowest],
        'most_types': [_node_entry(node) for node in most_types if node.total_type_count],
        'files': _file_times(tree),
    }
