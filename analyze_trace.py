#!/usr/bin/env python3
"""
Type-Check Trace Analyzer - command line front-end
"""

import asyncio
import sys
from typecheck_trace import TraceEngine, TracerConfig
from typecheck_trace.core.errors import TraceError
from typecheck_trace.web import prepare_results


def print_summary(results):
    summary = results['summary']
    print(f"\nFiles processed: {summary['total_files']}")
    for name, error in summary['file_errors'].items():
        print(f"  ! {name}: {error}")
    print(f"Phase events: {summary['total_phase_events']}")
    print(f"Types: {summary['total_types']}")
    print(f"Total time: {summary['total_time_formatted']}")
    print(f"Max depth: {summary['max_depth']}")

    if results['slowest_nodes']:
        print("\nSlowest operations:")
        for entry in results['slowest_nodes']:
            location = f" {entry['path']}:{entry['pos']}" if entry['path'] else ''
            print(f"  {entry['dur_formatted']:>12}  {entry['name']}{location} ({entry['total_types']} types)")

    if results['most_types']:
        print("\nMost types created:")
        for entry in results['most_types']:
            location = f" {entry['path']}:{entry['pos']}" if entry['path'] else ''
            print(f"  {entry['total_types']:>12}  {entry['name']}{location}")

    if results['files']:
        print("\nTime per file:")
        for entry in results['files']:
            print(f"  {entry['dur_formatted']:>12}  {entry['path']}")


def main():
    import argparse
    parser = argparse.ArgumentParser(
        description='Reconstruct a TypeScript --generateTrace output and report type-checking hotspots.',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python analyze_trace.py ./trace
  python analyze_trace.py ./trace --limit 5
  python analyze_trace.py ./trace --filter checkSourceFile --source-file src/index.ts
  python analyze_trace.py ./trace --serve --port 3010
        """
    )
    parser.add_argument('trace_dir', help='Directory containing trace*.json and types*.json')
    parser.add_argument('-w', '--workspace', default=None, help='Workspace root source paths are made relative to')
    parser.add_argument('--limit', type=int, default=20, help='Entries per hotspot list')
    parser.add_argument('--filter', dest='starts_with', default=None,
                       help='Print the outermost operations whose name starts with this prefix')
    parser.add_argument('--source-file', default='', help='Restrict --filter to a source file suffix')
    parser.add_argument('--position', type=int, default=0, help='Restrict --filter to a start offset')
    parser.add_argument('--serve', action='store_true', help='Serve the loaded trace over websockets')
    parser.add_argument('--host', default=None, help='Websocket server host')
    parser.add_argument('--port', type=int, default=None, help='Websocket server port')
    args = parser.parse_args()

    config = TracerConfig.from_env(workspace_path=args.workspace, host=args.host, port=args.port)
    engine = TraceEngine(config)

    try:
        print(f"\nConfiguration:")
        print(f"  Trace directory: {args.trace_dir}")
        print(f"  Workspace: {config.workspace_path}")
        paths = engine.load_trace_dir(args.trace_dir)
        if not paths:
            print(f"Error: No trace or type files found in '{args.trace_dir}'.")
            sys.exit(1)
        engine.process_trace_files()
        print_summary(prepare_results(engine, args.limit))

        if args.starts_with is not None:
            nodes = engine.filter_tree(args.starts_with, args.source_file, args.position, reveal=True)
            print(f"\n{len(nodes)} operations match '{args.starts_with}':")
            for node in nodes:
                event = node.event
                print(f"  #{node.id} {event.name} {event.path or ''} "
                      f"dur={event.dur or 0} types={node.total_type_count} children={node.child_count}")

        if args.serve:
            from typecheck_trace.transport import serve
            print(f"\nServing on ws://{config.host}:{config.port} (Ctrl+C to stop)")
            asyncio.run(serve(engine))
    except FileNotFoundError:
        print(f"Error: Directory '{args.trace_dir}' not found.")
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nStopped.")
    except TraceError as e:
        print(f"Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
