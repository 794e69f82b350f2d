"""
Type definitions for trace analysis.
"""

import os
from typing import List, Optional, TypedDict


class FileStat(TypedDict):
    """Type-checking cost of one source span, used for per-file heat maps."""
    dur: float
    pos: int
    end: int
    types: int
    totalTypes: int


DEFAULT_TRACE_COMMAND = ['npx', 'tsc', '--generateTrace', '{trace_dir}', '-p', '{project_path}']


class TracerConfig:
    """Configuration for trace ingestion and delivery."""

    def __init__(
        self,
        workspace_path: str = '.',
        chunk_size: int = 10,
        stream_interval_ms: int = 30,
        request_timeout_s: Optional[float] = None,
        trace_command: Optional[List[str]] = None,
        host: str = 'localhost',
        port: int = 3010
    ):
        """
        Initialize trace configuration.

        Args:
            workspace_path: Root that absolute source paths in phase events are
                            made relative to.

            chunk_size: Number of tree nodes sent per streamed ``showTree`` chunk.
                        Default: 10

            stream_interval_ms: Delay between two streamed chunks so large result
                                sets do not flood the consumer.
                                Default: 30

            request_timeout_s: Seconds a client waits for (the next part of) a
                               response before failing the request.
                               Default: None (wait forever)

            trace_command: Command line that collects a trace; ``{trace_dir}`` and
                           ``{project_path}`` are substituted.
                           Default: npx tsc --generateTrace {trace_dir} -p {project_path}

            host: Interface the websocket server binds to.
            port: Port the websocket server listens on. Default: 3010
        """
        if chunk_size < 1:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        self.workspace_path = workspace_path
        self.chunk_size = chunk_size
        self.stream_interval_ms = stream_interval_ms
        self.request_timeout_s = request_timeout_s
        self.trace_command = list(trace_command or DEFAULT_TRACE_COMMAND)
        self.host = host
        self.port = port

    @property
    def stream_interval(self) -> float:
        return self.stream_interval_ms / 1000.0

    @classmethod
    def from_env(cls, **overrides) -> 'TracerConfig':
        """
        Build a configuration from ``TRACER_*`` environment variables.

        Keyword arguments that are not None take precedence over the environment.
        """
        env = os.environ
        timeout = env.get('TRACER_REQUEST_TIMEOUT')
        command = env.get('TRACER_TRACE_COMMAND')
        values = {
            'workspace_path': env.get('TRACER_WORKSPACE', os.getcwd()),
            'chunk_size': int(env.get('TRACER_CHUNK_SIZE', 10)),
            'stream_interval_ms': int(env.get('TRACER_STREAM_INTERVAL_MS', 30)),
            'request_timeout_s': float(timeout) if timeout else None,
            'trace_command': command.split() if command else None,
            'host': env.get('TRACER_HOST', 'localhost'),
            'port': int(env.get('TRACER_PORT', 3010)),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
