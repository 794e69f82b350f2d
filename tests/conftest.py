"""
Pytest configuration and shared fixtures for typecheck trace tests.
"""
import json
import pytest

from typecheck_trace import TraceEngine, TracerConfig


WORKSPACE = "/ws"


@pytest.fixture
def trace_events():
    """Phase events of a two-file compilation, as written to trace.json."""
    return [
        {"pid": 1, "tid": 1, "ph": "M", "cat": "__metadata", "ts": 0,
         "name": "process_name", "args": {"name": "tsc"}},
        {"pid": 1, "tid": 1, "ph": "X", "cat": "check", "name": "checkSourceFile",
         "ts": 100, "dur": 100, "args": {"path": "/ws/src/a.ts"}},
        {"pid": 1, "tid": 1, "ph": "X", "cat": "check", "name": "checkExpression",
         "ts": 110, "dur": 20, "args": {"path": "/ws/src/a.ts", "kind": 213, "pos": 10, "end": 30}},
        {"pid": 1, "tid": 1, "ph": "B", "cat": "check", "name": "checkVariableDeclaration",
         "ts": 140, "args": {"path": "/ws/src/a.ts", "kind": 260, "pos": 40, "end": 60}},
        {"pid": 1, "tid": 1, "ph": "E", "cat": "check", "name": "checkVariableDeclaration",
         "ts": 170, "args": {"results": {"typeId": 7}}},
        {"pid": 1, "tid": 1, "ph": "X", "cat": "check", "name": "checkSourceFile",
         "ts": 200, "dur": 50, "args": {"path": "/ws/src/b.ts"}},
        {"pid": 1, "tid": 1, "ph": "X", "cat": "check", "name": "checkExpression",
         "ts": 210, "dur": 10, "args": {"path": "/ws/src/b.ts", "kind": 213, "pos": 5, "end": 9}},
    ]


@pytest.fixture
def type_records():
    """Type records of the same compilation, as written to types.json."""
    return [
        {"id": 5, "intrinsicName": "string", "flags": ["String"]},
        {"id": 7, "symbolName": "Foo", "flags": ["Object"]},
        {"id": 8, "unionTypes": [5, 7], "flags": ["Union"]},
    ]


@pytest.fixture
def config():
    return TracerConfig(workspace_path=WORKSPACE, chunk_size=2, stream_interval_ms=0)


@pytest.fixture
def engine(config, trace_events, type_records):
    """
    Engine with the fixture trace processed.

    Resulting node ids: 1 checkSourceFile a.ts, 2 checkExpression a.ts,
    3 checkVariableDeclaration a.ts (type 7), 4 checkSourceFile b.ts,
    5 checkExpression b.ts. Types 5 and 8 have no producer
    and keep timestamp 0; no event is open at 0, so they land on the root.
    """
    engine = TraceEngine(config)
    engine.add_trace_file("trace.json", trace_events)
    engine.add_trace_file("types.json", type_records)
    engine.process_trace_files()
    return engine


@pytest.fixture
def trace_dir(tmp_path, trace_events, type_records):
    """Directory laid out like the output of tsc --generateTrace."""
    (tmp_path / "trace.json").write_text(json.dumps(trace_events))
    (tmp_path / "types.json").write_text(json.dumps(type_records))
    (tmp_path / "legend.json").write_text(json.dumps({"version": 1}))
    return tmp_path
