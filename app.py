#!/usr/bin/env python3
"""
Flask Web Application for Type-Check Trace Analysis
Provides REST API endpoints for loading compiler traces and exploring the reconstructed tree.
"""

from flask import Flask, request, jsonify
from werkzeug.utils import secure_filename
import json
from typecheck_trace import TraceEngine, TracerConfig
from typecheck_trace.core.errors import LookupMissError, TreeConstructionError
from typecheck_trace.web import prepare_results

app = Flask(__name__)
app.config['MAX_CONTENT_LENGTH'] = 500 * 1024 * 1024
app.config['TRACE_ENGINE'] = TraceEngine(TracerConfig.from_env())

ALLOWED_EXTENSIONS = {'json'}


def allowed_file(filename):
    return '.' in filename and filename.rsplit('.', 1)[1].lower() in ALLOWED_EXTENSIONS


def get_engine():
    return app.config['TRACE_ENGINE']


@app.errorhandler(LookupMissError)
def lookup_miss(e):
    return jsonify({'error': str(e)}), 404


@app.route('/api/traces', methods=['POST'])
def upload_traces():
    """
    API endpoint to load trace and type files into the session.
    Accepts: multipart/form-data with one or more 'file' fields, named
      trace*.json (phase events) or types*.json (type records)
    Returns: JSON with the processed files, per-file errors and the summary
    """
    files = request.files.getlist('file')
    if not files:
        return jsonify({'error': 'No file provided'}), 400

    engine = get_engine()
    loaded = []
    for file in files:
        if not file.filename:
            return jsonify({'error': 'No file selected'}), 400
        if not allowed_file(file.filename):
            return jsonify({'error': 'Invalid file type. Only JSON files are allowed.'}), 400

        filename = secure_filename(file.filename)
        try:
            records = json.load(file.stream)
        except ValueError as e:
            return jsonify({'error': f'{filename} is not valid JSON: {e}'}), 400
        if not isinstance(records, list):
            return jsonify({'error': f'{filename} must contain a JSON array of records'}), 400

        engine.add_trace_file(filename, records)
        loaded.append(filename)

    try:
        engine.process_trace_files()
    except TreeConstructionError as e:
        return jsonify({'error': str(e), 'file_errors': engine.file_errors}), 422

    return jsonify({
        'files': loaded,
        'file_errors': engine.file_errors,
        'summary': prepare_results(engine, limit=0)['summary'],
    })


@app.route('/api/traces', methods=['DELETE'])
def clear_traces():
    """Forget every loaded file and the reconstructed tree."""
    get_engine().clear_trace_files()
    return jsonify({'cleared': True})


@app.route('/api/summary')
def summary():
    """
    Hotspot report of the loaded trace.
    Accepts: optional 'limit' query parameter (default: 20)
    """
    limit = request.args.get('limit', 20, type=int)
    return jsonify(prepare_results(get_engine(), limit))


@app.route('/api/tree')
def tree():
    """
    Search the tree; matches are revealed for the node endpoints.
    Accepts: 'startsWith', 'sourceFile' and 'position' query parameters
    """
    position = request.args.get('position', '')
    if position and not position.isdecimal():
        return jsonify({'error': 'position must be a non-negative integer'}), 400

    nodes = get_engine().show_tree(
        request.args.get('startsWith', ''),
        request.args.get('sourceFile', ''),
        int(position) if position else 0,
    )
    return jsonify({'nodes': nodes})


@app.route('/api/nodes/<int:node_id>/children')
def children(node_id):
    nodes = get_engine().children_by_id(node_id)
    return jsonify({'id': node_id, 'children': [node.to_message() for node in nodes]})


@app.route('/api/nodes/<int:node_id>/types')
def node_types(node_id):
    types = get_engine().types_by_id(node_id)
    return jsonify({'id': node_id, 'types': [record.to_wire() for record in types]})


@app.route('/api/types/<int:type_id>')
def type_by_id(type_id):
    types = get_engine().types_by_type_id([type_id])
    return jsonify({'id': type_id, 'types': [record.to_wire() for record in types]})


@app.route('/api/file-stats')
def file_stats():
    """
    Per-span type-check cost of one source file.
    Accepts: 'fileName' query parameter (absolute or workspace relative)
    """
    file_name = request.args.get('fileName')
    if not file_name:
        return jsonify({'error': 'fileName is required'}), 400
    return jsonify({'fileName': file_name, 'stats': get_engine().get_stats_from_tree(file_name)})


if __name__ == '__main__':
    app.run(debug=True, host='0.0.0.0', port=5001)
