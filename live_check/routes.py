"""
Live Check Flask Routes
=======================
Thin command surface over the check manager: open documents, toggle
checking, edit text, list annotations, accept replacements, navigate.

v1.0.0: Initial implementation
"""

import time
from functools import wraps
from flask import Blueprint, request, jsonify, g

from config_logging import get_logger, LiveCheckError, ValidationError

from .controller import get_check_manager

logger = get_logger('live_check.routes')

lc_blueprint = Blueprint('live_check', __name__)


# =============================================================================
# STANDARDIZED ERROR HANDLING DECORATOR
# =============================================================================

def handle_lc_errors(f):
    """
    Decorator for standardized API error handling in Live Check routes.
    """
    @wraps(f)
    def decorated(*args, **kwargs):
        start_time = time.time()
        try:
            result = f(*args, **kwargs)

            elapsed = time.time() - start_time
            if elapsed > 5.0:
                logger.warning(f"Slow LC API call: {f.__name__} took {elapsed:.1f}s")

            return result

        except LiveCheckError as e:
            level = logger.warning if e.status_code < 500 else logger.error
            level(f"{e.code} in {f.__name__}: {e.message}")
            body = e.to_dict()
            body['error']['correlation_id'] = getattr(g, 'correlation_id', 'unknown')
            return jsonify(body), e.status_code
        except Exception as e:
            logger.exception(f"Unexpected error in {f.__name__}: {e}")
            return jsonify({
                'success': False,
                'error': {
                    'code': 'INTERNAL_ERROR',
                    'message': 'An unexpected error occurred',
                    'correlation_id': getattr(g, 'correlation_id', 'unknown')
                }
            }), 500

    return decorated


# =============================================================================
# REQUEST HELPERS
# =============================================================================

def _json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def _int_field(data: dict, name: str) -> int:
    value = data.get(name)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"'{name}' must be an integer", field=name)
    return value


def _position_arg() -> int:
    raw = request.args.get('position', '1')
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f"'position' must be an integer, got {raw!r}", field='position')


# =============================================================================
# API ENDPOINTS
# =============================================================================

@lc_blueprint.route('/documents/<doc_id>', methods=['POST'])
@handle_lc_errors
def open_document(doc_id: str):
    """
    Register a document with its initial text.

    Request body: { text: "..." }
    """
    data = _json_body()
    text = data.get('text', '')
    if not isinstance(text, str):
        raise ValidationError("'text' must be a string", field='text')

    document = get_check_manager().open_document(doc_id, text)
    return jsonify({
        'success': True,
        'document_id': doc_id,
        'length': len(document),
        'lines': document.line_count()
    })


@lc_blueprint.route('/documents/<doc_id>/enable', methods=['POST'])
@handle_lc_errors
def enable_checking(doc_id: str):
    """Start periodic checking for a document."""
    controller = get_check_manager().enable(doc_id)
    return jsonify({'success': True, 'session': controller.require_session().to_dict()})


@lc_blueprint.route('/documents/<doc_id>/disable', methods=['POST'])
@handle_lc_errors
def disable_checking(doc_id: str):
    """Stop checking and remove every annotation."""
    get_check_manager().disable(doc_id)
    return jsonify({'success': True, 'document_id': doc_id})


@lc_blueprint.route('/documents/<doc_id>/check', methods=['POST'])
@handle_lc_errors
def check_now(doc_id: str):
    """Run one check cycle immediately and wait for it to reconcile."""
    session = get_check_manager().controller(doc_id).check_now()
    return jsonify({'success': True, 'session': session.to_dict()})


@lc_blueprint.route('/documents/<doc_id>/edit', methods=['POST'])
@handle_lc_errors
def edit_document(doc_id: str):
    """
    Replace a character range of the document.

    Request body: { start: int, end: int, text: "..." }
    """
    data = _json_body()
    start = _int_field(data, 'start')
    end = _int_field(data, 'end')
    text = data.get('text', '')
    if not isinstance(text, str):
        raise ValidationError("'text' must be a string", field='text')

    document = get_check_manager().get_document(doc_id)
    try:
        document.replace(start, end, text)
    except ValueError as e:
        raise ValidationError(str(e), field='range')

    return jsonify({'success': True, 'length': len(document), 'lines': document.line_count()})


@lc_blueprint.route('/documents/<doc_id>/annotations', methods=['GET'])
@handle_lc_errors
def list_annotations(doc_id: str):
    """List the live annotations of a document."""
    controller = get_check_manager().controller(doc_id)
    annotations = [a.to_dict() for a in controller.annotations]
    return jsonify({'success': True, 'annotations': annotations, 'count': len(annotations)})


@lc_blueprint.route('/documents/<doc_id>/replace', methods=['POST'])
@handle_lc_errors
def accept_replacement(doc_id: str):
    """
    Accept a replacement for the annotation covering a position.

    Request body: { position: int (1-based), choice: int | "..." }
    """
    data = _json_body()
    position = _int_field(data, 'position')
    choice = data.get('choice', 0)

    store = get_check_manager().controller(doc_id).require_session().annotations
    annotation = store.annotation_at(position)
    if annotation is None:
        raise ValidationError(f"No annotation at position {position}", field='position')

    applied = store.apply_replacement(annotation, choice)
    return jsonify({'success': True, 'annotation_id': annotation.annotation_id, 'applied': applied})


@lc_blueprint.route('/documents/<doc_id>/next', methods=['GET'])
@handle_lc_errors
def next_annotation(doc_id: str):
    """Find the next annotation after ?position=N."""
    store = get_check_manager().controller(doc_id).require_session().annotations
    annotation = store.next_annotation(_position_arg())
    return jsonify({'success': True, 'annotation': annotation.to_dict() if annotation else None})


@lc_blueprint.route('/documents/<doc_id>/previous', methods=['GET'])
@handle_lc_errors
def previous_annotation(doc_id: str):
    """Find the previous annotation before ?position=N."""
    store = get_check_manager().controller(doc_id).require_session().annotations
    annotation = store.previous_annotation(_position_arg())
    return jsonify({'success': True, 'annotation': annotation.to_dict() if annotation else None})
