"""
Live Check Module v1.0.0
========================
Incremental prose checking for documents that keep changing.

Features:
- Line-level diff between check cycles (only changed lines are resubmitted)
- Offset map between document lines and the submitted text batch
- Bounded incremental submission for large documents on first pass
- Annotations anchored to self-tracking highlighted spans
- Periodic, single-flight check cycles per document
- Flask command surface
"""

from .models import (
    Snapshot,
    LineChangeSet,
    OffsetMapEntry,
    Match,
    CheckResponse,
    Annotation
)
from .document import EditorDocument, TextDocument, TrackedSpan, line_number_at, split_lines
from .differ import LineDiffer, diff_lines, parse_hunk_header
from .offset_map import build_offset_map
from .batcher import BatchState, IncrementalBatcher
from .resolver import resolve_entry, resolve_line, resolve_offset
from .annotations import AnnotationStore
from .session import CheckSession, CheckState
from .client import LanguageToolClient
from .controller import CheckCycleController, CheckManager, get_check_manager
from .routes import lc_blueprint

__version__ = "1.0.0"
__all__ = [
    'Snapshot',
    'LineChangeSet',
    'OffsetMapEntry',
    'Match',
    'CheckResponse',
    'Annotation',
    'EditorDocument',
    'TextDocument',
    'TrackedSpan',
    'split_lines',
    'line_number_at',
    'LineDiffer',
    'diff_lines',
    'parse_hunk_header',
    'build_offset_map',
    'BatchState',
    'IncrementalBatcher',
    'resolve_entry',
    'resolve_line',
    'resolve_offset',
    'AnnotationStore',
    'CheckSession',
    'CheckState',
    'LanguageToolClient',
    'CheckCycleController',
    'CheckManager',
    'get_check_manager',
    'lc_blueprint'
]
