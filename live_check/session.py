"""
Check Session
=============
Per-document state carried across check cycles.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Any, List, Optional

from .annotations import AnnotationStore
from .batcher import BatchState
from .document import EditorDocument
from .models import Snapshot, LineChangeSet, OffsetMapEntry


class CheckState(Enum):
    """Where a session is in the check cycle."""
    IDLE = "idle"
    SAMPLING = "sampling"
    DIFFING = "diffing"
    MAPPING = "mapping"
    AWAITING_RESPONSE = "awaiting_response"
    RECONCILING = "reconciling"


@dataclass
class CheckSession:
    """
    State bundle for one open document.

    Attributes:
        document_id: Identity of the document in the registry
        previous: Baseline snapshot committed at the end of the last cycle
        current: Candidate snapshot taken this cycle
        changes: The last cycle's LineChangeSet
        offset_map: The last cycle's offset map entries
        submission_text: The last text sent to the checking service
        batch: Incremental batching cursor
        annotations: Live annotations for the document
        generation: Bumped on disable; stale responses are discarded
        cycle: Number of completed cycles in this session
    """
    document_id: str
    document: EditorDocument
    annotations: AnnotationStore
    batch: BatchState
    previous: Snapshot = field(default_factory=Snapshot)
    current: Snapshot = field(default_factory=Snapshot)
    changes: LineChangeSet = field(default_factory=LineChangeSet)
    offset_map: List[OffsetMapEntry] = field(default_factory=list)
    submission_text: str = ""
    state: CheckState = CheckState.IDLE
    generation: int = 1
    cycle: int = 0
    last_error: Optional[str] = None

    @classmethod
    def open(cls, document_id: str, document: EditorDocument, generation: int = 1) -> 'CheckSession':
        """Create a fresh session with an empty baseline."""
        batch = BatchState()
        return cls(
            document_id=document_id,
            document=document,
            annotations=AnnotationStore(document, batch),
            batch=batch,
            generation=generation,
        )

    @property
    def awaiting_response(self) -> bool:
        return self.state == CheckState.AWAITING_RESPONSE

    def commit_baseline(self):
        """Make the current snapshot the next cycle's baseline."""
        self.previous = self.current

    def to_dict(self) -> Dict[str, Any]:
        return {
            'document_id': self.document_id,
            'state': self.state.value,
            'generation': self.generation,
            'cycle': self.cycle,
            'batch': self.batch.to_dict(),
            'changes': self.changes.to_dict(),
            'offset_map': [e.to_dict() for e in self.offset_map],
            'submission_length': len(self.submission_text),
            'annotation_count': len(self.annotations),
            'last_error': self.last_error,
        }
