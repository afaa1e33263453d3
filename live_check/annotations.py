"""
Annotation Store
================
Owns the live annotations of one document and their highlighted spans.

Lifecycle:
- reconcile() drops annotations on deleted lines, then prepends one new
  annotation per resolved match
- line numbers follow the baseline: reconcile() renumbers survivors from
  where their spans sit in the newly committed snapshot
- remove() tears down a single annotation (user dismissal, cleanup)
- apply_replacement() removes an annotation, then edits the document
- clear_all() tears down everything and resets batching state
- spans invalidated by the document drop their annotation automatically
"""

import itertools
import threading
from typing import Dict, List, Mapping, Optional, Sequence, Union

from config_logging import get_logger, ValidationError

from .batcher import BatchState
from .document import EditorDocument, line_number_at
from .models import Annotation, Match, OffsetMapEntry
from .resolver import resolve_line, resolve_offset

logger = get_logger('live_check.annotations')

SPAN_CATEGORY = 'live-check'


class AnnotationStore:
    """
    Collection of annotations for one document.

    Args:
        document: The document the annotations are anchored in
        batch_state: Batching cursor reset by clear_all()
    """

    _ids = itertools.count(1)

    def __init__(self, document: EditorDocument, batch_state: Optional[BatchState] = None):
        self.document = document
        self.batch_state = batch_state if batch_state is not None else BatchState()
        self._annotations: List[Annotation] = []
        self._lock = threading.RLock()

    def __len__(self) -> int:
        return len(self._annotations)

    def __iter__(self):
        return iter(self.annotations)

    def __contains__(self, annotation: Annotation) -> bool:
        return annotation in self._annotations

    @property
    def annotations(self) -> List[Annotation]:
        """Snapshot of the collection, most recent first."""
        with self._lock:
            return list(self._annotations)

    def get(self, annotation_id: str) -> Optional[Annotation]:
        with self._lock:
            for annotation in self._annotations:
                if annotation.annotation_id == annotation_id:
                    return annotation
            return None

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def reconcile(
        self,
        matches: Sequence[Match],
        entries: Sequence[OffsetMapEntry],
        deleted_lines: Sequence[int],
        line_numbers: Optional[Mapping[str, int]] = None
    ) -> List[Annotation]:
        """
        Apply one cycle's results.

        Existing annotations carry line numbers against the previous
        baseline, the same numbering as deleted_lines. Survivors are then
        renumbered against the new baseline, which is what new matches
        resolve to.

        Args:
            matches: Matches returned for the cycle's submission
            entries: The cycle's offset map
            deleted_lines: Line numbers reported deleted by the cycle's diff
            line_numbers: Annotation id -> line in the new baseline

        Returns:
            The newly created annotations
        """
        deleted = set(deleted_lines)
        with self._lock:
            stale = [a for a in self._annotations if a.line_number in deleted]
            for annotation in stale:
                self.remove(annotation)
            if line_numbers:
                self.renumber(line_numbers)

            created = []
            if matches and not entries:
                logger.warning(f"Dropping {len(matches)} match(es): no offset map to resolve against")
            elif matches:
                created = [self._annotate(match, entries) for match in matches]
                self._annotations[:0] = created

        logger.info(f"Reconciled: removed {len(stale)}, added {len(created)}, "
                    f"live {len(self._annotations)}")
        return created

    def _annotate(self, match: Match, entries: Sequence[OffsetMapEntry]) -> Annotation:
        position = resolve_offset(match, entries)
        start = position - 1
        end = start + match.length
        text = self.document.get_text()[start:end]

        annotation = Annotation(
            annotation_id=f"ann-{next(self._ids)}",
            line_number=resolve_line(match, entries),
            position=position,
            length=match.length,
            text=text,
            message=match.message,
            short_message=match.short_message,
            replacements=list(match.replacements),
            issue_type=match.issue_type,
            description=match.description,
            rule_id=match.rule_id,
        )
        span = self.document.create_span(
            start, end,
            category=SPAN_CATEGORY,
            issue_type=match.issue_type,
            help_echo=match.short_message or match.message,
            annotation_id=annotation.annotation_id,
        )
        span.add_invalidation_listener(lambda _span, a=annotation: self._forget(a))
        annotation.span = span
        return annotation

    def line_numbers_in(self, text: str) -> Dict[str, int]:
        """
        Map each live annotation to the line its span starts on in text.

        text must be read from the document in the same state as the spans.
        """
        with self._lock:
            return {
                a.annotation_id: line_number_at(text, a.start)
                for a in self._annotations if a.is_live
            }

    def renumber(self, line_numbers: Mapping[str, int]):
        """Move annotations to new baseline line numbers."""
        with self._lock:
            for annotation in self._annotations:
                line = line_numbers.get(annotation.annotation_id)
                if line is not None:
                    annotation.line_number = line

    def _forget(self, annotation: Annotation):
        """Drop an annotation whose span the document invalidated."""
        with self._lock:
            if annotation in self._annotations:
                self._annotations.remove(annotation)
                logger.debug(f"Annotation {annotation.annotation_id} invalidated by edit")

    def remove(self, annotation: Annotation):
        """Tear down an annotation's span and drop it from the collection."""
        with self._lock:
            if annotation.span is not None and annotation.span.alive:
                self.document.delete_span(annotation.span)
            if annotation in self._annotations:
                self._annotations.remove(annotation)

    def clear_all(self):
        """Remove every annotation and checker span; reset batching state."""
        with self._lock:
            count = len(self._annotations)
            for annotation in list(self._annotations):
                self.remove(annotation)
            for span in self.document.spans_in(0, len(self.document)):
                if span.properties.get('category') == SPAN_CATEGORY:
                    self.document.delete_span(span)
            self.batch_state.reset()
        logger.info(f"Cleared {count} annotation(s)")

    def apply_replacement(self, annotation: Annotation, choice: Union[str, int]) -> str:
        """
        Replace the text an annotation covers with a chosen replacement.

        The annotation is removed before the document is edited.

        Args:
            annotation: A live annotation from this store
            choice: Replacement string, or an index into annotation.replacements

        Returns:
            The replacement text that was applied
        """
        if isinstance(choice, bool) or not isinstance(choice, (str, int)):
            raise ValidationError("Replacement choice must be a string or an index", field='choice')
        if isinstance(choice, int):
            if not 0 <= choice < len(annotation.replacements):
                raise ValidationError(
                    f"Replacement index {choice} out of range "
                    f"(0..{len(annotation.replacements) - 1})",
                    field='choice'
                )
            choice = annotation.replacements[choice]

        with self._lock:
            if annotation not in self._annotations or not annotation.is_live:
                raise ValidationError(f"Annotation {annotation.annotation_id} is no longer live",
                                      field='annotation')
            start, end = annotation.start, annotation.end
            self.remove(annotation)
            self.document.replace(start, end, choice)

        logger.info(f"Applied replacement for {annotation.annotation_id}: "
                    f"{annotation.text!r} -> {choice!r}")
        return choice

    # -------------------------------------------------------------------------
    # Navigation
    # -------------------------------------------------------------------------

    def _ordered(self) -> List[Annotation]:
        live = [a for a in self._annotations if a.is_live]
        return sorted(live, key=lambda a: (a.start, a.end))

    def annotation_at(self, position: int) -> Optional[Annotation]:
        """Return the annotation covering a 1-based position, if any."""
        offset = position - 1
        with self._lock:
            for annotation in self._ordered():
                if annotation.start <= offset < annotation.end:
                    return annotation
            return None

    def next_annotation(self, position: int) -> Optional[Annotation]:
        """Return the first annotation starting after a 1-based position."""
        offset = position - 1
        with self._lock:
            for annotation in self._ordered():
                if annotation.start > offset:
                    return annotation
            return None

    def previous_annotation(self, position: int) -> Optional[Annotation]:
        """Return the last annotation starting before a 1-based position."""
        offset = position - 1
        with self._lock:
            candidates = [a for a in self._ordered() if a.start < offset]
            return candidates[-1] if candidates else None
