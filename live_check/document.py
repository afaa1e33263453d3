"""
Editor Document Surface
=======================
The document collaborator the check cycle reads from and annotates.

EditorDocument declares what the core needs from an editor. TextDocument is
an in-memory implementation whose highlighted spans track their text across
edits: boundaries shift with insertions and deletions before them, and a
span is invalidated when the text it covers is deleted.
"""

import itertools
import threading
from abc import ABC, abstractmethod
from typing import List, Dict, Any, Callable, Optional, Tuple


def split_lines(text: str) -> List[str]:
    """
    Split text on newlines, keeping each line's trailing newline.

    Only '\\n' separates lines so that line numbers agree with line_span().
    """
    if not text:
        return []
    parts = text.split('\n')
    lines = [part + '\n' for part in parts[:-1]]
    if parts[-1]:
        lines.append(parts[-1])
    return lines


def line_number_at(text: str, offset: int) -> int:
    """Return the 1-based line of text holding a 0-based offset."""
    return text.count('\n', 0, max(0, offset)) + 1


class TrackedSpan:
    """
    A highlighted region of a document.

    start/end are 0-based and half-open. A span stops being alive when it is
    deleted explicitly or invalidated by an edit; only invalidation notifies
    the listeners.
    """

    _ids = itertools.count(1)

    def __init__(self, start: int, end: int, properties: Optional[Dict[str, Any]] = None):
        self.span_id = next(self._ids)
        self.start = start
        self.end = end
        self.properties: Dict[str, Any] = dict(properties or {})
        self.alive = True
        self._listeners: List[Callable[['TrackedSpan'], None]] = []

    def add_invalidation_listener(self, listener: Callable[['TrackedSpan'], None]):
        self._listeners.append(listener)

    def _invalidate(self):
        self.alive = False
        listeners, self._listeners = self._listeners, []
        for listener in listeners:
            listener(self)

    def __repr__(self) -> str:
        state = 'live' if self.alive else 'dead'
        return f"TrackedSpan(id={self.span_id}, [{self.start}, {self.end}), {state})"


class EditorDocument(ABC):
    """
    Abstract document surface used by the check cycle.

    Line numbers are 1-based; character offsets are 0-based.
    """

    @abstractmethod
    def get_text(self) -> str:
        """Return the full current text."""
        pass

    @abstractmethod
    def line_count(self) -> int:
        pass

    @abstractmethod
    def line_span(self, line_number: int) -> Tuple[int, int]:
        """
        Return the [start, end) span of a line including its newline.

        Raises:
            IndexError: when the line does not exist
        """
        pass

    @abstractmethod
    def create_span(self, start: int, end: int, **properties) -> TrackedSpan:
        """Create a highlighted span that tracks its text across edits."""
        pass

    @abstractmethod
    def delete_span(self, span: TrackedSpan):
        pass

    @abstractmethod
    def spans_in(self, start: int, end: int) -> List[TrackedSpan]:
        """Return the live spans overlapping [start, end)."""
        pass

    @abstractmethod
    def replace(self, start: int, end: int, text: str):
        """Replace [start, end) with text in place."""
        pass

    def __len__(self) -> int:
        return len(self.get_text())

    def line_text(self, line_number: int) -> str:
        start, end = self.line_span(line_number)
        return self.get_text()[start:end]


class TextDocument(EditorDocument):
    """
    In-memory document with self-tracking highlighted spans.

    Usage:
        doc = TextDocument("Their going home.\\n", document_id='notes')
        span = doc.create_span(0, 5, category='live-check')
        doc.insert(0, "Well, ")   # span now covers [6, 11)
        doc.delete(6, 11)         # span is invalidated
    """

    def __init__(self, text: str = "", document_id: Optional[str] = None):
        self.document_id = document_id or f"doc-{id(self):x}"
        self._text = text
        self._line_starts = self._index_lines(text)
        self._spans: List[TrackedSpan] = []
        self._lock = threading.RLock()

    @staticmethod
    def _index_lines(text: str) -> List[int]:
        starts = [0]
        for i, char in enumerate(text):
            if char == '\n':
                starts.append(i + 1)
        # A trailing newline does not open another line
        if starts[-1] == len(text) and len(starts) > 1:
            starts.pop()
        return starts

    def get_text(self) -> str:
        return self._text

    def __len__(self) -> int:
        return len(self._text)

    def line_count(self) -> int:
        if not self._text:
            return 0
        return len(self._line_starts)

    def line_span(self, line_number: int) -> Tuple[int, int]:
        with self._lock:
            if line_number < 1 or line_number > self.line_count():
                raise IndexError(f"Line {line_number} out of range (1..{self.line_count()})")
            start = self._line_starts[line_number - 1]
            if line_number < len(self._line_starts):
                end = self._line_starts[line_number]
            else:
                end = len(self._text)
            return (start, end)

    def line_at(self, offset: int) -> int:
        """Return the 1-based line containing a 0-based offset."""
        with self._lock:
            line = 1
            for i, start in enumerate(self._line_starts):
                if start <= offset:
                    line = i + 1
                else:
                    break
            return line

    # -------------------------------------------------------------------------
    # Spans
    # -------------------------------------------------------------------------

    def create_span(self, start: int, end: int, **properties) -> TrackedSpan:
        with self._lock:
            start = max(0, min(start, len(self._text)))
            end = max(start, min(end, len(self._text)))
            span = TrackedSpan(start, end, properties)
            self._spans.append(span)
            return span

    def delete_span(self, span: TrackedSpan):
        with self._lock:
            span.alive = False
            if span in self._spans:
                self._spans.remove(span)

    def spans_in(self, start: int, end: int) -> List[TrackedSpan]:
        with self._lock:
            found = []
            for span in self._spans:
                if not span.alive:
                    continue
                if span.start < end and start < span.end:
                    found.append(span)
                elif span.start == span.end and start <= span.start <= end:
                    found.append(span)
            return found

    @property
    def spans(self) -> List[TrackedSpan]:
        with self._lock:
            return [s for s in self._spans if s.alive]

    # -------------------------------------------------------------------------
    # Edits
    # -------------------------------------------------------------------------

    def replace(self, start: int, end: int, text: str):
        with self._lock:
            if start < 0 or end < start or end > len(self._text):
                raise ValueError(f"Invalid range [{start}, {end}) for length {len(self._text)}")
            self._text = self._text[:start] + text + self._text[end:]
            self._line_starts = self._index_lines(self._text)
            invalidated = self._adjust_spans(start, end, len(text))

        for span in invalidated:
            span._invalidate()

    def insert(self, offset: int, text: str):
        self.replace(offset, offset, text)

    def delete(self, start: int, end: int):
        self.replace(start, end, "")

    def set_text(self, text: str):
        """Replace the whole document; every span is invalidated."""
        self.replace(0, len(self._text), text)

    def _adjust_spans(self, start: int, end: int, inserted: int) -> List[TrackedSpan]:
        delta = inserted - (end - start)
        removed = end > start
        invalidated = []

        def move(pos: int, is_start: bool) -> int:
            if pos == start == end:
                # Pure insertion at a boundary: text goes outside the span
                return pos + delta if is_start else pos
            if pos <= start:
                return pos
            if pos >= end:
                return pos + delta
            return start

        for span in list(self._spans):
            if removed and start <= span.start and span.end <= end:
                invalidated.append(span)
                continue
            if span.start == span.end == start and not removed:
                span.start = span.end = start + inserted
                continue
            new_start, new_end = move(span.start, True), move(span.end, False)
            if removed and new_start >= new_end:
                invalidated.append(span)
                continue
            span.start, span.end = new_start, new_end

        for span in invalidated:
            self._spans.remove(span)
        return invalidated
