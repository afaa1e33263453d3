"""
Live Check Models v1.0.0
========================
Data classes shared by the differ, offset map, resolver and annotation store.

Positions:
- Document and submission ranges are 0-based, half-open [start, end).
- Annotation.position is the 1-based buffer position produced by the
  resolver (position 1 is the first character of the document).
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Dict, Any, Optional, Tuple

from config_logging import ResponseParseError


@dataclass(frozen=True)
class Snapshot:
    """Immutable capture of a document's text used as a diff baseline."""
    text: str = ""
    taken_at: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )

    def __len__(self) -> int:
        return len(self.text)


@dataclass(frozen=True)
class LineChangeSet:
    """
    Lines removed and added between two snapshots.

    Attributes:
        deleted: 1-based line numbers against the previous snapshot
        added: 1-based line numbers against the current snapshot
    """
    deleted: Tuple[int, ...] = ()
    added: Tuple[int, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.deleted and not self.added

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {'deleted': list(self.deleted), 'added': list(self.added)}


@dataclass(frozen=True)
class OffsetMapEntry:
    """
    Where one added line sits in the document and in the submission text.

    Attributes:
        line_number: 1-based line number in the current document
        doc_start, doc_end: [start, end) of the line in the document
        sub_start, sub_end: [start, end) of the same text in the submission
    """
    line_number: int
    doc_start: int
    doc_end: int
    sub_start: int
    sub_end: int

    @property
    def document_range(self) -> Tuple[int, int]:
        return (self.doc_start, self.doc_end)

    @property
    def submission_range(self) -> Tuple[int, int]:
        return (self.sub_start, self.sub_end)

    def strictly_contains(self, offset: int) -> bool:
        """True when sub_start < offset < sub_end."""
        return self.sub_start < offset < self.sub_end

    def to_dict(self) -> Dict[str, Any]:
        return {
            'line_number': self.line_number,
            'document_range': list(self.document_range),
            'submission_range': list(self.submission_range),
        }


def _require(data: Dict[str, Any], key: str, kind, path: str):
    """Read a required, typed field from a response record."""
    if not isinstance(data, dict):
        raise ResponseParseError(f"Expected an object at {path}", path=path)
    if key not in data:
        raise ResponseParseError(f"Missing field '{key}' at {path}", path=f"{path}.{key}")
    value = data[key]
    # bool is an int subclass; offsets and lengths must be real integers
    if kind is int and isinstance(value, bool):
        raise ResponseParseError(f"Field '{key}' at {path} must be int", path=f"{path}.{key}")
    if not isinstance(value, kind):
        raise ResponseParseError(
            f"Field '{key}' at {path} must be {kind.__name__}, got {type(value).__name__}",
            path=f"{path}.{key}"
        )
    return value


@dataclass(frozen=True)
class Match:
    """
    One issue reported by the checking service.

    offset and length are relative to the submission text.
    """
    offset: int
    length: int
    message: str
    short_message: str = ""
    replacements: Tuple[str, ...] = ()
    issue_type: str = ""
    description: str = ""
    rule_id: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any], path: str = 'match') -> 'Match':
        """
        Parse a match record from the service response.

        Raises:
            ResponseParseError: when a required field is absent or mistyped
        """
        offset = _require(data, 'offset', int, path)
        length = _require(data, 'length', int, path)
        message = _require(data, 'message', str, path)
        if offset < 0 or length < 0:
            raise ResponseParseError(f"Negative offset or length at {path}", path=path)

        short_message = data.get('shortMessage') or ""
        if not isinstance(short_message, str):
            raise ResponseParseError(f"Field 'shortMessage' at {path} must be str",
                                     path=f"{path}.shortMessage")

        rule = _require(data, 'rule', dict, path)
        issue_type = _require(rule, 'issueType', str, f"{path}.rule")
        description = _require(rule, 'description', str, f"{path}.rule")
        rule_id = rule.get('id') or ""

        raw_replacements = data.get('replacements') or []
        if not isinstance(raw_replacements, list):
            raise ResponseParseError(f"Field 'replacements' at {path} must be a list",
                                     path=f"{path}.replacements")
        replacements = tuple(
            _require(item, 'value', str, f"{path}.replacements[{i}]")
            for i, item in enumerate(raw_replacements)
        )

        return cls(
            offset=offset,
            length=length,
            message=message,
            short_message=short_message,
            replacements=replacements,
            issue_type=issue_type,
            description=description,
            rule_id=str(rule_id),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'offset': self.offset,
            'length': self.length,
            'message': self.message,
            'short_message': self.short_message,
            'replacements': list(self.replacements),
            'issue_type': self.issue_type,
            'description': self.description,
            'rule_id': self.rule_id,
        }


@dataclass(frozen=True)
class CheckResponse:
    """Parsed body of a checking service response."""
    matches: Tuple[Match, ...] = ()
    language: str = ""

    @classmethod
    def from_dict(cls, data: Any) -> 'CheckResponse':
        if not isinstance(data, dict):
            raise ResponseParseError("Response body must be a JSON object", path='$')
        raw_matches = _require(data, 'matches', list, '$')
        matches = tuple(
            Match.from_dict(item, path=f"$.matches[{i}]")
            for i, item in enumerate(raw_matches)
        )
        language = data.get('language') or {}
        code = language.get('code', '') if isinstance(language, dict) else ''
        return cls(matches=matches, language=code)


@dataclass(eq=False)
class Annotation:
    """
    A match resolved into document coordinates and bound to a live span.

    Attributes:
        annotation_id: Stable identifier for commands
        line_number: 1-based line in the latest committed baseline; set by
            the resolver and renumbered by each later cycle
        position: 1-based document position of the first covered character
        length: Number of covered characters
        text: The covered text at the time of resolution
        span: Live highlighted span (owned by this annotation)
    """
    annotation_id: str
    line_number: int
    position: int
    length: int
    text: str
    message: str
    short_message: str = ""
    replacements: List[str] = field(default_factory=list)
    issue_type: str = ""
    description: str = ""
    rule_id: str = ""
    span: Optional[Any] = None

    @property
    def is_live(self) -> bool:
        return self.span is not None and self.span.alive

    @property
    def start(self) -> int:
        """Current 0-based start, following the span when it is live."""
        if self.is_live:
            return self.span.start
        return self.position - 1

    @property
    def end(self) -> int:
        if self.is_live:
            return self.span.end
        return self.position - 1 + self.length

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            'id': self.annotation_id,
            'line_number': self.line_number,
            'position': self.position,
            'length': self.length,
            'start': self.start,
            'end': self.end,
            'text': self.text,
            'message': self.message,
            'short_message': self.short_message,
            'replacements': list(self.replacements),
            'issue_type': self.issue_type,
            'description': self.description,
            'rule_id': self.rule_id,
            'live': self.is_live,
        }
