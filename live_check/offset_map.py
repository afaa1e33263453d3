"""
Offset Map Builder
==================
Builds the submission text for a cycle and records, for every added line,
where its text sits in the document and in the submission.
"""

from typing import Iterable, List, Tuple

from config_logging import get_logger

from .document import EditorDocument
from .models import OffsetMapEntry

logger = get_logger('live_check.offset_map')


def build_offset_map(
    document: EditorDocument,
    added_lines: Iterable[int]
) -> Tuple[str, List[OffsetMapEntry]]:
    """
    Concatenate the added lines and map each one back to the document.

    Lines are read from the live document with their trailing newline, in
    ascending line order. Line numbers past the end of the document are
    skipped.

    Args:
        document: The live document
        added_lines: 1-based line numbers to submit

    Returns:
        (submission_text, entries); both empty when there are no lines
    """
    text = document.get_text()
    parts: List[str] = []
    entries: List[OffsetMapEntry] = []
    cursor = 0

    for line_number in sorted(set(added_lines)):
        try:
            doc_start, doc_end = document.line_span(line_number)
        except IndexError:
            logger.warning(f"Added line {line_number} is past the end of the document; skipped")
            continue

        line = text[doc_start:doc_end]
        parts.append(line)
        entries.append(OffsetMapEntry(
            line_number=line_number,
            doc_start=doc_start,
            doc_end=doc_end,
            sub_start=cursor,
            sub_end=cursor + len(line),
        ))
        cursor += len(line)

    submission_text = ''.join(parts)
    logger.debug(f"Offset map built: {len(entries)} lines, {len(submission_text)} chars")
    return submission_text, entries
