"""
Match Resolver
==============
Translates service match offsets (relative to the submission text) into
document line numbers and 1-based document positions.

Known imprecision: an entry is chosen only when its submission range
strictly contains the offset (sub_start < offset < sub_end). Offsets that
sit exactly on a line start, or past the last entry, resolve against the
last entry instead. Such matches are kept and may be mis-anchored.
"""

from typing import Sequence

from config_logging import get_logger

from .models import Match, OffsetMapEntry

logger = get_logger('live_check.resolver')


def resolve_entry(offset: int, entries: Sequence[OffsetMapEntry]) -> OffsetMapEntry:
    """
    Find the offset map entry a submission offset belongs to.

    Raises:
        ValueError: when the offset map is empty
    """
    if not entries:
        raise ValueError("Cannot resolve a match against an empty offset map")

    for entry in entries:
        if entry.strictly_contains(offset):
            return entry

    logger.debug(f"Offset {offset} not strictly inside any entry; "
                 f"falling back to line {entries[-1].line_number}")
    return entries[-1]


def resolve_line(match: Match, entries: Sequence[OffsetMapEntry]) -> int:
    """Return the 1-based document line a match belongs to."""
    return resolve_entry(match.offset, entries).line_number


def resolve_offset(match: Match, entries: Sequence[OffsetMapEntry]) -> int:
    """Return the 1-based document position of a match's first character."""
    entry = resolve_entry(match.offset, entries)
    return match.offset + entry.doc_start + 1 - entry.sub_start
