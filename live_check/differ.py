"""
Line Differ v1.0.0
==================
Line-level change detection between two snapshots.

Runs difflib's unified diff with zero context lines and expands each hunk
header ("@@ -L[,N] +L[,N] @@") into explicit line numbers: N lines starting
at L, with N defaulting to 1 when omitted.
"""

import re
import difflib
from typing import List, Tuple

from config_logging import get_logger

from .document import split_lines
from .models import LineChangeSet

logger = get_logger('live_check.differ')

HUNK_HEADER_RE = re.compile(r'^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@')


def parse_hunk_header(header: str) -> Tuple[List[int], List[int]]:
    """
    Expand one hunk header into (deleted, added) line numbers.

    A malformed header contributes no lines.
    """
    match = HUNK_HEADER_RE.match(header)
    if not match:
        logger.warning(f"Ignoring malformed hunk header: {header.strip()!r}")
        return [], []

    old_start, old_count, new_start, new_count = match.groups()
    old_start, new_start = int(old_start), int(new_start)
    old_count = 1 if old_count is None else int(old_count)
    new_count = 1 if new_count is None else int(new_count)

    deleted = list(range(old_start, old_start + old_count))
    added = list(range(new_start, new_start + new_count))
    return deleted, added


class LineDiffer:
    """
    Compares two snapshots line by line.

    Stateless; one instance can be shared across sessions.
    """

    def unified_diff(self, previous_text: str, current_text: str) -> List[str]:
        """Return the zero-context unified diff as a list of lines."""
        return list(difflib.unified_diff(
            split_lines(previous_text),
            split_lines(current_text),
            n=0,
        ))

    def diff_lines(self, previous_text: str, current_text: str) -> LineChangeSet:
        """
        Compute deleted and added line numbers.

        Args:
            previous_text: Baseline snapshot text
            current_text: Candidate snapshot text

        Returns:
            LineChangeSet with deleted lines numbered against previous_text
            and added lines numbered against current_text
        """
        deleted: List[int] = []
        added: List[int] = []
        hunks = 0

        for line in self.unified_diff(previous_text, current_text):
            if not line.startswith('@@'):
                continue
            hunks += 1
            hunk_deleted, hunk_added = parse_hunk_header(line)
            deleted.extend(hunk_deleted)
            added.extend(hunk_added)

        logger.debug(f"Diff complete: {hunks} hunks, -{len(deleted)} +{len(added)} lines")
        return LineChangeSet(deleted=tuple(deleted), added=tuple(added))


def diff_lines(previous_text: str, current_text: str) -> LineChangeSet:
    """Convenience wrapper around LineDiffer.diff_lines()."""
    return LineDiffer().diff_lines(previous_text, current_text)
