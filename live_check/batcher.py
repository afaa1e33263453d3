"""
Incremental Batcher
===================
Bounds how much of a large document is snapshotted per cycle until the
first full pass has been submitted.

Cycle N of the first pass snapshots the first block_size * N characters.
Once a bound reaches the end of the document the first pass is complete
and every later cycle snapshots the whole document.
"""

from dataclasses import dataclass
from typing import Dict, Any

from config_logging import get_logger, DEFAULT_BLOCK_SIZE

logger = get_logger('live_check.batcher')


@dataclass
class BatchState:
    """Per-session batching cursor."""
    block_count: int = 1
    first_pass_complete: bool = False

    def reset(self):
        self.block_count = 1
        self.first_pass_complete = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            'block_count': self.block_count,
            'first_pass_complete': self.first_pass_complete,
        }


class IncrementalBatcher:
    """Decides the end boundary of each cycle's snapshot."""

    def __init__(self, block_size: int = DEFAULT_BLOCK_SIZE):
        if block_size <= 0:
            raise ValueError(f"block_size must be positive, got {block_size}")
        self.block_size = block_size

    def snapshot_bound(self, state: BatchState, document_length: int) -> int:
        """
        Return the number of leading characters to snapshot this cycle.

        Advances state: the block counter grows while the bound falls short
        of the document end, and the first-pass flag is set permanently once
        it does not.
        """
        if state.first_pass_complete:
            return document_length

        bound = self.block_size * state.block_count
        if bound >= document_length:
            state.first_pass_complete = True
            logger.info(f"First pass complete after {state.block_count} block(s)")
            return document_length

        logger.debug(f"Incremental snapshot bound {bound} of {document_length} chars "
                     f"(block {state.block_count})")
        state.block_count += 1
        return bound
