"""Keyword-anchored splitting of long text into sub-blocks."""
import logging
import re
from typing import List

logger = logging.getLogger(__name__)

ANCHORS = (
    'opening reception:',
    'exhibition dates:',
    'visit:',
    'dates:',
    'viewing hours:',
    'hours:',
)
MIN_BLOCK_COVERAGE = 0.98

# Longest anchors first, so "exhibition dates:" is not also split at "dates:".
_ANCHOR = re.compile(
    r'\b(?:'
    + '|'.join(re.escape(a) for a in sorted(ANCHORS, key=len, reverse=True))
    + r')',
    re.IGNORECASE
)
_WHITESPACE = re.compile(r'\s+')


def anchor_offsets(text: str) -> List[int]:
    return [match.start() for match in _ANCHOR.finditer(text)]


def block_coverage(blocks: List[str], text: str) -> float:
    """Share of the text's non-space characters kept by the blocks."""
    total = len(_WHITESPACE.sub('', text))
    if total == 0:
        return 1.0
    kept = sum(len(_WHITESPACE.sub('', block)) for block in blocks)
    return kept / total


def split_blocks(text: str) -> List[str]:
    """
    Split text at each anchor keyword.

    Args:
        text: Normalized text

    Returns:
        Contiguous blocks in order; the text itself as the only block when
        there is no anchor or the blocks lose part of the text
    """
    offsets = anchor_offsets(text)
    if not offsets:
        return [text]
    if offsets[0] > 0:
        offsets.insert(0, 0)

    bounds = zip(offsets, offsets[1:] + [len(text)])
    blocks = [text[start:end].strip() for start, end in bounds]
    blocks = [block for block in blocks if block]

    if block_coverage(blocks, text) < MIN_BLOCK_COVERAGE:
        logger.debug("Block split dropped text, keeping a single block")
        return [text]
    return blocks
