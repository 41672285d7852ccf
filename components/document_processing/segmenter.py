"""
Markdown segmentation into retrievable chunks.

The segmenter is a line scanner with four states. Fenced code blocks and prose
paragraphs become chunks; headings, blank lines and `---` delimited regions
(front matter, comments) are dropped. A block still open at end of input is
discarded rather than emitted partially.
"""

from enum import Enum
from typing import List

CODE_FENCE = "```"
COMMENT_DELIMITER = "---"
HEADING_MARKER = "#"


class SegmenterState(Enum):
    IDLE = "idle"
    IN_CODE_BLOCK = "in_code_block"
    IN_PROSE = "in_prose"
    IN_COMMENT_BLOCK = "in_comment_block"


def segment(text: str) -> List[str]:
    """Split Markdown text into an ordered list of chunks.

    Args:
        text: Raw Markdown contents.

    Returns:
        The chunks in source order. Every line of a chunk, including the
        fence lines of a code block, ends with a newline.
    """
    chunks: List[str] = []
    state = SegmenterState.IDLE
    current: List[str] = []

    for raw_line in text.split("\n"):
        line = raw_line.rstrip("\r")

        if state is SegmenterState.IDLE:
            if line.startswith(CODE_FENCE):
                state = SegmenterState.IN_CODE_BLOCK
                current = [line]
            elif line.startswith(COMMENT_DELIMITER):
                state = SegmenterState.IN_COMMENT_BLOCK
            elif line and not line.startswith(HEADING_MARKER):
                state = SegmenterState.IN_PROSE
                current = [line]

        elif state is SegmenterState.IN_CODE_BLOCK:
            current.append(line)
            if line.startswith(CODE_FENCE):
                chunks.append(_join(current))
                current = []
                state = SegmenterState.IDLE

        elif state is SegmenterState.IN_COMMENT_BLOCK:
            if line.startswith(COMMENT_DELIMITER):
                state = SegmenterState.IDLE

        elif state is SegmenterState.IN_PROSE:
            if not line:
                chunks.append(_join(current))
                current = []
                state = SegmenterState.IDLE
            else:
                current.append(line)

    return chunks


def _join(lines: List[str]) -> str:
    return "".join(f"{line}\n" for line in lines)
