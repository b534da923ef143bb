from __future__ import annotations

import re
from typing import List

PARAGRAPH_BREAK_RE = re.compile(r"\n\s*\n")
DEFAULT_MIN_CHARS = 10


def chunk_text(text: str, min_chars: int = DEFAULT_MIN_CHARS) -> List[str]:
    """Split *text* into paragraph passages.

    One or more blank lines separate paragraphs. Segments whose stripped
    length is ``min_chars`` or shorter are dropped as noise (stray
    whitespace, page numbers). Source order is preserved and the segments
    are returned as they appear in the text.
    """

    if min_chars < 0:
        raise ValueError("min_chars must be a non-negative integer")
    if not text:
        return []

    return [segment for segment in PARAGRAPH_BREAK_RE.split(text) if len(segment.strip()) > min_chars]
