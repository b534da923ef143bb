"""Clean-up of text pulled out of PDF pages."""
from __future__ import annotations

import re
import unicodedata

# Soft hyphens and zero-width marks PyMuPDF passes through verbatim.
_INVISIBLE_CHARS = dict.fromkeys(map(ord, "\u00ad\u200b\u200c\u200d\ufeff"))
_HORIZONTAL_SPACE_RE = re.compile(r"[^\S\n]+")
_SPACE_AROUND_NEWLINE_RE = re.compile(r" ?\n ?")
_BLANK_RUN_RE = re.compile(r"\n{3,}")


def normalize_text(text: str) -> str:
    """Return page text with ligatures expanded and whitespace tidied.

    NFKC folds typographic ligatures (``ﬁ`` → ``fi``) and full-width forms
    into plain characters. Line breaks are kept and runs of blank lines are
    reduced to one, so paragraph boundaries survive for the chunker.
    """

    cleaned = unicodedata.normalize("NFKC", text).translate(_INVISIBLE_CHARS)
    cleaned = cleaned.replace("\r\n", "\n").replace("\r", "\n").replace("\f", "\n\n")
    cleaned = _HORIZONTAL_SPACE_RE.sub(" ", cleaned)
    cleaned = _SPACE_AROUND_NEWLINE_RE.sub("\n", cleaned)
    cleaned = _BLANK_RUN_RE.sub("\n\n", cleaned)
    return cleaned.strip()
