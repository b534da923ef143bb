"""Utilities for constructing grounded prompts for the generative model."""
from __future__ import annotations

import re
from pathlib import Path
from typing import List, Sequence

from pdfchat.llm_provider import ContentPart, ImagePart, TextPart
from pdfchat.vectorstore import join_context

_PROMPTS_DIR = Path(__file__).resolve().parent / "prompts"
_SYSTEM_PROMPT_PATH = _PROMPTS_DIR / "system.txt"
_IMAGES_NOTE_PATH = _PROMPTS_DIR / "images.txt"
_QUESTION_PROMPT_PATH = _PROMPTS_DIR / "question.txt"

DEFAULT_IMAGE_MIME_TYPE = "image/jpeg"
_DATA_URL_RE = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(?:;[\w=.+-]+)*,", re.IGNORECASE)


def _load_template(path: Path) -> str:
    """Read and trim the contents of a template file."""
    return path.read_text(encoding="utf-8").strip()


_SYSTEM_TEMPLATE = _load_template(_SYSTEM_PROMPT_PATH)
_IMAGES_NOTE = _load_template(_IMAGES_NOTE_PATH)
_QUESTION_TEMPLATE = _load_template(_QUESTION_PROMPT_PATH)


def strip_data_url(value: str) -> str:
    """Return the raw payload of a data URL, or *value* unchanged."""

    match = _DATA_URL_RE.match(value)
    if match is None:
        return value
    return value[match.end():]


def image_mime_type(value: str, default: str = DEFAULT_IMAGE_MIME_TYPE) -> str:
    match = _DATA_URL_RE.match(value)
    if match is None or not match.group("mime"):
        return default
    return match.group("mime").lower()


def build_instruction(passages: Sequence[str], *, with_images: bool) -> str:
    """Compose the instruction text wrapping the retrieved context."""

    instruction = _SYSTEM_TEMPLATE.format(context=join_context(passages))
    if with_images:
        instruction = f"{instruction}\n\n{_IMAGES_NOTE}"
    return f"{instruction}\n"


def build_prompt_parts(question: str, passages: Sequence[str], page_images: Sequence[str]) -> List[ContentPart]:
    """Return the ordered prompt: instruction and context, page images, question."""

    if question is None:
        raise ValueError("question must not be None")

    parts: List[ContentPart] = [TextPart(build_instruction(passages, with_images=bool(page_images)))]
    parts.extend(
        ImagePart(mime_type=image_mime_type(image), data=strip_data_url(image)) for image in page_images
    )
    parts.append(TextPart(_QUESTION_TEMPLATE.format(question=question)))
    return parts


__all__ = ["build_instruction", "build_prompt_parts", "image_mime_type", "strip_data_url"]
