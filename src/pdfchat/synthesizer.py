"""Answer synthesis on top of retrieved passages and page images."""
from __future__ import annotations

import logging
import time
import uuid
from typing import Optional, Sequence

from pdfchat.errors import GenerationFailure
from pdfchat.llm_provider import LLM, TextPart
from pdfchat.prompt_builder import build_prompt_parts
from pdfchat.telemetry import emit_inference_request, emit_inference_result, emit_prompt_event

LOGGER = logging.getLogger(__name__)

DEFAULT_TEMPERATURE = 0.1
DEFAULT_TOP_P = 0.9


class AnswerSynthesizer:
    """Build a grounded prompt and ask the generative model for an answer.

    Low temperature with a high nucleus threshold keeps answers close to the
    supplied context.
    """

    def __init__(
        self,
        llm: LLM,
        *,
        temperature: float = DEFAULT_TEMPERATURE,
        top_p: float = DEFAULT_TOP_P,
        max_tokens: Optional[int] = None,
    ) -> None:
        self._llm = llm
        self.temperature = temperature
        self.top_p = top_p
        self.max_tokens = max_tokens

    async def answer(self, query: str, top_passages: Sequence[str], page_images: Sequence[str]) -> str:
        parts = build_prompt_parts(query, top_passages, page_images)
        instruction = parts[0].text if isinstance(parts[0], TextPart) else ""
        emit_prompt_event(
            system_prompt=instruction,
            passages=len(top_passages),
            images=len(page_images),
            context_chars=sum(len(passage) for passage in top_passages),
        )

        req_id = uuid.uuid4().hex
        emit_inference_request(
            req_id=req_id,
            model=self._llm.model_name,
            question=query,
            parts=len(parts),
            temperature=self.temperature,
            top_p=self.top_p,
            max_tokens=self.max_tokens,
        )
        started = time.perf_counter()
        try:
            answer = await self._llm.generate(
                parts,
                temperature=self.temperature,
                top_p=self.top_p,
                max_tokens=self.max_tokens,
            )
        except Exception as error:
            emit_inference_result(
                req_id=req_id,
                duration_ms=(time.perf_counter() - started) * 1000.0,
                model_used=self._llm.model_name,
                answer_preview="",
                error=error,
            )
            raise GenerationFailure(f"Answer generation failed: {error}", cause=error) from error

        if not answer or not answer.strip():
            LOGGER.warning("Generative model %s returned an empty answer", self._llm.model_name)
            raise GenerationFailure("Generative model returned an empty answer")

        emit_inference_result(
            req_id=req_id,
            duration_ms=(time.perf_counter() - started) * 1000.0,
            model_used=self._llm.model_name,
            answer_preview=answer,
        )
        return answer
