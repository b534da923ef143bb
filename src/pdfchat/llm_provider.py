"""Clients for the external generative language model."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Optional, Sequence, Union

if TYPE_CHECKING:  # pragma: no cover - import for type checking only
    from pdfchat.config import Settings

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class TextPart:
    text: str


@dataclass(frozen=True, slots=True)
class ImagePart:
    """Inline image payload: raw base64 data plus its MIME type."""

    mime_type: str
    data: str


ContentPart = Union[TextPart, ImagePart]


class LLMError(RuntimeError):
    """Base exception raised for LLM provider issues."""


class LLMGenerationError(LLMError):
    """Raised when text generation fails unexpectedly."""


class LLM:
    """Common interface exposed by language model implementations."""

    async def generate(
        self,
        parts: Sequence[ContentPart],
        *,
        temperature: float,
        top_p: float,
        max_tokens: Optional[int] = None,
    ) -> str:
        """Generate a response for the ordered content parts."""

        raise NotImplementedError

    @property
    def model_name(self) -> str:
        """Human-readable identifier describing the model."""

        return "stub"


class OpenAIChatLLM(LLM):
    """Chat-completions backend for OpenAI-compatible APIs.

    All parts are sent as a single user message; image parts become
    ``image_url`` entries carrying a base64 data URL.
    """

    def __init__(
        self,
        model: str,
        *,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        client: Any = None,
    ) -> None:
        self._model = model
        self._api_key = api_key
        self._base_url = base_url
        self._client = client

    @property
    def model_name(self) -> str:
        return self._model

    def _get_client(self) -> Any:
        if self._client is None:
            import openai

            kwargs: dict[str, Any] = {}
            if self._api_key:
                kwargs["api_key"] = self._api_key
            if self._base_url:
                kwargs["base_url"] = self._base_url
            LOGGER.info("Initialising chat client for model %s", self._model)
            self._client = openai.AsyncOpenAI(**kwargs)
        return self._client

    @staticmethod
    def _to_message_content(parts: Sequence[ContentPart]) -> list[dict[str, Any]]:
        content: list[dict[str, Any]] = []
        for part in parts:
            if isinstance(part, ImagePart):
                content.append(
                    {
                        "type": "image_url",
                        "image_url": {"url": f"data:{part.mime_type};base64,{part.data}"},
                    }
                )
            else:
                content.append({"type": "text", "text": part.text})
        return content

    async def generate(
        self,
        parts: Sequence[ContentPart],
        *,
        temperature: float,
        top_p: float,
        max_tokens: Optional[int] = None,
    ) -> str:
        kwargs: dict[str, Any] = {
            "model": self._model,
            "messages": [{"role": "user", "content": self._to_message_content(parts)}],
            "temperature": temperature,
            "top_p": top_p,
        }
        if max_tokens is not None:
            kwargs["max_tokens"] = max_tokens

        try:
            response = await self._get_client().chat.completions.create(**kwargs)
        except Exception as error:
            raise LLMGenerationError(f"Chat completion request failed: {error}") from error

        if not response.choices:
            raise LLMGenerationError("Chat completion returned no choices")
        text = response.choices[0].message.content
        if not isinstance(text, str) or not text.strip():
            raise LLMGenerationError("Chat completion returned an empty answer")
        return text


class MockLLM(LLM):
    """Return a deterministic response echoing the final text part."""

    async def generate(
        self,
        parts: Sequence[ContentPart],
        *,
        temperature: float,
        top_p: float,
        max_tokens: Optional[int] = None,
    ) -> str:
        del temperature, top_p, max_tokens  # Unused in the mock implementation.
        texts = [part.text for part in parts if isinstance(part, TextPart)]
        last = texts[-1] if texts else ""
        return f"MOCK_ANSWER: {last[:100]}"

    @property
    def model_name(self) -> str:
        return "mock-llm"


def create_llm(settings: "Settings") -> LLM:
    """Return the generative backend selected by ``LLM_PROVIDER``."""

    if settings.provider == "mock":
        return MockLLM()
    return OpenAIChatLLM(
        settings.generative_model,
        api_key=settings.openai_api_key,
        base_url=settings.openai_base_url,
    )


__all__ = [
    "ContentPart",
    "ImagePart",
    "LLM",
    "LLMError",
    "LLMGenerationError",
    "MockLLM",
    "OpenAIChatLLM",
    "TextPart",
    "create_llm",
]
