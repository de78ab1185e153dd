from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence, Union

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from langchain_google_genai import ChatGoogleGenerativeAI

from agent.core.turns import ImageSegment, Role, TextSegment, Turn
from agent.errors import ConfigurationError
from config.settings import Settings, get_settings

logger = logging.getLogger(__name__)

MAX_ERROR_LENGTH = 500
TEMPERATURE = 0.8


@dataclass(frozen=True)
class Success:
    text: str


@dataclass(frozen=True)
class RemoteError:
    message: str


@dataclass(frozen=True)
class EmptyResponse:
    message: str = "AI returned empty response."


GenerationResult = Union[Success, RemoteError, EmptyResponse]


def build_llm(settings: Optional[Settings] = None) -> BaseChatModel:
    settings = settings or get_settings()
    if not settings.gemini_api_key:
        raise ConfigurationError()

    kwargs = {}
    if settings.generation_timeout:
        kwargs["timeout"] = settings.generation_timeout

    return ChatGoogleGenerativeAI(
        model=settings.gemini_model,
        google_api_key=settings.gemini_api_key,
        temperature=TEMPERATURE,
        max_output_tokens=settings.max_output_tokens,
        # One attempt per request; retrying is a caller decision.
        max_retries=0,
        **kwargs,
    )


def _content_for(turn: Turn) -> Union[str, List[dict]]:
    blocks: List[dict] = []
    for part in turn.parts:
        if isinstance(part, TextSegment):
            blocks.append({"type": "text", "text": part.text})
        elif isinstance(part, ImageSegment):
            image = part.inline_data
            blocks.append(
                {"type": "image_url", "image_url": f"data:{image.mime_type};base64,{image.data}"}
            )
    if len(blocks) == 1 and blocks[0]["type"] == "text":
        return blocks[0]["text"]
    return blocks


def to_lc_messages(turns: Sequence[Turn], system_text: Optional[str] = None) -> List[BaseMessage]:
    messages: List[BaseMessage] = []
    if system_text:
        messages.append(SystemMessage(content=system_text))
    for turn in turns:
        if turn.role is Role.ASSISTANT:
            messages.append(AIMessage(content=_content_for(turn)))
        else:
            messages.append(HumanMessage(content=_content_for(turn)))
    return messages


def _extract_text(message: Any) -> str:
    content = getattr(message, "content", message)
    if isinstance(content, str):
        return content
    chunks: List[str] = []
    for item in content or []:
        if isinstance(item, str):
            chunks.append(item)
        elif isinstance(item, dict) and item.get("type", "text") == "text":
            chunks.append(str(item.get("text") or ""))
    return "".join(chunks)


def _describe_remote_error(exc: BaseException) -> str:
    raw = getattr(exc, "message", None) or str(exc)
    clean = " ".join(str(raw).split())[:MAX_ERROR_LENGTH]
    return clean or f"AI Error: {exc.__class__.__name__}"


class GenerationGateway:
    """Single-attempt call into the generative-text backend.

    The chat model is built lazily so a missing API key only fails the
    requests that actually need generation.
    """

    def __init__(self, llm: Optional[BaseChatModel] = None, settings: Optional[Settings] = None) -> None:
        self._settings = settings or get_settings()
        self._llm = llm

    @property
    def configured(self) -> bool:
        return self._llm is not None or bool(self._settings.gemini_api_key)

    def ensure_configured(self) -> None:
        if not self.configured:
            raise ConfigurationError()

    @property
    def llm(self) -> BaseChatModel:
        if self._llm is None:
            self._llm = build_llm(self._settings)
        return self._llm

    async def generate(self, turns: Sequence[Turn], system_text: Optional[str]) -> GenerationResult:
        messages = to_lc_messages(turns, system_text)
        llm = self.llm
        try:
            reply = await llm.ainvoke(messages)
        except Exception as exc:
            message = _describe_remote_error(exc)
            logger.warning("Generation failed: %s", message)
            return RemoteError(message=message)

        text = _extract_text(reply)
        if not text.strip():
            logger.warning("Generation returned no text (turns=%s)", len(turns))
            return EmptyResponse()
        return Success(text=text)
