"""Server half of a chat submission: cache lookup, generation, write-through."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from agent.cache import CacheFailure, CacheHit, CacheStale, ResponseCache
from agent.core.prompt import select_persona, system_text_for
from agent.core.turns import Turn
from agent.errors import RemoteGenerationError, ValidationError
from agent.gateway import GenerationGateway, Success
from agent.keys import derive_cache_key
from config.settings import Settings, get_settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChatReply:
    text: str
    from_cache: bool = False

    def to_payload(self) -> dict:
        return {"text": self.text, "fromCache": self.from_cache}


class ChatPipeline:
    def __init__(
        self,
        gateway: GenerationGateway,
        cache: ResponseCache,
        settings: Optional[Settings] = None,
    ) -> None:
        self.gateway = gateway
        self.cache = cache
        self.settings = settings or get_settings()

    async def respond(self, contents: Sequence[Turn], query_type: Optional[str] = None) -> ChatReply:
        self.gateway.ensure_configured()
        if not contents:
            raise ValidationError()

        last = contents[-1]
        persona = select_persona(self.settings.persona, query_type, self.settings.honor_query_type)

        # Image-bearing turns never touch the cache.
        cacheable = not last.has_image
        query = last.text or ""
        key = derive_cache_key(query) if cacheable else None

        if key is not None:
            lookup = await self.cache.get(key)
            if isinstance(lookup, CacheHit):
                logger.info("Cache hit key=%r", key)
                return ChatReply(text=lookup.answer, from_cache=True)
            if isinstance(lookup, CacheStale):
                logger.info("Cache stale key=%r age_ms=%s", key, lookup.age_ms)
            elif isinstance(lookup, CacheFailure):
                logger.info("Cache unavailable key=%r, generating", key)

        result = await self.gateway.generate(list(contents), system_text_for(persona))
        if not isinstance(result, Success):
            raise RemoteGenerationError(result.message)

        if key is not None:
            self.cache.set(key, result.text, query, entry_type=persona)
        return ChatReply(text=result.text, from_cache=False)
