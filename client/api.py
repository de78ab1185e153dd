"""Thin async client for the chat server's HTTP surface."""

from __future__ import annotations

import logging
from typing import Any, List, Optional, Sequence

import httpx

from agent.core.turns import Turn, TurnLog
from agent.errors import RemoteGenerationError
from agent.pipeline import ChatReply

logger = logging.getLogger(__name__)

BASE_URL = "http://localhost:3000"


class ChatAPIClient:
    def __init__(
        self,
        base_url: str = BASE_URL,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout, transport=self._transport)

    async def chat(self, contents: Sequence[Turn], query_type: Optional[str] = None) -> ChatReply:
        payload: dict[str, Any] = {"contents": TurnLog.dump_python(list(contents), mode="json")}
        if query_type:
            payload["queryType"] = query_type
        try:
            async with self._client() as client:
                response = await client.post("/chat", json=payload)
                body = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise RemoteGenerationError(f"Network error: {exc}") from exc

        if response.status_code >= 400 or not isinstance(body, dict):
            message = body.get("error") if isinstance(body, dict) else None
            raise RemoteGenerationError(message or f"Server returned {response.status_code}")
        text = body.get("text")
        if not isinstance(text, str) or not text:
            raise RemoteGenerationError("Server returned no text")
        return ChatReply(text=text, from_cache=bool(body.get("fromCache")))

    async def fetch_topics(self) -> List[str]:
        try:
            async with self._client() as client:
                response = await client.get("/trending")
                response.raise_for_status()
                topics = response.json().get("topics") or []
        except (httpx.HTTPError, ValueError, AttributeError) as exc:
            logger.warning("Trending topics failed to load: %s", exc)
            return []
        return [str(topic) for topic in topics]
