from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional

import httpx

from agent.cache import RemoteStore, now_ms
from agent.core.turns import Turn
from agent.gateway import GenerationGateway, Success
from config.settings import Settings, get_settings

logger = logging.getLogger(__name__)

FALLBACK_TOPICS = [
    "Impact of recent Supreme Court judgments on Federalism",
    "Analyze the current Monetary Policy stance of RBI",
    "India's strategic role in the Global South",
]

SEARCH_QUERY = "(UPSC OR editorial) (site:thehindu.com OR site:indianexpress.com OR site:pib.gov.in)"

EXTRACTION_PROMPT = (
    "Extract 3 complex UPSC Mains topics from these headlines. "
    "Return strictly a JSON array of strings. Headlines:\n{titles}"
)


def _strip_code_fences(text: str) -> str:
    stripped = text.strip()
    if stripped.startswith("```"):
        stripped = stripped[3:]
        if stripped.startswith("json"):
            stripped = stripped[len("json"):].lstrip()
        stripped = stripped.rstrip()
        if stripped.endswith("```"):
            stripped = stripped[:-3]
    return stripped.strip()


def _extract_json_segment(text: str) -> Optional[str]:
    start = text.find("[")
    if start == -1:
        return None
    stack = 0
    for idx in range(start, len(text)):
        ch = text[idx]
        if ch == "[":
            stack += 1
        elif ch == "]":
            stack -= 1
            if stack == 0:
                return text[start: idx + 1]
    return None


def parse_topics(text: str) -> List[str]:
    cleaned = _strip_code_fences(text)
    try:
        decoded = json.loads(cleaned)
    except json.JSONDecodeError:
        segment = _extract_json_segment(cleaned)
        if not segment:
            raise ValueError("No JSON array in topic extraction output")
        decoded = json.loads(segment)
    if not isinstance(decoded, list):
        raise ValueError("Topic extraction did not return a list")
    topics = [str(item).strip() for item in decoded if str(item).strip()]
    if not topics:
        raise ValueError("Topic extraction returned no topics")
    return topics


class TrendingService:
    """Suggested conversation starters from recent editorials.

    Always answers: missing keys or upstream failures yield the static
    fallback list.
    """

    def __init__(
        self,
        gateway: GenerationGateway,
        store: Optional[RemoteStore] = None,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.gateway = gateway
        self.store = store
        self.settings = settings or get_settings()
        self._transport = transport

    async def _cached_topics(self) -> Optional[List[str]]:
        if self.store is None:
            return None
        try:
            record = await self.store.get(self.settings.trending_cache_namespace)
        except Exception as exc:
            logger.warning("Trending cache read failed: %s", exc)
            return None
        if not isinstance(record, dict) or not isinstance(record.get("topics"), list):
            return None
        try:
            age_ms = now_ms() - int(record.get("timestamp", 0))
        except (TypeError, ValueError):
            return None
        if age_ms < self.settings.trending_ttl_ms:
            return [str(topic) for topic in record["topics"]]
        return None

    async def _store_topics(self, topics: List[str]) -> None:
        if self.store is None:
            return
        try:
            await self.store.put(
                self.settings.trending_cache_namespace,
                {"topics": topics, "timestamp": now_ms()},
            )
        except Exception as exc:
            logger.warning("Trending cache write failed: %s", exc)

    async def _search_headlines(self) -> str:
        params: Dict[str, Any] = {
            "key": self.settings.google_search_api_key,
            "cx": self.settings.google_cx_id,
            "q": SEARCH_QUERY,
            "num": 5,
            "sort": "date",
        }
        async with httpx.AsyncClient(timeout=10.0, transport=self._transport) as client:
            response = await client.get(self.settings.search_api_url, params=params)
            response.raise_for_status()
            data = response.json()
        items = data.get("items") or []
        return "\n".join(str(item.get("title", "")) for item in items)

    async def topics(self) -> List[str]:
        cached = await self._cached_topics()
        if cached:
            return cached

        if not self.settings.google_search_api_key or not self.gateway.configured:
            return list(FALLBACK_TOPICS)

        try:
            titles = await self._search_headlines()
            result = await self.gateway.generate(
                [Turn.user(EXTRACTION_PROMPT.format(titles=titles))], system_text=None
            )
            if not isinstance(result, Success):
                raise RuntimeError(result.message)
            topics = parse_topics(result.text)
        except (httpx.HTTPError, ValueError, RuntimeError) as exc:
            logger.warning("Trending fetch failed, serving fallback topics: %s", exc)
            return list(FALLBACK_TOPICS)

        await self._store_topics(topics)
        return topics
