"""Answer cache backed by a shared remote key-value store.

Entries live at ``<namespace>/<key>`` as ``{answer, query, type, timestamp}``
with ``timestamp`` in epoch milliseconds. Reads fail open and writes are
fire-and-forget: caching never decides whether the user gets an answer.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Protocol, Set, Union

import httpx

from agent.errors import CacheError

logger = logging.getLogger(__name__)

FRESHNESS_WINDOW_MS = 604_800_000

# Firebase paths cannot address an empty child, so the shared
# "no alphanumerics" key is stored under a placeholder segment.
EMPTY_KEY_SEGMENT = "_"


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class CacheHit:
    answer: str


@dataclass(frozen=True)
class CacheMiss:
    pass


@dataclass(frozen=True)
class CacheStale:
    answer: str
    age_ms: int


@dataclass(frozen=True)
class CacheFailure:
    reason: str


CacheLookupResult = Union[CacheHit, CacheMiss, CacheStale, CacheFailure]


class RemoteStore(Protocol):
    async def get(self, path: str) -> Optional[Any]: ...

    async def put(self, path: str, value: Any) -> None: ...


class FirebaseStore:
    """Firebase Realtime Database over its REST interface.

    Any transport or status failure is raised as ``CacheError``.
    """

    def __init__(
        self,
        database_url: str,
        auth_token: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.database_url = database_url.rstrip("/")
        self.auth_token = auth_token
        self.timeout = timeout
        self._transport = transport

    def _url(self, path: str) -> str:
        return f"{self.database_url}/{path.strip('/')}.json"

    def _params(self) -> Dict[str, str]:
        return {"auth": self.auth_token} if self.auth_token else {}

    async def get(self, path: str) -> Optional[Any]:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.get(self._url(path), params=self._params())
                response.raise_for_status()
                return response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise CacheError(f"Cache read failed for {path}: {exc}") from exc

    async def put(self, path: str, value: Any) -> None:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.put(self._url(path), params=self._params(), json=value)
                response.raise_for_status()
        except httpx.HTTPError as exc:
            raise CacheError(f"Cache write failed for {path}: {exc}") from exc


class InMemoryStore:
    """Process-local store for single-process runs and tests."""

    def __init__(self) -> None:
        self.data: Dict[str, Any] = {}

    async def get(self, path: str) -> Optional[Any]:
        return self.data.get(path.strip("/"))

    async def put(self, path: str, value: Any) -> None:
        self.data[path.strip("/")] = value


class ResponseCache:
    """TTL-bound lookup and write-through for generated answers.

    A ``store`` of None means caching is disabled: every lookup is a miss
    and writes are dropped.
    """

    def __init__(
        self,
        store: Optional[RemoteStore],
        namespace: str = "drona_chat_cache",
        ttl_ms: int = FRESHNESS_WINDOW_MS,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.store = store
        self.namespace = namespace.strip("/")
        self.ttl_ms = ttl_ms
        self.clock = clock
        self._pending: Set[asyncio.Task] = set()

    @property
    def enabled(self) -> bool:
        return self.store is not None

    def path_for(self, key: str) -> str:
        return f"{self.namespace}/{key or EMPTY_KEY_SEGMENT}"

    async def get(self, key: str) -> CacheLookupResult:
        if self.store is None:
            return CacheMiss()
        try:
            entry = await self.store.get(self.path_for(key))
        except Exception as exc:
            logger.warning("Cache read failed for key=%r: %s", key, exc)
            return CacheFailure(reason=str(exc))

        if not isinstance(entry, dict) or not isinstance(entry.get("answer"), str):
            return CacheMiss()
        try:
            age_ms = self.clock() - int(entry.get("timestamp", 0))
        except (TypeError, ValueError):
            return CacheMiss()
        if age_ms < self.ttl_ms:
            return CacheHit(answer=entry["answer"])
        return CacheStale(answer=entry["answer"], age_ms=age_ms)

    def set(self, key: str, answer: str, source_query: str, entry_type: str = "auto") -> None:
        """Schedule a best-effort write and return immediately."""
        if self.store is None:
            return
        task = asyncio.get_running_loop().create_task(
            self.write(key, answer, source_query, entry_type)
        )
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def write(self, key: str, answer: str, source_query: str, entry_type: str = "auto") -> bool:
        if self.store is None:
            return False
        entry = {
            "answer": answer,
            "query": source_query,
            "type": entry_type,
            "timestamp": self.clock(),
        }
        try:
            await self.store.put(self.path_for(key), entry)
        except Exception as exc:
            logger.warning("Cache write failed for key=%r: %s", key, exc)
            return False
        return True

    async def drain(self) -> None:
        """Wait for scheduled writes; used at shutdown and in tests."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


def build_store(settings) -> Optional[RemoteStore]:
    if not settings.cache_enabled:
        logger.info("No cache store configured; running with caching disabled")
        return None
    return FirebaseStore(
        settings.firebase_database_url,
        auth_token=settings.firebase_auth_token,
        timeout=settings.cache_store_timeout,
    )
