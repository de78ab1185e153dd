from __future__ import annotations

import logging
from typing import List, Optional

from pydantic import ValidationError as SchemaError

from agent.core.turns import Turn, TurnLog, dump_turns
from agent.errors import PersistenceCorruption
from client.storage import LocalStorage, MemoryStorage

logger = logging.getLogger(__name__)

STORAGE_KEY = "drona_conversation"


def decode_turns(raw: str) -> List[Turn]:
    try:
        return TurnLog.validate_json(raw)
    except (SchemaError, ValueError) as exc:
        raise PersistenceCorruption(str(exc)) from exc


class ConversationStore:
    """Ordered, role-tagged turn log mirrored to durable storage.

    Every append is persisted before it returns, so a crash loses at most
    the request still in flight.
    """

    def __init__(self, storage: Optional[LocalStorage | MemoryStorage] = None, key: str = STORAGE_KEY) -> None:
        self.storage = storage if storage is not None else MemoryStorage()
        self.key = key
        self._turns: List[Turn] = []

    def __len__(self) -> int:
        return len(self._turns)

    def append(self, turn: Turn) -> None:
        self._turns.append(turn)
        self.persist()

    def all(self) -> List[Turn]:
        return list(self._turns)

    def persist(self) -> bool:
        try:
            self.storage.set_item(self.key, dump_turns(self._turns))
        except OSError as exc:
            logger.warning("Could not persist conversation (%s turns): %s", len(self._turns), exc)
            return False
        return True

    def rehydrate(self) -> List[Turn]:
        raw = self.storage.get_item(self.key)
        if raw is None:
            self._turns = []
            return []
        try:
            self._turns = decode_turns(raw)
        except PersistenceCorruption as exc:
            logger.warning("Discarding corrupted conversation under %r: %s", self.key, exc)
            self.storage.remove_item(self.key)
            self._turns = []
        return self.all()

    def clear(self) -> None:
        self._turns = []
        self.storage.remove_item(self.key)
