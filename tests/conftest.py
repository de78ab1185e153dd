from __future__ import annotations

from typing import Any, List, Optional

import pytest
from langchain_core.messages import AIMessage

from agent.cache import InMemoryStore, ResponseCache
from agent.gateway import GenerationGateway
from agent.pipeline import ChatPipeline
from config.settings import Settings


class FakeLLM:
    def __init__(self, reply: Any = "Federalism is...", error: Optional[Exception] = None) -> None:
        self.reply = reply
        self.error = error
        self.calls: List[list] = []

    async def ainvoke(self, messages):
        self.calls.append(list(messages))
        if self.error is not None:
            raise self.error
        return AIMessage(content=self.reply)


@pytest.fixture
def settings() -> Settings:
    s = Settings()
    s.persona = "auto"
    s.honor_query_type = False
    return s


@pytest.fixture
def llm() -> FakeLLM:
    return FakeLLM()


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def pipeline(llm, store, settings) -> ChatPipeline:
    return ChatPipeline(GenerationGateway(llm=llm, settings=settings), ResponseCache(store), settings)
