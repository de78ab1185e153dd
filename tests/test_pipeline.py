import pytest

from agent.cache import CacheMiss, InMemoryStore, ResponseCache, now_ms
from agent.core.prompt import ACADEMIC_PROMPT, SYSTEM_PROMPT
from agent.core.turns import InlineData, Turn
from agent.errors import ConfigurationError, RemoteGenerationError, ValidationError
from agent.gateway import GenerationGateway
from agent.pipeline import ChatPipeline, ChatReply
from tests.conftest import FakeLLM


class SpyCache(ResponseCache):
    def __init__(self) -> None:
        super().__init__(InMemoryStore())
        self.gets = []
        self.sets = []

    async def get(self, key):
        self.gets.append(key)
        return CacheMiss()

    def set(self, key, answer, source_query, entry_type="auto"):
        self.sets.append(key)


@pytest.mark.asyncio
async def test_miss_generates_and_writes_through(pipeline, llm, store) -> None:
    reply = await pipeline.respond([Turn.user("What is federalism?")])
    await pipeline.cache.drain()

    assert reply == ChatReply(text="Federalism is...", from_cache=False)
    assert reply.to_payload() == {"text": "Federalism is...", "fromCache": False}
    entry = store.data["drona_chat_cache/whatisfederalism"]
    assert entry["answer"] == "Federalism is..."
    assert entry["query"] == "What is federalism?"
    assert entry["type"] == "auto"
    assert len(llm.calls) == 1


@pytest.mark.asyncio
async def test_repeat_query_is_served_from_cache(pipeline, llm) -> None:
    await pipeline.respond([Turn.user("What is federalism?")])
    await pipeline.cache.drain()

    reply = await pipeline.respond([Turn.user("what is FEDERALISM")])

    assert reply == ChatReply(text="Federalism is...", from_cache=True)
    assert len(llm.calls) == 1


@pytest.mark.asyncio
async def test_stale_entry_is_regenerated(pipeline, llm, store) -> None:
    store.data["drona_chat_cache/whatisfederalism"] = {
        "answer": "outdated",
        "timestamp": now_ms() - 8 * 24 * 3_600_000,
    }

    reply = await pipeline.respond([Turn.user("What is federalism?")])

    assert reply.text == "Federalism is..."
    assert reply.from_cache is False
    assert len(llm.calls) == 1


@pytest.mark.asyncio
async def test_image_turns_never_touch_the_cache(llm, settings) -> None:
    cache = SpyCache()
    pipeline = ChatPipeline(GenerationGateway(llm=llm, settings=settings), cache, settings)
    turn = Turn.user("What is federalism?", [InlineData(mime_type="image/jpeg", data="aGk=")])

    reply = await pipeline.respond([turn])

    assert reply.from_cache is False
    assert cache.gets == []
    assert cache.sets == []


@pytest.mark.asyncio
async def test_full_history_and_system_text_are_sent(pipeline, llm) -> None:
    history = [Turn.user("Hi"), Turn.assistant("Hello!"), Turn.user("Explain Art 280")]

    await pipeline.respond(history, query_type="academic")

    messages = llm.calls[0]
    assert messages[0].content == SYSTEM_PROMPT
    assert len(messages) == 4


@pytest.mark.asyncio
async def test_query_type_selects_persona_when_allowed(pipeline, llm, settings) -> None:
    settings.honor_query_type = True

    await pipeline.respond([Turn.user("Explain Art 280")], query_type="academic")

    assert llm.calls[0][0].content == ACADEMIC_PROMPT


@pytest.mark.asyncio
async def test_generation_failure_raises_and_skips_cache(settings, store) -> None:
    llm = FakeLLM(error=RuntimeError("The model is overloaded"))
    cache = ResponseCache(store)
    pipeline = ChatPipeline(GenerationGateway(llm=llm, settings=settings), cache, settings)

    with pytest.raises(RemoteGenerationError) as excinfo:
        await pipeline.respond([Turn.user("What is federalism?")])
    await cache.drain()

    assert excinfo.value.public_message == "The model is overloaded"
    assert store.data == {}


@pytest.mark.asyncio
async def test_empty_answer_is_a_generation_failure(settings, store) -> None:
    pipeline = ChatPipeline(GenerationGateway(llm=FakeLLM(""), settings=settings), ResponseCache(store), settings)

    with pytest.raises(RemoteGenerationError):
        await pipeline.respond([Turn.user("What is federalism?")])


@pytest.mark.asyncio
async def test_empty_contents_rejected(pipeline, llm) -> None:
    with pytest.raises(ValidationError):
        await pipeline.respond([])
    assert llm.calls == []


@pytest.mark.asyncio
async def test_missing_api_key_fails_before_anything_else(settings, store) -> None:
    settings.gemini_api_key = None
    pipeline = ChatPipeline(GenerationGateway(settings=settings), ResponseCache(store), settings)

    with pytest.raises(ConfigurationError):
        await pipeline.respond([Turn.user("What is federalism?")])
