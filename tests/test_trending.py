import httpx
import pytest

from agent.cache import InMemoryStore, now_ms
from agent.gateway import GenerationGateway
from agent.tools.trending import FALLBACK_TOPICS, TrendingService, parse_topics
from tests.conftest import FakeLLM


def search_transport(calls):
    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(
            200,
            json={"items": [{"title": "SC on Governor's assent"}, {"title": "RBI holds repo rate"}]},
        )

    return httpx.MockTransport(handler)


@pytest.fixture
def search_settings(settings):
    settings.google_search_api_key = "search-key"
    settings.google_cx_id = "cx-id"
    return settings


def test_parse_topics_handles_fenced_and_wrapped_output() -> None:
    assert parse_topics('```json\n["A", "B"]\n```') == ["A", "B"]
    assert parse_topics('Here you go: ["A", "B", "C"] hope this helps') == ["A", "B", "C"]
    with pytest.raises(ValueError):
        parse_topics('{"topics": "A"}')


@pytest.mark.asyncio
async def test_fresh_topics_come_from_search_and_extraction(search_settings) -> None:
    calls = []
    store = InMemoryStore()
    llm = FakeLLM('["Governor\'s role in Federalism", "Monetary policy", "Global South"]')
    service = TrendingService(
        GenerationGateway(llm=llm, settings=search_settings),
        store,
        search_settings,
        transport=search_transport(calls),
    )

    topics = await service.topics()

    assert topics == ["Governor's role in Federalism", "Monetary policy", "Global South"]
    assert calls[0].url.params["num"] == "5"
    assert calls[0].url.params["sort"] == "date"
    assert "RBI holds repo rate" in llm.calls[0][0].content
    assert store.data["drona_trending_cache"]["topics"] == topics


@pytest.mark.asyncio
async def test_cached_topics_skip_upstream(search_settings) -> None:
    calls = []
    store = InMemoryStore()
    store.data["drona_trending_cache"] = {"topics": ["Cached topic"], "timestamp": now_ms()}
    llm = FakeLLM()
    service = TrendingService(
        GenerationGateway(llm=llm, settings=search_settings), store, search_settings, transport=search_transport(calls)
    )

    assert await service.topics() == ["Cached topic"]
    assert calls == []
    assert llm.calls == []


@pytest.mark.asyncio
async def test_expired_topics_are_refetched(search_settings) -> None:
    calls = []
    store = InMemoryStore()
    store.data["drona_trending_cache"] = {"topics": ["Old"], "timestamp": now_ms() - 7 * 3_600_000}
    service = TrendingService(
        GenerationGateway(llm=FakeLLM('["New"]'), settings=search_settings),
        store,
        search_settings,
        transport=search_transport(calls),
    )

    assert await service.topics() == ["New"]
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_upstream_failure_serves_fallback(search_settings) -> None:
    service = TrendingService(
        GenerationGateway(llm=FakeLLM(), settings=search_settings),
        None,
        search_settings,
        transport=httpx.MockTransport(lambda request: httpx.Response(403)),
    )

    assert await service.topics() == FALLBACK_TOPICS


@pytest.mark.asyncio
async def test_unparseable_extraction_serves_fallback(search_settings) -> None:
    service = TrendingService(
        GenerationGateway(llm=FakeLLM("no topics today"), settings=search_settings),
        None,
        search_settings,
        transport=search_transport([]),
    )

    assert await service.topics() == FALLBACK_TOPICS
