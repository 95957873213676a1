"""Tests for the search orchestrator: dispatch, AI fallback, cache and history."""

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from ocpexplorer.core.errors import AIServiceFailure
from ocpexplorer.core.types import GeoPoint
from ocpexplorer.data.repository import LocalDataRepository
from ocpexplorer.search.contract import AIProxyResponse
from ocpexplorer.search.orchestrator import (
    SearchOrchestrator,
    cache_key,
    is_simple_query,
    normalize_query,
)

AI_QUESTION = "what can I build near the skytrain station"


def _ai_answer(**overrides) -> AIProxyResponse:
    fields = dict(
        answer="Both RM and MH apply here; see policy 3.1.",
        confidence=0.85,
        mentioned_areas=["RM", "MH", "ZZ"],
        mentioned_policies=["3.1"],
        citations=["RM", "MH", "ZZ", "3.1"],
    )
    fields.update(overrides)
    return AIProxyResponse(**fields)


@pytest.fixture
def ai_client():
    client = MagicMock()
    client.ask = AsyncMock(return_value=_ai_answer())
    return client


@pytest.fixture
def clock():
    now = [1000.0]
    tick = MagicMock(side_effect=lambda: now[0])
    tick.now = now
    return tick


@pytest.fixture
def orchestrator(repository, engine, ai_client, clock):
    return SearchOrchestrator(repository, engine, ai_client, clock=clock)


class TestHelpers:
    def test_normalize_query(self):
        assert normalize_query("  Mixed-Use!!  Buildings ") == "mixed-use buildings"
        assert normalize_query("Queen's Park") == "queen's park"

    def test_simple_queries(self):
        assert is_simple_query("residential")
        assert is_simple_query("mixed use")
        assert is_simple_query("mixed-use")
        assert is_simple_query("institutional")
        assert is_simple_query("industrial")
        assert is_simple_query("r1")
        assert is_simple_query("rm6")
        assert is_simple_query("10 storeys")
        assert is_simple_query("height")

    def test_complex_queries(self):
        assert not is_simple_query("what is r1")
        assert not is_simple_query(AI_QUESTION)

    def test_cache_key(self):
        assert cache_key("parks", GeoPoint(49.2, -122.9)) == "parks_49.2_-122.9"
        assert cache_key("parks", None) == "parks__"


class TestDispatch:
    @pytest.mark.asyncio
    async def test_simple_query_stays_local(self, orchestrator, ai_client):
        result = await orchestrator.search("Residential")
        assert result.method == "local"
        assert result.query == "residential"
        assert result.results
        ai_client.ask.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_local_mode_never_calls_ai(self, orchestrator, ai_client):
        result = await orchestrator.search(AI_QUESTION, mode="local")
        assert result.method == "local"
        ai_client.ask.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_ai_mode_forces_ai(self, orchestrator, ai_client):
        result = await orchestrator.search("residential", mode="ai")
        assert result.method == "ai"
        ai_client.ask.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_ai_results(self, orchestrator, ai_client):
        result = await orchestrator.search(AI_QUESTION)

        assert result.method == "ai"
        assert result.ai_response.startswith("Both RM and MH")
        assert result.confidence == 0.85
        assert result.citations == ["RM", "MH", "ZZ", "3.1"]
        assert [r.type for r in result.results] == ["ai-answer", "ai-mentioned", "ai-mentioned"]
        assert [r.code for r in result.results[1:]] == ["RM", "MH"]

    @pytest.mark.asyncio
    async def test_ai_receives_raw_query_and_context(self, orchestrator, ai_client):
        location = GeoPoint(49.2057, -122.9110)
        await orchestrator.search(f"  {AI_QUESTION.upper()}  ", location=location)

        question, context, sent_location, max_results = ai_client.ask.await_args.args
        assert question == AI_QUESTION.upper()
        assert sent_location == location
        assert max_results == 10
        assert context["queryLocation"] == {"lat": 49.2057, "lng": -122.9110}
        assert context["availableData"]["land_use_designations"] == 12

    @pytest.mark.asyncio
    async def test_missing_confidence_defaults(self, orchestrator, ai_client):
        ai_client.ask.return_value = _ai_answer(confidence=None)
        result = await orchestrator.search(AI_QUESTION)
        assert result.confidence == 0.8

    @pytest.mark.asyncio
    async def test_local_path_uses_traced_retriever(self, orchestrator, engine):
        with patch.object(engine, "search_page", wraps=engine.search_page) as search_page:
            result = await orchestrator.search("residential")
        search_page.assert_called_once_with("residential", 10, None)
        assert result.total_found >= len(result.results)

    @pytest.mark.asyncio
    async def test_total_counts_matches_before_truncation(self, orchestrator):
        result = await orchestrator.search("mixed use housing", mode="local", max_results=3)
        assert len(result.results) == 3
        assert result.total_found == 4

    @pytest.mark.asyncio
    async def test_zero_max_results_clamped_to_one(self, orchestrator):
        result = await orchestrator.search("residential", max_results=0)
        assert len(result.results) == 1

    @pytest.mark.asyncio
    async def test_negative_max_results_clamped_to_one(self, orchestrator):
        result = await orchestrator.search("commercial", max_results=-3)
        assert [r.code for r in result.results] == ["C"]


class TestFallback:
    @pytest.mark.asyncio
    async def test_ai_failure_falls_back_to_local(self, orchestrator, ai_client):
        ai_client.ask.side_effect = AIServiceFailure("AI search failed: 500", status_code=500)

        result = await orchestrator.search(AI_QUESTION)
        direct = orchestrator.local_search(normalize_query(AI_QUESTION), None, 10)

        assert result.method == "local"
        assert result.fallback is True
        assert result.ai_error == "AI search failed: 500"
        assert result.results == direct.results

    @pytest.mark.asyncio
    async def test_unexpected_ai_error_also_falls_back(self, orchestrator, ai_client):
        ai_client.ask.side_effect = RuntimeError("socket closed")
        result = await orchestrator.search(AI_QUESTION)
        assert result.method == "local"
        assert result.fallback is True


class TestNeverThrows:
    @pytest.mark.asyncio
    async def test_overlong_query(self, orchestrator):
        result = await orchestrator.search("a" * 1000)
        assert result.method == "error"
        assert "too long" in result.error
        assert result.suggestion

    @pytest.mark.asyncio
    async def test_script_payload(self, orchestrator, ai_client):
        result = await orchestrator.search("<script>alert(1)</script> zoning")
        assert result.method == "error"
        ai_client.ask.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_engine_crash(self, orchestrator, engine):
        with patch.object(engine, "collect", side_effect=RuntimeError("boom")):
            result = await orchestrator.search("residential")
        assert result.method == "error"
        assert result.error == "boom"

    @pytest.mark.asyncio
    async def test_empty_query(self, orchestrator):
        result = await orchestrator.search("  !!  ")
        assert result.method == "none"
        assert result.error == "Empty query"
        assert orchestrator.get_stats()["cache_size"] == 0
        assert orchestrator.history == []

    @pytest.mark.asyncio
    async def test_data_unavailable(self, engine, ai_client, tmp_path):
        repo = LocalDataRepository(str(tmp_path / "missing"))
        orch = SearchOrchestrator(repo, engine, ai_client)
        result = await orch.search("residential")
        assert result.method == "not-ready"
        assert "initializing" in result.error


class TestCache:
    @pytest.mark.asyncio
    async def test_repeat_returns_identical_result(self, orchestrator, engine):
        with patch.object(engine, "collect", wraps=engine.collect) as collect:
            first = await orchestrator.search("residential")
            second = await orchestrator.search("  RESIDENTIAL ")
        assert second is first
        assert collect.call_count == 1
        assert first.cached_at == 1000.0

    @pytest.mark.asyncio
    async def test_repeat_ai_query_skips_proxy(self, orchestrator, ai_client):
        first = await orchestrator.search(AI_QUESTION)
        second = await orchestrator.search(AI_QUESTION)
        assert second is first
        ai_client.ask.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_location_is_part_of_key(self, orchestrator):
        first = await orchestrator.search("residential")
        second = await orchestrator.search("residential", location=GeoPoint(49.2057, -122.9110))
        assert second is not first

    @pytest.mark.asyncio
    async def test_entries_expire(self, orchestrator, clock):
        first = await orchestrator.search("residential")
        clock.now[0] += 1800
        second = await orchestrator.search("residential")
        assert second is not first

    @pytest.mark.asyncio
    async def test_zero_ttl_never_expires(self, repository, engine, ai_client, clock):
        orch = SearchOrchestrator(repository, engine, ai_client, cache_ttl_seconds=0, clock=clock)
        first = await orch.search("residential")
        clock.now[0] += 10 ** 6
        assert await orch.search("residential") is first

    @pytest.mark.asyncio
    async def test_oldest_inserted_evicted(self, repository, engine, ai_client, clock):
        orch = SearchOrchestrator(repository, engine, ai_client, cache_size=2, clock=clock)
        first = await orch.search("residential")
        await orch.search("commercial")
        await orch.search("industrial")
        assert orch.get_stats()["cache_size"] == 2
        assert await orch.search("residential") is not first


class TestHistory:
    @pytest.mark.asyncio
    async def test_bounded_most_recent_first(self, orchestrator):
        for i in range(25):
            await orchestrator.search(f"zone {i}", mode="local")
        history = orchestrator.history
        assert len(history) == 20
        assert history[0].query == "zone 24"
        assert history[-1].query == "zone 5"

    @pytest.mark.asyncio
    async def test_cache_hits_are_recorded(self, orchestrator):
        await orchestrator.search("residential")
        await orchestrator.search("residential")
        assert [h.query for h in orchestrator.history] == ["residential", "residential"]

    @pytest.mark.asyncio
    async def test_stats(self, orchestrator, ai_client):
        await orchestrator.search("residential")
        await orchestrator.search(AI_QUESTION)
        ai_client.ask.side_effect = AIServiceFailure("down")
        await orchestrator.search("what about heritage buildings downtown")

        stats = orchestrator.get_stats()
        assert stats["total_searches"] == 3
        assert stats["method_breakdown"] == {"local": 2, "ai": 1}
        assert stats["cache_size"] == 3
        assert stats["recent_queries"][0] == "what about heritage buildings downtown"

    @pytest.mark.asyncio
    async def test_clear_history(self, orchestrator):
        await orchestrator.search("residential")
        orchestrator.clear_history()
        assert orchestrator.history == []
        assert orchestrator.get_stats()["cache_size"] == 0


class TestSuggestions:
    def test_too_short(self, orchestrator):
        assert orchestrator.get_suggestions("r") == []
        assert orchestrator.get_suggestions("") == []

    def test_common_terms(self, orchestrator):
        assert orchestrator.get_suggestions("zon") == ["commercial zones", "zoning restrictions", "industrial zones"]

    @pytest.mark.asyncio
    async def test_history_terms_follow_common_terms(self, orchestrator):
        await orchestrator.search("rezoning near braid", mode="local")
        suggestions = orchestrator.get_suggestions("zon")
        assert suggestions[-1] == "rezoning near braid"

    @pytest.mark.asyncio
    async def test_capped(self, orchestrator):
        for i in range(10):
            await orchestrator.search(f"area {i}", mode="local")
        assert len(orchestrator.get_suggestions("area")) == 8
