"""
Tests for newsbot/rag/query.py
Question answering: retrieve, gate, generate, never raise.
"""
from unittest.mock import AsyncMock

from conftest import FakeGenerator, make_result
from newsbot.llm_client import FALLBACK_RESPONSE
from newsbot.rag.gate import REFUSAL_OPENERS, REFUSAL_PREFIX, REFUSAL_SUGGESTION, RetrievalGate
from newsbot.rag.query import ERROR_ANSWER, QueryPipeline, make_snippet
from newsbot.results import Outcome


class TestEndToEnd:
    """Ingest then query against a real index with fallback embeddings."""

    async def test_in_domain_question_is_answered(
        self, ingestion, query_pipeline, generator, climate_document
    ):
        await ingestion.ingest([climate_document])

        outcome = await query_pipeline.query("climate change news", top_k=3)

        assert outcome.is_in_domain is True
        assert outcome.answer == generator.answer
        assert any(source.title == "Climate Summit Reaches Agreement" for source in outcome.sources)
        assert outcome.retrieved_count == len(outcome.sources)
        assert outcome.degraded is False

        query, results = generator.calls[0]
        assert query == "climate change news"
        assert all(result.score > 0.3 for result in results)

    async def test_greeting_against_empty_index(self, query_pipeline, generator):
        outcome = await query_pipeline.query("hello")

        assert outcome.is_in_domain is False
        assert outcome.sources == []
        assert outcome.answer.startswith(REFUSAL_PREFIX + REFUSAL_OPENERS["greeting"])
        assert outcome.suggestion == REFUSAL_SUGGESTION
        assert generator.calls == []

    async def test_sources_carry_snippets(self, ingestion, query_pipeline, climate_document):
        await ingestion.ingest([climate_document])

        outcome = await query_pipeline.query("carbon emissions agreement")
        source = outcome.sources[0]

        assert source.url == "https://example.com/climate"
        assert source.published_at == "2024-01-14T15:45:00Z"
        assert source.snippet.endswith("...")
        assert len(source.snippet) == 153


class TestDegradedPaths:
    """Failures become well-formed outcomes."""

    def make_pipeline(self, results=None, generator=None, search_error=None):
        embedder = AsyncMock()
        embedder.embed_one.return_value = [0.0] * 768
        index = AsyncMock()
        index.stats.return_value = {"entry_count": 3}
        if search_error:
            index.search.side_effect = search_error
        else:
            index.search.return_value = results or []
        return QueryPipeline(embedder, index, RetrievalGate(), generator or FakeGenerator())

    async def test_unexpected_error_gives_apology(self):
        pipeline = self.make_pipeline(search_error=RuntimeError("index is on fire"))

        outcome = await pipeline.query("What happened at the summit?")

        assert outcome.answer == ERROR_ANSWER
        assert outcome.is_in_domain is False
        assert outcome.degraded is True
        assert outcome.error == "index is on fire"

    async def test_non_string_query_is_refused(self):
        generator = FakeGenerator()
        pipeline = self.make_pipeline(results=[make_result(0.9)], generator=generator)

        outcome = await pipeline.query(12345)

        assert outcome.is_in_domain is False
        assert outcome.query == ""
        assert outcome.sources == []
        assert generator.calls == []

    async def test_generation_fallback_marks_outcome_degraded(self):
        generator = AsyncMock()
        generator.generate_with_outcome.return_value = Outcome.fallback(
            FALLBACK_RESPONSE, "HTTP 503"
        )
        pipeline = self.make_pipeline(results=[make_result(0.8)], generator=generator)

        outcome = await pipeline.query("What happened at the summit?")

        assert outcome.answer == FALLBACK_RESPONSE
        assert outcome.is_in_domain is True
        assert outcome.degraded is True
        assert len(outcome.sources) == 1

    async def test_only_results_above_threshold_are_cited(self):
        pipeline = self.make_pipeline(
            results=[make_result(0.9, "kept"), make_result(0.3, "dropped")]
        )
        outcome = await pipeline.query("summit")

        assert [source.title for source in outcome.sources] == ["kept"]
        assert outcome.retrieved_count == 1

    async def test_low_scores_are_out_of_domain(self):
        pipeline = self.make_pipeline(results=[make_result(0.1)])
        outcome = await pipeline.query("best lasagna recipe")

        assert outcome.is_in_domain is False
        assert outcome.answer.startswith(REFUSAL_PREFIX + REFUSAL_OPENERS["generic"])

    async def test_blank_query(self, query_pipeline):
        outcome = await query_pipeline.query("   ")
        assert outcome.is_in_domain is False
        assert outcome.sources == []

    async def test_outcome_serialises(self):
        pipeline = self.make_pipeline(results=[make_result(0.8)])
        data = (await pipeline.query("summit")).to_dict()

        assert data["is_in_domain"] is True
        assert data["sources"][0]["title"] == "Article"


class TestSearchAndTopics:
    async def test_search_on_unopened_index(self, query_pipeline):
        assert await query_pipeline.search("anything") == []

    async def test_available_topics(self, ingestion, query_pipeline, climate_document):
        await ingestion.ingest([climate_document])
        topics = await query_pipeline.available_topics()

        assert topics["total_articles"] == 1
        assert topics["sample_topics"] == ["Climate Summit Reaches Agreement"]


def test_make_snippet():
    assert make_snippet("x" * 200) == "x" * 150 + "..."
    assert make_snippet("short") == "short..."
