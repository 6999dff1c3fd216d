"""Query pipeline: embed, retrieve, gate and generate a grounded answer.

The pipeline never raises to its caller. Anything unexpected turns into an
apologetic but well-formed QueryOutcome.
"""
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

import structlog

from newsbot import config
from newsbot.llm_client import GeminiClient
from newsbot.rag.embeddings import EmbeddingProvider
from newsbot.rag.gate import (
    REFUSAL_SUGGESTION,
    QueryIntent,
    RetrievalGate,
    refusal_message,
)
from newsbot.rag.store_faiss import FAISSVectorIndex, RetrievalResult

logger = structlog.get_logger()

ERROR_ANSWER = "I encountered an error while processing your question. Please try again."


@dataclass
class SourceCitation:
    """A source shown next to an answer."""

    title: str
    url: str
    snippet: str
    score: float
    published_at: str


@dataclass
class QueryOutcome:
    """Answer to a single user question."""

    answer: str
    query: str
    sources: List[SourceCitation] = field(default_factory=list)
    is_in_domain: bool = False
    retrieved_count: int = 0
    degraded: bool = False
    suggestion: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def make_snippet(content: str, length: int = None) -> str:
    length = length or config.SNIPPET_LENGTH
    return content[:length] + "..."


def to_citation(result: RetrievalResult) -> SourceCitation:
    payload = result.payload
    return SourceCitation(
        title=result.title,
        url=payload.get("document_url", ""),
        snippet=make_snippet(payload.get("content", "")),
        score=result.score,
        published_at=payload.get("published_at", ""),
    )


class QueryPipeline:
    """Read-only question answering over the vector index."""

    def __init__(
        self,
        embedder: EmbeddingProvider,
        index: FAISSVectorIndex,
        gate: RetrievalGate,
        generator: GeminiClient,
        default_top_k: int = None,
    ):
        self.embedder = embedder
        self.index = index
        self.gate = gate
        self.generator = generator
        self.default_top_k = default_top_k or config.RETRIEVAL_TOP_K

    async def query(self, user_query: str, top_k: int = None) -> QueryOutcome:
        """Answer a question from the indexed news.

        Args:
            user_query: The user's question
            top_k: Number of chunks to retrieve (default from config)

        Returns:
            QueryOutcome; out-of-domain and failed queries are still well-formed
        """
        top_k = top_k or self.default_top_k

        if not isinstance(user_query, str) or not user_query.strip():
            logger.warning("empty_query_provided", query_type=type(user_query).__name__)
            return self._refusal(
                user_query if isinstance(user_query, str) else "", QueryIntent.GENERIC
            )

        logger.info("query_started", query_length=len(user_query), top_k=top_k)

        try:
            results = await self.search(user_query, top_k)
            decision = self.gate.gate(user_query, results)

            if not decision.is_in_domain:
                return self._refusal(user_query, decision.intent)

            outcome = await self.generator.generate_with_outcome(
                user_query, decision.accepted
            )

            logger.info(
                "query_answered",
                retrieved=len(results),
                accepted=len(decision.accepted),
                degraded=outcome.degraded,
            )

            return QueryOutcome(
                answer=outcome.value,
                query=user_query,
                sources=[to_citation(result) for result in decision.accepted],
                is_in_domain=True,
                retrieved_count=len(decision.accepted),
                degraded=outcome.degraded,
            )

        except Exception as e:
            logger.error(
                "query_failed",
                error=str(e),
                error_type=type(e).__name__,
                query_preview=user_query[:100],
            )
            return QueryOutcome(
                answer=ERROR_ANSWER,
                query=user_query,
                is_in_domain=False,
                degraded=True,
                error=str(e),
            )

    async def search(self, user_query: str, top_k: int = None) -> List[RetrievalResult]:
        """Embed a query and return the raw ranked results, ungated.

        Raises:
            RuntimeError: If the index has not been opened
        """
        top_k = top_k or self.default_top_k
        stats = await self.index.stats()
        if not stats.get("entry_count"):
            logger.info("empty_index_no_results")
            return []

        query_vector = await self.embedder.embed_one(user_query)
        return await self.index.search(query_vector, top_k)

    async def available_topics(self, limit: int = 5) -> Dict[str, Any]:
        """Article count and a sample of indexed article titles."""
        try:
            stats = await self.index.stats()
            payloads = await self.index.sample_payloads(limit * 4)
        except Exception as e:
            logger.error("topics_lookup_failed", error=str(e))
            return {"total_articles": 0, "sample_topics": []}

        titles: List[str] = []
        for payload in payloads:
            title = payload.get("document_title")
            if title and title not in titles:
                titles.append(title)

        return {
            "total_articles": stats.get("entry_count", 0),
            "sample_topics": titles[:limit],
        }

    def _refusal(self, user_query: str, intent: QueryIntent) -> QueryOutcome:
        logger.info("query_out_of_domain", intent=intent.value)
        return QueryOutcome(
            answer=refusal_message(intent),
            query=user_query,
            sources=[],
            is_in_domain=False,
            retrieved_count=0,
            suggestion=REFUSAL_SUGGESTION,
        )
