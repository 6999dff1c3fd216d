"""Relevance gate deciding whether retrieved chunks can ground an answer.

When nothing clears the threshold the query is out of domain, and the query
text picks which canned reply is sent back. The intent never feeds back into
retrieval.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence

import structlog

from newsbot import config
from newsbot.rag.store_faiss import RetrievalResult

logger = structlog.get_logger()

GREETING_PHRASES = ("hi", "hello", "hey", "good morning", "good evening", "how are you")
PERSONAL_PHRASES = (
    "who are you",
    "what are you",
    "your name",
    "about yourself",
    "tell me about you",
)

REFUSAL_PREFIX = "I'm a news chatbot designed to answer questions about current news articles. "
REFUSAL_OPENERS = {
    "greeting": (
        "Hello! I can help you find information about recent news. "
        "Try asking me about topics like:\n\n"
    ),
    "personal": (
        "I don't have personal experiences, but I can help you with news "
        "information. Try asking about:\n\n"
    ),
    "generic": (
        "I couldn't find relevant news articles for your query. "
        "Please ask me about current events like:\n\n"
    ),
}
SUGGESTED_TOPICS = (
    "Technology and AI developments",
    "Climate and environmental news",
    "Business and economic updates",
    "Scientific breakthroughs",
    "Global events and politics",
)
REFUSAL_SUGGESTION = "Try asking: 'What's new in technology?' or 'Tell me about climate news'"


class QueryIntent(str, Enum):
    GREETING = "greeting"
    PERSONAL = "personal"
    GENERIC = "generic"


@dataclass
class GateDecision:
    """Outcome of gating one query's retrieval results."""

    accepted: List[RetrievalResult] = field(default_factory=list)
    is_in_domain: bool = False
    intent: Optional[QueryIntent] = None


def classify_intent(query: str) -> QueryIntent:
    """Classify an out-of-domain query by case-insensitive phrase matching."""
    lowered = query.lower()
    if any(phrase in lowered for phrase in GREETING_PHRASES):
        return QueryIntent.GREETING
    if any(phrase in lowered for phrase in PERSONAL_PHRASES):
        return QueryIntent.PERSONAL
    return QueryIntent.GENERIC


def refusal_message(intent: QueryIntent) -> str:
    """Build the canned out-of-domain reply for an intent."""
    bullets = "\n".join(f"• {topic}" for topic in SUGGESTED_TOPICS)
    return REFUSAL_PREFIX + REFUSAL_OPENERS[intent.value] + bullets


class RetrievalGate:
    """Threshold filter over retrieval results."""

    def __init__(self, threshold: float = None):
        self.threshold = config.RELEVANCE_THRESHOLD if threshold is None else threshold

    def gate(
        self,
        query: str,
        results: Sequence[RetrievalResult],
        threshold: float = None,
    ) -> GateDecision:
        """Keep results scoring strictly above the threshold.

        Args:
            query: The user query, used only to pick a refusal template
            results: Retrieval results in ranked order
            threshold: Overrides the gate's default threshold

        Returns:
            GateDecision; ``intent`` is set only when the query is out of domain
        """
        threshold = self.threshold if threshold is None else threshold
        accepted = [result for result in results if result.score > threshold]

        logger.info(
            "retrieval_gated",
            retrieved=len(results),
            accepted=len(accepted),
            threshold=threshold,
        )

        if accepted:
            return GateDecision(accepted=accepted, is_in_domain=True)

        return GateDecision(
            accepted=[], is_in_domain=False, intent=classify_intent(query)
        )
