"""Gemini client wrapper with bounded retry and a safe fallback reply."""
import asyncio
import random
from typing import Awaitable, Callable, Dict, List, Optional, Sequence

import httpx
import structlog

from newsbot import config
from newsbot.errors import UpstreamFatal, classify_http_error, is_retryable
from newsbot.rag.store_faiss import RetrievalResult
from newsbot.results import Outcome

logger = structlog.get_logger()

FALLBACK_RESPONSE = (
    "I apologize, but I'm experiencing high traffic right now. Please try asking "
    "your question again in a moment. The news articles are available, but I need "
    "a moment to process your request."
)

PROMPT_TEMPLATE = """You are a professional news chatbot that provides information based on current news articles. Answer the user's question using ONLY the provided news context.

CONTEXT (Current News Articles):
{context}

USER QUESTION: {query}

INSTRUCTIONS:
- Answer based STRICTLY on the provided news articles
- Be informative and professional like a news reporter
- If the context doesn't fully answer the question, say so and suggest related topics from the articles
- Include specific details and facts from the news sources
- Maintain an objective, journalistic tone
- Do NOT make up information not present in the articles

NEWS RESPONSE:"""

CONNECTION_TEST_PROMPT = 'Say "Hello, Gemini API is working!"'


def build_prompt(query: str, results: Sequence[RetrievalResult]) -> str:
    """Build the grounding prompt from accepted retrieval results.

    Args:
        query: User question
        results: Accepted results, numbered in the given order

    Returns:
        Prompt string
    """
    context = "\n\n".join(
        f"[{index}] {result.content}" for index, result in enumerate(results, 1)
    )
    return PROMPT_TEMPLATE.format(context=context, query=query)


class GeminiClient:
    """Async client for the Gemini generateContent API."""

    def __init__(
        self,
        api_key: str = None,
        model: str = None,
        base_url: str = None,
        timeout: float = None,
        max_retries: int = None,
        base_delay: float = None,
        max_delay: float = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        jitter: Callable[[], float] = random.random,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the Gemini client.

        Args:
            api_key: Gemini API key (defaults to config.GEMINI_API_KEY)
            model: Model to use (defaults to config.GEMINI_MODEL)
            base_url: API base URL (defaults to config.GEMINI_BASE_URL)
            timeout: Request timeout in seconds
            max_retries: Maximum number of attempts per call
            base_delay: First backoff delay in seconds
            max_delay: Upper bound for any single backoff delay in seconds
            sleep: Awaitable sleep used between attempts
            jitter: Returns a value in [0, 1), scaled to up to one second of jitter
            transport: Optional httpx transport, used by tests
        """
        self.api_key = config.GEMINI_API_KEY if api_key is None else api_key
        self.model = model or config.GEMINI_MODEL
        self.base_url = (base_url or config.GEMINI_BASE_URL).rstrip("/")
        self.timeout = timeout or config.GEMINI_TIMEOUT
        self.max_retries = max_retries or config.GEMINI_MAX_RETRIES
        self.base_delay = config.GEMINI_BASE_DELAY if base_delay is None else base_delay
        self.max_delay = config.GEMINI_MAX_DELAY if max_delay is None else max_delay
        self.sleep = sleep
        self.jitter = jitter
        self.transport = transport

        self.generation_config = {
            "temperature": config.GEMINI_TEMPERATURE,
            "topK": config.GEMINI_TOP_K,
            "topP": config.GEMINI_TOP_P,
            "maxOutputTokens": config.GEMINI_MAX_OUTPUT_TOKENS,
        }

    async def generate(self, query: str, results: Sequence[RetrievalResult]) -> str:
        """Answer a question from accepted retrieval results.

        Returns:
            Generated answer, or FALLBACK_RESPONSE if retries were exhausted

        Raises:
            UpstreamFatal: On non-retryable API errors
        """
        outcome = await self.generate_with_outcome(query, results)
        return outcome.value

    async def generate_with_outcome(
        self, query: str, results: Sequence[RetrievalResult]
    ) -> Outcome[str]:
        """Like generate(), but tagged with whether the fallback reply was used."""
        prompt = build_prompt(query, results)
        logger.info(
            "gemini_generate_request",
            model=self.model,
            context_items=len(results),
            prompt_length=len(prompt),
        )
        return await self._execute_with_retry(lambda: self._generate_content(prompt))

    async def test_connection(self) -> str:
        """Send one short prompt to check the model answers.

        Raises:
            UpstreamFatal: On non-retryable API errors
        """
        outcome = await self._execute_with_retry(
            lambda: self._generate_content(CONNECTION_TEST_PROMPT)
        )
        return outcome.value

    def compute_delay(self, attempt: int) -> float:
        """Backoff before the attempt after ``attempt``, in seconds.

        Exponential from base_delay with up to one second of jitter, capped
        at max_delay.
        """
        exponential = self.base_delay * (2 ** (attempt - 1))
        return min(exponential + self.jitter() * 1.0, self.max_delay)

    async def _execute_with_retry(
        self, operation: Callable[[], Awaitable[str]]
    ) -> Outcome[str]:
        attempt = 1
        while True:
            try:
                return Outcome.ok(await operation())
            except (httpx.HTTPError, UpstreamFatal) as e:
                error = classify_http_error(e)

                logger.warning(
                    "gemini_attempt_failed",
                    attempt=attempt,
                    max_retries=self.max_retries,
                    error=str(error),
                    error_type=type(error).__name__,
                )

                if not is_retryable(error):
                    if error is e:
                        raise
                    raise error from e

                if attempt >= self.max_retries:
                    logger.error(
                        "gemini_retries_exhausted",
                        attempts=attempt,
                        error=str(error),
                    )
                    return Outcome.fallback(FALLBACK_RESPONSE, str(error))

                delay = self.compute_delay(attempt)
                logger.info(
                    "gemini_retry_scheduled",
                    attempt=attempt,
                    delay_seconds=round(delay, 3),
                )
                await self.sleep(delay)
                attempt += 1

    async def _generate_content(self, prompt: str) -> str:
        """Send one generateContent request.

        Raises:
            httpx.HTTPError: On transport failures and non-2xx responses
            UpstreamFatal: If no API key is set or the response carries no text
        """
        if not self.api_key:
            raise UpstreamFatal("GEMINI_API_KEY is not configured")

        payload = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": self.generation_config,
        }

        async with httpx.AsyncClient(
            timeout=self.timeout, transport=self.transport
        ) as client:
            response = await client.post(
                f"{self.base_url}/models/{self.model}:generateContent",
                params={"key": self.api_key},
                json=payload,
            )
            response.raise_for_status()

        try:
            data = response.json()
        except ValueError as e:
            raise UpstreamFatal(f"Gemini returned invalid JSON: {e}") from e

        text = self._extract_text(data)

        logger.info("gemini_generate_response", model=self.model, response_length=len(text))

        return text

    @staticmethod
    def _extract_text(data: Dict) -> str:
        candidates: List[Dict] = data.get("candidates") or []
        if not candidates:
            reason = (data.get("promptFeedback") or {}).get("blockReason", "no candidates")
            raise UpstreamFatal(f"Gemini returned no candidates: {reason}")

        parts = (candidates[0].get("content") or {}).get("parts") or []
        text = "".join(part.get("text", "") for part in parts)
        if not text:
            raise UpstreamFatal("Gemini returned an empty response")
        return text
