"""Embedding provider backed by the Jina embeddings API.

Falls back to a deterministic local embedding for the whole batch when the
API is unconfigured, unreachable or answers with an error. The fallback is
silent for the caller: ``embed`` never raises for upstream problems.
"""
import re
from typing import List, Optional, Sequence

import httpx
import numpy as np
import structlog

from newsbot import config
from newsbot.errors import UpstreamFatal, classify_http_error
from newsbot.results import Outcome

logger = structlog.get_logger()

_WHITESPACE_RE = re.compile(r"\s+")


def fallback_embedding(text: str, dimension: int = None) -> List[float]:
    """Deterministic pseudo-embedding derived from surface features of the text.

    Each component mixes the length of a word, a character code and a smooth
    positional term, then the vector is L2-normalised. Empty text gives the
    zero vector.

    Args:
        text: Text to embed
        dimension: Vector length (default from config)

    Returns:
        List of floats with unit norm (or all zeros for empty text)
    """
    dimension = dimension or config.EMBEDDING_DIMENSION

    lowered = text.lower()
    words = _WHITESPACE_RE.split(lowered)
    word_lengths = np.array([len(word) or 1 for word in words], dtype=np.float64)
    if lowered:
        char_codes = np.array([ord(ch) or 65 for ch in lowered], dtype=np.float64)
    else:
        char_codes = np.array([65.0])

    positions = np.arange(dimension)
    word_feature = word_lengths[positions % len(word_lengths)]
    char_feature = char_codes[positions % len(char_codes)]
    pos_feature = np.sin(positions / 10) * 0.1

    vector = (
        (word_feature * 0.01 + char_feature * 0.001 + pos_feature)
        * np.cos(positions * 0.1)
        * np.sin(len(text) * 0.001)
    )

    norm = float(np.sqrt(np.sum(vector * vector)))
    vector = vector / (norm or 1.0)
    return vector.tolist()


class EmbeddingProvider:
    """Maps texts to fixed-length vectors, degrading to a local fallback."""

    def __init__(
        self,
        api_key: str = None,
        api_url: str = None,
        model: str = None,
        dimension: int = None,
        max_chars: int = None,
        timeout: float = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the embedding provider.

        Args:
            api_key: Jina API key; empty means always use the fallback
            api_url: Embeddings endpoint (default from config)
            model: Embedding model name (default from config)
            dimension: Expected vector dimension (default from config)
            max_chars: Per-text character cap before sending (default from config)
            timeout: Request timeout in seconds (default from config)
            transport: Optional httpx transport, used by tests
        """
        self.api_key = config.JINA_API_KEY if api_key is None else api_key
        self.api_url = api_url or config.JINA_API_URL
        self.model = model or config.JINA_MODEL
        self.dimension = dimension or config.EMBEDDING_DIMENSION
        self.max_chars = max_chars or config.EMBEDDING_MAX_CHARS
        self.timeout = timeout or config.EMBEDDING_TIMEOUT
        self.transport = transport

        if not self.api_key:
            logger.warning("jina_api_key_missing_using_fallback")

        logger.info(
            "embedding_provider_initialized",
            model=self.model,
            dimension=self.dimension,
            remote_enabled=bool(self.api_key),
        )

    @property
    def remote_enabled(self) -> bool:
        return bool(self.api_key)

    async def embed(self, texts: Sequence[str]) -> List[List[float]]:
        """Embed texts, one vector per input in input order.

        Raises:
            TypeError: If texts is a bare string or contains non-strings
        """
        outcome = await self.embed_with_outcome(texts)
        return outcome.value

    async def embed_one(self, text: str) -> List[float]:
        """Embed a single text."""
        vectors = await self.embed([text])
        return vectors[0]

    async def embed_with_outcome(
        self, texts: Sequence[str]
    ) -> Outcome[List[List[float]]]:
        """Embed texts and report whether the remote path or the fallback was used.

        Args:
            texts: Strings to embed

        Returns:
            Outcome whose value holds one vector per input

        Raises:
            TypeError: If texts is a bare string or contains non-strings
        """
        texts = self._validate_inputs(texts)

        if not texts:
            return Outcome.ok([])

        if not self.remote_enabled:
            return Outcome.fallback(
                self._fallback_batch(texts), "embedding API key not configured"
            )

        try:
            vectors = await self._embed_remote(texts)
            return Outcome.ok(vectors)
        except (httpx.HTTPError, UpstreamFatal, ValueError, KeyError, TypeError) as e:
            error = classify_http_error(e)
            logger.warning(
                "embedding_api_failed_using_fallback",
                error=str(error),
                error_type=type(error).__name__,
                batch_size=len(texts),
            )
            return Outcome.fallback(self._fallback_batch(texts), str(error))

    async def test_connection(self) -> bool:
        """Check whether the remote embedding API answers correctly.

        Returns:
            True if the remote path produced a real embedding
        """
        if not self.remote_enabled:
            logger.info("embedding_connection_check_skipped", reason="no_api_key")
            return False

        outcome = await self.embed_with_outcome(["Test connection"])
        logger.info("embedding_connection_checked", remote_ok=outcome.success)
        return outcome.success

    def _validate_inputs(self, texts: Sequence[str]) -> List[str]:
        if isinstance(texts, str):
            raise TypeError("embed() expects a sequence of strings, not a single string")

        texts = list(texts)
        for index, text in enumerate(texts):
            if not isinstance(text, str):
                raise TypeError(
                    f"embed() input {index} is {type(text).__name__}, expected str"
                )
        return texts

    def _fallback_batch(self, texts: List[str]) -> List[List[float]]:
        return [fallback_embedding(text, self.dimension) for text in texts]

    async def _embed_remote(self, texts: List[str]) -> List[List[float]]:
        """Call the Jina API for a batch.

        Raises:
            httpx.HTTPError: On transport failures and non-2xx responses
            UpstreamFatal: If the response does not line up with the request
        """
        payload = {
            "model": self.model,
            "input": [text[: self.max_chars] for text in texts],
        }
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }

        async with httpx.AsyncClient(
            timeout=self.timeout, transport=self.transport
        ) as client:
            logger.debug("jina_embedding_request", batch_size=len(texts), model=self.model)

            response = await client.post(self.api_url, json=payload, headers=headers)
            response.raise_for_status()
            data = response.json()

        vectors = [item["embedding"] for item in data["data"]]

        if len(vectors) != len(texts):
            raise UpstreamFatal(
                f"Embedding count mismatch: sent {len(texts)}, got {len(vectors)}"
            )
        for vector in vectors:
            if len(vector) != self.dimension:
                raise UpstreamFatal(
                    f"Embedding dimension mismatch: expected {self.dimension}, "
                    f"got {len(vector)}"
                )

        logger.debug("jina_embedding_response", batch_size=len(vectors))

        return [[float(value) for value in vector] for vector in vectors]
