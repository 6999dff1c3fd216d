"""
Tests for newsbot/rag/embeddings.py
Jina embeddings with a deterministic local fallback.
"""
import json
import math

import httpx
import pytest

from newsbot.rag.embeddings import EmbeddingProvider, fallback_embedding

DIM = 768


def norm(vector):
    return math.sqrt(sum(value * value for value in vector))


def jina_transport(handler):
    return httpx.MockTransport(handler)


class TestFallbackEmbedding:
    """Local deterministic embedding."""

    def test_deterministic(self):
        text = "Electric vehicle sales surge as battery technology improves"
        assert fallback_embedding(text) == fallback_embedding(text)

    def test_unit_norm(self):
        vector = fallback_embedding("Quantum computing breakthrough announced")
        assert norm(vector) == pytest.approx(1.0, abs=1e-6)

    def test_dimension(self):
        assert len(fallback_embedding("anything")) == DIM
        assert len(fallback_embedding("anything", dimension=32)) == 32

    def test_empty_text_is_zero_vector(self):
        vector = fallback_embedding("")
        assert len(vector) == DIM
        assert all(value == 0.0 for value in vector)

    def test_different_texts_differ(self):
        assert fallback_embedding("climate summit") != fallback_embedding("gene therapy")


class TestEmbeddingProviderFallback:
    """Degrade paths never raise for upstream problems."""

    async def test_no_api_key_uses_fallback(self):
        provider = EmbeddingProvider(api_key="")
        outcome = await provider.embed_with_outcome(["first text", "second text"])

        assert outcome.degraded
        assert not outcome.success
        assert outcome.value == [fallback_embedding("first text"), fallback_embedding("second text")]

    async def test_server_error_falls_back(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(503, text="Service Unavailable")

        provider = EmbeddingProvider(api_key="key", transport=jina_transport(handler))
        vectors = await provider.embed(["climate news"])

        assert len(calls) == 1
        assert vectors == [fallback_embedding("climate news")]

    async def test_connection_error_falls_back(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        provider = EmbeddingProvider(api_key="key", transport=jina_transport(handler))
        outcome = await provider.embed_with_outcome(["climate news"])

        assert outcome.degraded
        assert len(outcome.value[0]) == DIM

    async def test_wrong_dimension_falls_back(self):
        def handler(request):
            return httpx.Response(200, json={"data": [{"embedding": [0.1, 0.2]}]})

        provider = EmbeddingProvider(api_key="key", transport=jina_transport(handler))
        outcome = await provider.embed_with_outcome(["short vector"])

        assert outcome.degraded
        assert len(outcome.value[0]) == DIM

    async def test_malformed_body_falls_back(self):
        def handler(request):
            return httpx.Response(200, json={"unexpected": True})

        provider = EmbeddingProvider(api_key="key", transport=jina_transport(handler))
        outcome = await provider.embed_with_outcome(["anything"])

        assert outcome.degraded


class TestEmbeddingProviderRemote:
    """Successful API calls."""

    async def test_remote_vectors_returned_in_order(self):
        seen = {}

        def handler(request):
            body = json.loads(request.content)
            seen["body"] = body
            seen["auth"] = request.headers["Authorization"]
            return httpx.Response(
                200,
                json={
                    "data": [
                        {"embedding": [float(i)] * DIM}
                        for i, _ in enumerate(body["input"])
                    ]
                },
            )

        provider = EmbeddingProvider(
            api_key="secret", max_chars=10, transport=jina_transport(handler)
        )
        outcome = await provider.embed_with_outcome(["a" * 20, "b"])

        assert outcome.success
        assert not outcome.degraded
        assert outcome.value[0] == [0.0] * DIM
        assert outcome.value[1] == [1.0] * DIM
        assert seen["body"]["model"] == "jina-embeddings-v2-base-en"
        assert seen["body"]["input"] == ["a" * 10, "b"]
        assert seen["auth"] == "Bearer secret"

    async def test_connection_check(self):
        def handler(request):
            return httpx.Response(200, json={"data": [{"embedding": [0.5] * DIM}]})

        provider = EmbeddingProvider(api_key="secret", transport=jina_transport(handler))
        assert await provider.test_connection() is True

    async def test_connection_check_without_key(self):
        assert await EmbeddingProvider(api_key="").test_connection() is False


class TestEmbeddingProviderInputs:
    """Input validation."""

    async def test_empty_batch(self):
        assert await EmbeddingProvider(api_key="").embed([]) == []

    async def test_bare_string_rejected(self):
        with pytest.raises(TypeError):
            await EmbeddingProvider(api_key="").embed("not a list")

    async def test_non_string_item_rejected(self):
        with pytest.raises(TypeError):
            await EmbeddingProvider(api_key="").embed(["ok", 42])

    async def test_embed_one(self):
        vector = await EmbeddingProvider(api_key="").embed_one("single text")
        assert vector == fallback_embedding("single text")
