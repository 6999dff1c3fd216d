"""Shared fixtures for the newsbot test suite."""
import os
import sys
import tempfile
from pathlib import Path

# Point configuration at a throwaway data directory and force the offline
# paths before any newsbot module reads the environment.
os.environ["NEWSBOT_DATA_DIR"] = tempfile.mkdtemp(prefix="newsbot-tests-")
os.environ["JINA_API_KEY"] = ""
os.environ["GEMINI_API_KEY"] = ""
os.environ["SEED_ON_EMPTY_INDEX"] = "false"

_project_root = Path(__file__).parent.parent
if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

import pytest

from newsbot.rag.chunker import Chunker
from newsbot.rag.embeddings import EmbeddingProvider
from newsbot.rag.gate import RetrievalGate
from newsbot.rag.ingest import IngestionPipeline
from newsbot.rag.query import QueryPipeline
from newsbot.rag.store_faiss import FAISSVectorIndex, RetrievalResult
from newsbot.results import Outcome
from newsbot.sources.models import Document

DIM = 768


async def no_sleep(seconds: float) -> None:
    """Stand-in for asyncio.sleep that returns immediately."""


class FakeGenerator:
    """Generation client double that records what it was asked."""

    def __init__(self, answer: str = "Leaders agreed to halve carbon emissions."):
        self.answer = answer
        self.calls = []

    async def generate_with_outcome(self, query, results):
        self.calls.append((query, list(results)))
        return Outcome.ok(self.answer)

    async def generate(self, query, results):
        outcome = await self.generate_with_outcome(query, results)
        return outcome.value

    async def test_connection(self):
        return self.answer


def unit_vector(position: int, dim: int = DIM):
    """Basis vector with a single 1.0 at ``position``."""
    vector = [0.0] * dim
    vector[position] = 1.0
    return vector


def make_result(score: float, title: str = "Article", content: str = "Body text") -> RetrievalResult:
    return RetrievalResult(
        entry_id=f"entry-{title}-{score}",
        score=score,
        payload={
            "document_title": title,
            "document_url": f"https://example.com/{title.lower()}",
            "content": content,
            "published_at": "2024-01-14T15:45:00Z",
        },
    )


@pytest.fixture
def index(tmp_path):
    """Unopened FAISS index in a temporary directory."""
    return FAISSVectorIndex(index_dir=tmp_path)


@pytest.fixture
async def open_index(index):
    await index.ensure_collection(DIM)
    return index


@pytest.fixture
def embedder():
    """Embedding provider without an API key (always uses the fallback)."""
    return EmbeddingProvider(api_key="")


@pytest.fixture
def generator():
    return FakeGenerator()


@pytest.fixture
def ingestion(index, embedder):
    return IngestionPipeline(Chunker(), embedder, index, sleep=no_sleep)


@pytest.fixture
def query_pipeline(index, embedder, generator):
    return QueryPipeline(embedder, index, RetrievalGate(), generator)


@pytest.fixture
def climate_document():
    return Document(
        id="climate-1",
        title="Climate Summit Reaches Agreement",
        body=(
            "World leaders at the summit agreed to cut carbon emissions by a 50% "
            "reduction over the next decade. The plan funds renewable energy, carbon "
            "capture and sustainable transport across participating nations."
        ),
        url="https://example.com/climate",
        published_at="2024-01-14T15:45:00Z",
        source_tag="test",
    )
