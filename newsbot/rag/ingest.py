"""Ingest pipeline for indexing news documents.

Orchestrates:
- Text chunking
- Per-chunk embedding (one call per chunk, throttled)
- Periodic batched upserts into the vector index
"""
import asyncio
from dataclasses import asdict, dataclass, field
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional

import structlog

from newsbot import config
from newsbot.errors import PartialIngestFailure
from newsbot.rag.chunker import Chunk, Chunker
from newsbot.rag.embeddings import EmbeddingProvider
from newsbot.rag.store_faiss import FAISSVectorIndex
from newsbot.sources.models import Document, normalize_record

logger = structlog.get_logger()

ProgressCallback = Callable[[int, int, Document], None]


@dataclass
class IngestReport:
    """Summary of one ingestion run."""

    document_count: int = 0
    chunk_count: int = 0
    failed_chunks: int = 0
    index_stats: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def build_payload(chunk: Chunk, document: Document) -> Dict[str, Any]:
    """Payload stored next to a chunk's vector."""
    return {
        "chunk_id": chunk.chunk_id,
        "document_id": chunk.document_id,
        "ordinal": chunk.ordinal,
        "total_chunks": chunk.total_chunks,
        "content": chunk.text,
        "length": chunk.length,
        "document_title": document.title,
        "document_url": document.url,
        "published_at": document.published_at,
        "source_tag": document.source_tag,
    }


class IngestionPipeline:
    """Pipeline for chunking, embedding and indexing documents."""

    def __init__(
        self,
        chunker: Chunker,
        embedder: EmbeddingProvider,
        index: FAISSVectorIndex,
        flush_every: int = None,
        throttle_seconds: float = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """Initialize the ingest pipeline.

        Args:
            chunker: Splits document text into chunks
            embedder: Embeds one chunk per call
            index: Vector index receiving the batches
            flush_every: Upsert the pending buffer after this many documents
            throttle_seconds: Pause after every chunk embedding call
            sleep: Awaitable sleep used for throttling
        """
        self.chunker = chunker
        self.embedder = embedder
        self.index = index
        self.flush_every = flush_every or config.INGEST_FLUSH_EVERY
        self.throttle_seconds = (
            config.INGEST_THROTTLE_SECONDS if throttle_seconds is None else throttle_seconds
        )
        self.sleep = sleep

        logger.info(
            "ingest_pipeline_initialized",
            chunk_size=chunker.max_length,
            chunk_overlap=chunker.overlap,
            flush_every=self.flush_every,
            throttle_seconds=self.throttle_seconds,
        )

    async def ingest(
        self,
        documents: Iterable[Document],
        rebuild: bool = False,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> IngestReport:
        """Chunk, embed and index a batch of documents.

        A chunk that cannot be embedded is logged and skipped; it never
        aborts the run.

        Args:
            documents: Documents to ingest
            rebuild: If True, clear the collection first
            progress_callback: Optional callback(current, total, document)

        Returns:
            IngestReport with counts and the index statistics after the run

        Raises:
            Exception: If the vector index rejects a batch
        """
        documents = list(documents)

        logger.info("ingest_started", documents=len(documents), rebuild=rebuild)

        await self.index.ensure_collection(self.embedder.dimension)
        if rebuild:
            await self.index.clear()
            logger.info("collection_cleared_for_rebuild")

        report = IngestReport(document_count=len(documents))
        pending: List[Dict[str, Any]] = []

        for position, document in enumerate(documents, 1):
            if progress_callback:
                progress_callback(position, len(documents), document)

            chunks = self.chunker.chunk_document(document)
            if not chunks:
                logger.warning("no_chunks_created", document_id=document.id)

            for chunk in chunks:
                try:
                    vector = await self._embed_chunk(chunk)
                except PartialIngestFailure as e:
                    report.failed_chunks += 1
                    logger.error(
                        "chunk_embedding_failed",
                        chunk_id=e.chunk_id,
                        error=e.reason,
                    )
                    continue
                finally:
                    if self.throttle_seconds > 0:
                        await self.sleep(self.throttle_seconds)

                pending.append({"vector": vector, "payload": build_payload(chunk, document)})

            logger.debug(
                "document_processed",
                document_id=document.id,
                chunks=len(chunks),
                pending=len(pending),
            )

            if position % self.flush_every == 0 and pending:
                report.chunk_count += await self._flush(pending)

        if pending:
            report.chunk_count += await self._flush(pending)

        report.index_stats = await self.index.stats()

        await self.index.record_ingest_run(
            document_count=report.document_count,
            chunk_count=report.chunk_count,
            failed_chunks=report.failed_chunks,
            metadata={"rebuild": rebuild},
        )

        logger.info(
            "ingest_completed",
            documents=report.document_count,
            chunks=report.chunk_count,
            failed_chunks=report.failed_chunks,
        )

        return report

    async def ingest_records(
        self,
        records: Iterable[Any],
        rebuild: bool = False,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> IngestReport:
        """Normalise raw source records into Documents, then ingest them.

        Records whose body is too short are dropped before chunking.
        """
        documents = []
        for record in records:
            document = normalize_record(record)
            if document is None:
                logger.debug("source_record_skipped", reason="body_too_short")
                continue
            documents.append(document)

        return await self.ingest(
            documents, rebuild=rebuild, progress_callback=progress_callback
        )

    async def _embed_chunk(self, chunk: Chunk) -> List[float]:
        """Embed a single chunk.

        Raises:
            PartialIngestFailure: If no usable vector could be produced
        """
        try:
            vectors = await self.embedder.embed([chunk.text])
        except Exception as e:
            raise PartialIngestFailure(chunk.chunk_id, f"{type(e).__name__}: {e}") from e

        if len(vectors) != 1 or len(vectors[0]) != self.embedder.dimension:
            raise PartialIngestFailure(chunk.chunk_id, "embedding has unexpected shape")

        return vectors[0]

    async def _flush(self, pending: List[Dict[str, Any]]) -> int:
        """Upsert the pending buffer in one batch and clear it."""
        count = len(pending)
        await self.index.upsert(pending)
        pending.clear()

        logger.info("ingest_buffer_flushed", chunks=count)
        return count
