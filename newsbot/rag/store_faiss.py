"""FAISS vector index for similarity search over news chunks.

Handles:
- Collection creation and loading (idempotent)
- Batched upserts with opaque entry ids
- Cosine top-K search with stable tie ordering
- Payload persistence in SQLite, keyed by FAISS position
"""
import json
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import faiss
import numpy as np
import structlog

from newsbot import config, db

logger = structlog.get_logger()

SUPPORTED_DISTANCES = ("cosine", "dot")
# Extra candidates fetched so ties at the top-K boundary resolve by insertion order
TIE_CANDIDATE_MARGIN = 10


@dataclass
class RetrievalResult:
    """A single search hit. Higher score means more similar."""

    entry_id: str
    score: float
    payload: Dict[str, Any] = field(default_factory=dict)

    @property
    def content(self) -> str:
        return self.payload.get("content", "")

    @property
    def title(self) -> str:
        return self.payload.get("document_title", "")


class FAISSVectorIndex:
    """FAISS inner-product index with an SQLite payload catalogue."""

    def __init__(
        self,
        index_dir: Path = None,
        collection: str = None,
        db_path: Path = None,
    ):
        """Initialize the vector index.

        Args:
            index_dir: Directory holding index files (default: DATA_DIR)
            collection: Collection name (default from config)
            db_path: SQLite catalogue path (default: <index_dir>/newsbot.sqlite)
        """
        self.index_dir = Path(index_dir or config.DATA_DIR)
        self.collection = collection or config.COLLECTION_NAME
        self.db_path = Path(db_path) if db_path else self.index_dir / config.DB_PATH.name

        self.index_path = self.index_dir / f"{self.collection}.index"
        self.metadata_path = self.index_dir / f"{self.collection}.json"

        self.index: Optional[faiss.Index] = None
        self.dimension: Optional[int] = None
        self.distance: str = config.VECTOR_DISTANCE

        logger.info(
            "faiss_index_initialized",
            index_dir=str(self.index_dir),
            collection=self.collection,
        )

    @property
    def is_open(self) -> bool:
        return self.index is not None

    async def ensure_collection(
        self, dimension: int = None, distance: str = None
    ) -> None:
        """Create the collection if absent, load it if persisted, else no-op.

        Args:
            dimension: Vector dimension (default from config)
            distance: "cosine" or "dot". When omitted, an existing collection
                keeps its own metric and a new one uses the configured default

        Raises:
            ValueError: On unsupported distance, or a dimension or distance
                mismatch with the existing collection
        """
        dimension = dimension or config.EMBEDDING_DIMENSION
        explicit_distance = distance is not None
        distance = (distance or config.VECTOR_DISTANCE).lower()

        if distance not in SUPPORTED_DISTANCES:
            raise ValueError(
                f"Unsupported distance metric {distance!r}; "
                f"expected one of {SUPPORTED_DISTANCES}"
            )

        if self.index is not None:
            if dimension != self.dimension:
                raise ValueError(
                    f"Collection {self.collection} is open with dim={self.dimension}, "
                    f"requested dim={dimension}"
                )
            if explicit_distance and distance != self.distance:
                raise ValueError(
                    f"Collection {self.collection} is open with distance={self.distance!r}, "
                    f"requested distance={distance!r}"
                )
            return

        db.init_database(self.db_path)

        if self.index_path.exists() and self.metadata_path.exists():
            self._load(dimension, distance if explicit_distance else None)
            return

        self._create(dimension, distance)
        self._save()

    async def upsert(self, entries: Sequence[Dict[str, Any]]) -> List[str]:
        """Store a batch of {vector, payload} entries.

        Either the whole batch is stored or nothing is.

        Args:
            entries: Dicts with "vector" and "payload" keys

        Returns:
            Assigned entry ids, in input order

        Raises:
            RuntimeError: If the collection has not been opened
            ValueError: If any vector has the wrong dimension or is not finite
        """
        self._require_open()

        if not entries:
            return []

        vectors = self._prepare_vectors([entry["vector"] for entry in entries])

        start = self.index.ntotal
        entry_ids = [str(uuid.uuid4()) for _ in entries]
        rows = [
            (entry_id, start + offset, dict(entry.get("payload") or {}))
            for offset, (entry_id, entry) in enumerate(zip(entry_ids, entries))
        ]

        conn = db.get_connection(self.db_path)
        try:
            db.insert_entries(conn, self.collection, rows)
            self.index.add(vectors)
            self._save()
            conn.commit()
        except Exception as e:
            conn.rollback()
            self._truncate(start)
            logger.error(
                "faiss_upsert_failed",
                error=str(e),
                error_type=type(e).__name__,
                batch_size=len(entries),
            )
            raise
        finally:
            conn.close()

        logger.info(
            "entries_upserted",
            count=len(entry_ids),
            total_entries=self.index.ntotal,
        )

        return entry_ids

    async def search(
        self, query_vector: Sequence[float], top_k: int = None
    ) -> List[RetrievalResult]:
        """Return the top_k most similar entries, best first.

        Raises:
            RuntimeError: If the collection has not been opened
            ValueError: If the query vector has the wrong dimension
        """
        self._require_open()

        top_k = config.RETRIEVAL_TOP_K if top_k is None else top_k
        if top_k <= 0 or self.index.ntotal == 0:
            return []

        query = self._prepare_vectors([query_vector])
        candidates = min(self.index.ntotal, top_k + TIE_CANDIDATE_MARGIN)

        scores, positions = self.index.search(query, candidates)

        hits = [
            (int(position), float(score))
            for position, score in zip(positions[0], scores[0])
            if position != -1
        ]
        hits.sort(key=lambda hit: (-hit[1], hit[0]))
        hits = hits[:top_k]

        entries = db.get_entries_by_positions(
            self.collection, [position for position, _ in hits], db_path=self.db_path
        )

        results = []
        for position, score in hits:
            entry = entries.get(position)
            if entry is None:
                logger.warning("faiss_position_without_entry", position=position)
                continue
            results.append(
                RetrievalResult(
                    entry_id=entry["entry_id"], score=score, payload=entry["payload"]
                )
            )

        logger.debug(
            "vector_search_completed",
            top_k=top_k,
            results_found=len(results),
            top_score=results[0].score if results else None,
        )

        return results

    async def stats(self) -> Dict[str, Any]:
        """Get statistics about the collection."""
        if self.index is None:
            return {
                "collection": self.collection,
                "initialized": False,
                "entry_count": 0,
                "dimension": None,
                "distance": self.distance,
            }

        return {
            "collection": self.collection,
            "initialized": True,
            "entry_count": self.index.ntotal,
            "dimension": self.dimension,
            "distance": self.distance,
        }

    async def sample_payloads(self, limit: int = 10) -> List[Dict[str, Any]]:
        """Most recently stored payloads, newest first."""
        if self.index is None:
            return []
        return db.get_recent_payloads(self.collection, limit, db_path=self.db_path)

    async def record_ingest_run(
        self,
        document_count: int,
        chunk_count: int,
        failed_chunks: int,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> int:
        """Record a finished ingestion run in the catalogue."""
        db.init_database(self.db_path)
        return db.insert_ingest_run(
            self.collection,
            document_count=document_count,
            chunk_count=chunk_count,
            failed_chunks=failed_chunks,
            metadata=metadata,
            db_path=self.db_path,
        )

    async def latest_ingest_run(self) -> Optional[Dict[str, Any]]:
        """Most recent ingestion run, or None."""
        db.init_database(self.db_path)
        return db.get_latest_ingest_run(self.collection, db_path=self.db_path)

    async def clear(self) -> None:
        """Destroy and recreate the collection (full reindex)."""
        dimension = self.dimension or config.EMBEDDING_DIMENSION
        distance = self.distance

        logger.warning("clearing_collection", collection=self.collection)

        for path in (self.index_path, self.metadata_path):
            if path.exists():
                path.unlink()

        db.init_database(self.db_path)
        db.clear_entries(self.collection, db_path=self.db_path)

        self._create(dimension, distance)
        self._save()

    def _create(self, dimension: int, distance: str) -> None:
        # Inner product over L2-normalised vectors is cosine similarity
        self.index = faiss.IndexFlatIP(dimension)
        self.dimension = dimension
        self.distance = distance

        logger.info(
            "collection_created",
            collection=self.collection,
            dimension=dimension,
            distance=distance,
        )

    def _load(self, dimension: int, distance: Optional[str] = None) -> None:
        try:
            with open(self.metadata_path, "r") as f:
                metadata = json.load(f)
        except Exception as e:
            raise RuntimeError(f"Failed to load collection metadata: {e}") from e

        stored_dim = metadata.get("dimension")
        if stored_dim != dimension:
            raise ValueError(
                f"Dimension mismatch: collection {self.collection} was built with "
                f"dim={stored_dim}, requested dim={dimension}. Please rebuild the index."
            )

        stored_distance = metadata.get("distance", "cosine")
        if distance is not None and stored_distance != distance:
            raise ValueError(
                f"Distance mismatch: collection {self.collection} was built with "
                f"distance={stored_distance!r}, requested distance={distance!r}. "
                "Please rebuild the index."
            )

        try:
            self.index = faiss.read_index(str(self.index_path))
        except Exception as e:
            raise RuntimeError(f"Failed to load FAISS index: {e}") from e

        self.dimension = stored_dim
        self.distance = stored_distance

        catalogue_count = db.count_entries(self.collection, db_path=self.db_path)
        if catalogue_count != self.index.ntotal:
            logger.warning(
                "catalogue_out_of_sync",
                vectors=self.index.ntotal,
                catalogue_entries=catalogue_count,
            )

        logger.info(
            "collection_loaded",
            collection=self.collection,
            dimension=self.dimension,
            entry_count=self.index.ntotal,
        )

    def _save(self) -> None:
        self.index_dir.mkdir(parents=True, exist_ok=True)
        faiss.write_index(self.index, str(self.index_path))
        with open(self.metadata_path, "w") as f:
            json.dump(
                {
                    "collection": self.collection,
                    "dimension": self.dimension,
                    "distance": self.distance,
                    "entry_count": self.index.ntotal,
                },
                f,
                indent=2,
            )

    def _truncate(self, size: int) -> None:
        """Drop vectors past ``size`` after a failed batch."""
        if self.index.ntotal <= size:
            return
        self.index.remove_ids(np.arange(size, self.index.ntotal, dtype=np.int64))
        try:
            self._save()
        except OSError as e:
            logger.error("faiss_truncate_save_failed", error=str(e))

    def _prepare_vectors(self, vectors: Sequence[Sequence[float]]) -> np.ndarray:
        array = np.asarray(vectors, dtype=np.float32)

        if array.ndim != 2 or array.shape[1] != self.dimension:
            got = array.shape[-1] if array.ndim >= 1 else 0
            raise ValueError(
                f"Vector dimension mismatch: expected {self.dimension}, got {got}"
            )
        if not np.all(np.isfinite(array)):
            raise ValueError("Vectors must contain only finite values")

        array = np.ascontiguousarray(array)
        if self.distance == "cosine":
            faiss.normalize_L2(array)
        return array

    def _require_open(self) -> None:
        if self.index is None:
            raise RuntimeError(
                "Collection not open. Call ensure_collection() first."
            )
