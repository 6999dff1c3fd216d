"""SQLite catalogue for the vector index.

Stores, per collection:
- Index entries: opaque entry id, FAISS position and payload JSON
- Ingestion runs: what was indexed, when, and how many chunks failed
"""
import json
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

import structlog

from newsbot import config

logger = structlog.get_logger()


def get_connection(db_path: Path = None) -> sqlite3.Connection:
    """Get a connection to the SQLite database.

    Returns:
        sqlite3.Connection with row_factory set to sqlite3.Row
    """
    conn = sqlite3.connect(db_path or config.DB_PATH)
    conn.row_factory = sqlite3.Row
    return conn


def init_database(db_path: Path = None) -> None:
    """Initialize the database schema.

    Creates tables if they don't exist:
    - index_entries: payload and FAISS position for every stored vector
    - ingest_runs: one row per ingestion run
    """
    conn = get_connection(db_path)
    cursor = conn.cursor()

    try:
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS index_entries (
                entry_id TEXT PRIMARY KEY,
                collection TEXT NOT NULL,
                position INTEGER NOT NULL,
                payload_json TEXT NOT NULL,
                created_at TEXT NOT NULL,
                UNIQUE(collection, position)
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS ingest_runs (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                collection TEXT NOT NULL,
                finished_at TEXT NOT NULL,
                document_count INTEGER NOT NULL,
                chunk_count INTEGER NOT NULL,
                failed_chunks INTEGER NOT NULL,
                metadata_json TEXT
            )
        """)

        conn.commit()
        logger.debug("database_initialized", db_path=str(db_path or config.DB_PATH))

    except Exception as e:
        conn.rollback()
        logger.error("database_init_failed", error=str(e))
        raise
    finally:
        conn.close()


def insert_entries(
    conn: sqlite3.Connection,
    collection: str,
    rows: Sequence[Tuple[str, int, Dict[str, Any]]],
) -> None:
    """Stage entry rows on an open connection without committing.

    The caller commits once the matching vectors are in the index, so a
    failed batch can be rolled back as a whole.

    Args:
        conn: Open connection owned by the caller
        collection: Collection name
        rows: (entry_id, position, payload) tuples
    """
    created_at = datetime.now(timezone.utc).isoformat()
    conn.executemany(
        """
        INSERT INTO index_entries (entry_id, collection, position, payload_json, created_at)
        VALUES (?, ?, ?, ?, ?)
        """,
        [
            (entry_id, collection, position, json.dumps(payload), created_at)
            for entry_id, position, payload in rows
        ],
    )


def get_entries_by_positions(
    collection: str, positions: List[int], db_path: Path = None
) -> Dict[int, Dict[str, Any]]:
    """Retrieve entries by their FAISS positions.

    Returns:
        Mapping of position to {"entry_id", "payload"}
    """
    if not positions:
        return {}

    conn = get_connection(db_path)
    cursor = conn.cursor()

    try:
        placeholders = ",".join("?" * len(positions))
        cursor.execute(
            f"""
            SELECT entry_id, position, payload_json
            FROM index_entries
            WHERE collection = ? AND position IN ({placeholders})
            """,
            [collection, *positions],
        )

        return {
            row["position"]: {
                "entry_id": row["entry_id"],
                "payload": json.loads(row["payload_json"]),
            }
            for row in cursor.fetchall()
        }

    except Exception as e:
        logger.error("entries_retrieval_failed", error=str(e))
        raise
    finally:
        conn.close()


def get_recent_payloads(
    collection: str, limit: int = 10, db_path: Path = None
) -> List[Dict[str, Any]]:
    """Most recently inserted payloads, newest first."""
    conn = get_connection(db_path)
    cursor = conn.cursor()

    try:
        cursor.execute(
            """
            SELECT payload_json FROM index_entries
            WHERE collection = ?
            ORDER BY position DESC
            LIMIT ?
            """,
            (collection, limit),
        )
        return [json.loads(row["payload_json"]) for row in cursor.fetchall()]
    finally:
        conn.close()


def count_entries(collection: str, db_path: Path = None) -> int:
    """Get the number of entries stored for a collection."""
    conn = get_connection(db_path)
    cursor = conn.cursor()

    try:
        cursor.execute(
            "SELECT COUNT(*) FROM index_entries WHERE collection = ?", (collection,)
        )
        return cursor.fetchone()[0]
    finally:
        conn.close()


def clear_entries(collection: str, db_path: Path = None) -> int:
    """Delete all entries of a collection.

    Used when rebuilding the index from scratch.

    Returns:
        Number of entries deleted
    """
    conn = get_connection(db_path)
    cursor = conn.cursor()

    try:
        cursor.execute(
            "DELETE FROM index_entries WHERE collection = ?", (collection,)
        )
        conn.commit()
        count = cursor.rowcount

        logger.info("index_entries_cleared", collection=collection, count=count)
        return count

    except Exception as e:
        conn.rollback()
        logger.error("index_entries_clear_failed", error=str(e))
        raise
    finally:
        conn.close()


def insert_ingest_run(
    collection: str,
    document_count: int,
    chunk_count: int,
    failed_chunks: int,
    metadata: Optional[Dict[str, Any]] = None,
    db_path: Path = None,
) -> int:
    """Record a finished ingestion run.

    Returns:
        ID of the inserted row
    """
    conn = get_connection(db_path)
    cursor = conn.cursor()

    try:
        cursor.execute(
            """
            INSERT INTO ingest_runs (
                collection, finished_at, document_count, chunk_count,
                failed_chunks, metadata_json
            ) VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                collection,
                datetime.now(timezone.utc).isoformat(),
                document_count,
                chunk_count,
                failed_chunks,
                json.dumps(metadata) if metadata else None,
            ),
        )
        conn.commit()
        row_id = cursor.lastrowid
        logger.info("ingest_run_recorded", id=row_id, chunk_count=chunk_count)
        return row_id

    except Exception as e:
        conn.rollback()
        logger.error("ingest_run_insert_failed", error=str(e))
        raise
    finally:
        conn.close()


def get_latest_ingest_run(collection: str, db_path: Path = None) -> Optional[Dict[str, Any]]:
    """Get the most recent ingestion run, or None if nothing was ingested yet."""
    conn = get_connection(db_path)
    cursor = conn.cursor()

    try:
        cursor.execute(
            """
            SELECT * FROM ingest_runs
            WHERE collection = ?
            ORDER BY id DESC
            LIMIT 1
            """,
            (collection,),
        )
        row = cursor.fetchone()
        if row is None:
            return None

        run = dict(row)
        if run["metadata_json"]:
            run["metadata"] = json.loads(run["metadata_json"])
        return run
    finally:
        conn.close()
