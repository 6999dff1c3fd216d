"""Text chunking with overlap for the RAG pipeline.

Character-based, sentence-aware: a window is snapped back to the last
sentence terminator when one is far enough into the window.
"""
from dataclasses import dataclass
from typing import List

import structlog

from newsbot import config
from newsbot.sources.models import Document

logger = structlog.get_logger()

SENTENCE_TERMINATORS = (".", "!", "?")
# A terminator must sit this far past the window start to be used as a cut
MIN_SNAP_DISTANCE = 100


@dataclass
class TextSpan:
    """A trimmed chunk of text with the window it was cut from."""

    content: str
    char_start: int
    char_end: int


@dataclass
class Chunk:
    """A contiguous slice of a document, the atomic retrieval unit."""

    chunk_id: str
    document_id: str
    ordinal: int
    total_chunks: int
    text: str
    char_start: int
    char_end: int

    @property
    def length(self) -> int:
        return len(self.text)


class Chunker:
    """Sentence-boundary-aware chunker with fixed overlap."""

    def __init__(
        self,
        max_length: int = None,
        overlap: int = None,
        min_length: int = None,
    ):
        """Initialize the chunker.

        Args:
            max_length: Maximum window size in characters (default from config)
            overlap: Characters shared by consecutive windows (default from config)
            min_length: Chunks of this length or shorter are dropped (default from config)

        Raises:
            ValueError: If overlap is not smaller than max_length
        """
        self.max_length = max_length if max_length is not None else config.CHUNK_SIZE
        self.overlap = overlap if overlap is not None else config.CHUNK_OVERLAP
        self.min_length = min_length if min_length is not None else config.MIN_CHUNK_LENGTH

        if self.max_length <= 0:
            raise ValueError(f"max_length must be positive, got {self.max_length}")
        if self.overlap < 0:
            raise ValueError(f"overlap must not be negative, got {self.overlap}")
        if self.overlap >= self.max_length:
            raise ValueError(
                f"Overlap ({self.overlap}) must be less than "
                f"max length ({self.max_length})"
            )

    def split_spans(self, text: str) -> List[TextSpan]:
        """Split text into overlapping spans.

        Args:
            text: Text to chunk

        Returns:
            List of TextSpan objects in source order
        """
        if not text:
            return []

        text_length = len(text)
        spans: List[TextSpan] = []
        start = 0

        while start < text_length:
            end = min(start + self.max_length, text_length)

            if end < text_length:
                end = self._snap_to_sentence(text, start, end)

            content = text[start:end].strip()
            if len(content) > self.min_length:
                spans.append(TextSpan(content=content, char_start=start, char_end=end))

            if end >= text_length:
                break

            next_start = end - self.overlap
            # Sentence snapping can pull the end back far enough to stall the scan
            if next_start <= start:
                next_start = end
            start = next_start

        logger.debug(
            "text_chunked",
            text_length=text_length,
            chunk_count=len(spans),
        )

        return spans

    def split(self, text: str) -> List[str]:
        """Split text into overlapping chunk texts."""
        return [span.content for span in self.split_spans(text)]

    def chunk_document(self, document: Document) -> List[Chunk]:
        """Chunk a document's title and body into ordered Chunk records.

        Args:
            document: Document to chunk

        Returns:
            List of Chunk objects with ordinals 0..n-1
        """
        spans = self.split_spans(document.full_text)
        total = len(spans)

        return [
            Chunk(
                chunk_id=f"{document.id}_chunk_{ordinal}",
                document_id=document.id,
                ordinal=ordinal,
                total_chunks=total,
                text=span.content,
                char_start=span.char_start,
                char_end=span.char_end,
            )
            for ordinal, span in enumerate(spans)
        ]

    def _snap_to_sentence(self, text: str, start: int, end: int) -> int:
        """Move a hard cut back to just after the nearest sentence terminator.

        The character at ``end`` itself is considered, so a terminator that
        lands exactly on the window edge is kept with the window.
        """
        last_terminator = max(
            text.rfind(terminator, start, end + 1)
            for terminator in SENTENCE_TERMINATORS
        )

        if last_terminator > start + MIN_SNAP_DISTANCE:
            return last_terminator + 1
        return end
