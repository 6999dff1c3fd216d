"""
Tests for newsbot/rag/chunker.py
Sentence-aware character chunking with overlap.
"""
import pytest

from newsbot.rag.chunker import Chunker
from newsbot.sources.models import Document

SENTENCE = "The council approved the new transit budget after a long debate. "


def long_text(sentences: int = 40) -> str:
    return SENTENCE * sentences


class TestChunkerConfiguration:
    """Constructor validation."""

    def test_overlap_must_be_smaller_than_max_length(self):
        with pytest.raises(ValueError):
            Chunker(max_length=100, overlap=100)

    def test_negative_overlap_rejected(self):
        with pytest.raises(ValueError):
            Chunker(max_length=100, overlap=-1)

    def test_defaults_from_config(self):
        chunker = Chunker()
        assert chunker.max_length == 500
        assert chunker.overlap == 50
        assert chunker.min_length == 50


class TestSplit:
    """Chunk boundaries and filtering."""

    def test_empty_text_gives_no_chunks(self):
        assert Chunker().split("") == []

    def test_short_text_is_dropped(self):
        assert Chunker().split("Too short to keep.") == []

    def test_text_just_over_minimum_is_single_chunk(self):
        text = "x" * 51
        assert Chunker().split(text) == [text]

    def test_no_chunk_at_or_below_minimum_length(self):
        text = long_text() + "Tail."
        chunks = Chunker().split(text)
        assert chunks
        assert all(len(chunk) > 50 for chunk in chunks)

    def test_chunks_never_exceed_window(self):
        chunks = Chunker(max_length=200, overlap=20).split(long_text())
        assert all(len(chunk) <= 201 for chunk in chunks)

    def test_snaps_to_sentence_boundary(self):
        chunks = Chunker(max_length=300, overlap=30).split(long_text())
        # Every chunk except possibly the last ends on a full stop
        assert all(chunk.endswith(".") for chunk in chunks[:-1])

    def test_unbroken_text_terminates(self):
        """A text without terminators still advances to the end."""
        text = "a" * 2000
        chunks = Chunker(max_length=500, overlap=50).split(text)
        assert len(chunks) == 5
        assert chunks[-1] == "a" * 200


class TestCoverage:
    """Emitted spans cover the source text end to end."""

    @pytest.mark.parametrize("max_length,overlap", [(500, 50), (200, 20), (120, 0), (300, 299)])
    def test_spans_cover_whole_text(self, max_length, overlap):
        text = long_text(30)
        spans = Chunker(max_length=max_length, overlap=overlap).split_spans(text)

        assert spans[0].char_start == 0
        assert spans[-1].char_end == len(text)
        for previous, current in zip(spans, spans[1:]):
            assert current.char_start <= previous.char_end
            assert current.char_start > previous.char_start

    def test_consecutive_windows_share_overlap(self):
        text = "b" * 1000
        spans = Chunker(max_length=300, overlap=40).split_spans(text)
        for previous, current in zip(spans, spans[1:]):
            assert previous.char_end - current.char_start == 40


class TestChunkDocument:
    """Chunk records built from documents."""

    def test_ordinals_and_ids(self):
        document = Document(id="doc-7", title="Transit budget", body=long_text(20))
        chunks = Chunker(max_length=300, overlap=30).chunk_document(document)

        assert len(chunks) > 1
        assert [chunk.ordinal for chunk in chunks] == list(range(len(chunks)))
        assert all(chunk.total_chunks == len(chunks) for chunk in chunks)
        assert chunks[0].chunk_id == "doc-7_chunk_0"
        assert all(chunk.document_id == "doc-7" for chunk in chunks)

    def test_title_leads_first_chunk(self):
        document = Document(id="doc-8", title="Transit budget", body=long_text(3))
        chunks = Chunker().chunk_document(document)
        assert chunks[0].text.startswith("Transit budget\n\n")
