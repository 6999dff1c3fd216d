"""Document model and the raw source record schemas it is normalised from.

Feeds disagree about field names (RSS ``description``/``pubDate`` versus
Atom ``summary``/``updated``), so every known schema gets its own model and
a ``kind`` discriminator. Only ``Document`` crosses into the RAG pipeline.
"""
import html
import re
import uuid
from datetime import datetime, timezone
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

MIN_BODY_LENGTH = 50

_TAG_RE = re.compile(r"<[^>]+>")
_ENTITY_RE = re.compile(r"&[^;\s]+;")
_WHITESPACE_RE = re.compile(r"\s+")


def strip_markup(text: str) -> str:
    """Remove HTML tags and entities, collapsing whitespace."""
    if not text:
        return ""
    text = _TAG_RE.sub(" ", text)
    text = html.unescape(text)
    # Anything html.unescape did not recognise
    text = _ENTITY_RE.sub(" ", text)
    return _WHITESPACE_RE.sub(" ", text).strip()


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class Document(BaseModel):
    """A source text unit ready for chunking. Immutable once built."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    body: str = Field(..., min_length=1)
    url: str = ""
    published_at: str = ""
    source_tag: str = ""

    @property
    def full_text(self) -> str:
        """Title and body separated by a blank line."""
        return f"{self.title}\n\n{self.body}"


class RssItem(BaseModel):
    """An RSS 2.0 ``<item>``."""

    kind: Literal["rss"] = "rss"
    title: str = "Untitled"
    description: str = ""
    link: str = ""
    guid: Optional[str] = None
    pub_date: Optional[str] = None
    source: str = ""

    def to_document(self) -> Document:
        return Document(
            id=str(uuid.uuid4()),
            title=strip_markup(self.title) or "Untitled",
            body=strip_markup(self.description),
            url=self.link or self.guid or "",
            published_at=self.pub_date or _now_iso(),
            source_tag=self.source,
        )


class AtomEntry(BaseModel):
    """An Atom ``<entry>``."""

    kind: Literal["atom"] = "atom"
    title: str = "Untitled"
    summary: str = ""
    content: str = ""
    link: str = ""
    id: Optional[str] = None
    published: Optional[str] = None
    updated: Optional[str] = None
    source: str = ""

    def to_document(self) -> Document:
        return Document(
            id=str(uuid.uuid4()),
            title=strip_markup(self.title) or "Untitled",
            body=strip_markup(self.summary or self.content),
            url=self.link or self.id or "",
            published_at=self.published or self.updated or _now_iso(),
            source_tag=self.source,
        )


class ArticleRecord(BaseModel):
    """A plain article as uploaded through the API or bundled as sample data."""

    kind: Literal["article"] = "article"
    id: Optional[str] = None
    title: str
    content: str
    url: str = ""
    publish_date: Optional[str] = None
    source: str = "manual"

    def to_document(self) -> Document:
        return Document(
            id=self.id or str(uuid.uuid4()),
            title=self.title.strip(),
            body=strip_markup(self.content),
            url=self.url,
            published_at=self.publish_date or _now_iso(),
            source_tag=self.source,
        )


SourceRecord = Annotated[
    Union[RssItem, AtomEntry, ArticleRecord], Field(discriminator="kind")
]

source_record_adapter = TypeAdapter(SourceRecord)


def parse_record(data: dict) -> Union[RssItem, AtomEntry, ArticleRecord]:
    """Validate a raw dict into the matching source record model."""
    return source_record_adapter.validate_python(data)


def normalize_record(record) -> Optional[Document]:
    """Turn a source record into a Document.

    Returns None when the cleaned body is too short to be worth indexing.
    """
    if isinstance(record, dict):
        record = parse_record(record)

    cleaned_body = strip_markup(
        getattr(record, "description", None)
        or getattr(record, "summary", None)
        or getattr(record, "content", None)
        or ""
    )
    if len(cleaned_body) <= MIN_BODY_LENGTH:
        return None

    return record.to_document()
