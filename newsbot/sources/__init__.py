"""Document acquisition: feed fetching, sample corpus and record normalisation."""
from newsbot.sources.models import (
    ArticleRecord,
    AtomEntry,
    Document,
    RssItem,
    normalize_record,
    parse_record,
    strip_markup,
)

__all__ = [
    "ArticleRecord",
    "AtomEntry",
    "Document",
    "RssItem",
    "normalize_record",
    "parse_record",
    "strip_markup",
]
