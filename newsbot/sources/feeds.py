"""RSS/Atom feed fetcher producing normalised Documents."""
import asyncio
import xml.etree.ElementTree as ET
from typing import Dict, List, Optional, Sequence
from urllib.parse import urlparse

import httpx
import structlog

from newsbot import config
from newsbot.sources.models import AtomEntry, Document, RssItem, normalize_record

logger = structlog.get_logger()

ATOM_NS = "{http://www.w3.org/2005/Atom}"
USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"


def _text(element: Optional[ET.Element]) -> str:
    if element is None:
        return ""
    return "".join(element.itertext()).strip()


def parse_feed(xml_text: str, source: str = "") -> List[Dict[str, str]]:
    """Parse RSS 2.0 or Atom XML into raw source record dicts.

    Args:
        xml_text: Feed body
        source: Source tag stored on every record

    Returns:
        List of dicts accepted by ``parse_record``

    Raises:
        ET.ParseError: If the body is not well-formed XML
    """
    root = ET.fromstring(xml_text)
    records = []

    channel = root.find("channel")
    if channel is not None:
        for item in channel.findall("item"):
            records.append(
                RssItem(
                    title=_text(item.find("title")) or "Untitled",
                    description=_text(item.find("description")),
                    link=_text(item.find("link")),
                    guid=_text(item.find("guid")) or None,
                    pub_date=_text(item.find("pubDate")) or None,
                    source=source,
                ).model_dump()
            )
        return records

    for entry in root.findall(f"{ATOM_NS}entry"):
        link = entry.find(f"{ATOM_NS}link")
        records.append(
            AtomEntry(
                title=_text(entry.find(f"{ATOM_NS}title")) or "Untitled",
                summary=_text(entry.find(f"{ATOM_NS}summary")),
                content=_text(entry.find(f"{ATOM_NS}content")),
                link=link.get("href", "") if link is not None else "",
                id=_text(entry.find(f"{ATOM_NS}id")) or None,
                published=_text(entry.find(f"{ATOM_NS}published")) or None,
                updated=_text(entry.find(f"{ATOM_NS}updated")) or None,
                source=source,
            ).model_dump()
        )
    return records


class FeedFetcher:
    """Fetches news feeds one after another with a pause between feeds."""

    def __init__(
        self,
        feeds: Sequence[str] = None,
        item_limit: int = None,
        delay_seconds: float = None,
        timeout: float = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.feeds = list(feeds) if feeds is not None else list(config.NEWS_FEEDS)
        self.item_limit = item_limit or config.FEED_ITEM_LIMIT
        self.delay_seconds = (
            config.FEED_DELAY_SECONDS if delay_seconds is None else delay_seconds
        )
        self.timeout = timeout or config.FEED_TIMEOUT
        self.transport = transport

    async def fetch_feed(self, url: str) -> List[Dict[str, str]]:
        """Fetch and parse one feed. Failures are logged and give an empty list."""
        source = urlparse(url).hostname or url

        try:
            async with httpx.AsyncClient(
                follow_redirects=True, timeout=self.timeout, transport=self.transport
            ) as client:
                response = await client.get(url, headers={"User-Agent": USER_AGENT})
                response.raise_for_status()

            records = parse_feed(response.text, source=source)
            logger.info("feed_fetched", url=url, items=len(records))
            return records

        except (httpx.HTTPError, ET.ParseError) as e:
            logger.error(
                "feed_fetch_failed",
                url=url,
                error=str(e),
                error_type=type(e).__name__,
            )
            return []

    async def fetch_documents(self) -> List[Document]:
        """Fetch every configured feed and normalise the items into Documents."""
        documents: List[Document] = []

        for position, url in enumerate(self.feeds):
            if position and self.delay_seconds > 0:
                await asyncio.sleep(self.delay_seconds)

            records = await self.fetch_feed(url)
            added = 0
            for record in records[: self.item_limit]:
                document = normalize_record(record)
                if document is not None:
                    documents.append(document)
                    added += 1

            logger.info("feed_documents_added", url=url, documents=added)

        logger.info("feeds_ingested", documents=len(documents), feeds=len(self.feeds))
        return documents
