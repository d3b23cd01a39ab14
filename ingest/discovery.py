"""Article URL discovery from the RSS feed and the sitemap index."""
import logging
from dataclasses import dataclass
from typing import Optional
from xml.etree import ElementTree as ET

import feedparser

from ingest.fetcher import Fetcher

logger = logging.getLogger(__name__)


@dataclass
class FeedItem:
    url: str
    published_at: Optional[str] = None


def _is_xml(content_type: Optional[str]) -> bool:
    return bool(content_type) and "xml" in content_type


def _local(tag: str) -> str:
    # "{http://www.sitemaps.org/schemas/sitemap/0.9}loc" -> "loc"
    return tag.rsplit("}", 1)[-1]


def _locs(xml_text: str, parent: str) -> list[str]:
    """<loc> values of every <parent> element, namespace-agnostic."""
    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError as exc:
        logger.warning("Unparseable sitemap XML: %s", exc)
        return []
    out = []
    for el in root.iter():
        if _local(el.tag) != parent:
            continue
        for child in el:
            if _local(child.tag) == "loc" and child.text and child.text.strip():
                out.append(child.text.strip())
    return out


def parse_feed(xml_text: str) -> list[FeedItem]:
    feed = feedparser.parse(xml_text)
    items = []
    for entry in feed.entries:
        link = entry.get("link") or entry.get("id")
        if not link:
            continue
        items.append(FeedItem(url=link, published_at=entry.get("published") or entry.get("updated")))
    return items


async def discover_from_feed(fetcher: Fetcher, feed_url: str) -> list[FeedItem]:
    res = await fetcher.fetch_text(feed_url)
    if not _is_xml(res.content_type):
        return []
    return parse_feed(res.text)


async def discover_from_sitemaps(fetcher: Fetcher, index_url: str) -> list[str]:
    res = await fetcher.fetch_text(index_url)
    if not _is_xml(res.content_type):
        return []

    urls: list[str] = []
    for sitemap_url in _locs(res.text, "sitemap"):
        sm = await fetcher.fetch_text(sitemap_url)
        if not _is_xml(sm.content_type):
            continue
        urls.extend(_locs(sm.text, "url"))
    return urls
