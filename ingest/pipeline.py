"""
Ingest pipeline: discover → fetch → parse → build prompts → store.

One call to ingest_once is one run over the source site. Individual URLs may
fail (robots, network, HTTP errors); they are logged, counted and skipped.
"""
import hashlib
import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Optional

import db
from config import settings
from agent.llm.base import LLMClient
from agent.modules.enhance import enhance
from agent.modules.prompt_builder import build_prompts
from agent.modules.trending import infer_category_from
from ingest.article_parser import parse_article_html
from ingest.dates import parse_timestamp
from ingest.discovery import FeedItem, discover_from_feed, discover_from_sitemaps
from ingest.fetcher import Fetcher

logger = logging.getLogger(__name__)


@dataclass
class IngestOptions:
    feed_only: bool = False
    sitemap_only: bool = False
    since_hours: Optional[float] = None
    limit: Optional[int] = None
    upsert: bool = False


@dataclass
class IngestMetrics:
    discovered: int = 0
    fetched_ok: int = 0
    fetched_304: int = 0
    fetched_fail: int = 0
    new: int = 0
    updated: int = 0
    ignored: int = 0
    prompts_added: int = 0
    bullets_added: int = 0


@dataclass
class IngestResult:
    new_articles: int = 0
    skipped_articles: int = 0
    new_chunks: int = 0
    skipped_chunks: int = 0
    metrics: IngestMetrics = field(default_factory=IngestMetrics)


def content_hash(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def select_urls(
    candidates: list[FeedItem],
    since_hours: Optional[float] = None,
    limit: Optional[int] = None,
    now: Optional[datetime] = None,
) -> list[str]:
    """Unique candidate URLs in discovery order.

    Items older than ``since_hours`` are dropped; undated items are kept.
    """
    cutoff = None
    if since_hours:
        cutoff = (now or datetime.now(timezone.utc)) - timedelta(hours=since_hours)

    seen: set[str] = set()
    urls: list[str] = []
    for item in candidates:
        if cutoff is not None:
            published = parse_timestamp(item.published_at)
            if published is not None and published < cutoff:
                continue
        if item.url not in seen:
            seen.add(item.url)
            urls.append(item.url)
        if limit and len(urls) >= limit:
            break
    return urls


async def discover(fetcher: Fetcher, options: IngestOptions) -> list[FeedItem]:
    candidates: list[FeedItem] = []
    if not options.sitemap_only:
        candidates = await discover_from_feed(fetcher, settings.feed_url)
    if (options.sitemap_only or not candidates) and not options.feed_only:
        urls = await discover_from_sitemaps(fetcher, settings.sitemap_index_url)
        candidates.extend(FeedItem(url=u) for u in urls)
    return candidates


async def ingest_once(
    options: IngestOptions,
    fetcher: Fetcher,
    llm: Optional[LLMClient] = None,
) -> IngestResult:
    """Run one ingest pass. Pass ``llm`` to attach research notes to each article."""
    metrics = IngestMetrics()

    urls = select_urls(await discover(fetcher, options), options.since_hours, options.limit)
    metrics.discovered = len(urls)

    articles: list[dict] = []
    chunks: list[dict] = []

    for url in urls:
        try:
            res = await fetcher.fetch_text(url)
            if res.status == 304:
                metrics.fetched_304 += 1
                continue
            if not res.content_type or "html" not in res.content_type:
                metrics.ignored += 1
                continue
            metrics.fetched_ok += 1

            parsed = parse_article_html(url, res.text)
            if parsed is None:
                continue

            digest = content_hash(parsed.body_text)
            bundle = build_prompts({"title": parsed.title, "body_text": parsed.body_text})
            record = {
                "url": url,
                "hash": digest,
                "title": parsed.title,
                "author": parsed.author,
                "category": parsed.category or infer_category_from(f"{url} {parsed.title or ''}") or None,
                "published_at": parsed.date,
                "body_text": parsed.body_text,
                "image": parsed.image,
            }
            if llm is not None:
                record["research"] = await enhance(bundle, llm, title=parsed.title)
            articles.append(record)

            metrics.bullets_added += len(bundle.bullets)
            for i, chunk in enumerate(bundle.chunks):
                chunks.append({
                    "url": url,
                    "hash": digest,
                    "title": parsed.title,
                    "summary": bundle.summary,
                    "bullets": bundle.bullets,
                    "chunk_index": i,
                    "chunk_text": chunk,
                    "image": parsed.image,
                })
        except Exception as exc:
            logger.warning("skip-url %s: %s", url, exc)
            metrics.fetched_fail += 1

    result = IngestResult(metrics=metrics)
    if options.upsert:
        metrics.updated = db.upsert_articles_by_url(articles)
    else:
        result.new_articles, result.skipped_articles = db.add_articles(articles)
        metrics.new = result.new_articles
    result.new_chunks, result.skipped_chunks = db.add_prompt_chunks(chunks)
    metrics.prompts_added = result.new_chunks

    logger.info("metrics %s", asdict(metrics))
    return result
