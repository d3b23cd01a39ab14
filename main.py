"""rage-ingest: discover, parse and turn media articles into prompt bundles."""
import argparse
import asyncio
import json
import logging
import sys
from urllib.parse import urlparse

import db
from config import settings
from agent.llm import get_llm_client
from agent.modules.trending import analyze_trends, extract_key_points
from ingest.fetcher import Fetcher
from ingest.pipeline import IngestOptions, ingest_once

logging.basicConfig(
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    level=logging.INFO,
    stream=sys.stdout,
)
logger = logging.getLogger(__name__)


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Ingest media articles into prompt chunks")
    parser.add_argument("--dry", action="store_true", help="Print effective configuration and exit")
    parser.add_argument("--feed-only", action="store_true", help="Discover from the RSS feed only")
    parser.add_argument("--sitemap-only", action="store_true", help="Discover from sitemaps only")
    parser.add_argument("--no-robots", action="store_true", help="Do not consult robots.txt")
    parser.add_argument("--since", type=float, default=None, metavar="HOURS",
                        help="Skip feed items published more than HOURS ago")
    parser.add_argument("--limit", type=int, default=None, help="Maximum number of URLs to fetch")
    parser.add_argument("--upsert", action="store_true",
                        help="Replace stored articles by URL and record hash changes")
    parser.add_argument("--enhance", action="store_true",
                        help="Attach LLM research notes to each article")
    parser.add_argument("--trends", action="store_true",
                        help="Print a trend report over stored articles and exit")
    return parser.parse_args(argv)


def _dry_report(args: argparse.Namespace) -> dict:
    return {
        "ok": True,
        "mode": "dry",
        "base_url": settings.rage_base_url,
        "storage_dir": settings.rage_storage_dir,
        "rate_limit_rps": settings.rage_rate_limit_rps,
        "user_agent": settings.rage_user_agent,
        "flags": {
            "feed_only": args.feed_only,
            "sitemap_only": args.sitemap_only,
            "no_robots": args.no_robots,
            "since_hours": args.since,
            "limit": args.limit,
            "upsert": args.upsert,
            "enhance": args.enhance,
        },
    }


def trend_report(stored: list[dict]) -> dict:
    articles = [
        {
            "title": a.get("title"),
            "category": a.get("category"),
            "source": urlparse(a.get("url") or "").hostname or "",
            "date": a.get("published_at"),
            "content": a.get("body_text"),
            "url": a.get("url"),
        }
        for a in stored
    ]
    trends = analyze_trends(articles)
    relevant = trends.pop("relevant_articles")
    trends["highlights"] = [
        {
            "title": a["title"],
            "url": a["url"],
            "relevance_score": a["relevance_score"],
            "key_points": extract_key_points(a.get("content") or "", a.get("title")),
        }
        for a in relevant[:5]
    ]
    return trends


async def _run(args: argparse.Namespace) -> None:
    options = IngestOptions(
        feed_only=args.feed_only,
        sitemap_only=args.sitemap_only,
        since_hours=args.since,
        limit=args.limit,
        upsert=args.upsert,
    )
    llm = get_llm_client() if args.enhance else None
    async with Fetcher(
        user_agent=settings.rage_user_agent,
        rate_limit_rps=settings.rage_rate_limit_rps,
        respect_robots=not args.no_robots,
    ) as fetcher:
        result = await ingest_once(options, fetcher, llm)

    logger.info(
        "ingest-status %s",
        json.dumps({
            "articles": {"added": result.new_articles, "skipped": result.skipped_articles,
                         "updated": result.metrics.updated},
            "chunks": {"added": result.new_chunks, "skipped": result.skipped_chunks},
            "db": str(db.db_path().resolve()),
        }),
    )


def main(argv: list[str] | None = None) -> None:
    args = _parse_args(argv)
    if args.dry:
        print(json.dumps(_dry_report(args), indent=2))
        return

    db.init_db()
    logger.info("Database initialized.")

    if args.trends:
        print(json.dumps(trend_report(db.list_articles()), ensure_ascii=False, indent=2))
        return

    asyncio.run(_run(args))


if __name__ == "__main__":
    main()
