import asyncio
from datetime import datetime, timezone
from pathlib import Path

import httpx

import db
from agent.llm.base import LLMClient, LLMResponse
from ingest.discovery import FeedItem
from ingest.fetcher import Fetcher
from ingest.pipeline import IngestOptions, content_hash, ingest_once, select_urls

FIXTURES = Path(__file__).parent / "fixtures"

URL_A = "https://rage.dk/musik/roskilde-udsolgt/"
URL_B = "https://rage.dk/serier/ny-serie/"
URL_PDF = "https://rage.dk/presse/program.pdf"
URL_DOWN = "https://rage.dk/nede/"

RSS = f"""<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0"><channel><title>RAGE</title>
  <item><link>{URL_A}</link><pubDate>Mon, 06 Oct 2025 08:00:00 +0000</pubDate></item>
  <item><link>{URL_B}</link></item>
  <item><link>{URL_PDF}</link></item>
  <item><link>{URL_DOWN}</link></item>
  <item><link>{URL_A}</link></item>
</channel></rss>"""


def handler(request: httpx.Request) -> httpx.Response:
    url = str(request.url)
    if url == "https://rage.dk/feed/":
        return httpx.Response(200, text=RSS, headers={"content-type": "application/rss+xml"})
    if url == URL_A:
        if request.headers.get("if-none-match") == '"a1"':
            return httpx.Response(304)
        html = (FIXTURES / "fixture-a.html").read_text(encoding="utf-8")
        return httpx.Response(200, text=html, headers={"content-type": "text/html; charset=utf-8", "etag": '"a1"'})
    if url == URL_B:
        html = (FIXTURES / "fixture-b.html").read_text(encoding="utf-8")
        return httpx.Response(200, text=html, headers={"content-type": "text/html"})
    if url == URL_PDF:
        return httpx.Response(200, content=b"%PDF-1.4", headers={"content-type": "application/pdf"})
    raise httpx.ConnectError("connection refused", request=request)


def run_ingest(options: IngestOptions, llm=None):
    async def run():
        async with Fetcher(
            "rage-test/1.0",
            rate_limit_rps=1.0,
            respect_robots=False,
            client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
            min_interval=0.001,
        ) as fetcher:
            return await ingest_once(options, fetcher, llm)

    return asyncio.run(run())


class FakeLLM(LLMClient):
    async def complete(self, system, user, max_tokens=1024, temperature=0.3):
        return LLMResponse(content='{"summary": "Tilføj kontekst", "additions": ["Billetpriser"]}')


def test_first_run_stores_articles_and_chunks():
    result = run_ingest(IngestOptions(feed_only=True))
    m = result.metrics

    assert m.discovered == 4
    assert (m.fetched_ok, m.fetched_304, m.fetched_fail, m.ignored) == (2, 0, 1, 1)
    assert (result.new_articles, result.skipped_articles) == (2, 0)
    assert m.new == 2
    assert result.new_chunks == m.prompts_added == 2
    assert m.bullets_added == 6

    a = db.get_article(URL_A)
    assert a["category"] == "Musik"
    assert a["hash"] == content_hash(a["body_text"])
    assert a["research"] is None
    # no category on the page, so it is inferred from url and title
    assert db.get_article(URL_B)["category"] == "Film"

    chunks = db.get_prompt_chunks(URL_A)
    assert len(chunks) == 1
    assert chunks[0]["chunk_index"] == 0
    assert len(chunks[0]["bullets"]) == 3
    assert chunks[0]["summary"].startswith("Roskilde Festival melder udsolgt for første gang i fem år.")
    assert chunks[0]["image"] == "https://rage.dk/images/roskilde.jpg"


def test_second_run_uses_304_and_skips_known_content():
    run_ingest(IngestOptions(feed_only=True))
    result = run_ingest(IngestOptions(feed_only=True))
    m = result.metrics

    assert m.fetched_304 == 1
    assert m.fetched_ok == 1
    assert (result.new_articles, result.skipped_articles) == (0, 1)
    assert (result.new_chunks, result.skipped_chunks) == (0, 1)
    assert len(db.list_articles()) == 2


def test_upsert_with_llm_attaches_research():
    result = run_ingest(IngestOptions(feed_only=True, limit=2, upsert=True), llm=FakeLLM())

    assert result.metrics.discovered == 2
    assert result.metrics.updated == 2
    assert db.get_article(URL_B)["research"] == {"summary": "Tilføj kontekst", "additions": ["Billetpriser"]}


def test_select_urls_dedupes_filters_age_and_limits():
    now = datetime(2025, 10, 8, 12, 0, tzinfo=timezone.utc)
    items = [
        FeedItem("https://rage.dk/ny/", "Wed, 08 Oct 2025 09:00:00 +0000"),
        FeedItem("https://rage.dk/gammel/", "Mon, 06 Oct 2025 08:00:00 +0000"),
        FeedItem("https://rage.dk/udateret/"),
        FeedItem("https://rage.dk/ny/", "2025-10-08T10:00:00Z"),
        FeedItem("https://rage.dk/sidste/", "2025-10-08T11:00:00Z"),
    ]
    assert select_urls(items, since_hours=24, now=now) == [
        "https://rage.dk/ny/", "https://rage.dk/udateret/", "https://rage.dk/sidste/",
    ]
    assert select_urls(items, limit=2) == ["https://rage.dk/ny/", "https://rage.dk/gammel/"]
