import asyncio

import httpx
import pytest
from tenacity import wait_none

import db
from ingest import fetcher as fetcher_mod
from ingest.fetcher import Fetcher, RobotsDisallowed

URL = "https://rage.dk/musik/artikel"


def make_fetcher(handler, respect_robots=False) -> Fetcher:
    return Fetcher(
        "rage-test/1.0",
        rate_limit_rps=1.0,
        respect_robots=respect_robots,
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        min_interval=0.001,
    )


@pytest.fixture
def no_backoff(monkeypatch):
    monkeypatch.setattr(
        fetcher_mod, "_get_with_backoff", fetcher_mod._get_with_backoff.retry_with(wait=wait_none())
    )


def test_etag_is_sent_back_and_304_short_circuits():
    seen_headers = []

    def handler(request):
        seen_headers.append(request.headers.get("if-none-match"))
        if request.headers.get("if-none-match") == '"E1"':
            return httpx.Response(304, headers={"content-type": "text/html"})
        return httpx.Response(200, text="<p>hej</p>", headers={"content-type": "text/html", "etag": '"E1"'})

    async def run():
        async with make_fetcher(handler) as f:
            return await f.fetch_text(URL), await f.fetch_text(URL)

    first, second = asyncio.run(run())

    assert first.status == 200 and first.text == "<p>hej</p>"
    assert second.status == 304 and second.text == ""
    assert seen_headers == [None, '"E1"']

    head = db.get_head(URL)
    assert head["etag"] == '"E1"'
    assert head["last_status"] == 304


def test_last_modified_is_sent_as_if_modified_since():
    db.upsert_head(URL, last_modified="Mon, 06 Oct 2025 10:00:00 GMT", last_status=200)
    seen = []

    def handler(request):
        seen.append(request.headers.get("if-modified-since"))
        return httpx.Response(304)

    async def run():
        async with make_fetcher(handler) as f:
            return await f.fetch_text(URL)

    assert asyncio.run(run()).status == 304
    assert seen == ["Mon, 06 Oct 2025 10:00:00 GMT"]


def test_robots_disallow_blocks_before_any_request():
    paths = []

    def handler(request):
        paths.append(request.url.path)
        if request.url.path == "/robots.txt":
            return httpx.Response(200, text="User-agent: *\nDisallow: /privat/\n")
        return httpx.Response(200, text="ok", headers={"content-type": "text/html"})

    async def run():
        async with make_fetcher(handler, respect_robots=True) as f:
            with pytest.raises(RobotsDisallowed):
                await f.fetch_text("https://rage.dk/privat/side")
            return await f.fetch_text(URL)

    assert asyncio.run(run()).status == 200
    # robots.txt is fetched once per origin
    assert paths == ["/robots.txt", "/musik/artikel"]


def test_missing_robots_allows_everything():
    def handler(request):
        if request.url.path == "/robots.txt":
            return httpx.Response(404)
        return httpx.Response(200, text="ok", headers={"content-type": "text/html"})

    async def run():
        async with make_fetcher(handler, respect_robots=True) as f:
            return await f.fetch_text("https://rage.dk/privat/side")

    assert asyncio.run(run()).text == "ok"


def test_retries_on_server_errors(no_backoff):
    statuses = iter([503, 429, 200])
    calls = []

    def handler(request):
        calls.append(request.url.path)
        status = next(statuses)
        return httpx.Response(status, text="ok" if status == 200 else "", headers={"content-type": "text/html"})

    async def run():
        async with make_fetcher(handler) as f:
            return await f.fetch_text(URL)

    assert asyncio.run(run()).status == 200
    assert len(calls) == 3


def test_gives_up_after_max_attempts_and_returns_last_response(no_backoff):
    calls = []

    def handler(request):
        calls.append(1)
        return httpx.Response(502)

    async def run():
        async with make_fetcher(handler) as f:
            return await f.fetch_text(URL)

    assert asyncio.run(run()).status == 502
    assert len(calls) == fetcher_mod.MAX_ATTEMPTS


def test_client_errors_are_not_retried(no_backoff):
    calls = []

    def handler(request):
        calls.append(1)
        return httpx.Response(404)

    async def run():
        async with make_fetcher(handler) as f:
            return await f.fetch_text(URL)

    assert asyncio.run(run()).status == 404
    assert len(calls) == 1
    assert db.get_head(URL)["last_status"] == 404
