"""Polite HTTP fetching: robots.txt, rate limiting, conditional requests, backoff."""
import logging
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlsplit
from urllib.robotparser import RobotFileParser

import httpx
from aiolimiter import AsyncLimiter
from tenacity import retry, retry_if_result, stop_after_attempt, wait_exponential

import db

logger = logging.getLogger(__name__)

DEFAULT_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"
MAX_ATTEMPTS = 5

_TIMEOUT = httpx.Timeout(connect=10.0, read=30.0, write=10.0, pool=10.0)


class RobotsDisallowed(Exception):
    """robots.txt forbids fetching the URL for our user agent."""


@dataclass
class FetchResult:
    text: str
    content_type: Optional[str]
    status: int


def _should_retry(response: httpx.Response) -> bool:
    return response.status_code == 429 or 500 <= response.status_code <= 599


def _last_response(retry_state) -> httpx.Response:
    return retry_state.outcome.result()


@retry(
    retry=retry_if_result(_should_retry),
    stop=stop_after_attempt(MAX_ATTEMPTS),
    wait=wait_exponential(multiplier=1, min=1, max=16),
    retry_error_callback=_last_response,
)
async def _get_with_backoff(
    client: httpx.AsyncClient,
    limiter: AsyncLimiter,
    url: str,
    headers: dict[str, str],
) -> httpx.Response:
    """GET with exponential backoff on 429/5xx; after the last attempt the response is returned as is."""
    async with limiter:
        return await client.get(url, headers=headers)


def _conditional_headers(url: str) -> dict[str, str]:
    head = db.get_head(url)
    if not head:
        return {}
    headers = {}
    if head.get("etag"):
        headers["If-None-Match"] = head["etag"]
    if head.get("last_modified"):
        headers["If-Modified-Since"] = head["last_modified"]
    return headers


class Fetcher:
    def __init__(
        self,
        user_agent: str,
        rate_limit_rps: float,
        respect_robots: bool = True,
        client: Optional[httpx.AsyncClient] = None,
        min_interval: Optional[float] = None,
    ):
        # never more than one request per second, whatever the configured rate
        interval = min_interval if min_interval is not None else max(1.0, 1.0 / rate_limit_rps)
        self._limiter = AsyncLimiter(max_rate=1, time_period=interval)
        self._user_agent = user_agent
        self._respect_robots = respect_robots
        self._client = client or httpx.AsyncClient(follow_redirects=True, timeout=_TIMEOUT)
        self._robots: dict[str, Optional[RobotFileParser]] = {}

    async def __aenter__(self) -> "Fetcher":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _robots_for(self, origin: str) -> Optional[RobotFileParser]:
        """Parsed robots.txt for an origin, or None meaning allow-all."""
        if origin in self._robots:
            return self._robots[origin]
        parser: Optional[RobotFileParser] = None
        try:
            async with self._limiter:
                res = await self._client.get(
                    f"{origin}/robots.txt",
                    headers={"User-Agent": self._user_agent},
                )
            if res.is_success:
                parser = RobotFileParser()
                parser.parse(res.text.splitlines())
        except httpx.HTTPError as exc:
            logger.info("robots.txt unavailable for %s (%s), allowing all", origin, exc)
        self._robots[origin] = parser
        return parser

    async def check_robots(self, url: str) -> None:
        if not self._respect_robots:
            return
        parts = urlsplit(url)
        rules = await self._robots_for(f"{parts.scheme}://{parts.netloc}")
        if rules is not None and not rules.can_fetch(self._user_agent, url):
            raise RobotsDisallowed(f"Blocked by robots.txt: {parts.path or '/'}")

    async def fetch(self, url: str, accept: str = DEFAULT_ACCEPT) -> httpx.Response:
        await self.check_robots(url)

        headers = {"User-Agent": self._user_agent, "Accept": accept}
        headers.update(_conditional_headers(url))
        res = await _get_with_backoff(self._client, self._limiter, url, headers)

        db.upsert_head(
            url,
            etag=res.headers.get("etag"),
            last_modified=res.headers.get("last-modified"),
            last_status=res.status_code,
        )
        return res

    async def fetch_text(self, url: str, accept: str = DEFAULT_ACCEPT) -> FetchResult:
        res = await self.fetch(url, accept)
        content_type = res.headers.get("content-type")
        if res.status_code == 304:
            return FetchResult(text="", content_type=content_type, status=304)
        return FetchResult(text=res.text, content_type=content_type, status=res.status_code)
