"""Extract title, metadata and clean body text from an article page."""
import json
import logging
import re
from typing import Optional
from urllib.parse import urlparse

from bs4 import BeautifulSoup
from pydantic import BaseModel, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)

# Content root candidates in priority order
_CONTENT_ROOTS = (
    "article",
    "main",
    "[class*='content']",
    "[class*='post']",
    ".entry-content",
)

_NOISE = ", ".join((
    "[class*='share']",
    "[class*='related']",
    "nav",
    "aside",
    "script",
    "style",
    "iframe",
    "figure",
    "figcaption",
    "[role='complementary']",
))

_QUOTES = re.compile(r"[\"“”]+")


class ParsedArticle(BaseModel):
    url: str
    title: Optional[str] = None
    author: Optional[str] = None
    date: Optional[str] = None
    category: Optional[str] = None
    body_text: str = Field(min_length=1)
    excerpt: Optional[str] = None
    image: Optional[str] = None

    @field_validator("url")
    @classmethod
    def _http_url(cls, value: str) -> str:
        parts = urlparse(value)
        if parts.scheme not in ("http", "https") or not parts.netloc:
            raise ValueError("not an http(s) URL")
        return value


def _clean(text: Optional[str]) -> Optional[str]:
    text = " ".join((text or "").split())
    return text or None


def _meta(soup: BeautifulSoup, selector: str) -> Optional[str]:
    el = soup.select_one(selector)
    return _clean(el.get("content")) if el else None


def _text(soup, selector: str) -> Optional[str]:
    el = soup.select_one(selector)
    return _clean(el.get_text(" ")) if el else None


def _attr(soup, selector: str, name: str) -> Optional[str]:
    el = soup.select_one(selector)
    return _clean(el.get(name)) if el else None


def _json_ld_date(soup: BeautifulSoup) -> Optional[str]:
    for script in soup.select("script[type='application/ld+json']"):
        try:
            data = json.loads(script.string or script.get_text())
        except json.JSONDecodeError:
            continue
        for obj in data if isinstance(data, list) else [data]:
            if isinstance(obj, dict) and obj.get("datePublished"):
                return str(obj["datePublished"])
    return None


def _breadcrumb_category(soup: BeautifulSoup) -> Optional[str]:
    crumbs = soup.select(".breadcrumbs a")
    return _clean(crumbs[1].get_text(" ")) if len(crumbs) > 1 else None


def _excerpt(body_text: str) -> str:
    words = body_text.split()
    n = min(40, max(25, int(len(words) * 0.1)))
    return " ".join(_QUOTES.sub("", " ".join(words[:n])).split())


def parse_article_html(url: str, html: str) -> Optional[ParsedArticle]:
    """Parse an article page; None when there is no body text or the URL is invalid."""
    soup = BeautifulSoup(html, "html.parser")

    title = (
        _meta(soup, "meta[property='og:title']")
        or _text(soup, "h1")
        or _text(soup, "title")
    )
    author = (
        _meta(soup, "meta[name='author']")
        or _text(soup, "[rel='author']")
        or _text(soup, ".author, .byline, .post-author")
    )
    date = (
        _meta(soup, "meta[property='article:published_time']")
        or _attr(soup, "time[datetime]", "datetime")
        or _json_ld_date(soup)
    )
    category = (
        _text(soup, ".category a")
        or _text(soup, "a[rel~='category'][rel~='tag']")
        or _breadcrumb_category(soup)
    )
    image = (
        _meta(soup, "meta[property='og:image']")
        or _meta(soup, "meta[name='twitter:image']")
        or _attr(soup, "article img, main img, .content img, .post img", "src")
        or _attr(soup, "img", "src")
    )

    root = soup.body or soup
    for selector in _CONTENT_ROOTS:
        candidate = soup.select_one(selector)
        if candidate is not None:
            root = candidate
            break

    for el in root.select(_NOISE):
        if not el.decomposed:
            el.decompose()

    body_text = " ".join(root.get_text(" ").split())
    if not body_text:
        return None

    try:
        article = ParsedArticle(
            url=url,
            title=title,
            author=author,
            date=date,
            category=category,
            body_text=body_text,
            excerpt=_excerpt(body_text),
            image=image,
        )
    except ValidationError as exc:
        logger.debug("Rejected parse of %s: %s", url, exc)
        return None

    logger.debug("Parsed %s: %d chars of body text", url, len(body_text))
    return article
