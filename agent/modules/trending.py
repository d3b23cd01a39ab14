"""
Pure-function trend analysis over scraped articles.

Articles are plain dicts with the keys ``title``, ``category``, ``tags``,
``source``, ``date``, ``content`` and ``url`` (all optional). Nothing here
calls an LLM; scores and counts are deterministic given ``now``.
"""
import re
from collections import Counter
from datetime import datetime, timezone
from typing import Optional

from ingest.dates import parse_timestamp

_STOP_WORDS = {
    "og", "eller", "men", "for", "med", "på", "til", "af", "i", "det", "den", "der", "som", "at", "en", "et",
    "har", "kan", "vil", "skal", "må", "bør", "kunne", "ville", "skulle", "måtte", "burde",
    "the", "and", "or", "but", "with", "on", "to", "of", "in", "that", "which", "as", "a", "an",
    "have", "can", "will", "shall", "may", "should", "could", "would", "might",
}

# Checked in order, first hit wins
_CATEGORY_RULES: list[tuple[str, tuple[str, ...]]] = [
    ("Musik",         ("/musik", "music", "koncert", "album", "artist")),
    ("Film",          ("/film", "movie", "cinema", "anmeldelse", "review")),
    ("Serier & Film", ("serie", "/tv", "netflix", "hbo", "disney", "streaming")),
    ("Gaming",        ("gaming", "playstation", "xbox", "nintendo", "pc")),
    ("Tech",          ("tech", "teknologi", "ai", "smartphone")),
    ("Kultur",        ("kultur", "kunst", "bog", "teater")),
]

_HIGH_RELEVANCE_KEYWORDS = (
    "anmeldelse", "review", "bedømmelse", "kritik", "kritiker",
    "film", "serie", "tv", "netflix", "hbo", "disney", "streaming",
    "gaming", "spil", "playstation", "xbox", "nintendo",
    "musik", "koncert", "album", "artist", "band",
    "kultur", "kunst", "teater", "bog", "litteratur",
    "tech", "teknologi", "ai", "smartphone", "computer",
)

_TOPIC_PATTERNS: dict[str, re.Pattern] = {
    "Gaming":        re.compile(r"game|gaming|xbox|playstation|nintendo|spil"),
    "Tech":          re.compile(r"tech|ai|microsoft|apple|google|teknologi"),
    "Entertainment": re.compile(r"film|movie|serie|tv|netflix|streaming"),
    "Music":         re.compile(r"music|concert|album|artist|musik|koncert"),
    "Culture":       re.compile(r"kultur|kunst|teater|bog|litteratur"),
    "Reviews":       re.compile(r"anmeldelse|review|bedømmelse|kritik"),
}

_TOPIC_KEYWORDS: dict[str, tuple[str, ...]] = {
    "Gaming":        ("game", "gaming", "xbox", "playstation", "nintendo", "pc", "console", "spil"),
    "Tech":          ("tech", "ai", "microsoft", "apple", "google", "smartphone", "computer", "teknologi"),
    "Entertainment": ("film", "movie", "serie", "tv", "netflix", "streaming", "cinema"),
    "Music":         ("music", "concert", "album", "artist", "song", "band", "festival", "musik", "koncert"),
    "Culture":       ("kultur", "kunst", "teater", "bog", "litteratur", "art", "culture"),
    "Reviews":       ("anmeldelse", "review", "bedømmelse", "kritik", "kritiker", "rating"),
}

_MIN_RELEVANCE = 5
_MAX_RELEVANT = 50
_MAX_PER_LOOKUP = 8

_BULLET_SPLIT = re.compile(r"•|\n-\s|\n\*\s")
_SENTENCE_SPLIT = re.compile(r"(?<=[.!?])\s+")
_HAS_LETTER = re.compile(r"[A-Za-zÆØÅæøå]")
_DATELINE = re.compile(r"^\d{1,2}\.?\s*(jan|feb|mar|apr|maj|jun|jul|aug|sep|okt|nov|dec)\.?", re.IGNORECASE)
_BYLINE_NOISE = re.compile(r"\b(Af\s+\w|FOTO:|Læsetid|@)\b", re.IGNORECASE)
_NOT_ALNUM = re.compile(r"[^A-Za-zÆØÅæøå0-9]")


def is_stop_word(word: str) -> bool:
    return word.lower() in _STOP_WORDS


def infer_category_from(text: str) -> str:
    """Map a URL or title to an editorial section name, or '' when nothing matches."""
    s = (text or "").lower()
    for category, needles in _CATEGORY_RULES:
        if any(n in s for n in needles):
            return category
    return ""


def _is_duplicate_of(sentence: str, key: str, reference: str, contains_len: int) -> bool:
    if not reference:
        return False
    return (
        reference.startswith(key)
        or key.startswith(reference[:50])
        or reference[:contains_len] in sentence.lower()
    )


def extract_key_points(text: str, title: Optional[str] = None, lead: Optional[str] = None) -> list[str]:
    """Up to three informative sentences, skipping datelines, bylines and title/lead repeats."""
    t = " ".join((text or "").split())
    if not t:
        return []
    # whitespace is already collapsed, so only inline bullet markers can split here
    bullets = [s.strip() for s in _BULLET_SPLIT.split(t)]
    raw = bullets if len([b for b in bullets if b]) > 1 else _SENTENCE_SPLIT.split(t)

    norm_title = (title or "").lower().strip()
    norm_lead = (lead or "").lower().strip()

    unique: list[str] = []
    for s in (x.strip() for x in raw):
        if not s or not _HAS_LETTER.search(s):
            continue
        if _DATELINE.search(s) or _BYLINE_NOISE.search(s):
            continue
        if len(_NOT_ALNUM.sub("", s)) < 25:
            continue
        if len(s) > 200:
            s = s[:197] + "…"
        key = s[:50].lower()
        if _is_duplicate_of(s, key, norm_title, 60) or _is_duplicate_of(s, key, norm_lead, 80):
            continue
        if not any(u[:50].lower() == key for u in unique):
            unique.append(s)
        if len(unique) >= 3:
            break
    return unique


def score_article_relevance(article: dict, now: Optional[datetime] = None) -> int:
    score = 0
    title = (article.get("title") or "").lower()
    content = (article.get("content") or "").lower()

    score += 10 * sum(1 for k in _HIGH_RELEVANCE_KEYWORDS if k in title)

    # reviews and culture get an extra bump
    if any(k in title for k in ("anmeldelse", "review", "bedømmelse")):
        score += 15
    if any(k in title for k in ("kultur", "kunst", "teater")):
        score += 12

    published = parse_timestamp(article.get("date"))
    if published is not None:
        days = ((now or datetime.now(timezone.utc)) - published).days
        if days == 0:
            score += 20
        elif days == 1:
            score += 15
        elif days <= 3:
            score += 10
        elif days <= 7:
            score += 5

    source = (article.get("source") or "").lower()
    if source and "apropos" not in source:
        score += 5

    if len(content) > 200:
        score += 3

    return score


def filter_relevant_articles(articles: list[dict], now: Optional[datetime] = None) -> list[dict]:
    scored = [
        {**a, "relevance_score": score_article_relevance(a, now)}
        for a in articles
    ]
    relevant = [a for a in scored if a["relevance_score"] > _MIN_RELEVANCE]
    relevant.sort(key=lambda a: a["relevance_score"], reverse=True)
    return relevant[:_MAX_RELEVANT]


def _top(counter: Counter, n: int, label: str) -> list[dict]:
    return [{label: key, "count": count} for key, count in counter.most_common(n)]


def analyze_trends(articles: list[dict], now: Optional[datetime] = None) -> dict:
    relevant = filter_relevant_articles(articles, now)

    categories: Counter = Counter()
    tags: Counter = Counter()
    words: Counter = Counter()
    topics: Counter = Counter()

    for article in relevant:
        if article.get("category"):
            categories[article["category"]] += 1
        for tag in article.get("tags") or []:
            tags[tag] += 1
        title = (article.get("title") or "").lower()
        for w in re.sub(r"[^\w\s]", "", title).split():
            if len(w) > 3 and not is_stop_word(w):
                words[w] += 1
        for topic, pattern in _TOPIC_PATTERNS.items():
            if pattern.search(title):
                topics[topic] += 1

    return {
        "top_categories": _top(categories, 5, "category"),
        "top_tags": _top(tags, 10, "tag"),
        "top_words": _top(words, 15, "word"),
        "top_topics": _top(topics, 5, "topic"),
        "total_articles": len(relevant),
        "relevant_articles": relevant,
    }


def get_articles_for_topic(articles: list[dict], topic: str) -> list[dict]:
    keywords = _TOPIC_KEYWORDS.get(topic, ())
    hits = [a for a in articles if any(k in (a.get("title") or "").lower() for k in keywords)]
    return hits[:_MAX_PER_LOOKUP]


def get_articles_for_category(articles: list[dict], category: str) -> list[dict]:
    wanted = category.lower()
    hits = [a for a in articles if (a.get("category") or "").lower() == wanted and a.get("category")]
    return hits[:_MAX_PER_LOOKUP]


def get_articles_for_tags(articles: list[dict], tags: list[str]) -> list[dict]:
    queries = [q.lower() for q in tags]
    hits = [
        a for a in articles
        if any(q in t.lower() for t in a.get("tags") or [] for q in queries)
    ]
    return hits[:_MAX_PER_LOOKUP]
