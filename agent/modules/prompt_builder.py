"""
Pure-function prompt bundle builder.

Turns raw article text into the bundle every downstream LLM workflow consumes:
an extractive summary, exactly three highlight bullets and a list of
word-bounded content chunks. No LLM involvement, no I/O; the same input always
produces the same bundle.

Chunking targets MIN_WORDS..MAX_WORDS words per chunk. MAX_WORDS is never
exceeded by the greedy pass; the tail is repaired afterwards, and only the
final merge may overshoot, up to TAIL_MERGE_CEILING.
"""
import re
from collections import deque
from dataclasses import dataclass, field
from typing import Mapping, Optional

from pydantic import BaseModel, ConfigDict

MIN_WORDS = 900
MAX_WORDS = 1400
# A merged last chunk may overshoot MAX_WORDS by at most 10%
TAIL_MERGE_CEILING = MAX_WORDS + MAX_WORDS // 10

BULLET_COUNT = 3
BULLET_MAX_CHARS = 120

SUMMARY_LEAD_SENTENCES = 5
SUMMARY_SOFT_MIN = 450
SUMMARY_SOFT_TARGET = 500
SUMMARY_MAX_CHARS = 600

# Below this many punctuated sentences the text is treated as unstructured
_MIN_PUNCT_SENTENCES = 5
_PSEUDO_SENTENCE_WORDS = 30

_UPPER = "A-ZÆØÅÄÖÜÐÞ"
_LOWER = "a-zæøåäöüðþ"

_SENTENCE_BOUNDARY = re.compile(rf"(?<=[.!?])\s+(?=[{_UPPER}])")
_DIGITS = re.compile(r"[0-9]{2,}")
_NAME_PAIR = re.compile(rf"[{_UPPER}][{_LOWER}]+\s+[{_UPPER}][{_LOWER}]+")
_EDGE_QUOTES = re.compile(r"^[\"'“”]+|[\"'“”]+$")
_TRAILING_PUNCT = re.compile(r"[.,;:—–-]+$")


class BuildInput(BaseModel):
    model_config = ConfigDict(strict=True)

    title: Optional[str] = None
    body_text: str


@dataclass
class PromptBuild:
    summary: str
    bullets: list[str] = field(default_factory=list)
    chunks: list[str] = field(default_factory=list)


@dataclass
class _ChunkBuffer:
    """Sentences collected for the chunk currently being built."""
    parts: list[str] = field(default_factory=list)
    word_count: int = 0

    def add(self, text: str, words: int) -> None:
        self.parts.append(text)
        self.word_count += words

    def flush(self) -> Optional[str]:
        if not self.parts:
            return None
        chunk = " ".join(self.parts).strip()
        self.parts = []
        self.word_count = 0
        return chunk


def split_sentences(text: str) -> list[str]:
    """Split on sentence punctuation followed by a capital letter.

    Text with fewer than five such sentences is cut into 30-word windows.
    """
    s = " ".join(text.split())
    by_punct = [x.strip() for x in _SENTENCE_BOUNDARY.split(s)]
    by_punct = [x for x in by_punct if x]
    if len(by_punct) >= _MIN_PUNCT_SENTENCES:
        return by_punct

    words = s.split()
    return [
        " ".join(words[i:i + _PSEUDO_SENTENCE_WORDS])
        for i in range(0, len(words), _PSEUDO_SENTENCE_WORDS)
    ]


def _cap(text: str, limit: int) -> str:
    if len(text) > limit:
        return text[:limit - 3] + "…"
    return text


def summarize(title: Optional[str], sentences: list[str]) -> str:
    summary = " ".join(sentences[:SUMMARY_LEAD_SENTENCES])
    if len(summary) < SUMMARY_SOFT_MIN:
        for sentence in sentences[SUMMARY_LEAD_SENTENCES:]:
            if len(summary) >= SUMMARY_SOFT_TARGET:
                break
            summary += (" " if summary else "") + sentence
    summary = _cap(summary, SUMMARY_MAX_CHARS)
    final = (f"{title}. " if title else "") + summary
    return _cap(final, SUMMARY_MAX_CHARS)


def _bullet_score(sentence: str) -> int:
    score = 0
    if _DIGITS.search(sentence):
        score += 2  # numbers / dates
    if _NAME_PAIR.search(sentence):
        score += 1  # name-ish
    if len(sentence) > 90:
        score += 1
    return score


def pick_bullet_candidates(sentences: list[str], max_bullets: int = BULLET_COUNT) -> list[str]:
    """Highest scoring sentences first; ties keep document order."""
    ranked = sorted(enumerate(sentences), key=lambda item: (-_bullet_score(item[1]), item[0]))
    return [s for _, s in ranked[:max_bullets]]


def normalize_bullet(text: str) -> str:
    t = " ".join(text.split())
    t = _EDGE_QUOTES.sub("", t)
    t = _cap(t, BULLET_MAX_CHARS)
    return _TRAILING_PUNCT.sub("", t)


def select_bullets(sentences: list[str], body_text: str) -> list[str]:
    bullets: list[str] = []
    for candidate in pick_bullet_candidates(sentences):
        if candidate not in bullets:
            bullets.append(candidate)

    if len(bullets) < BULLET_COUNT:
        for sentence in sentences:
            if len(bullets) >= BULLET_COUNT:
                break
            candidate = sentence.strip()
            if candidate and candidate not in bullets:
                bullets.append(candidate)

    if len(bullets) < BULLET_COUNT:
        words = body_text.split()
        per_bullet = max(20, min(80, len(words) // 3))
        for i in range(BULLET_COUNT):
            if len(bullets) >= BULLET_COUNT:
                break
            piece = " ".join(words[i * per_bullet:(i + 1) * per_bullet])
            if piece:
                bullets.append(piece)

    # Input too small to slice three times: repeat the last highlight
    while len(bullets) < BULLET_COUNT:
        bullets.append(bullets[-1] if bullets else "")

    return [normalize_bullet(b) for b in bullets[:BULLET_COUNT]]


def chunk_sentences(sentences: list[str]) -> list[str]:
    """Greedy word-bounded chunking; see merge_or_redistribute_tail for the tail."""
    chunks: list[str] = []
    buf = _ChunkBuffer()
    pending = deque(sentences)

    def emit(chunk: Optional[str]) -> None:
        if chunk:
            chunks.append(chunk)

    while pending:
        sentence = pending.popleft().strip()
        if not sentence:
            continue
        words = sentence.split()
        n = len(words)

        if buf.word_count + n <= MAX_WORDS:
            buf.add(sentence, n)
            continue

        if buf.word_count >= MIN_WORDS:
            emit(buf.flush())
            pending.appendleft(sentence)
            continue

        if buf.word_count == 0:
            # n > MAX_WORDS: emit full windows, the remainder starts the next buffer
            full = n - n % MAX_WORDS
            for j in range(0, full, MAX_WORDS):
                emit(" ".join(words[j:j + MAX_WORDS]))
            if full < n:
                # the remainder joins the following sentences instead of standing alone
                pending.appendleft(" ".join(words[full:]))
            continue

        # Top the short buffer up to MAX_WORDS with the head of the sentence
        need = MAX_WORDS - buf.word_count
        buf.add(" ".join(words[:need]), need)
        emit(buf.flush())
        pending.appendleft(" ".join(words[need:]))

    emit(buf.flush())
    return merge_or_redistribute_tail(chunks)


def merge_or_redistribute_tail(chunks: list[str]) -> list[str]:
    """Fix an undersized last chunk by merging or by moving words from its predecessor.

    When moving words cannot get the last chunk to MIN_WORDS, the two chunks
    are merged if the result stays within TAIL_MERGE_CEILING; otherwise their
    words are split evenly between them.
    """
    if len(chunks) <= 1:
        return chunks
    out = list(chunks)
    prev_words = out[-2].split()
    tail_words = out[-1].split()
    if len(tail_words) >= MIN_WORDS:
        return out

    if len(prev_words) + len(tail_words) <= MAX_WORDS:
        out[-2:] = [" ".join(prev_words + tail_words)]
        return out

    moved: deque[str] = deque(tail_words)
    while len(moved) < MIN_WORDS and len(prev_words) > MIN_WORDS:
        moved.appendleft(prev_words.pop())

    if len(moved) < MIN_WORDS:
        if len(prev_words) + len(moved) <= TAIL_MERGE_CEILING:
            out[-2:] = [" ".join(prev_words + list(moved))]
            return out
        # Too big to merge: share the words evenly between the last two chunks
        while len(prev_words) > len(moved) + 1:
            moved.appendleft(prev_words.pop())

    out[-2:] = [" ".join(prev_words), " ".join(moved)]
    return out


def build_prompts(data: "Mapping[str, object] | BuildInput") -> PromptBuild:
    """Build summary, bullets and chunks for one article.

    ``data`` is a mapping (or BuildInput) with ``body_text`` and an optional
    ``title``. Raises pydantic.ValidationError when ``body_text`` is missing or
    not a string.
    """
    parsed = data if isinstance(data, BuildInput) else BuildInput.model_validate(data)

    sentences = split_sentences(parsed.body_text)
    return PromptBuild(
        summary=summarize(parsed.title, sentences),
        bullets=select_bullets(sentences, parsed.body_text),
        chunks=chunk_sentences(sentences),
    )
