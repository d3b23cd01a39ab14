import json
import sqlite3
from pathlib import Path
from datetime import datetime, timezone
from typing import Optional

_DB_FILENAME = "rage.db"

_ARTICLE_FIELDS = (
    "url", "hash", "title", "author", "category", "published_at",
    "body_text", "image", "research", "fetched_at",
)

_CHUNK_FIELDS = (
    "url", "hash", "title", "summary", "bullets", "chunk_index",
    "chunk_text", "image", "created_at",
)


def db_path() -> Path:
    from config import settings
    p = Path(settings.rage_storage_dir).expanduser() / _DB_FILENAME
    p.parent.mkdir(parents=True, exist_ok=True)
    return p


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def get_conn() -> sqlite3.Connection:
    conn = sqlite3.connect(str(db_path()))
    conn.row_factory = sqlite3.Row
    return conn


def init_db() -> None:
    with get_conn() as conn:
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS articles (
                id            INTEGER PRIMARY KEY AUTOINCREMENT,
                url           TEXT    NOT NULL,
                hash          TEXT    NOT NULL,
                title         TEXT,
                author        TEXT,
                category      TEXT,
                published_at  TEXT,
                body_text     TEXT,
                image         TEXT,
                research      TEXT,
                fetched_at    TEXT    NOT NULL,
                changed_from  TEXT,
                prev_hash     TEXT,
                UNIQUE (url, hash)
            );

            CREATE TABLE IF NOT EXISTS prompt_chunks (
                id           INTEGER PRIMARY KEY AUTOINCREMENT,
                url          TEXT    NOT NULL,
                hash         TEXT    NOT NULL,
                title        TEXT,
                summary      TEXT    NOT NULL,
                bullets      TEXT    NOT NULL,
                chunk_index  INTEGER NOT NULL,
                chunk_text   TEXT    NOT NULL,
                image        TEXT,
                created_at   TEXT    NOT NULL,
                UNIQUE (url, hash, chunk_index)
            );

            CREATE TABLE IF NOT EXISTS heads (
                url            TEXT PRIMARY KEY,
                etag           TEXT,
                last_modified  TEXT,
                last_seen_at   TEXT,
                last_status    INTEGER
            );
        """)


def _article_row(record: dict) -> tuple:
    row = dict(record)
    row["fetched_at"] = row.get("fetched_at") or _now()
    if isinstance(row.get("research"), (dict, list)):
        row["research"] = json.dumps(row["research"], ensure_ascii=False)
    return tuple(row.get(f) for f in _ARTICLE_FIELDS)


def _decode_article(row: sqlite3.Row) -> dict:
    article = dict(row)
    if article.get("research"):
        article["research"] = json.loads(article["research"])
    return article


# ── articles ──────────────────────────────────────────────────────────────────

def add_articles(records: list[dict]) -> tuple[int, int]:
    """Insert articles not yet stored under the same (url, hash).

    Returns (added, skipped).
    """
    added = 0
    placeholders = ",".join("?" for _ in _ARTICLE_FIELDS)
    with get_conn() as conn:
        for record in records:
            cur = conn.execute(
                f"INSERT OR IGNORE INTO articles ({','.join(_ARTICLE_FIELDS)}) VALUES ({placeholders})",
                _article_row(record),
            )
            added += cur.rowcount
    return added, len(records) - added


def upsert_articles_by_url(records: list[dict]) -> int:
    """Replace the stored article for each URL.

    When the body hash changed, the previous hash is kept in ``prev_hash`` and
    ``changed_from`` points at the URL the old version was stored under.
    """
    assignments = ",".join(f"{f}=?" for f in _ARTICLE_FIELDS)
    placeholders = ",".join("?" for _ in _ARTICLE_FIELDS)
    with get_conn() as conn:
        for record in records:
            prev = conn.execute(
                "SELECT id, url, hash FROM articles WHERE url=? ORDER BY id DESC LIMIT 1",
                (record["url"],),
            ).fetchone()
            values = _article_row(record)
            if prev is None:
                conn.execute(
                    f"INSERT INTO articles ({','.join(_ARTICLE_FIELDS)}) VALUES ({placeholders})",
                    values,
                )
                continue
            changed = bool(prev["hash"] and record.get("hash") and prev["hash"] != record["hash"])
            # an older row may already hold the incoming (url, hash)
            conn.execute(
                "DELETE FROM articles WHERE url=? AND hash=? AND id<>?",
                (record["url"], record.get("hash"), prev["id"]),
            )
            conn.execute(
                f"UPDATE articles SET {assignments}, changed_from=?, prev_hash=? WHERE id=?",
                values + (
                    prev["url"] if changed else None,
                    prev["hash"] if changed else None,
                    prev["id"],
                ),
            )
    return len(records)


def get_article(url: str) -> Optional[dict]:
    with get_conn() as conn:
        row = conn.execute(
            "SELECT * FROM articles WHERE url=? ORDER BY id DESC LIMIT 1",
            (url,),
        ).fetchone()
    return _decode_article(row) if row else None


def list_articles(limit: Optional[int] = None) -> list[dict]:
    sql = "SELECT * FROM articles ORDER BY fetched_at DESC"
    params: tuple = ()
    if limit:
        sql += " LIMIT ?"
        params = (limit,)
    with get_conn() as conn:
        rows = conn.execute(sql, params).fetchall()
    return [_decode_article(r) for r in rows]


# ── prompt chunks ─────────────────────────────────────────────────────────────

def add_prompt_chunks(records: list[dict]) -> tuple[int, int]:
    """Insert chunk records keyed by (url, hash, chunk_index). Returns (added, skipped)."""
    added = 0
    placeholders = ",".join("?" for _ in _CHUNK_FIELDS)
    with get_conn() as conn:
        for record in records:
            row = dict(record)
            row["bullets"] = json.dumps(row.get("bullets") or [], ensure_ascii=False)
            row["created_at"] = row.get("created_at") or _now()
            cur = conn.execute(
                f"INSERT OR IGNORE INTO prompt_chunks ({','.join(_CHUNK_FIELDS)}) VALUES ({placeholders})",
                tuple(row.get(f) for f in _CHUNK_FIELDS),
            )
            added += cur.rowcount
    return added, len(records) - added


def get_prompt_chunks(url: str) -> list[dict]:
    with get_conn() as conn:
        rows = conn.execute(
            "SELECT * FROM prompt_chunks WHERE url=? ORDER BY hash, chunk_index",
            (url,),
        ).fetchall()
    out = []
    for r in rows:
        chunk = dict(r)
        chunk["bullets"] = json.loads(chunk["bullets"])
        out.append(chunk)
    return out


# ── heads (conditional request index) ────────────────────────────────────────

def get_head(url: str) -> Optional[dict]:
    with get_conn() as conn:
        row = conn.execute("SELECT * FROM heads WHERE url=?", (url,)).fetchone()
    return dict(row) if row else None


def upsert_head(
    url: str,
    etag: Optional[str] = None,
    last_modified: Optional[str] = None,
    last_status: Optional[int] = None,
) -> None:
    """Record the validators of the latest response; missing ones keep their old value."""
    with get_conn() as conn:
        conn.execute(
            """INSERT INTO heads (url, etag, last_modified, last_seen_at, last_status)
               VALUES (?,?,?,?,?)
               ON CONFLICT(url) DO UPDATE SET
                   etag=COALESCE(excluded.etag, heads.etag),
                   last_modified=COALESCE(excluded.last_modified, heads.last_modified),
                   last_seen_at=excluded.last_seen_at,
                   last_status=excluded.last_status""",
            (url, etag, last_modified, _now(), last_status),
        )
