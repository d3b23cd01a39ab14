"""Lenient timestamp parsing for feed, sitemap and page dates."""
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Optional


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse ISO-8601 or RFC 822 dates. Naive values are taken as UTC; junk gives None."""
    if not value:
        return None
    text = value.strip()
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        try:
            parsed = parsedate_to_datetime(text)
        except (TypeError, ValueError):
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
