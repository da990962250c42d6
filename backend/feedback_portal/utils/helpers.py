"""General helper utilities."""
import re
from datetime import datetime, timezone

_SPACE_RE = re.compile(r"\s+")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on read)."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def slugify(label: str) -> str:
    """Category/tag slug: lowercase, whitespace runs become ``-``."""
    return _SPACE_RE.sub("-", label.strip().lower())


def timestamped_note(note: str, when: datetime | None = None) -> str:
    """Admin note line, ``"[<iso timestamp>] <note>"``."""
    when = when or utcnow()
    return f"[{when.isoformat()}] {note.strip()}"
