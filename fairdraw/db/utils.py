from pathlib import Path
from datetime import datetime, timezone
from typing import Optional


def resolve_sqlite_url(url: str, project_root: Path) -> str:
    """Resolve 'sqlite:///./relative/path' to an absolute sqlite:/// URL.

    Keeps other URL forms unchanged.
    """
    prefix = "sqlite:///./"
    if not url.startswith(prefix):
        return url
    rel = url[len(prefix) :]
    return f"sqlite:///{(project_root / rel).resolve()}"


def is_memory_sqlite_url(url: str) -> bool:
    """Return ``True`` for URLs pointing at a private in-memory SQLite database."""
    if not url.startswith("sqlite"):
        return False
    _, _, path = url.partition("://")
    return path in ("", "/", "/:memory:") or path.endswith(":memory:")


def as_utc(dt: datetime) -> datetime:
    """Return ``dt`` as an aware UTC datetime, treating naive values as UTC.

    SQLite drops tzinfo on round-trip, so values read back from it are naive.
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def dt_iso(dt: Optional[datetime]) -> Optional[str]:
    """Convert a datetime to an ISO 8601 string in UTC, or return None.

    This is a small helper intended for serializing timestamps in JSON.
    """
    if dt is None:
        return None
    return as_utc(dt).isoformat()
