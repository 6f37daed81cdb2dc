"""Pipeline entry model shared by every stage in the chain."""

from dataclasses import dataclass, field
from datetime import datetime, timezone


@dataclass
class Entry:
    line: str                                       # raw log line
    labels: dict[str, str] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    extracted: dict = field(default_factory=dict)   # None marks a declared-but-absent key


def new_entry(
    line: str,
    extracted: dict | None = None,
    labels: dict[str, str] | None = None,
    timestamp: datetime | None = None,
) -> Entry:
    """Build an Entry, copying the given maps so callers keep their originals."""
    return Entry(
        line=line,
        labels=dict(labels or {}),
        timestamp=timestamp or datetime.now(timezone.utc),
        extracted=dict(extracted or {}),
    )


def entry_to_dict(entry: Entry) -> dict:
    return {
        "timestamp": entry.timestamp.isoformat(),
        "labels": dict(entry.labels),
        "line": entry.line,
        "extracted": dict(entry.extracted),
    }
