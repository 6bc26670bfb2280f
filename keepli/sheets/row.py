"""
Fixed-shape spreadsheet row.

Column order (A-P) is part of the contract with users' sheets and must not
change: timestamp, source, URL, body, author name, author headline, author
company, author URL, excerpt, summary, tags, intent, next action, status,
content id, notes.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import UTC, datetime
from enum import Enum

from keepli.storage.models import SavedRecord


def _text(value: object) -> str:
    if isinstance(value, Enum):
        return str(value.value)
    return str(value)


@dataclass(frozen=True)
class SheetRow:
    timestamp: str
    source: str
    url: str
    post_content: str
    author_name: str | None = None
    author_headline: str | None = None
    author_company: str | None = None
    author_url: str | None = None
    highlight: str | None = None
    summary: str | None = None
    tags: list[str] = field(default_factory=list)
    intent: str | None = None
    next_action: str | None = None
    status: str = ""
    url_hash: str = ""
    notes: str | None = None

    @classmethod
    def from_record(cls, record: SavedRecord, saved_at: datetime | None = None) -> SheetRow:
        saved_at = saved_at or datetime.now(UTC)
        return cls(
            timestamp=saved_at.isoformat(timespec="seconds"),
            source=_text(record.source),
            url=record.url,
            post_content=record.post_content,
            author_name=record.author_name,
            author_headline=record.author_headline,
            author_company=record.author_company,
            author_url=record.author_url,
            highlight=record.highlight,
            summary=record.summary,
            tags=list(record.tags),
            intent=_text(record.intent) if record.intent else None,
            next_action=record.next_action,
            status=_text(record.status),
            url_hash=record.url_hash,
            notes=record.notes,
        )

    def to_cells(self) -> list[str]:
        """Cells in column order; absent values become empty strings."""
        cells: list[str] = []
        for column in fields(self):
            value = getattr(self, column.name)
            if column.name == "tags":
                cells.append(", ".join(value))
            else:
                cells.append("" if value is None else str(value))
        return cells
