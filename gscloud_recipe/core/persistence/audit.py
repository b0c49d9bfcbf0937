"""
Run history as NDJSON.

Each install, test, fetch and completion refresh appends one line to
``audit.ndjson`` in the cache directory. Lines are never rewritten.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)


class AuditEntry(BaseModel):
    timestamp: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())
    operation_id: str = ""
    operation: str = ""            # install, test, fetch, completions
    recipe: str = ""
    version: str = ""
    status: str = ""               # ok, failed
    error_kind: str | None = None
    actions_total: int = 0
    actions_succeeded: int = 0
    actions_failed: int = 0
    duration_ms: int = 0
    errors: list[str] = Field(default_factory=list)
    context: dict[str, Any] = Field(default_factory=dict)


class AuditWriter:
    """Appends entries to, and reads them back from, one NDJSON file."""

    def __init__(self, path: Path):
        self.path = path

    def write(self, entry: AuditEntry) -> None:
        """Append one entry.

        Write errors are logged only; the run being recorded is over.
        """
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("a", encoding="utf-8") as f:
                f.write(entry.model_dump_json() + "\n")
        except OSError as e:
            logger.error("Cannot append to %s: %s", self.path, e)
            return
        logger.debug("Audited %s %s", entry.operation, entry.operation_id)

    def _entries(self) -> Iterator[AuditEntry]:
        with self.path.open("r", encoding="utf-8") as f:
            for lineno, raw in enumerate(f, start=1):
                if not raw.strip():
                    continue
                try:
                    yield AuditEntry.model_validate_json(raw)
                except ValidationError as e:
                    logger.warning("%s:%d: skipping unreadable entry (%s)", self.path, lineno, e)

    def read_all(self) -> list[AuditEntry]:
        """Entries oldest first; unreadable lines are skipped."""
        if not self.path.is_file():
            return []
        return list(self._entries())

    def read_recent(self, n: int = 20) -> list[AuditEntry]:
        return self.read_all()[-n:]
