"""
Audit ledger — append-only history of provisioning runs.

Every runner invocation writes one entry to an NDJSON (newline-delimited
JSON) file next to the checkpoint. Across a multi-reboot bootstrap this
is the only place that shows how each boot's run ended.

The ledger is best-effort: a failed write is logged, never fatal.
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from pathlib import Path

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

DEFAULT_AUDIT_FILE = "audit.ndjson"


class RunEntry(BaseModel):
    """A single runner invocation."""

    timestamp: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())
    run_id: str = ""
    outcome: str = ""              # completed, awaiting_reboot, aborted

    start_index: int = 0
    end_index: int = 0
    total_steps: int = 0

    # step name → success / skipped / failed
    steps: dict[str, str] = Field(default_factory=dict)

    error: str | None = None
    duration_ms: int = 0


class AuditWriter:
    """Append-only ledger writer.

    Each call to write() appends a single JSON line to the ledger file.
    The file is created if it doesn't exist.
    """

    def __init__(self, path: Path):
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def write(self, entry: RunEntry) -> None:
        """Append an entry to the ledger."""
        line = json.dumps(entry.model_dump(mode="json"), ensure_ascii=False) + "\n"

        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with self._path.open("a", encoding="utf-8") as f:
                f.write(line)
            logger.debug("Audit entry written: %s/%s", entry.run_id, entry.outcome)
        except OSError as e:
            logger.error("Failed to write audit entry: %s", e)

    def read_all(self) -> list[RunEntry]:
        """Read all entries from the ledger, oldest first."""
        if not self._path.is_file():
            return []

        entries = []
        try:
            with self._path.open("r", encoding="utf-8") as f:
                for line_num, line in enumerate(f, start=1):
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        entries.append(RunEntry.model_validate(json.loads(line)))
                    except ValueError as e:
                        logger.warning("Skipping corrupt audit entry at line %d: %s", line_num, e)
        except OSError as e:
            logger.error("Failed to read audit ledger: %s", e)

        return entries

    def read_recent(self, n: int = 20) -> list[RunEntry]:
        """Read the most recent N entries."""
        return self.read_all()[-n:]
