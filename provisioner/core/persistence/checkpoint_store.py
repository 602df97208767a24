"""
Checkpoint store — atomic read/write of the workflow cursor.

The checkpoint is stored as JSON at a fixed path. Writes are atomic
(write to temp file, fsync, then replace) so a power loss mid-write
leaves either the old or the new record, never a torn one.

Unlike most state files, an unreadable checkpoint is NOT silently
replaced by a fresh one: that could re-run completed steps after a
restart. Any read or write problem raises PersistenceError.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path

from pydantic import ValidationError

from provisioner.core.errors import PersistenceError
from provisioner.core.models.checkpoint import Checkpoint

logger = logging.getLogger(__name__)


class CheckpointStore:
    """Durable record of "which step index is next"."""

    def __init__(self, path: Path):
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def exists(self) -> bool:
        return self._path.is_file()

    def read(self) -> Checkpoint | None:
        """Read the checkpoint without creating it.

        Returns:
            The stored checkpoint, or None if there is none.

        Raises:
            PersistenceError: If the file exists but cannot be parsed.
        """
        if not self._path.is_file():
            return None

        try:
            raw = self._path.read_text(encoding="utf-8")
        except OSError as e:
            raise PersistenceError(self._path, f"read failed: {e}") from e

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise PersistenceError(self._path, f"corrupt checkpoint: {e}") from e

        try:
            return Checkpoint.model_validate(data)
        except ValidationError as e:
            raise PersistenceError(self._path, f"invalid checkpoint: {e}") from e

    def load(self) -> Checkpoint:
        """Load the checkpoint, creating a default one if absent.

        Creating it up front proves the location is writable before
        any step mutates the host.
        """
        checkpoint = self.read()
        if checkpoint is not None:
            logger.debug(
                "Loaded checkpoint from %s (next=%d, update_passes=%d)",
                self._path, checkpoint.next_step_index, checkpoint.update_retry_count,
            )
            return checkpoint

        logger.info("No checkpoint at %s — starting fresh", self._path)
        checkpoint = Checkpoint()
        self.save(checkpoint)
        return checkpoint

    def save(self, checkpoint: Checkpoint) -> None:
        """Save the checkpoint (atomic write).

        Raises:
            PersistenceError: If the record cannot be written durably.
        """
        content = json.dumps(checkpoint.to_json_dict(), indent=2) + "\n"

        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self._path.parent,
                prefix=".checkpoint_",
                suffix=".tmp",
            )
        except OSError as e:
            raise PersistenceError(self._path, f"write failed: {e}") from e

        tmp = Path(tmp_name)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
                f.flush()
                os.fsync(f.fileno())
            tmp.replace(self._path)
        except OSError as e:
            tmp.unlink(missing_ok=True)
            raise PersistenceError(self._path, f"write failed: {e}") from e

        logger.debug(
            "Checkpoint saved to %s (next=%d, update_passes=%d)",
            self._path, checkpoint.next_step_index, checkpoint.update_retry_count,
        )

    def clear(self) -> bool:
        """Delete the checkpoint so the next run starts from the first step.

        Returns:
            True if a checkpoint was removed.
        """
        if not self._path.is_file():
            return False
        try:
            self._path.unlink()
        except OSError as e:
            raise PersistenceError(self._path, f"delete failed: {e}") from e
        logger.info("Checkpoint removed: %s", self._path)
        return True
