"""
Checkpoint — the durable record of workflow progress.

Serialized as ``{"nextStepIndex": N, "updateRetryCount": M}``. The
Python attribute names are snake_case; the camelCase aliases are the
on-disk keys.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class Checkpoint(BaseModel):
    """Which step runs next, and how many update passes the settle step has used."""

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    next_step_index: int = Field(default=0, ge=0, alias="nextStepIndex")
    update_retry_count: int = Field(default=0, ge=0, alias="updateRetryCount")

    def is_complete(self, step_count: int) -> bool:
        return self.next_step_index >= step_count

    def to_json_dict(self) -> dict[str, int]:
        return self.model_dump(mode="json", by_alias=True)
