"""Pydantic schemas for the job trigger."""

from __future__ import annotations

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field


class JobInput(BaseModel):
    """Optional overrides for a single run.

    ``now`` replays a job at another instant (e.g. a season sweep for a past
    month). ``batchSize`` replaces the configured row limit for this run.
    """

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    now: AwareDatetime | None = None
    batch_size: int | None = Field(None, alias="batchSize", gt=0)
