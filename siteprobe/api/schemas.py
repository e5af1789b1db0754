"""Request/response Pydantic models."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from siteprobe.pipeline.models import FailureRecord, ProbeResult
from siteprobe.pipeline.presets import MAX_BATCH_DELAY, MAX_BATCH_SIZE, MIN_BATCH_SIZE


class RunRequest(BaseModel):
    urls: list[str]
    mode: Literal["stream", "background"] = "background"
    batch_size: int | None = Field(default=None, ge=MIN_BATCH_SIZE, le=MAX_BATCH_SIZE)
    batch_delay: float | None = Field(default=None, ge=0, le=MAX_BATCH_DELAY)


class W3CRunRequest(RunRequest):
    pass


class PageSpeedRunRequest(RunRequest):
    api_key: str | None = None


class UrlListResponse(BaseModel):
    filename: str | None = None
    count: int
    urls: list[str]


class RunAccepted(BaseModel):
    status: str = "accepted"
    run_id: str
    total_urls: int
    message: str = "Run started. Poll /runs/{run_id} for progress."


class RunSnapshot(BaseModel):
    run_id: str
    kind: Literal["w3c", "pagespeed"]
    phase: Literal["idle", "running", "done"]
    current_url: str | None = None
    current_index: int = 0
    total_urls: int
    processed: int = 0
    cancelled: bool = False
    completed: list[ProbeResult] = []
    failed: list[FailureRecord] = []
    all_results: list[ProbeResult] = []
    created_at: datetime
    finished_at: datetime | None = None


class ErrorDetail(BaseModel):
    code: str
    message: str
