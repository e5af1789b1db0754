"""Result records produced by the probers.

A probe always yields exactly one of :class:`ValidationRecord`,
:class:`PageSpeedRecord` or :class:`FailureRecord`. The ``kind`` field is the
discriminator, so consumers branch on the record type instead of guessing from
which fields happen to be filled in.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field

Severity = Literal["error", "warning", "info"]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Message(BaseModel):
    text: str
    position_extract: str = ""
    severity: Severity


class AuditItem(BaseModel):
    id: str
    title: str = "Unknown"
    description: str = ""
    score: float = 0
    display_value: str | None = None


class Metrics(BaseModel):
    performance_score: float = 0
    accessibility_score: float = 0
    best_practices_score: float = 0
    seo_score: float = 0

    first_contentful_paint: str = "N/A"
    largest_contentful_paint: str = "N/A"
    cumulative_layout_shift: str = "N/A"
    first_input_delay: str = "N/A"
    speed_index: str = "N/A"
    total_blocking_time: str = "N/A"
    time_to_interactive: str = "N/A"

    opportunities: list[AuditItem] = []
    diagnostics: list[AuditItem] = []


class ValidationRecord(BaseModel):
    kind: Literal["validation"] = "validation"
    url: str
    errors: list[Message] = []
    warnings: list[Message] = []
    info: list[Message] = []
    report_link: str = "#"
    timestamp: datetime = Field(default_factory=utcnow)
    # True when the validator could not be reached and errors holds a synthesized message
    fetch_failed: bool = False


class PageSpeedRecord(BaseModel):
    kind: Literal["pagespeed"] = "pagespeed"
    url: str
    mobile: Metrics
    desktop: Metrics
    report_link: str = "#"
    timestamp: datetime = Field(default_factory=utcnow)


class FailureRecord(BaseModel):
    kind: Literal["failure"] = "failure"
    url: str
    error_message: str
    timestamp: datetime = Field(default_factory=utcnow)


ProbeResult = Annotated[
    Union[ValidationRecord, PageSpeedRecord, FailureRecord],
    Field(discriminator="kind"),
]
