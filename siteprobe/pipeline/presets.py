"""Batching presets per probe kind."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from siteprobe.config import Settings

ProbeKind = Literal["w3c", "pagespeed"]

MIN_BATCH_SIZE = 1
MAX_BATCH_SIZE = 100
MIN_BATCH_DELAY = 0.0
MAX_BATCH_DELAY = 10.0


@dataclass(frozen=True)
class BatchPreset:
    """How many URLs to probe at once and how long to pause between batches."""

    kind: ProbeKind
    batch_size: int
    batch_delay: float


def default_preset(kind: ProbeKind, settings: Settings) -> BatchPreset:
    if kind == "w3c":
        return BatchPreset(kind="w3c", batch_size=settings.w3c_batch_size, batch_delay=settings.w3c_batch_delay)
    return BatchPreset(
        kind="pagespeed",
        batch_size=settings.pagespeed_batch_size,
        batch_delay=settings.pagespeed_batch_delay,
    )


def resolve_preset(
    kind: ProbeKind,
    settings: Settings,
    batch_size: int | None = None,
    batch_delay: float | None = None,
) -> BatchPreset:
    """Apply per-run overrides to the configured preset, clamped to the allowed range."""
    preset = default_preset(kind, settings)
    size = batch_size if batch_size is not None else preset.batch_size
    delay = batch_delay if batch_delay is not None else preset.batch_delay
    return BatchPreset(
        kind=kind,
        batch_size=min(max(size, MIN_BATCH_SIZE), MAX_BATCH_SIZE),
        batch_delay=min(max(delay, MIN_BATCH_DELAY), MAX_BATCH_DELAY),
    )
