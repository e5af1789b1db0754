"""Summary statistics derived from a list of probe results."""

from __future__ import annotations

import math
from typing import Sequence

from pydantic import BaseModel

from .models import FailureRecord, PageSpeedRecord, ProbeResult, ValidationRecord


class RunStatistics(BaseModel):
    total_urls: int = 0
    success_count: int = 0
    error_count: int = 0

    # validation runs
    total_errors: int = 0
    total_warnings: int = 0
    total_info: int = 0

    # pagespeed runs
    avg_mobile_performance: int = 0
    avg_desktop_performance: int = 0
    avg_mobile_accessibility: int = 0
    avg_desktop_accessibility: int = 0


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _average(values: list[float]) -> int:
    if not values:
        return 0
    return round_half_up(sum(values) / len(values))


def compute_statistics(results: Sequence[ProbeResult]) -> RunStatistics:
    """Recompute statistics from scratch.

    A validation record counts as a success when it carries no errors; a
    failure record is always an error. PageSpeed averages only include
    successful records.
    """
    success_count = 0
    total_errors = total_warnings = total_info = 0
    speed_records: list[PageSpeedRecord] = []

    for result in results:
        if isinstance(result, ValidationRecord):
            total_errors += len(result.errors)
            total_warnings += len(result.warnings)
            total_info += len(result.info)
            if not result.errors:
                success_count += 1
        elif isinstance(result, PageSpeedRecord):
            speed_records.append(result)
            success_count += 1
        elif isinstance(result, FailureRecord):
            continue
        else:
            raise TypeError(f"unexpected result type: {type(result).__name__}")

    return RunStatistics(
        total_urls=len(results),
        success_count=success_count,
        error_count=len(results) - success_count,
        total_errors=total_errors,
        total_warnings=total_warnings,
        total_info=total_info,
        avg_mobile_performance=_average([r.mobile.performance_score for r in speed_records]),
        avg_desktop_performance=_average([r.desktop.performance_score for r in speed_records]),
        avg_mobile_accessibility=_average([r.mobile.accessibility_score for r in speed_records]),
        avg_desktop_accessibility=_average([r.desktop.accessibility_score for r in speed_records]),
    )
