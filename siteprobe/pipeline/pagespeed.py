"""Google PageSpeed Insights prober."""

from __future__ import annotations

import asyncio
import logging
from typing import Any
from urllib.parse import quote

import httpx

from .errors import (
    ApiKeyInvalidOrQuotaExceeded,
    ApiKeyRequired,
    InvalidRequest,
    PageSpeedError,
    RateLimited,
)
from .models import AuditItem, FailureRecord, Metrics, PageSpeedRecord, ProbeResult

logger = logging.getLogger(__name__)

PAGESPEED_ENDPOINT = "https://www.googleapis.com/pagespeedonline/v5/runPagespeed"
PAGESPEED_REPORT_URL = "https://pagespeed.web.dev/report?url="

STRATEGIES = ("mobile", "desktop")
CATEGORIES = ("performance", "accessibility", "best-practices", "seo")

OPPORTUNITY_THRESHOLD = 0.9
DIAGNOSTIC_THRESHOLD = 0.5

# Metrics field -> lighthouse audit id
_AUDIT_FIELDS = {
    "first_contentful_paint": "first-contentful-paint",
    "largest_contentful_paint": "largest-contentful-paint",
    "cumulative_layout_shift": "cumulative-layout-shift",
    "first_input_delay": "max-potential-fid",
    "speed_index": "speed-index",
    "total_blocking_time": "total-blocking-time",
    "time_to_interactive": "interactive",
}

_STATUS_ERRORS: dict[int, type[PageSpeedError]] = {
    400: InvalidRequest,
    403: ApiKeyInvalidOrQuotaExceeded,
    429: RateLimited,
}


def report_link(url: str) -> str:
    return PAGESPEED_REPORT_URL + quote(url, safe="")


def _category_score(category: dict[str, Any] | None) -> float:
    """Scale a 0-1 lighthouse category score to 0-100; absent or null is 0."""
    score = (category or {}).get("score")
    return score * 100 if score else 0


def _audit_value(audit: dict[str, Any] | None) -> str:
    value = (audit or {}).get("displayValue")
    return value if value else "N/A"


def _known_score(audit: dict[str, Any] | None) -> float | None:
    score = (audit or {}).get("score")
    if isinstance(score, bool) or not isinstance(score, (int, float)):
        return None
    return score


def _select_audits(
    audit_refs: list[dict[str, Any]],
    audits: dict[str, Any],
    threshold: float,
    with_display_value: bool,
) -> list[AuditItem]:
    """Audits referenced by the performance category scoring below *threshold*."""
    items: list[AuditItem] = []
    for ref in audit_refs:
        audit_id = ref.get("id")
        audit = audits.get(audit_id)
        score = _known_score(audit)
        if score is None or score >= threshold:
            continue
        items.append(
            AuditItem(
                id=audit_id,
                title=audit.get("title") or "Unknown",
                description=audit.get("description") or "",
                score=score * 100 if score else 0,
                display_value=(audit.get("displayValue") or None) if with_display_value else None,
            )
        )
    return items


def normalize_lighthouse(payload: dict[str, Any]) -> Metrics:
    """Build :class:`Metrics` from one runPagespeed response body."""
    lighthouse = payload["lighthouseResult"]
    categories = lighthouse.get("categories") or {}
    audits = lighthouse.get("audits") or {}
    audit_refs = (categories.get("performance") or {}).get("auditRefs") or []

    return Metrics(
        performance_score=_category_score(categories.get("performance")),
        accessibility_score=_category_score(categories.get("accessibility")),
        best_practices_score=_category_score(categories.get("best-practices")),
        seo_score=_category_score(categories.get("seo")),
        **{field: _audit_value(audits.get(audit_id)) for field, audit_id in _AUDIT_FIELDS.items()},
        opportunities=_select_audits(audit_refs, audits, OPPORTUNITY_THRESHOLD, with_display_value=True),
        diagnostics=_select_audits(audit_refs, audits, DIAGNOSTIC_THRESHOLD, with_display_value=False),
    )


class PageSpeedAnalyzer:
    """Runs mobile and desktop PageSpeed analyses for one URL per call.

    Any failure, including a missing API key, is returned as a
    :class:`FailureRecord`; no partially filled record is ever produced.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        api_key: str | None,
        *,
        endpoint: str = PAGESPEED_ENDPOINT,
        timeout: float = 60.0,
    ) -> None:
        self._client = client
        self._api_key = (api_key or "").strip()
        self._endpoint = endpoint
        self._timeout = timeout

    async def probe(self, url: str) -> ProbeResult:
        if not self._api_key:
            logger.warning("pagespeed probe without api key", extra={"url": url})
            return FailureRecord(url=url, error_message=ApiKeyRequired().message)

        try:
            mobile_payload, desktop_payload = await asyncio.gather(
                self._fetch(url, "mobile"),
                self._fetch(url, "desktop"),
            )
            mobile = normalize_lighthouse(mobile_payload)
            desktop = normalize_lighthouse(desktop_payload)
        except PageSpeedError as exc:
            logger.warning("pagespeed request rejected", extra={"url": url, "error": str(exc)})
            return FailureRecord(url=url, error_message=str(exc))
        except Exception as exc:
            logger.warning("pagespeed check failed", extra={"url": url}, exc_info=True)
            return FailureRecord(url=url, error_message=f"Failed to check PageSpeed: {exc}")

        logger.debug(
            "pagespeed check complete",
            extra={
                "url": url,
                "mobile_performance": mobile.performance_score,
                "desktop_performance": desktop.performance_score,
            },
        )
        return PageSpeedRecord(url=url, mobile=mobile, desktop=desktop, report_link=report_link(url))

    async def _fetch(self, url: str, strategy: str) -> dict[str, Any]:
        params: list[tuple[str, str]] = [
            ("url", url),
            ("key", self._api_key),
            ("strategy", strategy),
        ]
        params.extend(("category", category) for category in CATEGORIES)

        resp = await self._client.get(self._endpoint, params=params, timeout=self._timeout)
        error_cls = _STATUS_ERRORS.get(resp.status_code)
        if error_cls is not None:
            raise error_cls()
        resp.raise_for_status()
        return resp.json()
