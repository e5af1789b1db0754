"""Batched, rate-limited probing of URLs against the W3C validator and PageSpeed Insights."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import httpx

from .pagespeed import PageSpeedAnalyzer
from .presets import ProbeKind
from .w3c import Prober, W3CValidator

if TYPE_CHECKING:
    from siteprobe.config import Settings

__all__ = [
    "PageSpeedAnalyzer",
    "Prober",
    "W3CValidator",
    "build_prober",
]

logger = logging.getLogger(__name__)


def build_prober(
    kind: ProbeKind,
    client: httpx.AsyncClient,
    settings: Settings,
    api_key: str | None = None,
) -> Prober:
    """Build the prober for *kind* from settings; a request-supplied key wins over the configured one."""
    if kind == "w3c":
        return W3CValidator(client, endpoint=settings.w3c_endpoint, timeout=settings.w3c_timeout)
    key = api_key or settings.google_api_key
    logger.debug("pagespeed prober built", extra={"api_key_set": bool(key)})
    return PageSpeedAnalyzer(
        client,
        key,
        endpoint=settings.pagespeed_endpoint,
        timeout=settings.pagespeed_timeout,
    )
