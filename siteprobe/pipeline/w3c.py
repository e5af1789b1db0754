"""W3C Nu Markup Validator prober."""

from __future__ import annotations

import logging
from typing import Any, Protocol
from urllib.parse import quote

import httpx

from .models import Message, ProbeResult, ValidationRecord

logger = logging.getLogger(__name__)

W3C_ENDPOINT = "https://validator.w3.org/nu/"
W3C_REPORT_URL = "https://validator.w3.org/nu/?doc="

# Status codes the validator uses for throttling/rejection, reported verbatim
_STATUS_MESSAGES = {
    429: "Too Many Requests (429)",
    415: "Unsupported Media Type (415)",
}


class Prober(Protocol):
    """Protocol for single-URL probers."""

    async def probe(self, url: str) -> ProbeResult: ...


def report_link(url: str) -> str:
    """Human-facing validator link for *url*, or ``#`` if none can be built."""
    if not url or not url.strip():
        return "#"
    try:
        return W3C_REPORT_URL + quote(url, safe="")
    except UnicodeEncodeError:
        return "#"


def _severity(raw: dict[str, Any]) -> str:
    msg_type = raw.get("type")
    if msg_type in ("error", "non-document-error"):
        return "error"
    if msg_type == "warning" or raw.get("subType") == "warning":
        return "warning"
    return "info"


def partition_messages(
    messages: list[dict[str, Any]],
) -> tuple[list[Message], list[Message], list[Message]]:
    """Split raw validator messages into (errors, warnings, info), order preserved."""
    buckets: dict[str, list[Message]] = {"error": [], "warning": [], "info": []}
    for raw in messages:
        severity = _severity(raw)
        buckets[severity].append(
            Message(
                text=raw.get("message", ""),
                position_extract=raw.get("extract", "") or "",
                severity=severity,
            )
        )
    return buckets["error"], buckets["warning"], buckets["info"]


def _degraded(url: str, text: str) -> ValidationRecord:
    return ValidationRecord(
        url=url,
        errors=[Message(text=text, severity="error")],
        report_link=report_link(url),
        fetch_failed=True,
    )


class W3CValidator:
    """Validates one URL per call against the Nu validator's JSON output.

    Never raises for request problems: throttling, transport and parse failures
    come back as a :class:`ValidationRecord` with a single synthesized error.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        endpoint: str = W3C_ENDPOINT,
        timeout: float = 30.0,
    ) -> None:
        self._client = client
        self._endpoint = endpoint
        self._timeout = timeout

    async def probe(self, url: str) -> ProbeResult:
        try:
            resp = await self._client.get(
                self._endpoint,
                params={"doc": url, "out": "json"},
                timeout=self._timeout,
            )
            resp.raise_for_status()
            errors, warnings, info = partition_messages(resp.json()["messages"])
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            logger.warning("w3c validation rejected", extra={"url": url, "status": status})
            text = _STATUS_MESSAGES.get(status, f"Validation failed: {exc}")
            return _degraded(url, text)
        except Exception as exc:
            logger.warning("w3c validation failed", extra={"url": url}, exc_info=True)
            return _degraded(url, f"Validation failed: {exc}")

        logger.debug(
            "w3c validation complete",
            extra={"url": url, "errors": len(errors), "warnings": len(warnings), "info": len(info)},
        )
        return ValidationRecord(
            url=url,
            errors=errors,
            warnings=warnings,
            info=info,
            report_link=report_link(url),
        )
