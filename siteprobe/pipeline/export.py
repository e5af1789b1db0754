"""Tabular export of run results."""

from __future__ import annotations

import io
import logging
from datetime import date
from typing import Any, Protocol, Sequence

from openpyxl import Workbook
from openpyxl.utils import get_column_letter

from .errors import ExportFailed, NoResultsToExport
from .models import FailureRecord, Message, PageSpeedRecord, ProbeResult, ValidationRecord
from .presets import ProbeKind
from .stats import round_half_up

logger = logging.getLogger(__name__)

W3C_COLUMNS = (
    "URL",
    "Error Count",
    "Warning Count",
    "Info Count",
    "Errors",
    "Warnings",
    "Info",
    "W3C Link",
    "Timestamp",
)

PAGESPEED_COLUMNS = (
    "URL",
    "Status",
    "Error",
    "Mobile Performance",
    "Desktop Performance",
    "Mobile Accessibility",
    "Desktop Accessibility",
    "Mobile Best Practices",
    "Desktop Best Practices",
    "Mobile SEO",
    "Desktop SEO",
    "Mobile FCP",
    "Desktop FCP",
    "Mobile LCP",
    "Desktop LCP",
    "Mobile CLS",
    "Desktop CLS",
    "PageSpeed Report",
    "Timestamp",
)

SHEET_NAMES: dict[str, str] = {
    "w3c": "W3C Validation Results",
    "pagespeed": "PageSpeed Results",
}

_FILE_PREFIXES: dict[str, str] = {
    "w3c": "w3c_validation",
    "pagespeed": "pagespeed_results",
}

Row = dict[str, Any]


class ExportSink(Protocol):
    """Consumes flat rows and produces a file."""

    media_type: str
    extension: str

    def write(self, rows: Sequence[Row], columns: Sequence[str], sheet_name: str) -> bytes: ...


def _join(messages: list[Message]) -> str:
    return "; ".join(m.text for m in messages)


def _w3c_row(result: ProbeResult) -> Row:
    if isinstance(result, ValidationRecord):
        return {
            "URL": result.url,
            "Error Count": len(result.errors),
            "Warning Count": len(result.warnings),
            "Info Count": len(result.info),
            "Errors": _join(result.errors),
            "Warnings": _join(result.warnings),
            "Info": _join(result.info),
            "W3C Link": result.report_link,
            "Timestamp": result.timestamp.isoformat(),
        }
    if isinstance(result, FailureRecord):
        return {
            "URL": result.url,
            "Error Count": 1,
            "Warning Count": 0,
            "Info Count": 0,
            "Errors": result.error_message,
            "Warnings": "",
            "Info": "",
            "W3C Link": "#",
            "Timestamp": result.timestamp.isoformat(),
        }
    raise TypeError(f"cannot export {type(result).__name__} as a validation row")


def _pagespeed_row(result: ProbeResult) -> Row:
    if isinstance(result, PageSpeedRecord):
        mobile, desktop = result.mobile, result.desktop
        return {
            "URL": result.url,
            "Status": "Success",
            "Error": "",
            "Mobile Performance": round_half_up(mobile.performance_score),
            "Desktop Performance": round_half_up(desktop.performance_score),
            "Mobile Accessibility": round_half_up(mobile.accessibility_score),
            "Desktop Accessibility": round_half_up(desktop.accessibility_score),
            "Mobile Best Practices": round_half_up(mobile.best_practices_score),
            "Desktop Best Practices": round_half_up(desktop.best_practices_score),
            "Mobile SEO": round_half_up(mobile.seo_score),
            "Desktop SEO": round_half_up(desktop.seo_score),
            "Mobile FCP": mobile.first_contentful_paint,
            "Desktop FCP": desktop.first_contentful_paint,
            "Mobile LCP": mobile.largest_contentful_paint,
            "Desktop LCP": desktop.largest_contentful_paint,
            "Mobile CLS": mobile.cumulative_layout_shift,
            "Desktop CLS": desktop.cumulative_layout_shift,
            "PageSpeed Report": result.report_link,
            "Timestamp": result.timestamp.isoformat(),
        }
    if isinstance(result, FailureRecord):
        row: Row = {column: "N/A" for column in PAGESPEED_COLUMNS}
        row.update(
            {
                "URL": result.url,
                "Status": "Error",
                "Error": result.error_message,
                "Timestamp": result.timestamp.isoformat(),
            }
        )
        return row
    raise TypeError(f"cannot export {type(result).__name__} as a pagespeed row")


def build_rows(kind: ProbeKind, results: Sequence[ProbeResult]) -> list[Row]:
    """Flatten results into one row per URL with the column set of *kind*."""
    if not results:
        raise NoResultsToExport()
    to_row = _w3c_row if kind == "w3c" else _pagespeed_row
    return [to_row(r) for r in results]


def columns_for(kind: ProbeKind) -> tuple[str, ...]:
    return W3C_COLUMNS if kind == "w3c" else PAGESPEED_COLUMNS


def export_filename(kind: ProbeKind, extension: str = "xlsx", on: date | None = None) -> str:
    day = (on or date.today()).isoformat()
    return f"{_FILE_PREFIXES[kind]}_{day}.{extension}"


class XlsxExportSink:
    """Writes rows to a single-sheet Excel workbook."""

    media_type = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
    extension = "xlsx"

    def write(self, rows: Sequence[Row], columns: Sequence[str], sheet_name: str) -> bytes:
        try:
            wb = Workbook()
            ws = wb.active
            ws.title = sheet_name
            ws.append(list(columns))
            for row in rows:
                ws.append([row.get(column, "") for column in columns])
            for idx, column in enumerate(columns, start=1):
                width = max([len(str(column))] + [len(str(row.get(column, ""))) for row in rows])
                ws.column_dimensions[get_column_letter(idx)].width = min(width + 2, 80)
            ws.freeze_panes = "A2"

            buffer = io.BytesIO()
            wb.save(buffer)
        except Exception as exc:
            logger.error("xlsx export failed", extra={"rows": len(rows)}, exc_info=True)
            raise ExportFailed(f"Export failed: {exc}") from exc

        logger.info("xlsx export written", extra={"rows": len(rows), "sheet": sheet_name})
        return buffer.getvalue()


def export_results(
    kind: ProbeKind,
    results: Sequence[ProbeResult],
    sink: ExportSink | None = None,
) -> tuple[str, bytes]:
    """Export *results* through *sink* and return ``(filename, payload)``."""
    sink = sink or XlsxExportSink()
    rows = build_rows(kind, results)
    payload = sink.write(rows, columns_for(kind), SHEET_NAMES[kind])
    return export_filename(kind, sink.extension), payload
