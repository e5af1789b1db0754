"""Probe engine: validates a run request and drives it through the scheduler."""

from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

from siteprobe.config import Settings

from . import build_prober
from .errors import ApiKeyRequired, InvalidUrls, NoUrlsFound
from .events import DoneEvent, ProgressChannel, emit_event
from .presets import BatchPreset, ProbeKind, resolve_preset
from .runs import RunRegistry, RunState
from .scheduler import BatchScheduler
from .sources import find_invalid_urls, normalize_urls
from .stats import compute_statistics
from .w3c import Prober

logger = logging.getLogger(__name__)


@dataclass
class PreparedRun:
    """A run that passed setup checks and is registered but not started."""

    state: RunState
    urls: list[str]
    preset: BatchPreset
    prober: Prober
    channel: ProgressChannel


class ProbeEngine:
    """Owns the run registry and starts at most one run at a time."""

    def __init__(
        self,
        settings: Settings,
        client: httpx.AsyncClient,
        registry: RunRegistry | None = None,
    ) -> None:
        self._settings = settings
        self._client = client
        self.registry = registry or RunRegistry()

    def prepare(
        self,
        kind: ProbeKind,
        urls: list[str],
        *,
        api_key: str | None = None,
        batch_size: int | None = None,
        batch_delay: float | None = None,
    ) -> PreparedRun:
        """Run setup checks and register the run.

        Raises a :class:`~siteprobe.pipeline.errors.SetupError` subclass when
        the run cannot start; nothing is registered in that case.
        """
        if not urls:
            raise NoUrlsFound("No URLs to validate")
        urls = normalize_urls(
            urls,
            max_urls=self._settings.max_urls,
            max_url_length=self._settings.max_url_length,
        )

        if kind == "pagespeed":
            if not (api_key or self._settings.google_api_key).strip():
                raise ApiKeyRequired()
            invalid = find_invalid_urls(urls)
            if invalid:
                raise InvalidUrls(invalid)

        preset = resolve_preset(kind, self._settings, batch_size=batch_size, batch_delay=batch_delay)
        state = self.registry.create(kind, len(urls))
        prober = build_prober(kind, self._client, self._settings, api_key=api_key)

        logger.info(
            "run prepared",
            extra={
                "run_id": state.run_id,
                "kind": kind,
                "url_count": len(urls),
                "batch_size": preset.batch_size,
                "batch_delay": preset.batch_delay,
            },
        )
        return PreparedRun(
            state=state,
            urls=list(urls),
            preset=preset,
            prober=prober,
            channel=ProgressChannel(),
        )

    async def execute(self, run: PreparedRun) -> RunState:
        """Drive a prepared run to completion and close its progress channel.

        The state always ends in ``done``, even if the scheduler itself blows up.
        """
        state = run.state
        state.start()
        scheduler = BatchScheduler(
            run.prober,
            batch_size=run.preset.batch_size,
            batch_delay=run.preset.batch_delay,
            channel=run.channel,
            state=state,
        )
        try:
            await scheduler.run(run.urls, state.cancel_token)
        finally:
            state.finish(cancelled=state.cancel_token.cancelled)
            statistics = compute_statistics(state.all_results)
            logger.info(
                "run finished",
                extra={
                    "run_id": state.run_id,
                    "kind": state.kind,
                    "results": len(state.all_results),
                    "success_count": statistics.success_count,
                    "error_count": statistics.error_count,
                    "cancelled": state.cancelled,
                },
            )
            emit_event(
                run.channel,
                DoneEvent(
                    run_id=state.run_id,
                    cancelled=state.cancelled,
                    statistics=statistics.model_dump(),
                ),
            )
            run.channel.close()
        return state

    def cancel(self, run_id: str) -> bool:
        """Request cancellation; returns False when the run is unknown or already done."""
        state = self.registry.get(run_id)
        if state is None or state.phase == "done":
            return False
        state.cancel_token.cancel()
        logger.info("run cancellation requested", extra={"run_id": run_id})
        return True
