"""Service layer — orchestrates probe runs for the API routes."""

from __future__ import annotations

import asyncio
import logging
from typing import AsyncGenerator

from siteprobe.api.schemas import RunAccepted, RunRequest, RunSnapshot
from siteprobe.pipeline.engine import PreparedRun, ProbeEngine
from siteprobe.pipeline.events import ProgressChannel
from siteprobe.pipeline.presets import ProbeKind
from siteprobe.pipeline.runs import RunState

logger = logging.getLogger(__name__)

# Strong references to background runs so the event loop does not drop them
_background_tasks: set[asyncio.Task] = set()


def prepare_run(
    engine: ProbeEngine,
    kind: ProbeKind,
    body: RunRequest,
    api_key: str | None = None,
) -> PreparedRun:
    return engine.prepare(
        kind,
        body.urls,
        api_key=api_key,
        batch_size=body.batch_size,
        batch_delay=body.batch_delay,
    )


async def _execute_logged(engine: ProbeEngine, run: PreparedRun) -> None:
    try:
        await engine.execute(run)
    except Exception:
        logger.exception("probe run failed", extra={"run_id": run.state.run_id})


def _launch(engine: ProbeEngine, run: PreparedRun) -> None:
    task = asyncio.create_task(_execute_logged(engine, run))
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)


def start_background_run(engine: ProbeEngine, run: PreparedRun) -> RunAccepted:
    """Launch a prepared run as a background task and return the acceptance payload."""
    logger.info(
        "background run started",
        extra={"run_id": run.state.run_id, "kind": run.state.kind, "url_count": len(run.urls)},
    )
    _launch(engine, run)
    return RunAccepted(
        run_id=run.state.run_id,
        total_urls=len(run.urls),
        message=f"Run started. Poll /runs/{run.state.run_id} for progress.",
    )


def start_streaming_run(engine: ProbeEngine, run: PreparedRun) -> AsyncGenerator[dict[str, str], None]:
    """Launch a prepared run and return the SSE generator for its progress.

    The run starts here, whether or not the generator is ever iterated.
    """
    logger.info(
        "streaming run started",
        extra={"run_id": run.state.run_id, "kind": run.state.kind, "url_count": len(run.urls)},
    )
    _launch(engine, run)
    return stream_events(run.channel)


async def stream_events(channel: ProgressChannel) -> AsyncGenerator[dict[str, str], None]:
    async for event in channel:
        yield {"event": event.type, "data": event.model_dump_json()}


def snapshot(state: RunState) -> RunSnapshot:
    return RunSnapshot(
        run_id=state.run_id,
        kind=state.kind,
        phase=state.phase,
        current_url=state.current_url,
        current_index=state.current_index,
        total_urls=state.total_urls,
        processed=len(state.all_results),
        cancelled=state.cancelled,
        completed=list(state.completed),
        failed=list(state.failed),
        all_results=list(state.all_results),
        created_at=state.created_at,
        finished_at=state.finished_at,
    )
