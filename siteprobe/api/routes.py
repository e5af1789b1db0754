"""URL upload, run control, statistics and export endpoint handlers."""

from __future__ import annotations

from fastapi import APIRouter, Depends, File, HTTPException, Request, Response, UploadFile, status
from sse_starlette.sse import EventSourceResponse

from siteprobe.api.schemas import PageSpeedRunRequest, RunRequest, UrlListResponse, W3CRunRequest
from siteprobe.api.service import prepare_run, snapshot, start_background_run, start_streaming_run
from siteprobe.config import Settings
from siteprobe.pipeline.engine import ProbeEngine
from siteprobe.pipeline.errors import (
    ExportFailed,
    FileTooLarge,
    InvalidFileType,
    RunInProgress,
    SetupError,
)
from siteprobe.pipeline.export import XlsxExportSink, export_results
from siteprobe.pipeline.presets import ProbeKind
from siteprobe.pipeline.runs import RunState
from siteprobe.pipeline.sources import check_file, load_upload
from siteprobe.pipeline.stats import RunStatistics, compute_statistics

router = APIRouter()

_SETUP_STATUS: dict[type[SetupError], int] = {
    FileTooLarge: status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
    InvalidFileType: status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
    RunInProgress: status.HTTP_409_CONFLICT,
}


def _get_engine(request: Request) -> ProbeEngine:
    return request.app.state.engine


def _get_settings(request: Request) -> Settings:
    return request.app.state.settings


def _setup_http_error(exc: SetupError) -> HTTPException:
    return HTTPException(
        status_code=_SETUP_STATUS.get(type(exc), status.HTTP_422_UNPROCESSABLE_ENTITY),
        detail={"code": exc.code, "message": exc.message},
    )


def _get_run(run_id: str, engine: ProbeEngine) -> RunState:
    state = engine.registry.get(run_id)
    if state is None:
        raise HTTPException(status_code=404, detail="Run not found")
    return state


@router.post("/urls/parse", response_model=UrlListResponse)
async def parse_url_file(
    file: UploadFile = File(...),
    settings: Settings = Depends(_get_settings),
):
    try:
        if file.size is not None:
            check_file(file.filename, file.content_type, file.size, max_bytes=settings.max_upload_bytes)
        # never hold more than one byte past the limit
        data = await file.read(settings.max_upload_bytes + 1)
        urls = load_upload(
            file.filename,
            file.content_type,
            data,
            max_bytes=settings.max_upload_bytes,
            max_urls=settings.max_urls,
            max_url_length=settings.max_url_length,
        )
    except SetupError as exc:
        raise _setup_http_error(exc) from exc
    return UrlListResponse(filename=file.filename, count=len(urls), urls=urls)


async def _start(kind: ProbeKind, body: RunRequest, engine: ProbeEngine, api_key: str | None = None):
    try:
        run = prepare_run(engine, kind, body, api_key=api_key)
    except SetupError as exc:
        raise _setup_http_error(exc) from exc

    if body.mode == "stream":
        return EventSourceResponse(start_streaming_run(engine, run))
    accepted = start_background_run(engine, run)
    return Response(
        content=accepted.model_dump_json(),
        status_code=status.HTTP_202_ACCEPTED,
        media_type="application/json",
    )


@router.post("/runs/w3c")
async def start_w3c_run(body: W3CRunRequest, engine: ProbeEngine = Depends(_get_engine)):
    return await _start("w3c", body, engine)


@router.post("/runs/pagespeed")
async def start_pagespeed_run(body: PageSpeedRunRequest, engine: ProbeEngine = Depends(_get_engine)):
    return await _start("pagespeed", body, engine, api_key=body.api_key)


@router.get("/runs/{run_id}")
async def get_run(run_id: str, engine: ProbeEngine = Depends(_get_engine)):
    return snapshot(_get_run(run_id, engine))


@router.get("/runs/{run_id}/stats", response_model=RunStatistics)
async def get_run_stats(run_id: str, engine: ProbeEngine = Depends(_get_engine)):
    return compute_statistics(_get_run(run_id, engine).all_results)


@router.get("/runs/{run_id}/export")
async def export_run(run_id: str, engine: ProbeEngine = Depends(_get_engine)):
    state = _get_run(run_id, engine)
    try:
        filename, payload = export_results(state.kind, state.all_results)
    except SetupError as exc:
        raise _setup_http_error(exc) from exc
    except ExportFailed as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    return Response(
        content=payload,
        media_type=XlsxExportSink.media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/runs/{run_id}/cancel")
async def cancel_run(run_id: str, engine: ProbeEngine = Depends(_get_engine)):
    _get_run(run_id, engine)
    if not engine.cancel(run_id):
        raise HTTPException(status_code=409, detail="Run already finished")
    return {"status": "cancelling", "run_id": run_id}


@router.delete("/runs/{run_id}", status_code=status.HTTP_204_NO_CONTENT)
async def clear_run(run_id: str, engine: ProbeEngine = Depends(_get_engine)):
    _get_run(run_id, engine)
    try:
        engine.registry.discard(run_id)
    except RunInProgress as exc:
        raise _setup_http_error(exc) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)
