"""Probe engine tests."""

from unittest.mock import MagicMock, patch

import pytest

from siteprobe.pipeline.engine import ProbeEngine
from siteprobe.pipeline.errors import (
    ApiKeyRequired,
    InvalidUrls,
    NoUrlsFound,
    RunInProgress,
    TooManyUrls,
    UrlTooLong,
)
from siteprobe.pipeline.events import CompletedEvent, CurrentEvent, DoneEvent, FailedEvent
from siteprobe.pipeline.models import FailureRecord
from siteprobe.pipeline.pagespeed import PageSpeedAnalyzer
from siteprobe.pipeline.scheduler import CANCELLED_MESSAGE
from siteprobe.pipeline.w3c import W3CValidator

from fakes import FakeProber


def _engine(settings) -> ProbeEngine:
    return ProbeEngine(settings, MagicMock())


# --- prepare (synchronous) ---


def test_prepare_rejects_empty_list(settings):
    engine = _engine(settings)
    with pytest.raises(NoUrlsFound):
        engine.prepare("w3c", [])
    assert engine.registry.active() is None


def test_prepare_url_limit(settings):
    engine = _engine(settings)
    with pytest.raises(TooManyUrls):
        engine.prepare("w3c", [f"https://s{i}.com" for i in range(1001)])

    run = engine.prepare("w3c", [f"https://s{i}.com" for i in range(1000)])
    assert run.state.total_urls == 1000


def test_prepare_trims_and_drops_blank_entries(settings):
    run = _engine(settings).prepare("w3c", ["  https://a.com ", "", "   ", "b.com\t"])
    assert run.urls == ["https://a.com", "b.com"]
    assert run.state.total_urls == 2


def test_prepare_rejects_blank_only_list(settings):
    engine = _engine(settings)
    with pytest.raises(NoUrlsFound):
        engine.prepare("w3c", ["", "   "])
    assert engine.registry.active() is None


def test_prepare_rejects_overlong_url(settings):
    engine = _engine(settings)
    with pytest.raises(UrlTooLong):
        engine.prepare("w3c", ["https://ok.com", "x" * 5000])
    assert engine.registry.active() is None

    settings.max_url_length = 10
    with pytest.raises(UrlTooLong):
        engine.prepare("w3c", ["https://a.com/long"])


def test_prepare_w3c_uses_configured_preset(settings):
    run = _engine(settings).prepare("w3c", ["a.com"])
    assert isinstance(run.prober, W3CValidator)
    assert run.preset.batch_size == settings.w3c_batch_size
    assert run.preset.batch_delay == settings.w3c_batch_delay
    assert run.state.phase == "idle"


def test_prepare_applies_overrides_within_bounds(settings):
    run = _engine(settings).prepare("w3c", ["a.com"], batch_size=500, batch_delay=2.5)
    assert run.preset.batch_size == 100
    assert run.preset.batch_delay == 2.5


def test_prepare_pagespeed_requires_key(settings):
    engine = _engine(settings)
    with pytest.raises(ApiKeyRequired):
        engine.prepare("pagespeed", ["https://a.com"])
    with pytest.raises(ApiKeyRequired):
        engine.prepare("pagespeed", ["https://a.com"], api_key="  ")
    assert engine.registry.active() is None


def test_prepare_pagespeed_falls_back_to_configured_key(settings):
    settings.google_api_key = "configured-key"
    run = _engine(settings).prepare("pagespeed", ["https://a.com"])
    assert isinstance(run.prober, PageSpeedAnalyzer)
    assert run.preset.batch_size == settings.pagespeed_batch_size


def test_prepare_pagespeed_rejects_invalid_urls(settings):
    with pytest.raises(InvalidUrls) as exc_info:
        _engine(settings).prepare("pagespeed", ["https://a.com", "b.com"], api_key="k")
    assert exc_info.value.urls == ["b.com"]


def test_prepare_w3c_passes_bare_hosts_through(settings):
    run = _engine(settings).prepare("w3c", ["b.com"])
    assert run.urls == ["b.com"]


def test_prepare_refuses_second_active_run(settings):
    engine = _engine(settings)
    engine.prepare("w3c", ["a.com"])
    with pytest.raises(RunInProgress):
        engine.prepare("pagespeed", ["https://a.com"], api_key="k")


# --- execute (async, fake prober) ---


@pytest.mark.asyncio
async def test_execute_runs_to_done(settings):
    prober = FakeProber(fail_urls=("c.com",))
    engine = _engine(settings)
    with patch("siteprobe.pipeline.engine.build_prober", return_value=prober):
        run = engine.prepare("w3c", ["a.com", "b.com", "c.com"], batch_size=2)

    state = await engine.execute(run)

    assert state.phase == "done"
    assert state.cancelled is False
    assert [r.url for r in state.all_results] == ["a.com", "b.com", "c.com"]
    assert len(state.completed) + len(state.failed) == len(state.all_results) == 3
    assert engine.registry.active() is None

    events = run.channel.drain()
    assert run.channel.closed
    assert isinstance(events[-1], DoneEvent)
    assert events[-1].run_id == state.run_id
    assert events[-1].statistics["success_count"] == 2
    assert events[-1].statistics["error_count"] == 1
    assert sum(isinstance(e, CurrentEvent) for e in events) == 3
    assert sum(isinstance(e, (CompletedEvent, FailedEvent)) for e in events) == 3


@pytest.mark.asyncio
async def test_execute_streams_through_channel(settings):
    engine = _engine(settings)
    with patch("siteprobe.pipeline.engine.build_prober", return_value=FakeProber()):
        run = engine.prepare("w3c", ["a.com", "b.com"])

    await engine.execute(run)
    types = [event.type async for event in run.channel]
    assert types[-1] == "done"
    assert types.count("current") == 2


@pytest.mark.asyncio
async def test_execute_finishes_state_when_scheduler_raises(settings):
    engine = _engine(settings)
    with patch("siteprobe.pipeline.engine.build_prober", return_value=FakeProber()):
        run = engine.prepare("w3c", ["a.com"])

    with patch("siteprobe.pipeline.engine.BatchScheduler.run", side_effect=RuntimeError("boom")):
        with pytest.raises(RuntimeError):
            await engine.execute(run)

    assert run.state.phase == "done"
    assert run.channel.closed
    assert isinstance(run.channel.drain()[-1], DoneEvent)


@pytest.mark.asyncio
async def test_cancel_closes_out_pending_urls(settings):
    engine = _engine(settings)
    with patch("siteprobe.pipeline.engine.build_prober", return_value=FakeProber()):
        run = engine.prepare("w3c", ["a", "b", "c"], batch_size=1)

    assert engine.cancel(run.state.run_id) is True
    state = await engine.execute(run)

    assert state.cancelled is True
    assert len(state.all_results) == 3
    assert all(isinstance(r, FailureRecord) and r.error_message == CANCELLED_MESSAGE for r in state.all_results)
    done = run.channel.drain()[-1]
    assert isinstance(done, DoneEvent) and done.cancelled is True


def test_cancel_unknown_or_finished_run(settings):
    engine = _engine(settings)
    assert engine.cancel("missing") is False

    run = engine.prepare("w3c", ["a.com"])
    run.state.finish()
    assert engine.cancel(run.state.run_id) is False
