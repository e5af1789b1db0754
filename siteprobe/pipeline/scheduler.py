"""Chunked concurrent dispatch with inter-batch throttling."""

from __future__ import annotations

import asyncio
import logging
import math

from .events import CompletedEvent, CurrentEvent, FailedEvent, ProgressChannel, emit_event
from .models import FailureRecord, ProbeResult
from .runs import CancelToken, RunState
from .w3c import Prober

logger = logging.getLogger(__name__)

CANCELLED_MESSAGE = "Run cancelled"


def partition(urls: list[str], batch_size: int) -> list[list[str]]:
    """Split *urls* into contiguous batches of at most *batch_size*."""
    if batch_size < 1:
        raise ValueError("batch_size must be at least 1")
    return [urls[i : i + batch_size] for i in range(0, len(urls), batch_size)]


class BatchScheduler:
    """Runs a prober over a URL list one batch at a time.

    All URLs of a batch are probed concurrently and the whole batch is awaited
    before the next one starts. Every input URL yields exactly one result and
    the returned list follows input order.
    """

    def __init__(
        self,
        prober: Prober,
        *,
        batch_size: int,
        batch_delay: float,
        channel: ProgressChannel | None = None,
        state: RunState | None = None,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self._prober = prober
        self._batch_size = batch_size
        self._batch_delay = batch_delay
        self._channel = channel
        self._state = state

    async def run(self, urls: list[str], cancel_token: CancelToken | None = None) -> list[ProbeResult]:
        token = cancel_token or CancelToken()
        batches = partition(urls, self._batch_size)
        total_batches = math.ceil(len(urls) / self._batch_size)
        results: list[ProbeResult] = []

        logger.info(
            "batch run started",
            extra={
                "url_count": len(urls),
                "batch_size": self._batch_size,
                "batch_delay": self._batch_delay,
                "total_batches": total_batches,
            },
        )

        offset = 0
        for number, batch in enumerate(batches, start=1):
            if token.cancelled:
                results.extend(self._cancel_remaining(urls[offset:], offset))
                break

            logger.info(
                "batch started",
                extra={"batch": number, "total_batches": total_batches, "batch_urls": len(batch)},
            )
            batch_results = await self._run_batch(batch, offset, len(urls))
            if self._state is not None:
                self._state.merge_batch(batch_results)
            results.extend(batch_results)
            offset += len(batch)

            failures = sum(isinstance(r, FailureRecord) for r in batch_results)
            logger.info(
                "batch completed",
                extra={
                    "batch": number,
                    "total_batches": total_batches,
                    "successful": len(batch_results) - failures,
                    "failed": failures,
                },
            )

            if offset < len(urls):
                logger.debug("waiting before next batch", extra={"delay": self._batch_delay})
                if token.cancelled or await token.sleep(self._batch_delay):
                    results.extend(self._cancel_remaining(urls[offset:], offset))
                    break

        logger.info(
            "batch run finished",
            extra={"url_count": len(urls), "results": len(results), "cancelled": token.cancelled},
        )
        return results

    async def _run_batch(self, batch: list[str], offset: int, total: int) -> list[ProbeResult]:
        reported: set[int] = set()
        tasks = [
            asyncio.ensure_future(self._probe_item(url, offset + position, total, reported))
            for position, url in enumerate(batch)
        ]
        try:
            return list(await asyncio.gather(*tasks))
        except Exception as exc:
            for task in tasks:
                task.cancel()
            logger.error(
                "batch dispatch failed",
                extra={"offset": offset, "batch_urls": len(batch)},
                exc_info=True,
            )
            failures = [
                FailureRecord(url=url, error_message=f"Batch validation failed: {exc}")
                for url in batch
            ]
            # items that already reported an outcome are not reported twice
            for position, failure in enumerate(failures):
                if offset + position not in reported:
                    self._emit_failed(offset + position, failure)
            return failures

    async def _probe_item(self, url: str, index: int, total: int, reported: set[int]) -> ProbeResult:
        if self._state is not None:
            self._state.mark_current(url, index)
        emit_event(self._channel, CurrentEvent(current_url=url, current_index=index, total_urls=total))

        try:
            result = await self._prober.probe(url)
        except Exception as exc:
            logger.warning("probe raised", extra={"url": url, "index": index}, exc_info=True)
            result = FailureRecord(url=url, error_message=str(exc) or type(exc).__name__)

        if isinstance(result, FailureRecord):
            emit_event(self._channel, FailedEvent(index=index, result=result))
        else:
            emit_event(self._channel, CompletedEvent(index=index, result=result))
        reported.add(index)
        return result

    def _emit_failed(self, index: int, failure: FailureRecord) -> None:
        try:
            emit_event(self._channel, FailedEvent(index=index, result=failure))
        except Exception:
            logger.warning("progress event dropped", extra={"index": index}, exc_info=True)

    def _cancel_remaining(self, remaining: list[str], offset: int) -> list[ProbeResult]:
        """Close out URLs that were never dispatched because the run was cancelled."""
        failures: list[ProbeResult] = [FailureRecord(url=url, error_message=CANCELLED_MESSAGE) for url in remaining]
        logger.info("run cancelled", extra={"skipped_urls": len(failures)})
        if self._state is not None:
            self._state.merge_batch(failures)
        for position, failure in enumerate(failures):
            self._emit_failed(offset + position, failure)
        return failures
