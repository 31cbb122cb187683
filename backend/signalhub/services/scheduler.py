"""Cycle scheduler.

A cycle fetches quotes for the whole catalog, then runs the analysis
pipeline for every instrument concurrently. The periodic timer and the
manual refresh both call ``run_cycle``; the only coordination between
overlapping cycles is a per-symbol lock around the pipeline step.
Quotes are fetched before any lock is taken.
"""

import asyncio
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Iterable, Protocol

from signalcore.models import Quote
from signalhub.clients import FetchResult
from signalhub.errors import SignalHubError
from signalhub.services.pipeline import AnalysisPipeline, PipelineResult

logger = logging.getLogger(__name__)


class QuoteSource(Protocol):
    async def fetch(self, symbols: Iterable[str]) -> FetchResult: ...


class Trigger(str, Enum):
    PERIODIC = "periodic"
    MANUAL = "manual"


@dataclass
class CycleReport:
    """Outcome of one cycle across the catalog."""

    trigger: Trigger
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: datetime | None = None
    processed: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)
    results: dict[str, PipelineResult] = field(default_factory=dict)

    @property
    def processed_count(self) -> int:
        return len(self.processed)

    @property
    def failed_count(self) -> int:
        return len(self.failed)

    def to_dict(self) -> dict:
        return {
            "trigger": self.trigger.value,
            "processed": self.processed_count,
            "failed": self.failed_count,
            "failures": dict(self.failed),
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
        }


class Scheduler:
    """Drive analysis cycles on a timer and on demand."""

    def __init__(
        self,
        quote_source: QuoteSource,
        pipeline: AnalysisPipeline,
        symbols: list[str],
        interval: float = 30.0,
    ):
        """
        Args:
            quote_source: Anything with ``async fetch(symbols) -> FetchResult``
            pipeline: Per-instrument analysis pipeline
            symbols: Instrument catalog
            interval: Seconds between periodic cycle starts
        """
        self.quote_source = quote_source
        self.pipeline = pipeline
        self.symbols = list(symbols)
        self.interval = interval

        self._locks: dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._task: asyncio.Task | None = None
        self._last_report: CycleReport | None = None
        self._cycles = 0

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def last_report(self) -> CycleReport | None:
        return self._last_report

    @property
    def cycle_count(self) -> int:
        return self._cycles

    async def run_cycle(self, trigger: Trigger = Trigger.MANUAL) -> CycleReport:
        """Run one full cycle. Never raises for per-instrument failures."""
        report = CycleReport(trigger=trigger)

        try:
            fetched = await self.quote_source.fetch(self.symbols)
        except Exception as e:
            logger.error(f"Quote fetch failed for whole cycle: {e}")
            fetched = FetchResult()
            for symbol in self.symbols:
                report.failed[symbol] = f"fetch failed: {e}"

        for failure in fetched.failures:
            report.failed[failure.symbol] = failure.reason

        symbols = [s for s in self.symbols if s in fetched.quotes]
        outcomes = await asyncio.gather(
            *(self._process(fetched.quotes[s]) for s in symbols),
            return_exceptions=True,
        )

        for symbol, outcome in zip(symbols, outcomes):
            if isinstance(outcome, PipelineResult):
                report.processed.append(symbol)
                report.results[symbol] = outcome
            elif isinstance(outcome, SignalHubError):
                logger.warning(f"Pipeline failed for {symbol}: {outcome}")
                report.failed[symbol] = str(outcome)
            elif isinstance(outcome, Exception):
                logger.error(f"Unexpected pipeline error for {symbol}: {outcome}")
                report.failed[symbol] = f"unexpected error: {outcome}"
            else:
                raise outcome

        report.finished_at = datetime.now(timezone.utc)
        self._last_report = report
        self._cycles += 1

        logger.info(
            f"Cycle ({trigger.value}) done: {report.processed_count} processed, "
            f"{report.failed_count} failed"
            + (f" [{', '.join(sorted(report.failed))}]" if report.failed else "")
        )
        return report

    async def _process(self, quote: Quote) -> PipelineResult:
        async with self._locks[quote.symbol]:
            return await self.pipeline.process(quote)

    async def run_now(self) -> CycleReport:
        """Manual refresh."""
        return await self.run_cycle(Trigger.MANUAL)

    async def start(self) -> None:
        """Start the periodic cycle task."""
        if self.is_running:
            logger.warning("Scheduler already running")
            return
        self._task = asyncio.create_task(self._run_periodic())
        logger.info(f"Scheduler started: {len(self.symbols)} instruments every {self.interval}s")

    async def stop(self) -> None:
        """Stop the periodic cycle task."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Scheduler stopped")

    async def _run_periodic(self) -> None:
        loop = asyncio.get_running_loop()
        while True:
            started = loop.time()
            try:
                await self.run_cycle(Trigger.PERIODIC)
            except Exception as e:
                logger.error(f"Periodic cycle error: {e}")
            await asyncio.sleep(max(0.0, self.interval - (loop.time() - started)))
