"""Per-instrument analysis pipeline.

quote -> instrument update -> indicators -> score -> activate -> notify
"""

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable

from signalcore.indicators import IndicatorSynthesizer
from signalcore.models import Instrument, Notification, Quote, SignalRecord
from signalcore.scorer import SignalScorer
from signalhub.errors import PersistenceWriteError
from signalhub.services.notifier import NotificationEngine
from signalhub.services.signal_store import SignalActivationStore
from signalhub.storage import AnalysisRepository, InstrumentRepository

logger = logging.getLogger(__name__)

InstrumentCallback = Callable[[Instrument], Awaitable[None]]


@dataclass
class PipelineResult:
    """What one pipeline run produced for a symbol."""

    symbol: str
    instrument: Instrument
    signal: SignalRecord
    notification: Notification | None = None


class AnalysisPipeline:
    """Run one quote through scoring, activation, and notification."""

    def __init__(
        self,
        store: SignalActivationStore,
        notifier: NotificationEngine,
        synthesizer: IndicatorSynthesizer | None = None,
        scorer: SignalScorer | None = None,
        instrument_repo: InstrumentRepository | None = None,
        analysis_repo: AnalysisRepository | None = None,
    ):
        self.store = store
        self.notifier = notifier
        self.synthesizer = synthesizer or IndicatorSynthesizer()
        self.scorer = scorer or SignalScorer()
        self.instrument_repo = instrument_repo or InstrumentRepository()
        self.analysis_repo = analysis_repo or AnalysisRepository()

        self._instrument_callbacks: list[InstrumentCallback] = []

    def on_instrument(self, callback: InstrumentCallback) -> None:
        """Register callback for instrument price updates."""
        if callback not in self._instrument_callbacks:
            self._instrument_callbacks.append(callback)

    async def process(self, quote: Quote) -> PipelineResult:
        """
        Process one quote.

        Raises:
            PersistenceWriteError: If the instrument, signal, or notification
                write fails; later steps are skipped
        """
        instrument = await self.instrument_repo.update_quote(quote)
        for callback in self._instrument_callbacks:
            try:
                await callback(instrument)
            except Exception as e:
                logger.error(f"Instrument callback error: {e}")

        snapshot = self.synthesizer.synthesize(quote)
        signal = self.scorer.score(quote, snapshot)

        # Snapshot history is outside the read path; losing one row is fine
        try:
            await self.analysis_repo.save(
                quote.symbol, snapshot, signal.confidence, timeframe=signal.timeframe
            )
        except PersistenceWriteError as e:
            logger.warning(f"Analysis snapshot not saved: {e}")

        committed = await self.store.activate(signal)
        notification = await self.notifier.notify(committed)

        logger.info(
            f"{quote.symbol}: {committed.direction.value} strength={committed.strength} "
            f"patterns=[{committed.pattern_detected}]"
        )
        return PipelineResult(
            symbol=quote.symbol,
            instrument=instrument,
            signal=committed,
            notification=notification,
        )
