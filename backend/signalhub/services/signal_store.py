"""Signal activation store.

Keeps exactly one active signal per symbol. Activations for the same
symbol are serialized by a per-symbol lock; different symbols never
wait on each other. The in-memory index is swapped only after the
database transaction commits, so readers always see either the old
or the new signal for a symbol, never both and never neither.
"""

import asyncio
import logging
from collections import defaultdict
from typing import Awaitable, Callable

from signalcore.models import SignalRecord
from signalhub.storage import SignalRepository

logger = logging.getLogger(__name__)

# Receives (new_signal, previous_signal)
ActivationCallback = Callable[[SignalRecord, SignalRecord | None], Awaitable[None]]


class SignalActivationStore:
    """Persist signals and expose the currently active set."""

    def __init__(self, signal_repo: SignalRepository | None = None):
        """
        Args:
            signal_repo: Optional signal repository (for testing)
        """
        self.signal_repo = signal_repo or SignalRepository()

        # Active signal per symbol
        self._active: dict[str, SignalRecord] = {}

        # One lock per symbol, created on first use
        self._locks: dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

        self._callbacks: list[ActivationCallback] = []
        self._activations = 0

    def on_activate(self, callback: ActivationCallback) -> None:
        """Register callback for activated signals.

        Callbacks run while the symbol lock is held, so they observe
        activations for one symbol in commit order.
        """
        if callback not in self._callbacks:
            self._callbacks.append(callback)

    def lock_for(self, symbol: str) -> asyncio.Lock:
        return self._locks[symbol]

    async def load(self) -> None:
        """Load active signals from the database."""
        signals = await self.signal_repo.get_active()
        self._active.clear()

        # Rows arrive newest first; the unique index makes duplicates
        # impossible but keep the newest if a legacy table has them
        for signal in signals:
            if signal.symbol in self._active:
                logger.warning(f"Multiple active signals stored for {signal.symbol}")
                continue
            self._active[signal.symbol] = signal
        logger.info(f"Loaded {len(self._active)} active signals")

    async def activate(self, signal: SignalRecord) -> SignalRecord:
        """
        Make ``signal`` the only active signal for its symbol.

        Raises:
            PersistenceWriteError: If the transaction fails; the previous
                signal stays active in that case
        """
        async with self._locks[signal.symbol]:
            deactivated = await self.signal_repo.activate(signal)

            committed = signal if signal.is_active else signal.model_copy(update={"is_active": True})
            previous = self._active.get(signal.symbol)
            self._active[signal.symbol] = committed
            self._activations += 1

            if previous is not None:
                previous = previous.model_copy(update={"is_active": False})

            logger.debug(
                f"Activated {committed.direction.value} {committed.symbol} "
                f"strength={committed.strength} (deactivated {len(deactivated)})"
            )

            for callback in self._callbacks:
                try:
                    await callback(committed, previous)
                except Exception as e:
                    logger.error(f"Activation callback error: {e}")

        return committed

    def active_signals(self) -> dict[str, SignalRecord]:
        """Current active signal per symbol."""
        return dict(self._active)

    def active_signal(self, symbol: str) -> SignalRecord | None:
        return self._active.get(symbol)

    @property
    def active_count(self) -> int:
        return len(self._active)

    @property
    def activation_count(self) -> int:
        """Number of activations since startup."""
        return self._activations
