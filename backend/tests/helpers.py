"""In-memory fakes and factories shared by the tests."""

import asyncio
from collections import defaultdict
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

from signalcore.models import Instrument, Notification, Quote, SignalRecord
from signalhub.errors import NotFoundError


class FakeSignalRepository:
    """In-memory stand-in for SignalRepository.

    ``activate`` yields to the event loop before committing so that
    unserialized callers would interleave. The deactivate and insert are
    applied together at commit, like a database transaction.
    """

    def __init__(self, latency: float = 0.0):
        self.latency = latency
        self.rows: dict[str, SignalRecord] = {}
        self.in_flight: dict[str, int] = defaultdict(int)
        self.max_in_flight: dict[str, int] = defaultdict(int)
        self.violations: list[str] = []
        self.commits: list[str] = []

    def active_rows(self, symbol: str) -> list[SignalRecord]:
        return [r for r in self.rows.values() if r.symbol == symbol and r.is_active]

    async def activate(self, signal: SignalRecord) -> list[str]:
        symbol = signal.symbol
        self.in_flight[symbol] += 1
        self.max_in_flight[symbol] = max(self.max_in_flight[symbol], self.in_flight[symbol])
        try:
            # Read phase: what is active right now
            seen = [r.id for r in self.active_rows(symbol)]
            await asyncio.sleep(self.latency)

            # Commit phase: atomic with respect to readers
            for signal_id in seen:
                self.rows[signal_id] = self.rows[signal_id].model_copy(update={"is_active": False})
            self.rows[signal.id] = signal.model_copy(update={"is_active": True})
            if len(self.active_rows(symbol)) > 1:
                self.violations.append(symbol)
            self.commits.append(signal.id)
            return seen
        finally:
            self.in_flight[symbol] -= 1

    async def get_active(self, symbol: str | None = None) -> list[SignalRecord]:
        rows = [r for r in self.rows.values() if r.is_active and (symbol is None or r.symbol == symbol)]
        return sorted(rows, key=lambda r: r.created_at, reverse=True)


class FakeNotificationRepository:
    """In-memory stand-in for NotificationRepository."""

    def __init__(self):
        self.rows: dict[str, Notification] = {}

    async def save(self, notification: Notification) -> None:
        self.rows[notification.id] = notification

    async def mark_read(self, notification_id: str) -> Notification:
        if notification_id not in self.rows:
            raise NotFoundError(f"notification {notification_id} not found")
        updated = self.rows[notification_id].model_copy(update={"is_read": True})
        self.rows[notification_id] = updated
        return updated

    async def get_recent(self, limit: int = 50) -> list[Notification]:
        rows = sorted(self.rows.values(), key=lambda n: n.created_at, reverse=True)
        return rows[:limit]


def make_quote(
    symbol: str = "EURUSD",
    price: str = "1.0842",
    change_percent: str = "0.6",
    change_value: str = "0.0065",
) -> Quote:
    return Quote(
        symbol=symbol,
        price=Decimal(price),
        change_value=Decimal(change_value),
        change_percent=Decimal(change_percent),
        fetched_at=datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc),
    )


def make_signal(symbol: str = "EURUSD", strength: int = 60, **kwargs) -> SignalRecord:
    return SignalRecord(
        symbol=symbol,
        strength=strength,
        confidence=strength * 0.8,
        stop_loss=Decimal("1.0"),
        take_profit=Decimal("1.1"),
        **kwargs,
    )


def instrument_repo_mock() -> MagicMock:
    """Instrument repository whose update_quote echoes the quote back."""
    repo = MagicMock()

    async def update_quote(quote: Quote) -> Instrument:
        return Instrument(symbol=quote.symbol, name=quote.symbol).apply_quote(quote)

    repo.update_quote = AsyncMock(side_effect=update_quote)
    repo.get_all = AsyncMock(return_value=[])
    return repo


