"""Tests for the signal and notification repositories (no database required)."""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from sqlalchemy.dialects import postgresql
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.schema import CreateIndex

from signalcore.indicators import IndicatorSynthesizer
from signalcore.models import Direction, Notification, NotificationType
from signalcore.scorer import SignalScorer
from signalhub.errors import PersistenceWriteError
from signalhub.storage import NotificationRepository, SignalRepository
from signalhub.storage import signal_repo as signal_repo_module
from signalhub.storage.database import NotificationTable, SignalTable
from helpers import make_quote, make_signal


class TestSignalRows:
    def test_round_trip_through_row(self):
        quote = make_quote(symbol="XAUUSD", price="2350.5", change_percent="0.7")
        signal = SignalScorer().score(quote, IndicatorSynthesizer(seed=3).synthesize(quote))
        repo = SignalRepository()

        row = repo._signal_to_row(signal)
        assert isinstance(row, SignalTable)
        assert row.signal_type == signal.direction.value
        assert row.pattern_detected == signal.pattern_detected
        assert row.analysis_data["oscillator"] == signal.analysis.oscillator
        assert row.is_active is True

        restored = repo._row_to_signal(row)
        assert restored.id == signal.id
        assert restored.direction == signal.direction
        assert restored.patterns == signal.patterns
        assert restored.confidence == signal.confidence
        assert restored.stop_loss == signal.stop_loss
        assert restored.analysis == signal.analysis

    def test_empty_patterns(self):
        row = SignalTable(
            id="abc",
            symbol="EURUSD",
            signal_type="NEUTRAL",
            strength=50,
            confidence=Decimal("40"),
            pattern_detected="",
            stop_loss=Decimal("1.09"),
            take_profit=Decimal("1.06"),
            risk_reward_ratio=Decimal("1.5"),
            timeframe="1h",
            created_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
            is_active=False,
        )
        signal = SignalRepository()._row_to_signal(row)
        assert signal.patterns == []
        assert signal.direction == Direction.NEUTRAL
        assert signal.analysis is None
        assert signal.is_active is False


class TestNotificationRows:
    def test_row_to_notification(self):
        note = Notification(title="Strong SELL Signal", message="m", priority=5)
        row = NotificationTable(
            id=note.id,
            title=note.title,
            message=note.message,
            type="signal",
            symbol="GBPUSD",
            priority=5,
            is_read=False,
            created_at=note.created_at,
            data={"strength": 91},
        )
        restored = NotificationRepository()._row_to_notification(row)
        assert restored.id == note.id
        assert restored.type == NotificationType.SIGNAL
        assert restored.payload == {"strength": 91}


class TestConfidenceReload:
    def test_confidence_recomputed_from_strength(self):
        """A two-decimal column must not break confidence == 0.8 x strength."""
        row = SignalTable(
            id="abc",
            symbol="XAUUSD",
            signal_type="BUY",
            strength=87,
            confidence=Decimal("69.60"),
            pattern_detected="macd_bullish",
            stop_loss=Decimal("2339.0"),
            take_profit=Decimal("2385.8"),
            risk_reward_ratio=Decimal("1.50"),
            timeframe="1h",
            created_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
            is_active=True,
        )
        signal = SignalRepository()._row_to_signal(row)
        assert signal.confidence == 87 * 0.8


class RecordingSession:
    """Captures statements instead of talking to PostgreSQL."""

    def __init__(self, deactivated=(), fail=False):
        self.statements = []
        self.added = []
        self.deactivated = list(deactivated)
        self.fail = fail

    async def execute(self, stmt):
        if self.fail:
            raise SQLAlchemyError("connection lost")
        self.statements.append(stmt)
        result = MagicMock()
        result.scalars.return_value.all.return_value = self.deactivated
        return result

    def add(self, row):
        self.added.append(row)


class RecordingDatabase:
    def __init__(self, session):
        self._session = session
        self.committed = False

    @asynccontextmanager
    async def session(self):
        yield self._session
        self.committed = True


def compiled(stmt) -> str:
    return str(stmt.compile(dialect=postgresql.dialect()))


class TestActivateTransaction:
    """Statements issued by SignalRepository.activate."""

    @pytest.mark.asyncio
    async def test_locks_instrument_then_swaps_active_row(self, monkeypatch):
        session = RecordingSession(deactivated=["old-id"])
        database = RecordingDatabase(session)
        monkeypatch.setattr(signal_repo_module, "get_database", lambda: database)

        signal = make_signal("EURUSD")
        deactivated = await SignalRepository().activate(signal)

        assert deactivated == ["old-id"]
        lock_sql, update_sql = (compiled(s) for s in session.statements)
        assert "FROM instruments" in lock_sql
        assert "FOR UPDATE" in lock_sql
        assert "UPDATE trading_signals SET is_active" in update_sql
        assert "RETURNING trading_signals.id" in update_sql
        assert [row.id for row in session.added] == [signal.id]
        assert session.added[0].is_active is True
        assert database.committed

    @pytest.mark.asyncio
    async def test_failure_raises_persistence_error(self, monkeypatch):
        session = RecordingSession(fail=True)
        database = RecordingDatabase(session)
        monkeypatch.setattr(signal_repo_module, "get_database", lambda: database)

        with pytest.raises(PersistenceWriteError):
            await SignalRepository().activate(make_signal("EURUSD"))
        assert session.added == []

    def test_partial_unique_index_on_active_symbol(self):
        index = next(
            i for i in SignalTable.__table__.indexes if i.name == "uq_trading_signals_active_symbol"
        )
        ddl = str(CreateIndex(index).compile(dialect=postgresql.dialect()))

        assert index.unique
        assert "CREATE UNIQUE INDEX uq_trading_signals_active_symbol" in ddl
        assert "(symbol)" in ddl
        assert "WHERE is_active" in ddl
