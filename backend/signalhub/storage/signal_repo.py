"""Signal data repository."""

from decimal import Decimal

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError

from signalcore.models import Direction, SignalRecord, TechnicalSnapshot
from signalcore.scorer import confidence_for
from signalhub.errors import PersistenceWriteError
from signalhub.storage.database import InstrumentTable, SignalTable, get_database


class SignalRepository:
    """Repository for signal data operations."""

    async def activate(self, signal: SignalRecord) -> list[str]:
        """
        Deactivate every active signal for the symbol and insert the new one.

        Both statements run in one transaction. The instrument row is
        locked first so concurrent writers for the same symbol, in this
        process or another, queue behind each other.

        Returns:
            IDs of the signals that were deactivated

        Raises:
            PersistenceWriteError: If the transaction fails (nothing is changed)
        """
        try:
            async with get_database().session() as session:
                await session.execute(
                    select(InstrumentTable.symbol)
                    .where(InstrumentTable.symbol == signal.symbol)
                    .with_for_update()
                )
                result = await session.execute(
                    update(SignalTable)
                    .where(SignalTable.symbol == signal.symbol, SignalTable.is_active.is_(True))
                    .values(is_active=False)
                    .returning(SignalTable.id)
                )
                deactivated = list(result.scalars().all())

                session.add(self._signal_to_row(signal))
        except SQLAlchemyError as e:
            raise PersistenceWriteError(f"activation for {signal.symbol} failed: {e}") from e

        return deactivated

    async def get_active(self, symbol: str | None = None) -> list[SignalRecord]:
        """Get active signals ordered by creation time, newest first."""
        async with get_database().session() as session:
            stmt = select(SignalTable).where(SignalTable.is_active.is_(True))
            if symbol:
                stmt = stmt.where(SignalTable.symbol == symbol)
            stmt = stmt.order_by(SignalTable.created_at.desc())

            result = await session.execute(stmt)
            return [self._row_to_signal(row) for row in result.scalars().all()]

    def _signal_to_row(self, signal: SignalRecord) -> SignalTable:
        return SignalTable(
            id=signal.id,
            symbol=signal.symbol,
            signal_type=signal.direction.value,
            strength=signal.strength,
            confidence=Decimal(str(signal.confidence)),
            pattern_detected=signal.pattern_detected,
            analysis_data=signal.analysis.model_dump(mode="json") if signal.analysis else None,
            stop_loss=signal.stop_loss,
            take_profit=signal.take_profit,
            risk_reward_ratio=signal.risk_reward_ratio,
            timeframe=signal.timeframe,
            created_at=signal.created_at,
            expires_at=signal.expires_at,
            is_active=True,
        )

    def _row_to_signal(self, row: SignalTable) -> SignalRecord:
        """Convert database row to SignalRecord model."""
        return SignalRecord(
            id=row.id,
            symbol=row.symbol,
            direction=Direction(row.signal_type),
            strength=row.strength,
            # The column keeps two decimals; confidence is defined by strength
            confidence=confidence_for(row.strength),
            patterns=[p for p in (row.pattern_detected or "").split(", ") if p],
            stop_loss=Decimal(str(row.stop_loss)),
            take_profit=Decimal(str(row.take_profit)),
            risk_reward_ratio=Decimal(str(row.risk_reward_ratio)),
            timeframe=row.timeframe or "1h",
            created_at=row.created_at,
            expires_at=row.expires_at,
            is_active=row.is_active,
            analysis=TechnicalSnapshot(**row.analysis_data) if row.analysis_data else None,
        )
