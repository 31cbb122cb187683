"""Instrument data repository."""

from decimal import Decimal

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.exc import SQLAlchemyError

from signalcore.models import Instrument, Quote
from signalhub.errors import PersistenceWriteError
from signalhub.storage.database import InstrumentTable, get_database


class InstrumentRepository:
    """Repository for instrument data operations."""

    async def provision(self, instruments: list[Instrument]) -> None:
        """Insert catalog instruments that are not yet stored."""
        if not instruments:
            return

        try:
            async with get_database().session() as session:
                stmt = insert(InstrumentTable).values(
                    [{"symbol": i.symbol, "name": i.name} for i in instruments]
                )
                stmt = stmt.on_conflict_do_nothing(index_elements=["symbol"])
                await session.execute(stmt)
        except SQLAlchemyError as e:
            raise PersistenceWriteError(f"instrument provisioning failed: {e}") from e

    async def update_quote(self, quote: Quote) -> Instrument:
        """
        Apply a quote to the stored instrument.

        Raises:
            PersistenceWriteError: If the write fails or the symbol was never provisioned
        """
        try:
            async with get_database().session() as session:
                stmt = (
                    update(InstrumentTable)
                    .where(InstrumentTable.symbol == quote.symbol)
                    .values(
                        price=quote.price,
                        change_value=quote.change_value,
                        change_percent=quote.change_percent,
                        bid=quote.bid,
                        ask=quote.ask,
                        spread=quote.spread,
                        last_updated=quote.fetched_at,
                    )
                    .returning(InstrumentTable)
                )
                result = await session.execute(stmt)
                row = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise PersistenceWriteError(f"update of {quote.symbol} failed: {e}") from e

        if row is None:
            raise PersistenceWriteError(f"instrument {quote.symbol} is not provisioned")
        return self._row_to_instrument(row)

    async def get_all(self) -> list[Instrument]:
        """Get all instruments ordered by symbol."""
        async with get_database().session() as session:
            stmt = select(InstrumentTable).order_by(InstrumentTable.symbol.asc())
            result = await session.execute(stmt)
            return [self._row_to_instrument(row) for row in result.scalars().all()]

    def _row_to_instrument(self, row: InstrumentTable) -> Instrument:
        """Convert database row to Instrument model."""
        return Instrument(
            symbol=row.symbol,
            name=row.name,
            price=Decimal(str(row.price)),
            change_value=Decimal(str(row.change_value)),
            change_percent=Decimal(str(row.change_percent)),
            bid=Decimal(str(row.bid)) if row.bid is not None else None,
            ask=Decimal(str(row.ask)) if row.ask is not None else None,
            spread=Decimal(str(row.spread)) if row.spread is not None else None,
            last_updated=row.last_updated,
        )
