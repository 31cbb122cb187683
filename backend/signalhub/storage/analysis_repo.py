"""Market analysis snapshot repository (append-only)."""

from decimal import Decimal

from sqlalchemy.exc import SQLAlchemyError

from signalcore.models import TechnicalSnapshot
from signalhub.errors import PersistenceWriteError
from signalhub.storage.database import MarketAnalysisTable, get_database

ANALYSIS_TYPE = "ml_prediction"


class AnalysisRepository:
    """Append technical snapshots for later inspection."""

    async def save(
        self,
        symbol: str,
        snapshot: TechnicalSnapshot,
        confidence: float,
        timeframe: str = "1h",
    ) -> None:
        try:
            async with get_database().session() as session:
                session.add(
                    MarketAnalysisTable(
                        symbol=symbol,
                        timeframe=timeframe,
                        analysis_type=ANALYSIS_TYPE,
                        data=snapshot.model_dump(mode="json"),
                        confidence_score=Decimal(str(confidence)),
                    )
                )
        except SQLAlchemyError as e:
            raise PersistenceWriteError(f"analysis insert for {symbol} failed: {e}") from e
