"""Database connection and table definitions."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    text,
)
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import declarative_base

from signalhub.config import get_settings

Base = declarative_base()


class InstrumentTable(Base):
    """Instrument catalog with the latest quote."""

    __tablename__ = "instruments"

    symbol = Column(String(20), primary_key=True)
    name = Column(String(100), nullable=False)
    price = Column(Numeric(20, 8), nullable=False, default=0)
    change_value = Column(Numeric(20, 8), nullable=False, default=0)
    change_percent = Column(Numeric(12, 6), nullable=False, default=0)
    bid = Column(Numeric(20, 8), nullable=True)
    ask = Column(Numeric(20, 8), nullable=True)
    spread = Column(Numeric(20, 8), nullable=True)
    last_updated = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=text("NOW()"))


class SignalTable(Base):
    """Trading signal records.

    At most one row per symbol has is_active = true; the partial unique
    index enforces it even if two writers bypass the application lock.
    """

    __tablename__ = "trading_signals"

    id = Column(String(36), primary_key=True)
    symbol = Column(String(20), nullable=False)
    signal_type = Column(String(10), nullable=False)  # BUY | SELL | NEUTRAL
    strength = Column(Integer, nullable=False)
    confidence = Column(Numeric(6, 2), nullable=False)
    pattern_detected = Column(Text, nullable=True)
    analysis_data = Column(JSON, nullable=True)
    stop_loss = Column(Numeric(20, 8), nullable=True)
    take_profit = Column(Numeric(20, 8), nullable=True)
    risk_reward_ratio = Column(Numeric(6, 2), nullable=True)
    timeframe = Column(String(10), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    __table_args__ = (
        Index(
            "uq_trading_signals_active_symbol",
            "symbol",
            unique=True,
            postgresql_where=text("is_active"),
        ),
        Index("idx_trading_signals_symbol_created", "symbol", "created_at"),
    )


class NotificationTable(Base):
    """User notifications raised by strong signals."""

    __tablename__ = "notifications"

    id = Column(String(36), primary_key=True)
    title = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    type = Column(String(10), nullable=False)
    symbol = Column(String(20), nullable=True)
    priority = Column(Integer, nullable=False, default=1)
    is_read = Column(Boolean, nullable=False, default=False)
    data = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("idx_notifications_created", "created_at"),
    )


class MarketAnalysisTable(Base):
    """Append-only log of technical snapshots, one per scoring pass."""

    __tablename__ = "market_analysis"

    id = Column(Integer, primary_key=True, autoincrement=True)
    symbol = Column(String(20), nullable=False)
    timeframe = Column(String(10), nullable=False, default="1h")
    analysis_type = Column(String(50), nullable=False)
    data = Column(JSON, nullable=False)
    confidence_score = Column(Numeric(6, 2), nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=text("NOW()"))

    __table_args__ = (
        Index("idx_market_analysis_symbol_created", "symbol", "created_at"),
    )


class Database:
    """Database connection manager."""

    def __init__(self, database_url: str | None = None):
        settings = get_settings()
        url = database_url or settings.database_url

        # Convert postgresql:// to postgresql+asyncpg://
        if url.startswith("postgresql://"):
            url = url.replace("postgresql://", "postgresql+asyncpg://", 1)

        # One pipeline per instrument may write concurrently, plus API readers
        self.engine = create_async_engine(
            url,
            echo=settings.debug,
            pool_size=10,
            max_overflow=10,
            pool_pre_ping=True,
            pool_recycle=3600,
            pool_timeout=30,
        )
        self.session_factory = async_sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False
        )

    async def create_tables(self) -> None:
        """Create all tables."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Get a database session that commits on success."""
        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def close(self) -> None:
        """Close database connection."""
        await self.engine.dispose()


# Global database instance
_db: Database | None = None


def get_database() -> Database:
    """Get the global database instance."""
    global _db
    if _db is None:
        _db = Database()
    return _db


async def init_database() -> Database:
    """Initialize the database and create tables."""
    db = get_database()
    await db.create_tables()
    return db
