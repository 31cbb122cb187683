"""Main application entry point."""

import asyncio
import logging
from contextlib import asynccontextmanager
from pathlib import Path

# Configure logging FIRST, before any other imports
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s",
)

# Reduce noise from third-party libraries (must be set before importing them)
logging.getLogger("sqlalchemy").setLevel(logging.WARNING)
logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
logging.getLogger("sqlalchemy.engine.Engine").setLevel(logging.WARNING)
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("asyncio").setLevel(logging.WARNING)

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse

# Try to use uvloop for better performance (Unix only)
try:
    import uvloop
    uvloop.install()
    _UVLOOP_ENABLED = True
except ImportError:
    _UVLOOP_ENABLED = False

from signalcore.indicators import IndicatorSynthesizer
from signalcore.models import Instrument, Notification, SignalRecord
from signalcore.scorer import SignalScorer
from signalhub.api import router, websocket_endpoint
from signalhub.catalog import load_catalog
from signalhub.clients import FinnhubQuoteClient
from signalhub.config import get_settings
from signalhub.services import (
    AnalysisPipeline,
    DistributionHub,
    NotificationEngine,
    Scheduler,
    SignalActivationStore,
)
from signalhub.storage import (
    AnalysisRepository,
    InstrumentRepository,
    NotificationRepository,
    SignalRepository,
    get_database,
    init_database,
)

logger = logging.getLogger(__name__)


def wire_hub(
    hub: DistributionHub,
    pipeline: AnalysisPipeline,
    store: SignalActivationStore,
    notifier: NotificationEngine,
) -> None:
    """Forward pipeline events to the distribution hub."""

    async def on_instrument(instrument: Instrument) -> None:
        hub.publish_instrument(instrument)

    async def on_signal(signal: SignalRecord, previous: SignalRecord | None) -> None:
        hub.publish_signal(signal, previous)

    async def on_notification(notification: Notification) -> None:
        hub.publish_notification(notification)

    async def on_read(notification: Notification) -> None:
        hub.publish_notification_read(notification)

    pipeline.on_instrument(on_instrument)
    store.on_activate(on_signal)
    notifier.on_notification(on_notification)
    notifier.on_read(on_read)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    settings = get_settings()
    logger.info("Starting market signal service...")
    logger.info(f"Event loop: {'uvloop' if _UVLOOP_ENABLED else 'asyncio'}")

    db_initialized = False
    quote_client: FinnhubQuoteClient | None = None
    scheduler: Scheduler | None = None

    try:
        try:
            await asyncio.wait_for(init_database(), timeout=30)
            db_initialized = True
            logger.info("Database initialized")
        except asyncio.TimeoutError:
            raise RuntimeError("Database initialization timed out after 30s")

        catalog = load_catalog(Path(settings.catalog_path) if settings.catalog_path else None)

        instrument_repo = InstrumentRepository()
        await instrument_repo.provision([e.to_instrument() for e in catalog.instruments])

        if not settings.finnhub_api_key:
            logger.warning("FINNHUB_API_KEY is not set - quote requests will be rejected")
        quote_client = FinnhubQuoteClient(
            symbol_map=catalog.symbol_map(),
            api_key=settings.finnhub_api_key,
            base_url=settings.finnhub_base_url,
            timeout=settings.quote_timeout,
            half_spreads=catalog.half_spreads(),
            calls_per_minute=settings.quote_calls_per_minute,
        )

        store = SignalActivationStore(SignalRepository())
        await store.load()

        notifier = NotificationEngine(
            NotificationRepository(),
            threshold=settings.notification_threshold,
            urgent_threshold=settings.urgent_threshold,
        )
        pipeline = AnalysisPipeline(
            store=store,
            notifier=notifier,
            synthesizer=IndicatorSynthesizer(seed=settings.random_seed),
            scorer=SignalScorer(
                premium_instruments=settings.premium_instruments,
                timeframe=settings.signal_timeframe,
            ),
            instrument_repo=instrument_repo,
            analysis_repo=AnalysisRepository(),
        )

        hub = DistributionHub(
            buffer_size=settings.subscriber_buffer,
            notification_limit=settings.snapshot_notifications,
        )
        hub.load(
            instruments=await instrument_repo.get_all(),
            signals=store.active_signals().values(),
            notifications=await notifier.recent(limit=settings.snapshot_notifications),
        )
        wire_hub(hub, pipeline, store, notifier)

        scheduler = Scheduler(
            quote_source=quote_client,
            pipeline=pipeline,
            symbols=catalog.symbols,
            interval=settings.refresh_interval,
        )

        # Expose services to API routes via app.state
        app.state.hub = hub
        app.state.signal_store = store
        app.state.notifier = notifier
        app.state.scheduler = scheduler
        app.state.instrument_repo = instrument_repo

        await scheduler.start()

    except Exception as e:
        logger.error(f"Startup failed: {e}")
        if scheduler:
            await scheduler.stop()
        if quote_client:
            await quote_client.close()
        if db_initialized:
            try:
                await get_database().close()
            except Exception as cleanup_err:
                logger.warning(f"Error closing database: {cleanup_err}")
        raise  # Re-raise to prevent app from starting in broken state

    yield

    # Shutdown
    logger.info("Shutting down...")

    await scheduler.stop()
    await quote_client.close()

    try:
        await get_database().close()
        logger.info("Database connections closed")
    except Exception as e:
        logger.warning(f"Error closing database: {e}")

    logger.info("Shutdown complete")


# Create FastAPI app with orjson for faster JSON serialization
app = FastAPI(
    title="Market Signal Pulse",
    description="Quote ingestion, signal scoring, and real-time distribution",
    version="0.1.0",
    lifespan=lifespan,
    default_response_class=ORJSONResponse,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router, prefix="/api")

app.websocket("/ws")(websocket_endpoint)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "Market Signal Pulse",
        "version": "0.1.0",
        "docs": "/docs",
        "event_loop": "uvloop" if _UVLOOP_ENABLED else "asyncio",
    }


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}


def main():
    """Run the application."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "signalhub.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )


if __name__ == "__main__":
    main()
