"""REST API routes."""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel

from signalcore.models import Instrument, Notification, SignalRecord
from signalhub.errors import NotFoundError, PersistenceWriteError
from signalhub.services import (
    DistributionHub,
    NotificationEngine,
    Scheduler,
    SignalActivationStore,
)
from signalhub.storage import InstrumentRepository

logger = logging.getLogger(__name__)

router = APIRouter()

VERSION = "0.1.0"


# Response models
class InstrumentResponse(BaseModel):
    """Instrument response model."""

    symbol: str
    name: str
    price: float
    change_value: float
    change_percent: float
    bid: Optional[float] = None
    ask: Optional[float] = None
    spread: Optional[float] = None
    last_updated: Optional[datetime] = None


class SignalResponse(BaseModel):
    """Signal response model."""

    id: str
    symbol: str
    signal_type: str
    strength: int
    confidence: float
    pattern_detected: str
    patterns: list[str]
    stop_loss: float
    take_profit: float
    risk_reward_ratio: float
    timeframe: str
    created_at: datetime
    expires_at: Optional[datetime] = None
    is_active: bool


class NotificationResponse(BaseModel):
    """Notification response model."""

    id: str
    title: str
    message: str
    type: str
    symbol: Optional[str] = None
    priority: int
    is_read: bool
    created_at: datetime
    data: dict


class RefreshResponse(BaseModel):
    """Manual refresh result."""

    processed: int
    failed: int
    failures: dict[str, str]


class SystemStatus(BaseModel):
    """System status response."""

    status: str
    version: str
    symbols: list[str]
    active_signals: int
    subscribers: int
    scheduler_running: bool
    cycles: int
    last_cycle: Optional[dict] = None


def _to_float(value) -> Optional[float]:
    return float(value) if value is not None else None


def instrument_response(i: Instrument) -> InstrumentResponse:
    return InstrumentResponse(
        symbol=i.symbol,
        name=i.name,
        price=float(i.price),
        change_value=float(i.change_value),
        change_percent=float(i.change_percent),
        bid=_to_float(i.bid),
        ask=_to_float(i.ask),
        spread=_to_float(i.spread),
        last_updated=i.last_updated,
    )


def signal_response(s: SignalRecord) -> SignalResponse:
    return SignalResponse(
        id=s.id,
        symbol=s.symbol,
        signal_type=s.direction.value,
        strength=s.strength,
        confidence=s.confidence,
        pattern_detected=s.pattern_detected,
        patterns=s.patterns,
        stop_loss=float(s.stop_loss),
        take_profit=float(s.take_profit),
        risk_reward_ratio=float(s.risk_reward_ratio),
        timeframe=s.timeframe,
        created_at=s.created_at,
        expires_at=s.expires_at,
        is_active=s.is_active,
    )


def notification_response(n: Notification) -> NotificationResponse:
    return NotificationResponse(
        id=n.id,
        title=n.title,
        message=n.message,
        type=n.type.value,
        symbol=n.symbol,
        priority=n.priority,
        is_read=n.is_read,
        created_at=n.created_at,
        data=n.payload,
    )


# Dependencies: services are attached to app.state during startup
def get_hub(request: Request) -> DistributionHub:
    return request.app.state.hub


def get_store(request: Request) -> SignalActivationStore:
    return request.app.state.signal_store


def get_notifier(request: Request) -> NotificationEngine:
    return request.app.state.notifier


def get_scheduler(request: Request) -> Scheduler:
    return request.app.state.scheduler


def get_instrument_repo(request: Request) -> InstrumentRepository:
    return request.app.state.instrument_repo


@router.get("/status", response_model=SystemStatus)
async def get_status(
    scheduler: Scheduler = Depends(get_scheduler),
    store: SignalActivationStore = Depends(get_store),
    hub: DistributionHub = Depends(get_hub),
):
    """Get system status."""
    last = scheduler.last_report
    return SystemStatus(
        status="running",
        version=VERSION,
        symbols=scheduler.symbols,
        active_signals=store.active_count,
        subscribers=hub.subscriber_count,
        scheduler_running=scheduler.is_running,
        cycles=scheduler.cycle_count,
        last_cycle=last.to_dict() if last else None,
    )


@router.get("/instruments", response_model=list[InstrumentResponse])
async def get_instruments(repo: InstrumentRepository = Depends(get_instrument_repo)):
    """Get all instruments ordered by symbol."""
    instruments = await repo.get_all()
    return [instrument_response(i) for i in instruments]


@router.get("/signals/active", response_model=list[SignalResponse])
async def get_active_signals(
    store: SignalActivationStore = Depends(get_store),
):
    """Get active signals, newest first."""
    signals = sorted(
        store.active_signals().values(),
        key=lambda s: s.created_at,
        reverse=True,
    )
    return [signal_response(s) for s in signals]


@router.get("/signals/active/{symbol}", response_model=SignalResponse)
async def get_active_signal(
    symbol: str,
    store: SignalActivationStore = Depends(get_store),
):
    """Get the active signal for one symbol."""
    signal = store.active_signal(symbol.upper())
    if signal is None:
        raise HTTPException(status_code=404, detail=f"No active signal for {symbol}")
    return signal_response(signal)


@router.get("/notifications", response_model=list[NotificationResponse])
async def get_notifications(
    limit: int = Query(50, ge=1, le=500, description="Maximum notifications to return"),
    notifier: NotificationEngine = Depends(get_notifier),
):
    """Get the most recent notifications."""
    notifications = await notifier.recent(limit=limit)
    return [notification_response(n) for n in notifications]


@router.post("/notifications/{notification_id}/read", response_model=NotificationResponse)
async def mark_notification_read(
    notification_id: str,
    notifier: NotificationEngine = Depends(get_notifier),
):
    """Mark a notification as read."""
    try:
        notification = await notifier.acknowledge(notification_id)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Notification not found")
    except PersistenceWriteError as e:
        logger.error(f"Failed to mark notification read: {e}")
        raise HTTPException(status_code=503, detail="Storage unavailable")
    return notification_response(notification)


@router.post("/refresh", response_model=RefreshResponse)
async def refresh(scheduler: Scheduler = Depends(get_scheduler)):
    """Run a full cycle now."""
    report = await scheduler.run_now()
    return RefreshResponse(
        processed=report.processed_count,
        failed=report.failed_count,
        failures=report.failed,
    )


@router.get("/snapshot")
async def get_snapshot(hub: DistributionHub = Depends(get_hub)):
    """Current instruments, active signals, and recent notifications."""
    return hub.snapshot()
