"""WebSocket endpoint for real-time updates."""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any

import orjson
from fastapi import WebSocket, WebSocketDisconnect

from signalhub.services import DistributionHub, Subscription, Topic

logger = logging.getLogger(__name__)

# Close code sent to consumers that fall behind
CLOSE_TRY_AGAIN_LATER = 1013


def _orjson_dumps(obj: Any) -> str:
    """Serialize object to JSON string using orjson."""
    return orjson.dumps(obj, default=str).decode("utf-8")


def _control(msg_type: str, data: dict | None = None) -> str:
    return _orjson_dumps({
        "type": msg_type,
        "topic": None,
        "data": data or {},
        "timestamp": datetime.now(timezone.utc).isoformat(),
    })


def parse_topics(raw: str | list[str] | None) -> list[Topic] | None:
    """
    Parse topic names from a comma separated string or a list.

    Returns:
        Topics, or None for "all topics"

    Raises:
        ValueError: If a name is not a known topic
    """
    if raw is None:
        return None
    names = raw.split(",") if isinstance(raw, str) else raw
    names = [n.strip() for n in names if n and n.strip()]
    if not names:
        return None
    return [Topic(n) for n in names]


class ClientSession:
    """One WebSocket client bound to one hub subscription at a time."""

    def __init__(self, websocket: WebSocket, hub: DistributionHub):
        self.websocket = websocket
        self.hub = hub
        self.subscription: Subscription | None = None
        self._forwarder: asyncio.Task | None = None
        self._send_lock = asyncio.Lock()

    async def send_text(self, text: str) -> None:
        async with self._send_lock:
            await self.websocket.send_text(text)

    def subscribe(self, topics: list[Topic] | None) -> None:
        """Replace the current subscription. The new one starts with a snapshot."""
        self.unsubscribe()
        self.subscription = self.hub.subscribe(topics)
        self._forwarder = asyncio.create_task(self._forward(self.subscription))

    def unsubscribe(self) -> None:
        if self.subscription is not None:
            self.subscription.close()
            self.subscription = None
        if self._forwarder is not None:
            self._forwarder.cancel()
            self._forwarder = None

    async def _forward(self, subscription: Subscription) -> None:
        try:
            async for event in subscription:
                await self.send_text(event.to_json())
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(f"Failed to send message: {e}")
            subscription.close()
            return

        if subscription.close_reason == "buffer overflow":
            try:
                await self.websocket.close(code=CLOSE_TRY_AGAIN_LATER)
            except Exception as e:
                logger.debug(f"Close after overflow failed: {e}")

    async def handle_message(self, message: dict) -> None:
        """Handle incoming message from client."""
        msg_type = message.get("type", "")

        if msg_type == "ping":
            await self.send_text(_control("pong"))
        elif msg_type == "subscribe":
            try:
                data = message.get("data") or {}
                topics = parse_topics(data.get("topics") if isinstance(data, dict) else None)
            except ValueError as e:
                await self.send_text(_control("error", {"message": str(e)}))
                return
            self.subscribe(topics)
        elif msg_type == "unsubscribe":
            self.unsubscribe()
            await self.send_text(_control("unsubscribed"))
        else:
            await self.send_text(_control("error", {"message": f"Unknown message type: {msg_type}"}))


async def websocket_endpoint(websocket: WebSocket):
    """
    WebSocket endpoint for real-time updates.

    Query parameter ``topics`` selects topics (comma separated, default all):
    instrument-prices, signals, notifications.

    Messages sent to clients:
    - snapshot: Current state, always first after (re)subscribing
    - instrument-updated: New price for an instrument
    - signal-activated: New active signal (with the ID it replaced)
    - notification-created / notification-read

    Message format:
    {
        "type": "signal-activated",
        "topic": "signals",
        "data": {...},
        "sequence": 42,
        "timestamp": "2024-01-01T00:00:00Z"
    }
    """
    hub: DistributionHub = websocket.app.state.hub

    try:
        topics = parse_topics(websocket.query_params.get("topics"))
    except ValueError as e:
        await websocket.accept()
        await websocket.send_text(_control("error", {"message": str(e)}))
        await websocket.close(code=1008)
        return

    await websocket.accept()
    session = ClientSession(websocket, hub)
    session.subscribe(topics)

    try:
        while True:
            try:
                data = await asyncio.wait_for(
                    websocket.receive_text(),
                    timeout=60.0,
                )

                try:
                    message = orjson.loads(data)
                except orjson.JSONDecodeError:
                    await session.send_text(_control("error", {"message": "Invalid JSON"}))
                    continue
                if not isinstance(message, dict):
                    await session.send_text(_control("error", {"message": "Expected an object"}))
                    continue
                await session.handle_message(message)

            except asyncio.TimeoutError:
                # Send ping to keep connection alive
                await session.send_text(_control("ping"))

    except WebSocketDisconnect:
        pass
    except RuntimeError as e:
        # Raised by receive after the server closed a lagging client
        logger.debug(f"WebSocket closed: {e}")
    except Exception as e:
        logger.error(f"WebSocket error: {e}")
    finally:
        session.unsubscribe()
