"""API endpoints."""

from signalhub.api.routes import router
from signalhub.api.websocket import websocket_endpoint, parse_topics

__all__ = [
    "router",
    "websocket_endpoint",
    "parse_topics",
]
