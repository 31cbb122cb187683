"""Notification data model."""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class NotificationType(str, Enum):
    """Notification category."""

    SIGNAL = "signal"
    ALERT = "alert"
    INFO = "info"
    WARNING = "warning"


class Notification(BaseModel):
    """User-facing alert produced from a strong signal."""

    id: str = ""  # Will be set in model_post_init
    title: str
    message: str
    type: NotificationType = NotificationType.SIGNAL
    symbol: str | None = None
    priority: int = Field(default=1, ge=1, le=5)
    is_read: bool = False
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    payload: dict[str, Any] = Field(default_factory=dict)

    def model_post_init(self, __context) -> None:
        if not self.id:
            object.__setattr__(self, "id", uuid.uuid4().hex)
