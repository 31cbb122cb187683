"""Business services."""

from signalhub.services.hub import (
    ALL_TOPICS,
    DistributionHub,
    EventType,
    HubEvent,
    Subscription,
    Topic,
)
from signalhub.services.notifier import NotificationEngine
from signalhub.services.pipeline import AnalysisPipeline, PipelineResult
from signalhub.services.scheduler import CycleReport, Scheduler, Trigger
from signalhub.services.signal_store import SignalActivationStore

__all__ = [
    "ALL_TOPICS",
    "DistributionHub",
    "EventType",
    "HubEvent",
    "Subscription",
    "Topic",
    "NotificationEngine",
    "AnalysisPipeline",
    "PipelineResult",
    "CycleReport",
    "Scheduler",
    "Trigger",
    "SignalActivationStore",
]
