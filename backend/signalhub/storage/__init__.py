"""Data storage layer."""

from signalhub.storage.database import Database, get_database, init_database
from signalhub.storage.instrument_repo import InstrumentRepository
from signalhub.storage.signal_repo import SignalRepository
from signalhub.storage.notification_repo import NotificationRepository
from signalhub.storage.analysis_repo import AnalysisRepository

__all__ = [
    "Database",
    "get_database",
    "init_database",
    "InstrumentRepository",
    "SignalRepository",
    "NotificationRepository",
    "AnalysisRepository",
]
