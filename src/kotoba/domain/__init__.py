# Domain Package
from .errors import InvalidQualityError, KotobaError, LocalStoreError, RemoteStoreError
from .models import (
    HistoryMap,
    HistoryRecord,
    HistorySummary,
    ItemType,
    JlptLevel,
    RemoteRow,
    SourceItem,
)
from .ports import LocalStore, RemoteStore

__all__ = [
    "HistoryMap",
    "HistoryRecord",
    "HistorySummary",
    "ItemType",
    "JlptLevel",
    "RemoteRow",
    "SourceItem",
    "LocalStore",
    "RemoteStore",
    "KotobaError",
    "LocalStoreError",
    "RemoteStoreError",
    "InvalidQualityError",
]
