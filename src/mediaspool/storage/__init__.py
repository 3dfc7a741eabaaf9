"""SQLite-backed persistence for jobs, settings and subscriptions."""

from .database import Database
from .downloads import DownloadJob, DownloadStatus, DownloadStore
from .settings import SettingsStore
from .subscriptions import Subscription, SubscriptionStore
from .videos import InvalidTransitionError, VideoJob, VideoStatus, VideoStore

__all__ = [
    "Database",
    "DownloadJob",
    "DownloadStatus",
    "DownloadStore",
    "InvalidTransitionError",
    "SettingsStore",
    "Subscription",
    "SubscriptionStore",
    "VideoJob",
    "VideoStatus",
    "VideoStore",
]
