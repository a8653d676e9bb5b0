"""Financial entry access and live change notifications."""

from src.services.entries.live_sync import LiveSyncSubscription
from src.services.entries.repository import EntryRepository

__all__ = ["EntryRepository", "LiveSyncSubscription"]
