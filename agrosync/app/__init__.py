"""Application wiring for the sync agent."""

from .sync_application import SyncApplication

__all__ = ['SyncApplication']
