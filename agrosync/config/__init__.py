"""Configuration for the sync agent."""

from .app_config import AppConfig, CloudSyncConfig, DatabaseConfig, ReportConfig

__all__ = ['AppConfig', 'CloudSyncConfig', 'DatabaseConfig', 'ReportConfig']
