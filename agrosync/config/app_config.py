"""
Application configuration for the sync agent.
"""
import os
from dataclasses import dataclass, field
from typing import Mapping, Optional


@dataclass
class DatabaseConfig:
    """Local SQLite store configuration."""
    path: str = "agrosync.db"


@dataclass
class CloudSyncConfig:
    """Reconciliation API configuration."""
    api_base_url: str = "http://localhost:8080/api/v1"
    api_key: Optional[str] = None
    interval: float = 300.0
    timeout: float = 30.0
    health_check: bool = True
    enabled: bool = True
    backoff_base: float = 0.0
    backoff_max: float = 3600.0


@dataclass
class ReportConfig:
    """Reporting sink (spreadsheet script) configuration."""
    url: Optional[str] = None
    timeout: float = 15.0
    audit_limit: int = 200
    detail_limit: int = 1000


@dataclass
class AppConfig:
    """Main application configuration."""
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    cloud_sync: CloudSyncConfig = field(default_factory=CloudSyncConfig)
    report: ReportConfig = field(default_factory=ReportConfig)
    user_id: str = "admin_local"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'AppConfig':
        """
        Create configuration from ``AGROSYNC_*`` environment variables.

        Unset variables keep their defaults.
        """
        env = os.environ if environ is None else environ
        config = cls()
        config.database.path = env.get("AGROSYNC_DB_PATH", config.database.path)
        config.cloud_sync.api_base_url = env.get("AGROSYNC_API_URL", config.cloud_sync.api_base_url)
        config.cloud_sync.api_key = env.get("AGROSYNC_API_KEY") or None
        if env.get("AGROSYNC_SYNC_INTERVAL"):
            config.cloud_sync.interval = float(env["AGROSYNC_SYNC_INTERVAL"])
        if env.get("AGROSYNC_SYNC_ENABLED"):
            config.cloud_sync.enabled = env["AGROSYNC_SYNC_ENABLED"].lower() not in ("0", "false", "no")
        config.report.url = env.get("AGROSYNC_REPORT_URL") or None
        config.user_id = env.get("AGROSYNC_USER_ID", config.user_id)
        return config
