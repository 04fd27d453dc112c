"""
Main application class for the sync agent.
"""
import logging
import signal
import threading
from typing import Any, Dict, Optional

from ..actions import DomainActions
from ..config import AppConfig
from ..models import SyncState
from ..report import ReportExporter, ReportNotifier
from ..store import AuditLog, LocalDatabase, LocalRecordStore
from ..sync import (
    BatchUploader,
    ConnectivityMonitor,
    CycleReport,
    DeltaSelector,
    RetryPolicy,
    SyncOrchestrator,
    SyncTrigger,
)
from ..sync.connectivity import health_url_for

logger = logging.getLogger(__name__)


class SyncApplication:
    """
    Wires the local store, the audit log, the sync path and the report path.

    This class manages the lifecycle of the agent including:
    - Opening the local database and loading the persisted sync state
    - Running the periodic sync loop
    - Manual "sync now" and report exports
    - Graceful shutdown handling
    """

    def __init__(self, config: AppConfig):
        """
        Initialize the application.

        Args:
            config: Application configuration
        """
        self.config = config
        self.database = LocalDatabase(config.database.path)
        self.store = LocalRecordStore(self.database)
        self.audit_log = AuditLog(self.database)
        self.actions = DomainActions(self.store, self.audit_log, config.user_id)
        self.sync_state = SyncState.load(self.database)

        cloud = config.cloud_sync
        self.connectivity = ConnectivityMonitor(
            self.sync_state,
            health_url=health_url_for(cloud.api_base_url),
            health_check=cloud.health_check,
        )
        self.uploader = BatchUploader(self.store, cloud.api_base_url, cloud.api_key, cloud.timeout)
        self.orchestrator = SyncOrchestrator(
            DeltaSelector(self.store),
            self.uploader,
            self.connectivity,
            self.sync_state,
            interval=cloud.interval,
            retry_policy=RetryPolicy(cloud.backoff_base, cloud.backoff_max),
            on_cycle_complete=self._after_cycle,
        )

        report = config.report
        self.notifier = ReportNotifier(report.url, report.timeout)
        self.exporter = ReportExporter(
            self.store, self.audit_log, self.notifier, self.database,
            audit_limit=report.audit_limit, detail_limit=report.detail_limit,
        )
        self._shutdown_event = threading.Event()

    def start(self) -> None:
        """Start the background sync loop if cloud sync is enabled."""
        if not self.config.cloud_sync.enabled:
            logger.info("Cloud sync disabled; running local-only")
            return
        logger.info(
            f"Starting sync loop against {self.config.cloud_sync.api_base_url} "
            f"every {self.config.cloud_sync.interval:.0f}s"
        )
        self.orchestrator.start()

    def sync_now(self) -> CycleReport:
        """Run one manual cycle and return its report."""
        report = self.orchestrator.sync_now()
        logger.info(report.summary())
        return report

    def on_connectivity_change(self, online: bool) -> None:
        self.orchestrator.on_connectivity_change(online)

    def _after_cycle(self, report: CycleReport) -> None:
        """
        Send the automatic delta report after timer and reconnect cycles.

        Runs outside the sync cycle; a failed export never affects the
        sync result and is retried after the next cycle.
        """
        if report.trigger == SyncTrigger.MANUAL or not report.online:
            return
        if not self.notifier.configured:
            return
        try:
            ok, message = self.exporter.export_delta()
        except Exception as e:
            logger.error(f"Automatic delta export failed: {e}")
            return
        if ok:
            logger.debug(message)
        else:
            logger.warning(f"Automatic delta export: {message}")

    def status(self) -> Dict[str, Any]:
        """
        Get a summary of current sync status.

        Returns:
            Dictionary with status information
        """
        report = self.orchestrator.last_report
        return {
            'state': self.orchestrator.state.value,
            'running': self.orchestrator.is_running,
            'online': self.sync_state.online,
            'last_sync': self.sync_state.last_sync_timestamp,
            'last_export': self.exporter.last_export_timestamp,
            'pending': {t.value: n for t, n in self.store.pending_counts().items()},
            'audit_entries': self.audit_log.count(),
            'last_cycle': report.summary() if report else None,
        }

    def setup_signal_handlers(self) -> None:
        """Setup signal handlers for graceful shutdown."""
        signal.signal(signal.SIGINT, self._signal_handler)
        signal.signal(signal.SIGTERM, self._signal_handler)

    def _signal_handler(self, sig: int, frame) -> None:
        logger.info('Shutdown signal received. Exiting gracefully...')
        self._shutdown_event.set()

    def run(self) -> None:
        """
        Run until a shutdown signal arrives.
        """
        self.setup_signal_handlers()
        self.start()
        logger.info("Sync agent is running. Press Ctrl+C to stop.")
        try:
            self._shutdown_event.wait()
        finally:
            self.shutdown()

    def shutdown(self, timeout: Optional[float] = 10.0) -> None:
        """
        Gracefully shutdown the application.

        This method ensures all resources are properly cleaned up.
        """
        logger.info("Shutting down application...")
        try:
            self.orchestrator.stop(timeout=timeout)
            self.notifier.close()
        finally:
            self.database.close()
        logger.info("Application shutdown completed")
