"""
Sync cycle lifecycle.

IDLE -> CHECKING_CONNECTIVITY -> SYNCING -> IDLE, or straight back to IDLE
when offline. A cycle walks the entity types in a fixed order, isolates
failures per entity type and never raises to its caller.
"""

import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Sequence

from ..errors import SyncError
from ..models import SYNC_ORDER, EntityType, SyncState
from ..utils import utc_now_iso
from .batch_uploader import BatchUploader
from .connectivity import ConnectivityMonitor
from .delta_selector import DeltaSelector
from .retry_policy import RetryPolicy

logger = logging.getLogger(__name__)


class OrchestratorState(Enum):
    """Lifecycle states of the orchestrator."""
    IDLE = "idle"
    CHECKING_CONNECTIVITY = "checking_connectivity"
    SYNCING = "syncing"


class SyncTrigger(Enum):
    TIMER = "timer"
    CONNECTIVITY = "connectivity"
    MANUAL = "manual"


@dataclass
class EntityOutcome:
    """What happened to one entity type during a cycle."""
    entity_type: EntityType
    status: str  # synced, partial, empty, deferred, failed
    submitted: int = 0
    synced: int = 0
    error: Optional[str] = None


@dataclass
class CycleReport:
    """Summary of one sync cycle."""
    trigger: SyncTrigger
    started_at: str = field(default_factory=utc_now_iso)
    finished_at: Optional[str] = None
    online: bool = False
    outcomes: List[EntityOutcome] = field(default_factory=list)

    @property
    def failed(self) -> List[EntityOutcome]:
        return [o for o in self.outcomes if o.status == "failed"]

    @property
    def partial(self) -> List[EntityOutcome]:
        """Entity types whose batch left some records unconfirmed."""
        return [o for o in self.outcomes if o.status == "partial"]

    @property
    def synced_count(self) -> int:
        return sum(o.synced for o in self.outcomes)

    @property
    def succeeded(self) -> bool:
        return self.online and not self.failed and not self.partial

    def summary(self) -> str:
        """One-line message for the manual "sync now" notification."""
        if not self.online:
            return "Offline: sync suspended."
        problems = []
        if self.failed:
            problems.append("failed: " + ", ".join(o.entity_type.value for o in self.failed))
        if self.partial:
            problems.append("incomplete: " + ", ".join(
                f"{o.entity_type.value} ({o.submitted - o.synced} unconfirmed)" for o in self.partial
            ))
        if problems:
            return f"Synced {self.synced_count} record(s); " + "; ".join(problems) + "."
        return f"Sync complete: {self.synced_count} record(s)."


class SyncOrchestrator:
    """
    Runs sync cycles on a timer, on connectivity events and on demand.

    Only one cycle runs at a time. A trigger that arrives while a cycle is
    running is coalesced: the background loop runs one more cycle as soon as
    the current one reaches IDLE.
    """

    DEFAULT_INTERVAL = 300.0  # seconds

    def __init__(
        self,
        selector: DeltaSelector,
        uploader: BatchUploader,
        connectivity: ConnectivityMonitor,
        state: SyncState,
        entity_order: Sequence[EntityType] = SYNC_ORDER,
        interval: float = DEFAULT_INTERVAL,
        retry_policy: Optional[RetryPolicy] = None,
        on_state_change: Optional[Callable[[OrchestratorState], None]] = None,
        on_cycle_complete: Optional[Callable[["CycleReport"], None]] = None
    ):
        """
        Initialize the orchestrator.

        Args:
            selector: Delta selector over the record store
            uploader: Batch uploader for the reconciliation endpoints
            connectivity: Online check performed at the start of each cycle
            state: Process-wide sync state (last sync time, online flag)
            entity_order: Fixed iteration order of entity types
            interval: Seconds between timer-triggered cycles
            retry_policy: Backoff between cycles; default retries every cycle
            on_state_change: Callback invoked on every lifecycle transition
            on_cycle_complete: Callback invoked with each finished report,
                after the orchestrator is back to IDLE
        """
        self.selector = selector
        self.uploader = uploader
        self.connectivity = connectivity
        self.sync_state = state
        self.entity_order = tuple(EntityType(e) for e in entity_order)
        self.interval = interval
        self.retry_policy = retry_policy or RetryPolicy()
        self.on_state_change = on_state_change
        self.on_cycle_complete = on_cycle_complete

        self._state = OrchestratorState.IDLE
        self._cycle_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._wake_event = threading.Event()
        self._next_trigger = SyncTrigger.TIMER
        self._thread: Optional[threading.Thread] = None
        self.last_report: Optional[CycleReport] = None

    @property
    def state(self) -> OrchestratorState:
        return self._state

    @property
    def is_running(self) -> bool:
        """Check if the background loop is running."""
        return self._thread is not None and self._thread.is_alive()

    def _set_state(self, state: OrchestratorState) -> None:
        self._state = state
        logger.debug(f"Orchestrator state: {state.value}")
        if self.on_state_change:
            try:
                self.on_state_change(state)
            except Exception as e:
                logger.error(f"Error in state callback: {e}")

    def run_cycle(self, trigger: SyncTrigger = SyncTrigger.MANUAL, wait: bool = False) -> Optional[CycleReport]:
        """
        Run one sync cycle.

        Args:
            trigger: What caused the cycle
            wait: Block until a running cycle finishes instead of coalescing

        Returns:
            The cycle report, or None if the trigger was coalesced into a
            cycle already in progress
        """
        if not self._cycle_lock.acquire(blocking=wait):
            logger.info(f"Sync cycle already running, {trigger.value} trigger coalesced")
            if self.is_running:
                self._next_trigger = trigger
                self._wake_event.set()
            return None

        try:
            report = self._run_locked(trigger)
        finally:
            self._set_state(OrchestratorState.IDLE)
            self._cycle_lock.release()

        if self.on_cycle_complete:
            try:
                self.on_cycle_complete(report)
            except Exception as e:
                logger.error(f"Error in cycle callback: {e}")
        return report

    def _run_locked(self, trigger: SyncTrigger) -> CycleReport:
        report = CycleReport(trigger=trigger)
        self.last_report = report

        self._set_state(OrchestratorState.CHECKING_CONNECTIVITY)
        try:
            report.online = self.connectivity.is_online()
        except Exception as e:
            logger.exception(f"Connectivity check failed: {e}")
            report.online = False

        if not report.online:
            logger.info("Offline. Sync cycle suspended.")
            report.finished_at = utc_now_iso()
            return report

        self._set_state(OrchestratorState.SYNCING)
        logger.info(f"Starting sync cycle ({trigger.value})")
        for entity_type in self.entity_order:
            report.outcomes.append(self._sync_entity(entity_type))

        report.finished_at = utc_now_iso()
        logger.info(
            f"Sync cycle finished: {report.synced_count} record(s) synced, "
            f"{len(report.failed)} entity type(s) failed"
        )
        return report

    def _sync_entity(self, entity_type: EntityType) -> EntityOutcome:
        """Sync one entity type. Never raises."""
        if not self.retry_policy.should_attempt(entity_type):
            logger.info(f"{entity_type.value}: backing off after {self.retry_policy.failures(entity_type)} failure(s)")
            return EntityOutcome(entity_type, "deferred")

        submitted = 0
        try:
            pending = self.selector.select_pending(entity_type)
            submitted = len(pending)
            if not pending:
                return EntityOutcome(entity_type, "empty")
            result = self.uploader.upload_batch(entity_type, pending)
        except SyncError as e:
            delay = self.retry_policy.record_failure(entity_type)
            logger.error(f"[Sync Error] {entity_type.value}: {e}" + (f" (next attempt in {delay:.0f}s)" if delay else ""))
            return EntityOutcome(entity_type, "failed", submitted=submitted, error=str(e))
        except Exception as e:
            self.retry_policy.record_failure(entity_type)
            logger.exception(f"[Sync Error] {entity_type.value}: unexpected failure: {e}")
            return EntityOutcome(entity_type, "failed", submitted=submitted, error=str(e))

        self.retry_policy.record_success(entity_type)
        if result.complete:
            self.sync_state.record_success(result.synced_at)
            status = "synced"
        else:
            status = "partial"
        return EntityOutcome(entity_type, status, submitted=result.submitted, synced=len(result.synced))

    def sync_now(self) -> CycleReport:
        """Manual trigger: waits for any running cycle, then runs a fresh one."""
        return self.run_cycle(SyncTrigger.MANUAL, wait=True)

    def on_connectivity_change(self, online: bool) -> None:
        """Runtime connectivity event. Regaining connectivity triggers a cycle."""
        self.connectivity.set_online(online)
        if online:
            self.trigger(SyncTrigger.CONNECTIVITY)

    def trigger(self, trigger: SyncTrigger = SyncTrigger.MANUAL) -> Optional[CycleReport]:
        """
        Request a cycle. With the background loop running the cycle happens
        on the loop thread; otherwise it runs inline.
        """
        if self.is_running:
            self._next_trigger = trigger
            self._wake_event.set()
            return None
        return self.run_cycle(trigger)

    def _loop(self) -> None:
        """Background loop: one cycle now, then one per interval or wake-up."""
        while not self._stop_event.is_set():
            trigger, self._next_trigger = self._next_trigger, SyncTrigger.TIMER
            try:
                self.run_cycle(trigger, wait=True)
            except Exception as e:
                logger.error(f"Error in sync loop: {e}")

            self._wake_event.wait(self.interval)
            self._wake_event.clear()

    def start(self) -> bool:
        """
        Start the background loop.

        Returns:
            True if started, False if already running
        """
        if self.is_running:
            logger.warning("Sync loop is already running")
            return False
        self._stop_event.clear()
        self._wake_event.clear()
        self._thread = threading.Thread(target=self._loop, name="SyncOrchestrator", daemon=True)
        self._thread.start()
        logger.debug("Sync loop started")
        return True

    def stop(self, timeout: float = 10.0) -> bool:
        """
        Stop the background loop. An in-flight cycle is allowed to finish.

        Returns:
            True if stopped, False if the loop did not exit within ``timeout``
        """
        if not self.is_running:
            return True
        self._stop_event.set()
        self._wake_event.set()
        self._thread.join(timeout=timeout)
        if self._thread.is_alive():
            logger.warning("Sync loop did not stop within timeout")
            return False
        logger.debug("Sync loop stopped")
        return True
