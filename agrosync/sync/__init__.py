"""
Cloud synchronization module.

This module provides components for syncing local records to the cloud:
- DeltaSelector: picks the records that still need uploading
- BatchUploader: one HTTPS call per entity type, reconciles server identity
- ConnectivityMonitor: online flag plus health check
- RetryPolicy: per entity-type backoff between cycles
- SyncOrchestrator: cycle lifecycle, triggers and failure isolation
"""

from .delta_selector import DeltaSelector
from .batch_uploader import BatchResult, BatchUploader
from .connectivity import ConnectivityMonitor
from .retry_policy import RetryPolicy
from .orchestrator import CycleReport, EntityOutcome, OrchestratorState, SyncOrchestrator, SyncTrigger

__all__ = [
    'DeltaSelector', 'BatchResult', 'BatchUploader', 'ConnectivityMonitor', 'RetryPolicy',
    'CycleReport', 'EntityOutcome', 'OrchestratorState', 'SyncOrchestrator', 'SyncTrigger',
]
