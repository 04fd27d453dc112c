"""
Pytest configuration and shared fixtures for the sync agent tests.
"""
import os
import tempfile
import uuid

import pytest

from agrosync.actions import DomainActions
from agrosync.config import AppConfig, CloudSyncConfig, DatabaseConfig, ReportConfig
from agrosync.models import SyncState
from agrosync.store import AuditLog, LocalDatabase, LocalRecordStore
from agrosync.sync import BatchUploader, ConnectivityMonitor, DeltaSelector, SyncOrchestrator


@pytest.fixture
def database():
    """In-memory database shared by every local component."""
    db = LocalDatabase(":memory:")
    yield db
    db.close()


@pytest.fixture
def temp_db_path():
    """Temporary file path for a file-based database."""
    temp_path = os.path.join(tempfile.gettempdir(), f"test_agrosync_{uuid.uuid4().hex}.db")

    yield temp_path

    # Cleanup
    try:
        if os.path.exists(temp_path):
            os.unlink(temp_path)
    except (OSError, FileNotFoundError):
        pass


@pytest.fixture
def store(database):
    return LocalRecordStore(database)


@pytest.fixture
def audit_log(database):
    return AuditLog(database)


@pytest.fixture
def actions(store, audit_log):
    return DomainActions(store, audit_log, user_id="tester")


@pytest.fixture
def sync_state(database):
    return SyncState.load(database)


@pytest.fixture
def uploader(store):
    return BatchUploader(store, api_base_url="http://test.example.com/api/v1")


@pytest.fixture
def online_monitor(sync_state):
    """Connectivity monitor that trusts the online flag (no health check)."""
    return ConnectivityMonitor(sync_state, health_check=False)


@pytest.fixture
def orchestrator(store, uploader, online_monitor, sync_state):
    orch = SyncOrchestrator(DeltaSelector(store), uploader, online_monitor, sync_state, interval=0.05)
    yield orch
    orch.stop()


@pytest.fixture
def test_app_config(temp_db_path):
    """Create a test application configuration."""
    return AppConfig(
        database=DatabaseConfig(path=temp_db_path),
        cloud_sync=CloudSyncConfig(
            api_base_url="http://localhost:8080/api/v1",
            api_key="test-api-key",
            interval=0.05,
            health_check=False,
        ),
        report=ReportConfig(url="https://script.example.com/exec"),
        user_id="tester",
    )
