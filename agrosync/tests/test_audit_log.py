"""
Tests for AuditLog.

This module covers:
- Appending entries with before/after snapshots
- Oldest-first ordering of query_recent
- Ring-buffer retention
"""
import json

import pytest

from agrosync.models import AuditAction, EntityType, SyncableRecord
from agrosync.store import AuditLog


class TestAppend:
    """Test cases for AuditLog.append."""

    @pytest.mark.unit
    def test_append_returns_entry(self, audit_log):
        entry = audit_log.append("u1", AuditAction.CREATE, EntityType.LOTS, "lot-1", "Created lot")

        assert entry.user_id == "u1"
        assert entry.action == AuditAction.CREATE
        assert entry.entity == "lots"
        assert entry.entity_id == "lot-1"
        assert entry.timestamp.endswith("Z")
        assert audit_log.count() == 1

    @pytest.mark.unit
    def test_snapshots_serialized(self, audit_log):
        """Test that records and dicts are stored as JSON text."""
        before = SyncableRecord(EntityType.LOTS, "lot-1", {"name": "Old"})
        audit_log.append("u1", AuditAction.UPDATE, EntityType.LOTS, "lot-1", "", before=before, after={"name": "New"})

        entry = audit_log.query_recent(1)[0]
        assert json.loads(entry.previous_data)["name"] == "Old"
        assert json.loads(entry.new_data) == {"name": "New"}

    @pytest.mark.unit
    def test_missing_snapshots_are_none(self, audit_log):
        audit_log.append("u1", AuditAction.DELETE, EntityType.LOTS, "lot-1")
        entry = audit_log.query_recent(1)[0]
        assert entry.previous_data is None
        assert entry.new_data is None

    @pytest.mark.unit
    def test_string_entity_accepted_by_value(self, audit_log):
        entry = audit_log.append("u1", "CREATE", "harvests", "h-1")
        assert entry.action == AuditAction.CREATE
        assert entry.entity == "harvests"


class TestQueryRecent:
    """Test cases for AuditLog.query_recent."""

    @pytest.mark.unit
    def test_oldest_first(self, audit_log):
        for i in range(5):
            audit_log.append("u", AuditAction.CREATE, EntityType.LOTS, f"lot-{i}")

        recent = audit_log.query_recent(3)

        assert [e.entity_id for e in recent] == ["lot-2", "lot-3", "lot-4"]

    @pytest.mark.unit
    def test_more_than_available(self, audit_log):
        audit_log.append("u", AuditAction.CREATE, EntityType.LOTS, "lot-1")
        assert len(audit_log.query_recent(200)) == 1

    @pytest.mark.unit
    def test_non_positive(self, audit_log):
        audit_log.append("u", AuditAction.CREATE, EntityType.LOTS, "lot-1")
        assert audit_log.query_recent(0) == []


class TestRetention:
    """Test cases for ring-buffer retention."""

    @pytest.mark.unit
    def test_oldest_entries_dropped(self, database):
        log = AuditLog(database, max_entries=3)
        for i in range(5):
            log.append("u", AuditAction.CREATE, EntityType.LOTS, f"lot-{i}")

        assert log.count() == 3
        assert [e.entity_id for e in log.query_recent(10)] == ["lot-2", "lot-3", "lot-4"]

    @pytest.mark.unit
    def test_default_cap(self, audit_log):
        """Test that the default cap keeps the latest 1000 entries."""
        for i in range(1005):
            audit_log.append("u", AuditAction.CREATE, EntityType.LOTS, f"lot-{i}")

        assert audit_log.count() == 1000
        recent = audit_log.query_recent(1000)
        assert recent[0].entity_id == "lot-5"
        assert recent[-1].entity_id == "lot-1004"
