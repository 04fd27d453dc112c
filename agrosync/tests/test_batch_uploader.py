"""
Tests for BatchUploader.

This module covers:
- Wire shape (local-only fields, dates, large integers)
- Request construction
- Error mapping for HTTP, transport and response-shape failures
- Applying confirmations, including edits made while a batch is in flight
"""
import json
from datetime import date
from decimal import Decimal
from io import BytesIO
from unittest.mock import patch
from urllib.error import HTTPError, URLError

import pytest

from agrosync.errors import (
    MalformedResponseError,
    ServerRejectedError,
    SyncError,
    TransportError,
    UnknownEntityError,
)
from agrosync.models import EntityType, SyncableRecord, SyncStatus
from agrosync.sync import BatchUploader, DeltaSelector
from agrosync.tests.helpers import confirm_all, make_response


def _http_error(url, code, body=b'{"error": "nope"}'):
    return HTTPError(url, code, "Error", {}, BytesIO(body))


@pytest.fixture
def selector(store):
    return DeltaSelector(store)


class TestWireShape:
    """Test cases for to_wire."""

    @pytest.mark.unit
    def test_local_only_fields_stripped(self, uploader):
        record = SyncableRecord(
            EntityType.LOTS, "a", {"name": "Lote"},
            sync_status=SyncStatus.PENDING_UPDATE, server_id="srv-1", last_updated=7
        )
        wire = uploader.to_wire(record)

        assert "serverId" not in wire
        assert "syncStatus" not in wire
        assert wire["id"] == "a"
        assert wire["name"] == "Lote"
        assert wire["lastUpdated"] == 7

    @pytest.mark.unit
    def test_date_fields_normalized(self, uploader):
        record = SyncableRecord(EntityType.MOVEMENTS, "m", {
            "date": "2024-02-10",
            "paymentDueDate": "2024-03-01T08:00:00-05:00",
            "notes": "2024-02-10",
        })
        wire = uploader.to_wire(record)

        assert wire["date"] == "2024-02-10T00:00:00.000Z"
        assert wire["paymentDueDate"] == "2024-03-01T13:00:00.000Z"
        assert wire["notes"] == "2024-02-10"

    @pytest.mark.unit
    def test_unparseable_date_left_as_is(self, uploader):
        record = SyncableRecord(EntityType.HARVESTS, "h", {"date": "last week"})
        assert uploader.to_wire(record)["date"] == "last week"

    @pytest.mark.unit
    def test_large_integers_become_strings(self, uploader):
        record = SyncableRecord(EntityType.INVENTORY, "i", {
            "barcode": 2 ** 60,
            "quantity": 12,
            "active": True,
            "lots": [{"code": -(2 ** 54)}],
        })
        wire = uploader.to_wire(record)

        assert wire["barcode"] == str(2 ** 60)
        assert wire["quantity"] == 12
        assert wire["active"] is True
        assert wire["lots"] == [{"code": str(-(2 ** 54))}]

    @pytest.mark.unit
    def test_serialize_fallback(self):
        assert BatchUploader.json_serialize_fallback(Decimal("1.5")) == 1.5
        assert BatchUploader.json_serialize_fallback(date(2024, 1, 2)) == "2024-01-02T00:00:00.000Z"
        with pytest.raises(TypeError):
            BatchUploader.json_serialize_fallback(object())


class TestRequest:
    """Test cases for request construction."""

    @pytest.mark.unit
    def test_endpoint_for(self, uploader):
        assert uploader.endpoint_for(EntityType.LABOR) == "http://test.example.com/api/v1/labor/sync"

    @pytest.mark.unit
    def test_trailing_slash_trimmed(self, store):
        uploader = BatchUploader(store, api_base_url="http://h/api/v1/")
        assert uploader.endpoint_for(EntityType.LOTS) == "http://h/api/v1/lots/sync"

    @pytest.mark.unit
    def test_headers_with_api_key(self, store):
        uploader = BatchUploader(store, api_key="secret")
        headers = uploader._build_headers()
        assert headers["Authorization"] == "Bearer secret"
        assert headers["Content-Type"] == "application/json"

    @pytest.mark.unit
    def test_headers_without_api_key(self, uploader):
        assert "Authorization" not in uploader._build_headers()

    @pytest.mark.unit
    @patch('agrosync.sync.batch_uploader.urlopen')
    def test_posts_wire_records(self, mock_urlopen, uploader, store, selector):
        """Test that one POST carries every pending record of the type."""
        lots = store.table(EntityType.LOTS)
        lots.insert({"id": "a", "name": "A"})
        lots.insert({"id": "b", "name": "B"})
        mock_urlopen.side_effect = lambda request, timeout: make_response(confirm_all(request))

        uploader.upload_batch(EntityType.LOTS, selector.select_pending(EntityType.LOTS))

        assert mock_urlopen.call_count == 1
        request = mock_urlopen.call_args[0][0]
        assert request.full_url == "http://test.example.com/api/v1/lots/sync"
        assert request.get_method() == "POST"
        body = json.loads(request.data.decode('utf-8'))
        assert [r["id"] for r in body] == ["a", "b"]
        assert all("syncStatus" not in r and "serverId" not in r for r in body)
        assert mock_urlopen.call_args[1]["timeout"] == 30.0


class TestUploadBatch:
    """Test cases for upload_batch success paths."""

    @pytest.mark.unit
    @patch('agrosync.sync.batch_uploader.urlopen')
    def test_success_marks_synced_with_server_time(self, mock_urlopen, uploader, store, selector):
        store.table(EntityType.LOTS).insert({"id": "r1", "name": "A"})
        mock_urlopen.return_value = make_response({
            "success": True,
            "synced": [{"id": "r1", "serverId": "srv-1", "lastUpdated": 1000}],
        })

        result = uploader.upload_batch(EntityType.LOTS, selector.select_pending(EntityType.LOTS))

        record = store.table(EntityType.LOTS).get("r1")
        assert record.sync_status == SyncStatus.SYNCED
        assert record.server_id == "srv-1"
        assert record.last_updated == 1000
        assert result.complete is True
        assert [r.id for r in result.synced] == ["r1"]

    @pytest.mark.unit
    @patch('agrosync.sync.batch_uploader.urlopen')
    def test_server_id_not_overwritten(self, mock_urlopen, uploader, store, selector):
        lots = store.table(EntityType.LOTS)
        record = lots.insert({"id": "r1"})
        lots.apply_confirmation("r1", "srv-1", 10, record.revision)
        lots.update("r1", {"name": "changed"})
        mock_urlopen.return_value = make_response({
            "success": True,
            "synced": [{"id": "r1", "serverId": "srv-99", "lastUpdated": 20}],
        })

        uploader.upload_batch(EntityType.LOTS, selector.select_pending(EntityType.LOTS))

        assert lots.get("r1").server_id == "srv-1"
        assert lots.get("r1").sync_status == SyncStatus.SYNCED

    @pytest.mark.unit
    @patch('agrosync.sync.batch_uploader.urlopen')
    def test_edit_while_in_flight_stays_pending(self, mock_urlopen, uploader, store, selector):
        """Test that a local edit landing during the request is not lost."""
        lots = store.table(EntityType.LOTS)
        lots.insert({"id": "r1", "name": "before"})

        def respond(request, timeout):
            lots.update("r1", {"name": "during"})
            return make_response(confirm_all(request, {"r1": "srv-1"}))

        mock_urlopen.side_effect = respond

        result = uploader.upload_batch(EntityType.LOTS, selector.select_pending(EntityType.LOTS))

        record = lots.get("r1")
        assert record.server_id == "srv-1"
        assert record.sync_status == SyncStatus.PENDING_UPDATE
        assert record.data["name"] == "during"
        assert result.still_pending == ["r1"]
        assert result.complete is False

    @pytest.mark.unit
    @patch('agrosync.sync.batch_uploader.urlopen')
    def test_unconfirmed_record_stays_pending(self, mock_urlopen, uploader, store, selector):
        lots = store.table(EntityType.LOTS)
        lots.insert({"id": "a"})
        lots.insert({"id": "b"})
        mock_urlopen.return_value = make_response({
            "success": True,
            "synced": [{"id": "a", "serverId": "srv-a", "lastUpdated": 5}, "garbage"],
        })

        result = uploader.upload_batch(EntityType.LOTS, selector.select_pending(EntityType.LOTS))

        assert lots.get("a").sync_status == SyncStatus.SYNCED
        assert lots.get("b").sync_status == SyncStatus.PENDING_CREATE
        assert result.unconfirmed == ["b"]

    @pytest.mark.unit
    @patch('agrosync.sync.batch_uploader.urlopen')
    def test_record_deleted_while_in_flight(self, mock_urlopen, uploader, store, selector):
        lots = store.table(EntityType.LOTS)
        lots.insert({"id": "a"})

        def respond(request, timeout):
            lots.delete("a")
            return make_response(confirm_all(request))

        mock_urlopen.side_effect = respond

        result = uploader.upload_batch(EntityType.LOTS, selector.select_pending(EntityType.LOTS))

        assert lots.get("a") is None
        assert result.synced == []

    @pytest.mark.unit
    def test_empty_batch_rejected(self, uploader):
        with pytest.raises(ValueError):
            uploader.upload_batch(EntityType.LOTS, [])

    @pytest.mark.unit
    def test_mixed_batch_rejected(self, uploader):
        with pytest.raises(ValueError):
            uploader.upload_batch(EntityType.LOTS, [SyncableRecord(EntityType.LABOR, "x")])


class TestUploadFailures:
    """Test cases for failed batches: nothing may change locally."""

    @pytest.fixture
    def pending(self, store, selector):
        store.table(EntityType.LOTS).insert({"id": "r1", "name": "A"})
        return selector.select_pending(EntityType.LOTS)

    def _assert_untouched(self, store):
        record = store.table(EntityType.LOTS).get("r1")
        assert record.sync_status == SyncStatus.PENDING_CREATE
        assert record.server_id is None

    @pytest.mark.unit
    @patch('agrosync.sync.batch_uploader.urlopen')
    def test_http_404_is_unknown_entity(self, mock_urlopen, uploader, store, pending):
        mock_urlopen.side_effect = _http_error("http://x", 404)

        with pytest.raises(UnknownEntityError) as excinfo:
            uploader.upload_batch(EntityType.LOTS, pending)

        assert excinfo.value.status == 404
        self._assert_untouched(store)

    @pytest.mark.unit
    @patch('agrosync.sync.batch_uploader.urlopen')
    def test_http_500_is_rejected(self, mock_urlopen, uploader, store, pending):
        mock_urlopen.side_effect = _http_error("http://x", 500, b'{"error": "Failed to sync records"}')

        with pytest.raises(ServerRejectedError) as excinfo:
            uploader.upload_batch(EntityType.LOTS, pending)

        assert not isinstance(excinfo.value, UnknownEntityError)
        assert excinfo.value.status == 500
        assert "Failed to sync records" in excinfo.value.body
        self._assert_untouched(store)

    @pytest.mark.unit
    @patch('agrosync.sync.batch_uploader.urlopen')
    def test_connection_refused_is_transport(self, mock_urlopen, uploader, store, pending):
        mock_urlopen.side_effect = URLError("Connection refused")

        with pytest.raises(TransportError):
            uploader.upload_batch(EntityType.LOTS, pending)
        self._assert_untouched(store)

    @pytest.mark.unit
    @patch('agrosync.sync.batch_uploader.urlopen')
    def test_timeout_is_transport(self, mock_urlopen, uploader, store, pending):
        mock_urlopen.side_effect = TimeoutError("timed out")

        with pytest.raises(TransportError):
            uploader.upload_batch(EntityType.LOTS, pending)
        self._assert_untouched(store)

    @pytest.mark.unit
    @patch('agrosync.sync.batch_uploader.urlopen')
    def test_success_false_is_rejected(self, mock_urlopen, uploader, store, pending):
        mock_urlopen.return_value = make_response({"success": False, "error": "bad batch"})

        with pytest.raises(ServerRejectedError, match="bad batch"):
            uploader.upload_batch(EntityType.LOTS, pending)
        self._assert_untouched(store)

    @pytest.mark.unit
    @patch('agrosync.sync.batch_uploader.urlopen')
    def test_missing_synced_list_is_malformed(self, mock_urlopen, uploader, store, pending):
        mock_urlopen.return_value = make_response({"success": True})

        with pytest.raises(MalformedResponseError):
            uploader.upload_batch(EntityType.LOTS, pending)
        self._assert_untouched(store)

    @pytest.mark.unit
    @patch('agrosync.sync.batch_uploader.urlopen')
    def test_non_json_body_is_malformed(self, mock_urlopen, uploader, store, pending):
        response = make_response({})
        response.read.return_value = b"<html>gateway</html>"
        mock_urlopen.return_value = response

        with pytest.raises(MalformedResponseError):
            uploader.upload_batch(EntityType.LOTS, pending)
        self._assert_untouched(store)

    @pytest.mark.unit
    @patch('agrosync.sync.batch_uploader.urlopen')
    def test_json_array_body_is_malformed(self, mock_urlopen, uploader, store, pending):
        mock_urlopen.return_value = make_response([1, 2])

        with pytest.raises(MalformedResponseError):
            uploader.upload_batch(EntityType.LOTS, pending)

    @pytest.mark.unit
    @patch('agrosync.sync.batch_uploader.urlopen')
    def test_every_failure_is_a_sync_error(self, mock_urlopen, uploader, pending):
        for failure in (_http_error("http://x", 503), URLError("down"), OSError("reset")):
            mock_urlopen.side_effect = failure
            with pytest.raises(SyncError):
                uploader.upload_batch(EntityType.LOTS, pending)
