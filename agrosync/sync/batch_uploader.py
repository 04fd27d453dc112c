"""
Batch uploader for the per-entity reconciliation endpoints.

One request per entity type per cycle:
- Strips local-only fields and normalizes dates and large integers
- Sends the batch to ``POST {api_base}/{entity}/sync``
- On success writes server identity and logical time back to the store
- On any failure leaves every record of the batch untouched
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from ..errors import (
    MalformedResponseError,
    ServerRejectedError,
    TransportError,
    UnknownEntityError,
)
from ..models import ENTITY_SPECS, LOCAL_ONLY_FIELDS, EntityType, SyncableRecord, SyncStatus
from ..store import LocalRecordStore
from ..utils import to_iso, utc_now_iso

logger = logging.getLogger(__name__)


@dataclass
class BatchResult:
    """Outcome of one accepted batch."""
    entity_type: EntityType
    submitted: int
    synced: List[SyncableRecord] = field(default_factory=list)
    still_pending: List[str] = field(default_factory=list)
    unconfirmed: List[str] = field(default_factory=list)
    synced_at: str = field(default_factory=utc_now_iso)

    @property
    def complete(self) -> bool:
        """Every submitted record is now synced."""
        return len(self.synced) == self.submitted


class BatchUploader:
    """
    HTTPS client for the reconciliation API.

    Failures raise a ``SyncError`` subclass; callers decide how to isolate them.
    """

    DEFAULT_API_BASE = "http://localhost:8080/api/v1"
    REQUEST_TIMEOUT = 30.0  # seconds
    # Largest integer a JSON consumer using IEEE doubles reads exactly.
    MAX_SAFE_INTEGER = 2 ** 53 - 1

    def __init__(
        self,
        store: LocalRecordStore,
        api_base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: float = REQUEST_TIMEOUT
    ):
        """
        Initialize the uploader.

        Args:
            store: Record store receiving the confirmations
            api_base_url: Base URL, e.g. ``https://host/api/v1``
            api_key: Bearer token for authentication
            timeout: Per-request timeout in seconds
        """
        self.store = store
        self.api_base_url = (api_base_url or self.DEFAULT_API_BASE).rstrip('/')
        self.api_key = api_key
        self.timeout = timeout

    @staticmethod
    def json_serialize_fallback(obj: Any) -> Any:
        """
        JSON serialization fallback for non-standard types.

        Raises:
            TypeError: If object is not serializable
        """
        if isinstance(obj, Decimal):
            return float(obj)
        if isinstance(obj, (date, datetime)):
            return to_iso(obj)
        raise TypeError(f"Object of type {obj.__class__.__name__} is not JSON serializable")

    def _build_headers(self) -> Dict[str, str]:
        """Build HTTP headers for the request."""
        headers = {
            "Content-Type": "application/json",
            "User-Agent": "AgroSync/0.1"
        }
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def endpoint_for(self, entity_type: EntityType) -> str:
        return f"{self.api_base_url}/{ENTITY_SPECS[entity_type].endpoint}/sync"

    @classmethod
    def _wire_safe(cls, value: Any) -> Any:
        if isinstance(value, bool):
            return value
        if isinstance(value, int) and abs(value) > cls.MAX_SAFE_INTEGER:
            return str(value)
        if isinstance(value, dict):
            return {k: cls._wire_safe(v) for k, v in value.items()}
        if isinstance(value, (list, tuple)):
            return [cls._wire_safe(v) for v in value]
        return value

    def to_wire(self, record: SyncableRecord) -> Dict[str, Any]:
        """Transmitted shape of a record: local shape minus local-only fields."""
        payload = {k: v for k, v in record.to_dict().items() if k not in LOCAL_ONLY_FIELDS}
        for field_name in ENTITY_SPECS[record.entity_type].date_fields:
            value = payload.get(field_name)
            if value in (None, ""):
                continue
            try:
                payload[field_name] = to_iso(value)
            except (TypeError, ValueError):
                logger.warning(
                    f"Leaving unparseable {field_name}={value!r} on "
                    f"{record.entity_type.value} {record.id} as-is"
                )
        return self._wire_safe(payload)

    def _send_request(self, url: str, body: List[Dict[str, Any]]) -> Dict[str, Any]:
        """
        POST a batch and decode the JSON response.

        Raises:
            UnknownEntityError: HTTP 404
            ServerRejectedError: Any other non-2xx status
            TransportError: No response (DNS, refused, timeout)
            MalformedResponseError: 2xx with a body that is not a JSON object
        """
        data = json.dumps(body, default=self.json_serialize_fallback).encode('utf-8')
        request = Request(url, data=data, headers=self._build_headers(), method='POST')
        try:
            with urlopen(request, timeout=self.timeout) as response:
                raw = response.read()
                status = response.status
        except HTTPError as e:
            detail = e.read().decode('utf-8', errors='replace') if e.fp else ""
            if e.code == 404:
                raise UnknownEntityError(f"Endpoint not found: {url}", status=404, body=detail) from e
            raise ServerRejectedError(f"HTTP {e.code} {e.reason} from {url}", status=e.code, body=detail) from e
        except (URLError, TimeoutError, OSError) as e:
            reason = getattr(e, 'reason', e)
            raise TransportError(f"Could not reach {url}: {reason}") from e

        if not 200 <= status < 300:
            raise ServerRejectedError(f"Unexpected response status {status} from {url}", status=status)
        try:
            result = json.loads(raw.decode('utf-8'))
        except (UnicodeDecodeError, ValueError) as e:
            raise MalformedResponseError(f"Response from {url} is not JSON: {e}") from e
        if not isinstance(result, dict):
            raise MalformedResponseError(f"Response from {url} is not a JSON object")
        return result

    def upload_batch(self, entity_type: EntityType, records: List[SyncableRecord]) -> BatchResult:
        """
        Upload pending records of one entity type and apply the confirmations.

        Args:
            entity_type: Entity type of every record in the batch
            records: Non-empty snapshot taken by the delta selector

        Returns:
            BatchResult describing which records are now synced

        Raises:
            ValueError: If the batch is empty or mixes entity types
            SyncError: If the request fails or the server rejects the batch;
                no record is modified in that case
        """
        if not records:
            raise ValueError("Cannot upload an empty batch")
        foreign = [r.id for r in records if r.entity_type != entity_type]
        if foreign:
            raise ValueError(f"Records {foreign} do not belong to {entity_type.value}")

        url = self.endpoint_for(entity_type)
        logger.info(f"Uploading {len(records)} {entity_type.value} record(s) to {url}")
        response = self._send_request(url, [self.to_wire(r) for r in records])

        if response.get("success") is not True:
            raise ServerRejectedError(
                f"Server refused {entity_type.value} batch: {response.get('error', 'success=false')}",
                body=json.dumps(response)
            )
        synced = response.get("synced")
        if not isinstance(synced, list):
            raise MalformedResponseError(f"{entity_type.value} response has no 'synced' list")

        confirmations: Dict[str, Dict[str, Any]] = {}
        for item in synced:
            if isinstance(item, dict) and item.get("id") is not None:
                confirmations[str(item["id"])] = item
            else:
                logger.warning(f"Ignoring malformed confirmation in {entity_type.value} response: {item!r}")

        result = BatchResult(entity_type=entity_type, submitted=len(records))
        table = self.store.table(entity_type)
        with self.store.transaction():
            for record in records:
                confirmation = confirmations.get(record.id)
                if confirmation is None:
                    result.unconfirmed.append(record.id)
                    continue
                updated = table.apply_confirmation(
                    record.id,
                    confirmation.get("serverId"),
                    self._logical_time(confirmation.get("lastUpdated")),
                    record.revision
                )
                if updated is None:
                    continue
                if updated.sync_status == SyncStatus.SYNCED:
                    result.synced.append(updated)
                else:
                    result.still_pending.append(record.id)

        if result.unconfirmed:
            logger.warning(
                f"{entity_type.value}: {len(result.unconfirmed)} record(s) missing from confirmation, kept pending"
            )
        logger.info(f"{entity_type.value}: {len(result.synced)}/{result.submitted} record(s) synced")
        return result

    @staticmethod
    def _logical_time(value: Any) -> Optional[int]:
        if value is None:
            return None
        try:
            return int(value)
        except (TypeError, ValueError):
            logger.warning(f"Ignoring non-integer lastUpdated {value!r}")
            return None
