"""
Mock Cloud API Server for local development and testing.

Implements the reconciliation contract the agent syncs against: an
all-or-nothing upsert keyed by the client's record id.

Usage:
    agrosync serve-mock --port 8080

Endpoints:
    GET  /health                   - Health check
    POST /api/v1/{entity}/sync     - Upsert a batch of records
    POST /api/export/sheets        - Accept a report payload
"""

import json
import logging
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Dict, List, Optional, Set, Tuple

from ..models import EntityType, LOCAL_ONLY_FIELDS

logger = logging.getLogger(__name__)

SYNC_PREFIX = "/api/v1/"
SYNC_SUFFIX = "/sync"


class ReconciliationBackend:
    """
    In-memory authoritative storage.

    Each client id gets a server id once; later uploads of the same id update
    the stored record and keep that server id. A batch is validated in full
    before any record is written.
    """

    def __init__(self, entities: Optional[Set[str]] = None):
        self.entities = set(entities) if entities is not None else {e.value for e in EntityType}
        self.tables: Dict[str, Dict[str, Dict[str, Any]]] = {name: {} for name in self.entities}
        self.reports: List[Dict[str, Any]] = []
        self.fail_entities: Set[str] = set()
        self._clock = 0
        self._next_server_id = 1
        self._lock = threading.Lock()

    def upsert(self, entity: str, body: Any) -> Tuple[int, Dict[str, Any]]:
        """
        Apply one batch.

        Returns:
            (HTTP status, JSON body)
        """
        if entity not in self.entities:
            return 404, {"error": f"Entity {entity} not found"}
        if not isinstance(body, list):
            return 400, {"error": "Body must be an array of records"}
        if any(not isinstance(r, dict) or not r.get("id") for r in body):
            return 400, {"error": "Every record needs an id"}
        if entity in self.fail_entities:
            return 500, {"error": "Failed to sync records", "details": "forced failure"}

        with self._lock:
            table = self.tables[entity]
            staged = {}
            for record in body:
                data = {k: v for k, v in record.items() if k not in LOCAL_ONLY_FIELDS}
                existing = staged.get(data["id"]) or table.get(data["id"])
                self._clock += 1
                staged[data["id"]] = dict(
                    data,
                    serverId=existing["serverId"] if existing else self._new_server_id(),
                    lastUpdated=self._clock,
                )
            table.update(staged)
            synced = [
                {"id": r["id"], "serverId": staged[r["id"]]["serverId"], "lastUpdated": staged[r["id"]]["lastUpdated"]}
                for r in body
            ]
        logger.info(f"Upserted {len(body)} {entity} record(s)")
        return 200, {"success": True, "synced": synced}

    def _new_server_id(self) -> str:
        server_id = f"srv-{self._next_server_id}"
        self._next_server_id += 1
        return server_id

    def accept_report(self, payload: Any) -> Tuple[int, Dict[str, Any]]:
        with self._lock:
            self.reports.append(payload)
        sync_type = payload.get("syncType", "UNKNOWN") if isinstance(payload, dict) else "UNKNOWN"
        logger.info(f"Received export request of type {sync_type}")
        return 200, {"success": True, "message": "Export payload received"}


class MockAPIHandler(BaseHTTPRequestHandler):
    """HTTP request handler for the mock cloud API."""

    server: 'MockAPIServer'

    def _send_json_response(self, status_code: int, data: dict):
        """Send a JSON response."""
        body = json.dumps(data).encode('utf-8')
        self.send_response(status_code)
        self.send_header('Content-Type', 'application/json')
        self.send_header('Content-Length', str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def do_GET(self):
        """Handle GET requests."""
        if self.path == '/health':
            self._send_json_response(200, {'status': 'healthy'})
        else:
            self._send_json_response(404, {'error': 'Not found'})

    def do_POST(self):
        """Handle POST requests."""
        content_length = int(self.headers.get('Content-Length', 0))
        raw = self.rfile.read(content_length)
        try:
            body = json.loads(raw.decode('utf-8'))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.error(f"Invalid JSON: {e}")
            self._send_json_response(400, {'error': 'Invalid JSON'})
            return

        backend = self.server.backend
        if self.path.startswith(SYNC_PREFIX) and self.path.endswith(SYNC_SUFFIX):
            entity = self.path[len(SYNC_PREFIX):-len(SYNC_SUFFIX)]
            status, data = backend.upsert(entity, body)
        elif self.path == '/api/export/sheets':
            status, data = backend.accept_report(body)
        else:
            status, data = 404, {'error': 'Not found'}
        self._send_json_response(status, data)

    def log_message(self, format, *args):
        """Override to use Python logging instead of stderr."""
        logger.debug(f"{self.address_string()} - {format % args}")


class MockAPIServer(ThreadingHTTPServer):
    """HTTP server bound to a ReconciliationBackend."""

    daemon_threads = True

    def __init__(self, host: str = '127.0.0.1', port: int = 8080, backend: Optional[ReconciliationBackend] = None):
        super().__init__((host, port), MockAPIHandler)
        self.backend = backend or ReconciliationBackend()
        self._thread: Optional[threading.Thread] = None

    @property
    def base_url(self) -> str:
        host, port = self.server_address[:2]
        return f"http://{host}:{port}"

    def start_background(self) -> None:
        """Serve from a daemon thread (used by tests)."""
        self._thread = threading.Thread(target=self.serve_forever, name="MockAPIServer", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self.shutdown()
        self.server_close()
        if self._thread:
            self._thread.join(timeout=5)


def run_server(host: str = '0.0.0.0', port: int = 8080):
    """Run the mock API server."""
    httpd = MockAPIServer(host, port)
    logger.info(f"Mock Cloud API server running on http://{host}:{port}")
    logger.info("Endpoints:")
    logger.info("  GET  /health                 - Health check")
    logger.info("  POST /api/v1/{entity}/sync   - Upsert a batch of records")
    logger.info("  POST /api/export/sheets      - Accept a report payload")
    try:
        httpd.serve_forever()
    except KeyboardInterrupt:
        logger.info("Server shutting down...")
    finally:
        httpd.server_close()
