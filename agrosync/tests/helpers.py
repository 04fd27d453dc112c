"""
HTTP doubles shared by the uploader and orchestrator tests.
"""
import json
from unittest.mock import MagicMock, Mock


def make_response(body, status=200):
    """urlopen() context-manager double returning ``body`` as JSON."""
    mock_response = MagicMock()
    mock_response.status = status
    mock_response.read.return_value = json.dumps(body).encode('utf-8')
    mock_response.__enter__ = Mock(return_value=mock_response)
    mock_response.__exit__ = Mock(return_value=False)
    return mock_response


def confirm_all(request, server_ids=None, clock=1000):
    """Build a success body confirming every record of a captured request."""
    records = json.loads(request.data.decode('utf-8'))
    server_ids = server_ids or {}
    return {
        "success": True,
        "synced": [
            {"id": r["id"], "serverId": server_ids.get(r["id"], f"srv-{r['id']}"), "lastUpdated": clock}
            for r in records
        ],
    }
