"""
Connectivity gating for sync cycles.
"""

import logging
from typing import Optional
from urllib.error import URLError
from urllib.parse import urlsplit, urlunsplit
from urllib.request import Request, urlopen

from ..models import SyncState

logger = logging.getLogger(__name__)


def health_url_for(api_base_url: str) -> str:
    """``http://host:8080/api/v1`` -> ``http://host:8080/health``."""
    parts = urlsplit(api_base_url)
    return urlunsplit((parts.scheme, parts.netloc, "/health", "", ""))


class ConnectivityMonitor:
    """
    Answers "are we online?" at the start of a cycle.

    Runtime connectivity events set the flag held in ``SyncState``. While the
    flag says online, an optional health check against the backend confirms it.
    """

    HEALTH_TIMEOUT = 5.0

    def __init__(
        self,
        state: SyncState,
        health_url: Optional[str] = None,
        health_check: bool = True,
        timeout: float = HEALTH_TIMEOUT
    ):
        self.state = state
        self.health_url = health_url
        self.health_check = health_check and bool(health_url)
        self.timeout = timeout

    def set_online(self, online: bool) -> None:
        """Record a connectivity event."""
        if online != self.state.online:
            logger.info(f"Connectivity changed: {'online' if online else 'offline'}")
        self.state.set_online(online)

    def is_online(self) -> bool:
        if not self.state.online:
            return False
        if not self.health_check:
            return True
        return self._check_health()

    def _check_health(self) -> bool:
        """Test if the cloud API is reachable."""
        try:
            request = Request(self.health_url, method='GET')
            with urlopen(request, timeout=self.timeout) as response:
                return response.status == 200
        except (URLError, OSError, ValueError) as e:
            logger.debug(f"Health check failed: {e}")
            return False
