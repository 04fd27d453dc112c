"""
Fire-and-forget POST to the reporting sink.
"""

import json
import logging
from typing import Any, Dict, Optional

import requests

logger = logging.getLogger(__name__)


class ReportNotifier:
    """
    Posts one JSON payload per call. The response body is ignored; a request
    that does not raise counts as delivered. No retries.
    """

    DEFAULT_TIMEOUT = 15.0  # seconds

    def __init__(
        self,
        url: Optional[str],
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None
    ):
        self.url = url
        self.timeout = timeout
        self.session = session or requests.Session()

    @property
    def configured(self) -> bool:
        return bool(self.url)

    def notify(self, payload: Dict[str, Any]) -> bool:
        """
        Send ``payload`` to the sink.

        Returns:
            True if the request went out without a transport error
        """
        if not self.url:
            logger.debug("Report sink not configured, skipping export")
            return False
        try:
            self.session.post(
                self.url,
                data=json.dumps(payload, default=str),
                headers={"Content-Type": "text/plain;charset=utf-8"},
                timeout=self.timeout,
            )
            return True
        except requests.RequestException as e:
            logger.warning(f"Report export to {self.url} failed: {e}")
            return False

    def close(self) -> None:
        self.session.close()
