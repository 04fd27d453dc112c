"""
Backoff policy applied between sync cycles.
"""
import threading
import time
from typing import Callable, Dict

from ..models import EntityType


class RetryPolicy:
    """
    Decides whether an entity type is attempted in the current cycle.

    After ``n`` consecutive failures the entity type is skipped until
    ``base_delay * multiplier ** (n - 1)`` seconds (capped at ``max_delay``)
    have passed. With ``base_delay=0`` every cycle retries every entity type.
    Retries never happen inside a cycle.
    """

    def __init__(
        self,
        base_delay: float = 0.0,
        max_delay: float = 3600.0,
        multiplier: float = 2.0,
        clock: Callable[[], float] = time.monotonic
    ):
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.multiplier = multiplier
        self._clock = clock
        self._failures: Dict[EntityType, int] = {}
        self._not_before: Dict[EntityType, float] = {}
        self._lock = threading.Lock()

    def should_attempt(self, entity_type: EntityType) -> bool:
        with self._lock:
            return self._clock() >= self._not_before.get(entity_type, 0.0)

    def record_failure(self, entity_type: EntityType) -> float:
        """
        Register a failed batch.

        Returns:
            Seconds before the entity type is attempted again
        """
        with self._lock:
            failures = self._failures.get(entity_type, 0) + 1
            self._failures[entity_type] = failures
            delay = 0.0
            if self.base_delay > 0:
                delay = min(self.base_delay * self.multiplier ** (failures - 1), self.max_delay)
            self._not_before[entity_type] = self._clock() + delay
            return delay

    def record_success(self, entity_type: EntityType) -> None:
        with self._lock:
            self._failures.pop(entity_type, None)
            self._not_before.pop(entity_type, None)

    def failures(self, entity_type: EntityType) -> int:
        with self._lock:
            return self._failures.get(entity_type, 0)
