import logging
import threading
from typing import Dict, Iterable, List, Tuple

from github_exporter.domain.exceptions import FetchError, UnknownTargetException
from github_exporter.domain.models import MetricSample, Target, TargetState
from github_exporter.infrastructure.clock import Clock, SYSTEM_CLOCK

logger = logging.getLogger(__name__)


def target_sort_key(target: Target) -> Tuple[str, str]:
    return target.identifier, target.kind.value


class MetricCache:
    """
    Last known samples and freshness of every configured target.

    States are immutable values swapped under a lock, so a reader holding a
    snapshot never sees a half-written entry and never blocks a writer for
    longer than a dictionary copy.
    """

    def __init__(self, targets: Iterable[Target], clock: Clock = SYSTEM_CLOCK):
        self._clock = clock
        self._lock = threading.Lock()
        self._states: Dict[Target, TargetState] = {target: TargetState() for target in targets}

    def update(self, target: Target, samples: Iterable[MetricSample]) -> None:
        """Replaces the target's samples with a complete successful fetch."""
        state = TargetState(samples=tuple(samples), last_success_at=self._clock.time(), stale=False)
        with self._lock:
            previous = self._require(target)
            self._states[target] = state.model_copy(update={
                "last_error": previous.last_error,
                "last_error_kind": previous.last_error_kind,
                "last_error_at": previous.last_error_at,
            })

    def update_failure(self, target: Target, error: Exception) -> None:
        """Marks the target stale, keeping the last good samples available."""
        kind = error.kind if isinstance(error, FetchError) else type(error).__name__
        now = self._clock.time()
        with self._lock:
            previous = self._require(target)
            self._states[target] = previous.model_copy(update={
                "last_error": str(error),
                "last_error_kind": kind,
                "last_error_at": now,
                "stale": True,
            })

    def snapshot(self) -> List[Tuple[Target, TargetState]]:
        """Consistent point-in-time view, ordered by target identifier."""
        with self._lock:
            items = list(self._states.items())
        return sorted(items, key=lambda item: target_sort_key(item[0]))

    def get(self, target: Target) -> TargetState:
        with self._lock:
            return self._require(target)

    def _require(self, target: Target) -> TargetState:
        try:
            return self._states[target]
        except KeyError:
            raise UnknownTargetException(target.identifier) from None
