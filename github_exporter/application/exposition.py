import logging
import math
from collections import defaultdict
from typing import Callable, Dict, Iterator, List, Optional, Sequence, Tuple

from prometheus_client import CollectorRegistry, generate_latest
from prometheus_client.metrics_core import Metric

from github_exporter.application.metric_cache import target_sort_key
from github_exporter.domain import metric_names as m
from github_exporter.domain.models import Target, TargetState
from github_exporter.infrastructure.rate_budget import RateBudget

logger = logging.getLogger(__name__)

Snapshot = Sequence[Tuple[Target, TargetState]]
# (target sort key, sorted label pairs, value)
_Row = Tuple[Tuple[str, str], Tuple[Tuple[str, str], ...], float]


class SnapshotCollector:
    """
    prometheus_client collector over a snapshot source.

    Families come out sorted by metric name and samples inside a family by
    target, then labels, so two renders of the same snapshot are identical.
    """

    def __init__(self, source: Callable[[], Snapshot], rate_budget: Optional[RateBudget] = None):
        self._source = source
        self._rate_budget = rate_budget

    def collect(self) -> Iterator[Metric]:
        rows = self._rows(self._source())
        for name in sorted(rows):
            family = Metric(name, m.HELP.get(name, name), "gauge")
            seen = set()
            for _, labels, value in sorted(rows[name], key=lambda row: (row[0], row[1])):
                # A repeated series makes the whole scrape unparseable
                if labels in seen:
                    logger.warning(f"Omitting duplicate series {name}{dict(labels)}.")
                    continue
                seen.add(labels)
                family.add_sample(name, dict(labels), value)
            yield family

    def _rows(self, snapshot: Snapshot) -> Dict[str, List[_Row]]:
        rows: Dict[str, List[_Row]] = defaultdict(list)

        for target, state in snapshot:
            key = target_sort_key(target)
            for sample in state.samples:
                if not math.isfinite(sample.value):
                    logger.warning(
                        f"Omitting {sample.name}{sample.label_dict} of {target}: "
                        f"unrepresentable value {sample.value}."
                    )
                    continue
                rows[sample.name].append((key, sample.labels, sample.value))

            meta = (("kind", target.kind.value), ("target", target.identifier))
            rows[m.TARGET_STALE].append((key, meta, 1.0 if state.stale else 0.0))
            rows[m.TARGET_SAMPLES].append((key, meta, float(len(state.samples))))
            if state.last_success_at is not None:
                rows[m.TARGET_LAST_SUCCESS].append((key, meta, state.last_success_at))
            if state.last_error_at is not None:
                error_labels = tuple(sorted(meta + (("error", state.last_error_kind or "unknown"),)))
                rows[m.TARGET_LAST_ERROR].append((key, error_labels, state.last_error_at))

        if self._rate_budget is not None:
            remaining, reset_at = self._rate_budget.view()
            if remaining is not None:
                rows[m.RATE_LIMIT_REMAINING].append((("", ""), (), float(remaining)))
            if reset_at is not None:
                rows[m.RATE_LIMIT_RESET].append((("", ""), (), reset_at))

        return rows


def render(snapshot: Snapshot, rate_budget: Optional[RateBudget] = None) -> bytes:
    """
    Serializes a cache snapshot into the Prometheus text exposition format.

    Args:
        snapshot (Snapshot): Output of MetricCache.snapshot().
        rate_budget (Optional[RateBudget]): Adds rate limit series when given.

    Returns:
        bytes: The exposition body.
    """
    registry = CollectorRegistry(auto_describe=False)
    registry.register(SnapshotCollector(lambda: snapshot, rate_budget))
    return generate_latest(registry)
