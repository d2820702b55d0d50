"""Post-run bottleneck classification."""
from typing import List, Mapping

from .result import Bottleneck, NodeMetrics

#: A bottleneck's utilization must exceed this fraction.
UTILIZATION_THRESHOLD = 0.85

#: A bottleneck's average queue length must exceed this many entities.
QUEUE_THRESHOLD = 1

#: Maximum number of bottlenecks reported.
MAX_BOTTLENECKS = 3


def detect_bottlenecks(
    node_metrics: Mapping[str, NodeMetrics],
    utilization_threshold: float = UTILIZATION_THRESHOLD,
    queue_threshold: float = QUEUE_THRESHOLD,
    limit: int = MAX_BOTTLENECKS,
) -> List[Bottleneck]:
    """Find the nodes that constrain throughput.

    A node qualifies when both its utilization and its average queue length
    exceed the thresholds. Qualifying nodes are ordered by descending
    utilization (ties keep `node_metrics` order) and at most `limit` are
    returned.

    """
    candidates = [
        Bottleneck(node_id, m.utilization, m.avg_queue_length)
        for node_id, m in node_metrics.items()
        if m.utilization > utilization_threshold
        and m.avg_queue_length > queue_threshold
    ]
    candidates.sort(key=lambda b: b.utilization, reverse=True)
    return candidates[:limit]
