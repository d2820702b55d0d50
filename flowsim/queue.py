"""Bounded entity buffer with a selectable queueing discipline.

:class:`EntityQueue` holds the entities waiting at a queue node. Entities are
removed in FIFO, LIFO or PRIORITY order. Smaller priority values are served
first; ties go to the entity that was enqueued earliest.

The queue records a step-function history of its length and the time each
entity spent waiting, from which the time-weighted average length and the
mean wait are derived.

"""
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from .model import QUEUE_DISCIPLINES, Entity

Time = Union[int, float]


class EntityQueue:
    """Buffer of entities waiting for service.

    :param capacity: Maximum number of entities; 0 means unlimited.
    :param discipline: One of "FIFO", "LIFO" or "PRIORITY".
    :param name: Optional name to associate with the queue.

    """

    def __init__(
        self, capacity: int = 0, discipline: str = 'FIFO', name: Optional[str] = None
    ) -> None:
        if discipline not in QUEUE_DISCIPLINES:
            raise ValueError(f'Unknown queue discipline "{discipline}"')
        self.capacity = capacity
        self.discipline = discipline
        self.name = name
        self.items: List[Entity] = []
        #: `(time, length)` history; each length holds until the next entry.
        self.snapshots: List[Tuple[Time, int]] = [(0, 0)]
        #: Longest length ever observed.
        self.peak_length = 0
        self._enqueue_times: Dict[str, Time] = {}
        self._total_wait: float = 0
        self._wait_count = 0
        self._start: Time = 0
        self._change_hook: Optional[Callable[[], Any]] = None

    @property
    def size(self) -> int:
        """Number of entities in the queue."""
        return len(self.items)

    @property
    def is_empty(self) -> bool:
        return not self.items

    @property
    def is_full(self) -> bool:
        return self.capacity > 0 and len(self.items) >= self.capacity

    @property
    def wait_count(self) -> int:
        """Number of entities dequeued since the measurement start."""
        return self._wait_count

    def enqueue(self, entity: Entity, now: Time) -> bool:
        """Add `entity` at time `now`.

        :returns: False, leaving the queue unchanged, if the queue is full.

        """
        if self.is_full:
            return False
        self.items.append(entity)
        self._enqueue_times[entity.id] = now
        self._snapshot(now)
        return True

    def dequeue(self, now: Time) -> Optional[Entity]:
        """Remove the next entity per the discipline, or None if empty."""
        if not self.items:
            return None
        if self.discipline == 'FIFO':
            index = 0
        elif self.discipline == 'LIFO':
            index = len(self.items) - 1
        else:
            index = min(range(len(self.items)), key=lambda i: self.items[i].priority)
        entity = self.items.pop(index)
        self._total_wait += now - self._enqueue_times.pop(entity.id)
        self._wait_count += 1
        self._snapshot(now)
        return entity

    def mark(self, now: Time) -> None:
        """Start measuring at time `now`, discarding earlier history."""
        self.snapshots = [(now, len(self.items))]
        self._total_wait = 0
        self._wait_count = 0
        self._start = now

    def avg_length(self, end: Time) -> float:
        """Time-weighted average length from the measurement start to `end`."""
        span = end - self._start
        if span <= 0:
            return 0.0
        area = 0.0
        points = self.snapshots + [(end, len(self.items))]
        for (t0, length), (t1, _) in zip(points, points[1:]):
            area += length * (t1 - t0)
        return area / span

    def avg_wait(self) -> float:
        """Mean wait of the entities dequeued since the measurement start."""
        if self._wait_count == 0:
            return 0.0
        return self._total_wait / self._wait_count

    def _snapshot(self, now: Time) -> None:
        length = len(self.items)
        if self.snapshots[-1][0] == now:
            self.snapshots[-1] = (now, length)
        else:
            self.snapshots.append((now, length))
        self.peak_length = max(self.peak_length, length)
        if self._change_hook:
            self._change_hook()

    def __repr__(self) -> str:
        return (
            f'{self.__class__.__name__}('
            f'name={self.name!r} size={self.size} capacity={self.capacity})'
        )
