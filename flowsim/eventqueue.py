"""Future event list for the simulation loop.

:class:`EventQueue` is a binary min-heap of :class:`SimEvent` records ordered
by `(time, priority)`. Events that tie on both keys are dequeued in the order
they were enqueued, so a given sequence of operations always yields the same
sequence of events.

"""
from enum import Enum
from heapq import heappop, heappush
from itertools import count
from typing import List, NamedTuple, Optional, Tuple


class EventType(Enum):
    ENTITY_CREATED = 'ENTITY_CREATED'
    ENTITY_ENQUEUED = 'ENTITY_ENQUEUED'
    SERVICE_START = 'SERVICE_START'
    SERVICE_END = 'SERVICE_END'
    ENTITY_DEPARTED = 'ENTITY_DEPARTED'


class SimEvent(NamedTuple):
    time: float
    type: EventType
    entity_id: str
    node_id: str
    priority: int = 0


class EventQueue:
    """Priority queue of simulation events."""

    def __init__(self) -> None:
        self._heap: List[Tuple[float, int, int, SimEvent]] = []
        self._seq = count()

    @property
    def size(self) -> int:
        """Number of pending events."""
        return len(self._heap)

    @property
    def is_empty(self) -> bool:
        return not self._heap

    def __len__(self) -> int:
        return len(self._heap)

    def enqueue(self, event: SimEvent) -> None:
        heappush(self._heap, (event.time, event.priority, next(self._seq), event))

    def dequeue(self) -> Optional[SimEvent]:
        """Remove and return the earliest event, or `None` if empty."""
        if not self._heap:
            return None
        return heappop(self._heap)[-1]

    def peek(self) -> Optional[SimEvent]:
        """Return the earliest event without removing it, or `None`."""
        return self._heap[0][-1] if self._heap else None

    def clear(self) -> None:
        self._heap.clear()

    def __repr__(self) -> str:
        return f'{self.__class__.__name__}(size={self.size})'
