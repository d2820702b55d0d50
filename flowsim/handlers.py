"""Per-node behavior for the simulation engine.

Each node of a :class:`~flowsim.model.ProcessModel` is driven by one handler
instance, created with :func:`make_handler`. Handlers own the node's run-time
state (buffers, resource pools, departure logs) and schedule follow-on events
on the shared :class:`~flowsim.eventqueue.EventQueue`. Routing between nodes
always uses the first-listed outgoing edge.

The engine decides *when* a handler is invoked; handlers never inspect other
nodes.

"""
from typing import Dict, List, NamedTuple, Optional, Union

from .distributions import sample
from .eventqueue import EventQueue, EventType, SimEvent
from .model import Entity, ModelError, SimNode
from .pool import ResourcePool
from .queue import EntityQueue
from .rng import Mulberry32

Adjacency = Dict[str, List[str]]


class InvariantError(RuntimeError):
    """Raised when event dispatch breaks an internal invariant."""


class _Handler:
    def __init__(self, node: SimNode) -> None:
        self.node = node
        self.params = node.params

    @property
    def id(self) -> str:
        return self.node.id

    def mark(self, now: float) -> None:
        """Begin the measurement window at `now`."""

    def __repr__(self) -> str:
        return f'{self.__class__.__name__}({self.node.id!r})'


class SourceHandler(_Handler):
    """Generates entities with sampled inter-arrival times."""

    def __init__(
        self, node: SimNode, rng: Mulberry32, events: EventQueue, adjacency: Adjacency
    ) -> None:
        super().__init__(node)
        self.rng = rng
        self.events = events
        self.targets = adjacency.get(node.id, [])
        #: Entities created since the measurement start.
        self.created = 0
        self._counter = 0

    def init(self) -> None:
        """Schedule the first arrival at time 0."""
        self.events.enqueue(SimEvent(0, EventType.ENTITY_CREATED, '', self.node.id))

    def handle_entity_created(self, event: SimEvent, duration: float) -> Entity:
        """Create an entity, schedule the next arrival and route the entity.

        The next arrival is scheduled only if it falls before `duration`.
        The new entity is routed to the first downstream node, if any.

        """
        self._counter += 1
        self.created += 1
        priority = self.params.priority
        entity = Entity(
            f'e-{self.node.id}-{self._counter}', event.time, self.node.id, priority
        )

        next_time = event.time + sample(self.params.inter_arrival_time, self.rng)
        if next_time < duration:
            self.events.enqueue(
                SimEvent(next_time, EventType.ENTITY_CREATED, '', self.node.id)
            )

        if self.targets:
            entity.current_node_id = self.targets[0]
            self.events.enqueue(
                SimEvent(
                    event.time,
                    EventType.ENTITY_ENQUEUED,
                    entity.id,
                    self.targets[0],
                    priority,
                )
            )
        return entity

    def mark(self, now: float) -> None:
        self.created = 0


class QueueHandler(_Handler):
    """Buffers entities in front of processes."""

    def __init__(self, node: SimNode) -> None:
        super().__init__(node)
        self.queue = EntityQueue(
            self.params.capacity, self.params.discipline, name=node.id
        )

    @property
    def processed(self) -> int:
        """Entities dequeued since the measurement start."""
        return self.queue.wait_count

    def enqueue(self, entity: Entity, now: float) -> bool:
        entity.current_node_id = self.node.id
        return self.queue.enqueue(entity, now)

    def dequeue(self, now: float) -> Optional[Entity]:
        return self.queue.dequeue(now)

    def avg_queue_length(self, end: float) -> float:
        return self.queue.avg_length(end)

    def avg_wait_time(self) -> float:
        return self.queue.avg_wait()

    def mark(self, now: float) -> None:
        self.queue.mark(now)


class ProcessHandler(_Handler):
    """Serves entities with a pool of identical resources.

    A resource is reserved when a service start is scheduled and acquired
    when the start event is handled, so that several entities arriving at
    the same instant never claim the same resource.

    """

    def __init__(
        self, node: SimNode, rng: Mulberry32, events: EventQueue, adjacency: Adjacency
    ) -> None:
        super().__init__(node)
        self.rng = rng
        self.events = events
        self.targets = adjacency.get(node.id, [])
        self.pool = ResourcePool(self.params.resource_count, name=node.id)
        #: Services completed since the measurement start.
        self.processed = 0
        self._reserved = 0
        self._total_service_time = 0.0
        self._service_count = 0

    @property
    def avg_service_time(self) -> float:
        if self._service_count == 0:
            return 0.0
        return self._total_service_time / self._service_count

    def has_available_resource(self, now: float) -> bool:
        return self.pool.available - self._reserved > 0

    def start_service(self, entity: Entity, now: float) -> None:
        """Reserve a resource and schedule a SERVICE_START for `entity`."""
        if not self.has_available_resource(now):
            raise InvariantError(
                f'Process "{self.node.id}": no resource to reserve at {now}'
            )
        self._reserved += 1
        entity.current_node_id = self.node.id
        self.events.enqueue(
            SimEvent(
                now, EventType.SERVICE_START, entity.id, self.node.id, entity.priority
            )
        )

    def handle_service_start(self, event: SimEvent) -> float:
        """Acquire a resource and schedule the end of service.

        :returns: The sampled service time.
        :raises InvariantError: If no resource is free.

        """
        if self._reserved > 0:
            self._reserved -= 1
        if not self.pool.acquire(event.time):
            raise InvariantError(
                f'Process "{self.node.id}": no resource available at {event.time}'
            )
        service_time = sample(self.params.service_time, self.rng)
        self._total_service_time += service_time
        self._service_count += 1
        self.events.enqueue(
            SimEvent(
                event.time + service_time,
                EventType.SERVICE_END,
                event.entity_id,
                self.node.id,
                event.priority,
            )
        )
        return service_time

    def handle_service_end(self, event: SimEvent) -> Optional[str]:
        """Release the resource and route the entity downstream.

        :returns: The downstream node id, or None if the node has no
            outgoing edge.

        """
        self.pool.release(event.time)
        self.processed += 1
        if not self.targets:
            return None
        target = self.targets[0]
        self.events.enqueue(
            SimEvent(
                event.time,
                EventType.ENTITY_ENQUEUED,
                event.entity_id,
                target,
                event.priority,
            )
        )
        return target

    def utilization(self, end: float) -> float:
        return self.pool.utilization(end)

    def mark(self, now: float) -> None:
        self.pool.mark(now)
        self.processed = 0
        self._total_service_time = 0.0
        self._service_count = 0


class Departure(NamedTuple):
    entity_id: str
    lead_time: float
    time: float


class SinkHandler(_Handler):
    """Terminal node recording departures."""

    def __init__(self, node: SimNode) -> None:
        super().__init__(node)
        #: Departures since the measurement start; empty unless collecting.
        self.departures: List[Departure] = []
        self.departed = 0

    @property
    def departure_count(self) -> int:
        return self.departed

    @property
    def avg_lead_time(self) -> float:
        if not self.departures:
            return 0.0
        return sum(d.lead_time for d in self.departures) / len(self.departures)

    def handle_entity_departed(self, event: SimEvent, entity: Entity) -> float:
        """Record the departure of `entity` and return its lead time."""
        lead_time = event.time - entity.created_at
        entity.current_node_id = self.node.id
        self.departed += 1
        if self.params.collect_stats:
            self.departures.append(Departure(entity.id, lead_time, event.time))
        return lead_time

    def mark(self, now: float) -> None:
        self.departures.clear()
        self.departed = 0


NodeHandler = Union[SourceHandler, QueueHandler, ProcessHandler, SinkHandler]


def make_handler(
    node: SimNode, rng: Mulberry32, events: EventQueue, adjacency: Adjacency
) -> NodeHandler:
    """Create the handler matching `node.type`."""
    if node.type == 'source':
        return SourceHandler(node, rng, events, adjacency)
    elif node.type == 'queue':
        return QueueHandler(node)
    elif node.type == 'process':
        return ProcessHandler(node, rng, events, adjacency)
    elif node.type == 'sink':
        return SinkHandler(node)
    raise ModelError(f'Unknown node type: {node.type!r}')
