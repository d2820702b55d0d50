"""The discrete-event simulation loop.

:class:`SimEngine` runs one :class:`~flowsim.model.ProcessModel` to its
horizon and assembles a :class:`~flowsim.result.SimResult`. Every run is a
pure function of the model and its configuration: the only source of
randomness is one seeded stream, consumed in event order, and events that
tie on `(time, priority)` are processed in the order they were scheduled.

Entities move through the model as follows. A source creates an entity and
routes it to its first downstream node. An entity arriving at a queue goes
straight into service if the queue is empty and one of the queue's
downstream processes has a free resource (processes are tried in edge
order); otherwise it is buffered. An entity arriving directly at a process
is served at once or lost. When a process finishes a service it routes the
entity downstream and pulls the next entity from its upstream queues, in
edge order. A queue with no downstream process passes entities on to its
first downstream node. Entities are lost when a queue is full, when a
process without a buffer is busy, or when a node has no outgoing edge.

Statistics cover the measurement window from the warmup period to the
horizon. The clock, and the work-in-progress level, run from time 0.

"""
from collections import Counter
from typing import Any, Callable, Dict, List, Optional

from .bottleneck import MAX_BOTTLENECKS, QUEUE_THRESHOLD, UTILIZATION_THRESHOLD
from .bottleneck import detect_bottlenecks
from .config import model_config
from .environment import SimEnvironment
from .eventqueue import EventQueue, EventType, SimEvent
from .handlers import (
    InvariantError,
    NodeHandler,
    ProcessHandler,
    QueueHandler,
    SinkHandler,
    SourceHandler,
    make_handler,
)
from .model import Entity, ProcessModel, build_adjacency
from .result import NodeMetrics, SimResult, SimSummary, TimeSeries
from .rng import create_rng
from .stats import StatsCollector
from .util import linspace, record_to_dict

#: Default limit on the number of events processed by one run.
MAX_EVENTS = 1_000_000

#: Number of intervals of the sampled time series.
TIME_SERIES_INTERVALS = 100


class RunawaySimulationError(RuntimeError):
    """Raised when a run reaches its event limit before its horizon."""


class SimEngine:
    """Simulate a process model.

    :param model: The :class:`~flowsim.model.ProcessModel` to simulate.
    :param env:
        The :class:`~flowsim.environment.SimEnvironment` of the run. By
        default, an environment is created from the model's own
        configuration with tracing disabled.
    :param progress:
        Optional callback invoked with `(now, t_stop)` every
        `sim.progress.update_events` events and when the run ends.

    After :meth:`run` returns, :attr:`handlers`, :attr:`lost` and
    :attr:`in_flight` describe the final state of the run.

    """

    def __init__(
        self,
        model: ProcessModel,
        env: Optional[SimEnvironment] = None,
        progress: Optional[Callable[[float, float], None]] = None,
    ) -> None:
        self.model = model
        self.env = env if env is not None else SimEnvironment(model_config({}, model))
        self.progress = progress
        #: Node handlers keyed by node id, in model order.
        self.handlers: Dict[str, NodeHandler] = {}
        #: Entities lost during the measurement window, by node id.
        self.lost: Counter = Counter()
        #: Number of events processed by the last run.
        self.event_count = 0
        self._entities: Dict[str, Entity] = {}

    @property
    def in_flight(self) -> int:
        """Entities still in the system at the end of the run."""
        return len(self._entities)

    def sink_reports(self) -> Dict[str, Dict[str, Any]]:
        """Departure report per sink of the last run.

        Every sink reports `departed`. Sinks with `collectStats` also report
        `avgLeadTime` and a `departures` log of `{entityId, leadTime, time}`
        dicts.

        """
        reports = {}
        for node_id, handler in self.handlers.items():
            if not isinstance(handler, SinkHandler):
                continue
            report: Dict[str, Any] = {'departed': handler.departure_count}
            if handler.params.collect_stats:
                report['avgLeadTime'] = handler.avg_lead_time
                report['departures'] = [
                    record_to_dict(d) for d in handler.departures
                ]
            reports[node_id] = report
        return reports

    def run(self) -> SimResult:
        env = self.env
        config = env.config
        duration = env.until
        warmup = env.warmup
        max_events: int = config.setdefault('sim.max_events', MAX_EVENTS)
        update_events: int = config.setdefault('sim.progress.update_events', 1000)

        self._setup()
        tracemgr = env.tracemgr
        trace_info = tracemgr.get_trace_function('engine', log={'level': 'INFO'})
        trace_error = tracemgr.get_trace_function('engine', log={'level': 'ERROR'})
        trace_event = tracemgr.get_trace_function(
            'engine.event', log={'level': 'DEBUG'}
        )
        dispatch = {
            EventType.ENTITY_CREATED: self._on_entity_created,
            EventType.ENTITY_ENQUEUED: self._on_entity_enqueued,
            EventType.SERVICE_START: self._on_service_start,
            EventType.SERVICE_END: self._on_service_end,
            EventType.ENTITY_DEPARTED: self._on_entity_departed,
        }

        trace_info(
            f'run "{self.model.name}" seed={env.seed} duration={duration} '
            f'warmup={warmup}'
        )
        for handler in self.handlers.values():
            if isinstance(handler, SourceHandler):
                handler.init()

        measuring = False
        events = self._events
        while True:
            event = events.dequeue()
            if event is None or event.time > duration:
                break
            if self.event_count >= max_events:
                trace_error(f'aborted after {self.event_count} events')
                raise RunawaySimulationError(
                    f'Model "{self.model.id}" reached {self.event_count} events '
                    f'at time {env.now} before its horizon {duration}'
                )
            if not measuring and event.time >= warmup:
                self._begin_measurement(warmup)
                measuring = True
            env.now = event.time
            self.event_count += 1
            trace_event(event.type.value, event.entity_id or '-', event.node_id)
            dispatch[event.type](event)
            if self.progress and self.event_count % update_events == 0:
                self.progress(env.now, duration)

        if not measuring:
            self._begin_measurement(warmup)
        env.now = duration
        if self.progress:
            self.progress(env.now, duration)

        result = self._result(warmup, duration)
        trace_info(
            f'done events={self.event_count} created={self._stats.total_created} '
            f'departed={self._stats.total_departed} '
            f'lost={self._stats.total_lost} in_flight={self.in_flight}'
        )
        return result

    def _setup(self) -> None:
        env = self.env
        self._rng = create_rng(env.seed)
        self._events = EventQueue()
        self._stats = StatsCollector(env.warmup)
        self._entities = {}
        self._downstream, self._upstream = build_adjacency(self.model)
        self.lost = Counter()
        self.event_count = 0
        env.now = 0
        self._warmup = env.warmup
        self.handlers = {
            node.id: make_handler(node, self._rng, self._events, self._downstream)
            for node in self.model.nodes
        }

        tracemgr = env.tracemgr
        self._trace_lost = tracemgr.get_trace_function(
            'engine.lost', log={'level': 'WARNING'}
        )
        tracemgr.auto_probe('model.wip', self._stats, log={}, vcd={})
        for node_id, handler in self.handlers.items():
            if isinstance(handler, QueueHandler):
                tracemgr.auto_probe(
                    f'model.{node_id}.length', handler.queue, log={}, vcd={}
                )
            elif isinstance(handler, ProcessHandler):
                tracemgr.auto_probe(
                    f'model.{node_id}.busy', handler.pool, log={}, vcd={}
                )

    def _begin_measurement(self, now: float) -> None:
        for handler in self.handlers.values():
            handler.mark(now)

    def _handler(self, node_id: str, handler_type):
        handler = self.handlers.get(node_id)
        if not isinstance(handler, handler_type):
            raise InvariantError(
                f'Node "{node_id}" cannot handle {handler_type.__name__} events'
            )
        return handler

    def _entity(self, entity_id: str) -> Entity:
        try:
            return self._entities[entity_id]
        except KeyError:
            raise InvariantError(f'Unknown entity "{entity_id}"') from None

    def _lose(self, entity: Entity, node_id: str, reason: str) -> None:
        now = self.env.now
        del self._entities[entity.id]
        self._stats.record_loss(entity.id, now)
        if now >= self._warmup:
            self.lost[node_id] += 1
        self._trace_lost(entity.id, 'lost at', node_id, f'({reason})')

    def _on_entity_created(self, event: SimEvent) -> None:
        source = self._handler(event.node_id, SourceHandler)
        entity = source.handle_entity_created(event, self.env.until)
        self._entities[entity.id] = entity
        self._stats.record_creation(entity.id, event.time)
        if not source.targets:
            self._lose(entity, source.id, 'no route')

    def _on_entity_enqueued(self, event: SimEvent) -> None:
        entity = self._entity(event.entity_id)
        target = self.handlers.get(event.node_id)
        now = event.time
        if isinstance(target, QueueHandler):
            self._arrive_at_queue(target, entity, now)
        elif isinstance(target, ProcessHandler):
            if target.has_available_resource(now):
                target.start_service(entity, now)
            else:
                self._lose(entity, target.id, 'no free resource')
        elif isinstance(target, SinkHandler):
            self._events.enqueue(
                SimEvent(
                    now, EventType.ENTITY_DEPARTED, entity.id, target.id, event.priority
                )
            )
        else:
            raise InvariantError(
                f'Entity "{entity.id}" routed to non-receiving node "{event.node_id}"'
            )

    def _arrive_at_queue(self, queue: QueueHandler, entity: Entity, now: float) -> None:
        targets: List[str] = self._downstream[queue.id]
        processes = [
            self.handlers[t]
            for t in targets
            if isinstance(self.handlers[t], ProcessHandler)
        ]
        if not processes:
            if not targets:
                self._lose(entity, queue.id, 'no route')
            else:
                entity.current_node_id = targets[0]
                self._events.enqueue(
                    SimEvent(
                        now,
                        EventType.ENTITY_ENQUEUED,
                        entity.id,
                        targets[0],
                        entity.priority,
                    )
                )
            return
        if queue.queue.is_empty:
            for process in processes:
                if process.has_available_resource(now):
                    process.start_service(entity, now)
                    return
        if not queue.enqueue(entity, now):
            self._lose(entity, queue.id, 'queue full')

    def _on_service_start(self, event: SimEvent) -> None:
        self._entity(event.entity_id)
        process = self._handler(event.node_id, ProcessHandler)
        process.handle_service_start(event)

    def _on_service_end(self, event: SimEvent) -> None:
        entity = self._entity(event.entity_id)
        process = self._handler(event.node_id, ProcessHandler)
        if process.handle_service_end(event) is None:
            self._lose(entity, process.id, 'no route')
        for upstream_id in self._upstream[process.id]:
            queue = self.handlers[upstream_id]
            if (
                isinstance(queue, QueueHandler)
                and not queue.queue.is_empty
                and process.has_available_resource(event.time)
            ):
                process.start_service(queue.dequeue(event.time), event.time)
                break

    def _on_entity_departed(self, event: SimEvent) -> None:
        entity = self._entity(event.entity_id)
        sink = self._handler(event.node_id, SinkHandler)
        sink.handle_entity_departed(event, entity)
        self._stats.record_departure(entity.id, event.time)
        del self._entities[entity.id]

    def _node_metrics(self, end: float) -> Dict[str, NodeMetrics]:
        metrics = {}
        for node_id, handler in self.handlers.items():
            if isinstance(handler, SourceHandler):
                metrics[node_id] = NodeMetrics(processed=handler.created)
            elif isinstance(handler, QueueHandler):
                metrics[node_id] = NodeMetrics(
                    avg_queue_length=handler.avg_queue_length(end),
                    avg_wait_time=handler.avg_wait_time(),
                    processed=handler.processed,
                )
            elif isinstance(handler, ProcessHandler):
                queues = [
                    self.handlers[u]
                    for u in self._upstream[node_id]
                    if isinstance(self.handlers[u], QueueHandler)
                ]
                waited = sum(q.processed for q in queues)
                if waited:
                    avg_wait = sum(q.avg_wait_time() * q.processed for q in queues)
                    avg_wait /= waited
                else:
                    avg_wait = 0.0
                metrics[node_id] = NodeMetrics(
                    utilization=handler.utilization(end),
                    avg_queue_length=sum(q.avg_queue_length(end) for q in queues),
                    avg_wait_time=avg_wait,
                    avg_service_time=handler.avg_service_time,
                    processed=handler.processed,
                )
            else:
                metrics[node_id] = NodeMetrics(processed=handler.departure_count)
        return metrics

    def _result(self, warmup: float, duration: float) -> SimResult:
        config = self.env.config
        stats = self._stats
        node_metrics = self._node_metrics(duration)
        bottlenecks = detect_bottlenecks(
            node_metrics,
            config.setdefault(
                'sim.bottleneck.utilization_threshold', UTILIZATION_THRESHOLD
            ),
            config.setdefault('sim.bottleneck.queue_threshold', QUEUE_THRESHOLD),
            config.setdefault('sim.bottleneck.limit', MAX_BOTTLENECKS),
        )

        timestamps = linspace(warmup, duration, TIME_SERIES_INTERVALS)
        time_series = TimeSeries(
            timestamps=timestamps,
            wip=stats.sample_wip(timestamps),
            throughput_cumulative=stats.sample_throughput(timestamps),
        )

        window = duration - warmup
        summary = SimSummary(
            throughput=stats.total_departed / window if window > 0 else 0.0,
            avg_lead_time=stats.compute_avg_lead_time(),
            avg_wip=stats.compute_avg_wip(warmup, duration),
            total_entities=stats.total_created,
            simulated_time=duration,
        )
        return SimResult(summary, node_metrics, bottlenecks, time_series)
