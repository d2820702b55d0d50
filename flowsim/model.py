"""Declarative process models.

A :class:`ProcessModel` is a directed graph of nodes (sources, queues,
processes and sinks) joined by edges, plus the :class:`SimConfig` for running
it. Models are immutable; a run never modifies the model it is given.

Models are usually built from the JSON-compatible wire format used by the
surrounding application, whose field names are camelCase::

    model = ProcessModel.from_dict({
        'id': 'm1',
        'name': 'Checkout',
        'nodes': [
            {'id': 'src', 'type': 'source',
             'params': {'interArrivalTime': {'type': 'exponential',
                                             'mean': 5}}},
            ...
        ],
        'edges': [{'id': 'e1', 'from': 'src', 'to': 'q1'}, ...],
        'config': {'seed': 42, 'duration': 480, 'timeUnit': 'min',
                   'warmupPeriod': 60},
    })

:meth:`ProcessModel.to_dict` produces the same format.

"""
from typing import Any, Dict, List, Mapping, NamedTuple, Optional, Tuple, Union

from .distributions import DISTRIBUTIONS, Distribution
from .util import camel_to_snake, record_to_dict, snake_to_camel


class ModelError(ValueError):
    """Raised for malformed or unknown model structures."""


NODE_TYPES = ('source', 'queue', 'process', 'sink')

QUEUE_DISCIPLINES = ('FIFO', 'LIFO', 'PRIORITY')


class SourceParams(NamedTuple):
    inter_arrival_time: Distribution
    #: Priority assigned to every entity created by the source.
    priority: int = 0

    kind = 'source'


class QueueParams(NamedTuple):
    #: Maximum number of buffered entities; 0 means unlimited.
    capacity: int = 0
    discipline: str = 'FIFO'

    kind = 'queue'


class ProcessParams(NamedTuple):
    service_time: Distribution
    resource_count: int = 1
    name: str = 'Process'

    kind = 'process'


class SinkParams(NamedTuple):
    collect_stats: bool = True

    kind = 'sink'


NodeParams = Union[SourceParams, QueueParams, ProcessParams, SinkParams]

PARAMS_TYPES = {
    cls.kind: cls for cls in (SourceParams, QueueParams, ProcessParams, SinkParams)
}

_DISTRIBUTION_FIELDS = ('inter_arrival_time', 'service_time')


class SimNode(NamedTuple):
    id: str
    type: str
    params: NodeParams
    label: Optional[str] = None


class SimEdge(NamedTuple):
    id: str
    from_id: str
    to_id: str


class SimConfig(NamedTuple):
    seed: int = 42
    duration: float = 480
    time_unit: str = 'min'
    warmup_period: float = 60

    def merge(self, overrides: Mapping[str, Any]) -> 'SimConfig':
        """Return a copy with a partial mapping of fields applied.

        Keys may be given either in wire (camelCase) or attribute (snake_case)
        form.

        """
        changes = {}
        for key, value in overrides.items():
            attr = camel_to_snake(key)
            if attr not in self._fields:
                raise ModelError(f'Unknown config field "{key}"')
            changes[attr] = value
        return self._replace(**changes)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'SimConfig':
        return cls().merge(data)

    def to_dict(self) -> Dict[str, Any]:
        return record_to_dict(self)


class ProcessModel(NamedTuple):
    id: str
    name: str
    nodes: Tuple[SimNode, ...]
    edges: Tuple[SimEdge, ...]
    config: SimConfig = SimConfig()

    def node(self, node_id: str) -> SimNode:
        for node in self.nodes:
            if node.id == node_id:
                return node
        raise KeyError(node_id)

    def replace_params(self, node_id: str, **changes: Any) -> 'ProcessModel':
        """Return a copy of the model with some of a node's params replaced."""
        nodes = []
        found = False
        for node in self.nodes:
            if node.id == node_id:
                found = True
                try:
                    node = node._replace(params=node.params._replace(**changes))
                except ValueError as e:
                    raise ModelError(f'Node "{node_id}": {e}') from e
            nodes.append(node)
        if not found:
            raise ModelError(f'Unknown node "{node_id}"')
        return self._replace(nodes=tuple(nodes))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'ProcessModel':
        try:
            return cls(
                id=data['id'],
                name=data['name'],
                nodes=tuple(node_from_dict(n) for n in data.get('nodes', ())),
                edges=tuple(
                    SimEdge(id=e['id'], from_id=e['from'], to_id=e['to'])
                    for e in data.get('edges', ())
                ),
                config=SimConfig.from_dict(data.get('config', {})),
            )
        except KeyError as e:
            raise ModelError(f'Missing field {e}') from e

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'nodes': [node_to_dict(node) for node in self.nodes],
            'edges': [
                {'id': e.id, 'from': e.from_id, 'to': e.to_id} for e in self.edges
            ],
            'config': self.config.to_dict(),
        }


class Entity:
    """Transient object flowing through the model during one run."""

    __slots__ = ('id', 'created_at', 'current_node_id', 'priority')

    def __init__(
        self, id: str, created_at: float, current_node_id: str, priority: int = 0
    ) -> None:
        self.id = id
        self.created_at = created_at
        self.current_node_id = current_node_id
        self.priority = priority

    def __repr__(self) -> str:
        return (
            f'{self.__class__.__name__}(id={self.id!r} '
            f'created_at={self.created_at} at={self.current_node_id!r})'
        )


def distribution_from_dict(data: Mapping[str, Any]) -> Distribution:
    kind = data.get('type')
    try:
        dist_type = DISTRIBUTIONS[kind]
    except KeyError:
        raise ModelError(f'Unknown distribution type: {kind!r}') from None
    fields = {k: v for k, v in data.items() if k != 'type'}
    try:
        return dist_type(**fields)
    except TypeError as e:
        raise ModelError(f'Invalid {kind} distribution {dict(data)}: {e}') from e


def distribution_to_dict(dist: Distribution) -> Dict[str, Any]:
    data: Dict[str, Any] = {'type': dist.kind}
    data.update(dist._asdict())
    return data


def node_from_dict(data: Mapping[str, Any]) -> SimNode:
    try:
        node_id = data['id']
        node_type = data['type']
    except KeyError as e:
        raise ModelError(f'Node is missing field {e}') from e
    try:
        params_type = PARAMS_TYPES[node_type]
    except KeyError:
        raise ModelError(f'Unknown node type: {node_type!r}') from None

    fields: Dict[str, Any] = {}
    for key, value in data.get('params', {}).items():
        attr = camel_to_snake(key)
        if attr not in params_type._fields:
            raise ModelError(f'Node "{node_id}": unknown {node_type} param "{key}"')
        if attr in _DISTRIBUTION_FIELDS:
            value = distribution_from_dict(value)
        elif attr == 'capacity' and value in (None, float('inf')):
            value = 0
        fields[attr] = value
    try:
        params = params_type(**fields)
    except TypeError as e:
        raise ModelError(f'Node "{node_id}": {e}') from e
    return SimNode(id=node_id, type=node_type, params=params, label=data.get('label'))


def node_to_dict(node: SimNode) -> Dict[str, Any]:
    params: Dict[str, Any] = {}
    for attr, value in node.params._asdict().items():
        if attr in _DISTRIBUTION_FIELDS:
            value = distribution_to_dict(value)
        params[snake_to_camel(attr)] = value
    data: Dict[str, Any] = {'id': node.id, 'type': node.type, 'params': params}
    if node.label is not None:
        data['label'] = node.label
    return data


def build_adjacency(
    model: ProcessModel,
) -> Tuple[Dict[str, List[str]], Dict[str, List[str]]]:
    """Build forward and reverse adjacency lists keyed by node id.

    Neighbors are listed in edge order; edges referring to unknown nodes are
    ignored.

    """
    downstream: Dict[str, List[str]] = {node.id: [] for node in model.nodes}
    upstream: Dict[str, List[str]] = {node.id: [] for node in model.nodes}
    for edge in model.edges:
        if edge.from_id in downstream and edge.to_id in upstream:
            downstream[edge.from_id].append(edge.to_id)
            upstream[edge.to_id].append(edge.from_id)
    return downstream, upstream
