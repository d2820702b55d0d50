"""Structural and semantic checks for process models.

:func:`validate_model` is run before a model is simulated. It never raises
for a malformed model; every violated rule is reported as one message in
the returned :class:`ValidationResult`.

Models may be given either as a :class:`~flowsim.model.ProcessModel` or in
wire format (a dict as accepted by :meth:`ProcessModel.from_dict`). The wire
format is checked before it is parsed, so unknown node or distribution types
are reported rather than raised.

"""
from numbers import Integral, Real
from typing import Any, List, Mapping, NamedTuple, Union

from .distributions import DISTRIBUTIONS
from .model import NODE_TYPES, QUEUE_DISCIPLINES, ModelError, ProcessModel
from .timescale import TIME_UNITS


class ValidationResult(NamedTuple):
    valid: bool
    errors: List[str]


class ModelValidationError(ModelError):
    """Raised when a model fails validation.

    :param list errors: The itemized validation errors.

    """

    def __init__(self, errors: List[str]) -> None:
        super().__init__('Invalid model: ' + ' '.join(errors))
        self.errors = errors


def validate_model(model: Union[ProcessModel, Mapping[str, Any]]) -> ValidationResult:
    if isinstance(model, ProcessModel):
        model = model.to_dict()
    errors: List[str] = []
    nodes = list(model.get('nodes', ()))
    edges = list(model.get('edges', ()))

    types = [node.get('type') for node in nodes]
    if 'source' not in types:
        errors.append('Model must have at least one Source node.')
    if 'sink' not in types:
        errors.append('Model must have at least one Sink node.')

    node_ids = set()
    for node in nodes:
        if node.get('id') in node_ids:
            errors.append(f'Duplicate node id: "{node.get("id")}".')
        node_ids.add(node.get('id'))

    source_ids = {node.get('id') for node in nodes if node.get('type') == 'source'}
    for edge in edges:
        if edge.get('from') not in node_ids:
            errors.append(
                f'Edge "{edge.get("id")}" references unknown source node '
                f'"{edge.get("from")}".'
            )
        if edge.get('to') not in node_ids:
            errors.append(
                f'Edge "{edge.get("id")}" references unknown target node '
                f'"{edge.get("to")}".'
            )
        elif edge.get('to') in source_ids:
            errors.append(
                f'Edge "{edge.get("id")}" targets Source node "{edge.get("to")}".'
            )

    connected = set()
    for edge in edges:
        connected.add(edge.get('from'))
        connected.add(edge.get('to'))
    for node in nodes:
        if node.get('id') not in connected:
            errors.append(f'Node "{node.get("id")}" is isolated (no edges).')

    if nodes and edges and not _is_connected(nodes, edges, node_ids):
        errors.append('Graph is not connected - some nodes are unreachable.')

    for node in nodes:
        _check_node(node, errors)

    _check_config(model.get('config', {}), errors)

    return ValidationResult(not errors, errors)


def _is_connected(nodes, edges, node_ids):
    neighbors = {node_id: set() for node_id in node_ids}
    for edge in edges:
        src, dst = edge.get('from'), edge.get('to')
        if src in neighbors and dst in neighbors:
            neighbors[src].add(dst)
            neighbors[dst].add(src)
    visited = set()
    stack = [nodes[0].get('id')]
    while stack:
        current = stack.pop()
        if current in visited:
            continue
        visited.add(current)
        stack.extend(n for n in neighbors[current] if n not in visited)
    return len(visited) == len(node_ids)


def _check_node(node, errors):
    node_id = node.get('id')
    node_type = node.get('type')
    params = node.get('params', {})
    if node_type not in NODE_TYPES:
        errors.append(f'Node "{node_id}": unknown node type "{node_type}".')
    elif node_type == 'source':
        _check_distribution(
            params.get('interArrivalTime'),
            f'Source "{node_id}" interArrivalTime',
            errors,
        )
    elif node_type == 'queue':
        capacity = params.get('capacity', 0)
        if capacity is not None and not isinstance(capacity, Real):
            errors.append(f'Queue "{node_id}": capacity must be a number.')
        elif capacity is not None and capacity < 0:
            errors.append(f'Queue "{node_id}": capacity must be >= 0.')
        discipline = params.get('discipline', 'FIFO')
        if discipline not in QUEUE_DISCIPLINES:
            errors.append(
                f'Queue "{node_id}": discipline must be one of '
                f'{", ".join(QUEUE_DISCIPLINES)}.'
            )
    elif node_type == 'process':
        count = params.get('resourceCount', 1)
        if not isinstance(count, Integral):
            errors.append(f'Process "{node_id}": resourceCount must be an integer.')
        elif count < 1:
            errors.append(f'Process "{node_id}": resourceCount must be >= 1.')
        _check_distribution(
            params.get('serviceTime'), f'Process "{node_id}" serviceTime', errors
        )
    else:
        assert node_type == 'sink'


def _check_distribution(dist, label, errors):
    if not isinstance(dist, Mapping):
        errors.append(f'{label}: missing distribution.')
        return
    kind = dist.get('type')
    if kind not in DISTRIBUTIONS:
        errors.append(f'{label}: unknown distribution type "{kind}".')
        return
    missing = [f for f in DISTRIBUTIONS[kind]._fields if f not in dist]
    if missing:
        errors.append(f'{label}: {kind} requires {", ".join(missing)}.')
        return
    if any(not isinstance(dist[f], Real) for f in DISTRIBUTIONS[kind]._fields):
        errors.append(f'{label}: {kind} parameters must be numbers.')
        return
    if kind == 'fixed':
        if dist['value'] < 0:
            errors.append(f'{label}: fixed value must be >= 0.')
    elif kind == 'exponential':
        if dist['mean'] < 0:
            errors.append(f'{label}: exponential mean must be >= 0.')
    elif kind == 'normal':
        if dist['stddev'] < 0:
            errors.append(f'{label}: normal stddev must be >= 0.')
    elif kind == 'uniform':
        if dist['min'] < 0:
            errors.append(f'{label}: uniform min must be >= 0.')
        if dist['max'] < dist['min']:
            errors.append(f'{label}: uniform max must be >= min.')
    else:
        assert kind == 'triangular'
        if dist['min'] < 0:
            errors.append(f'{label}: triangular min must be >= 0.')
        if not dist['min'] <= dist['mode'] <= dist['max']:
            errors.append(f'{label}: triangular mode must be between min and max.')


def _check_config(config, errors):
    duration = config.get('duration', 480)
    warmup = config.get('warmupPeriod', 60)
    numeric = True
    if not isinstance(duration, Real):
        errors.append('Simulation duration must be a number.')
        numeric = False
    elif duration <= 0:
        errors.append('Simulation duration must be > 0.')
    if not isinstance(warmup, Real):
        errors.append('Warmup period must be a number.')
        numeric = False
    elif warmup < 0:
        errors.append('Warmup period must be >= 0.')
    elif numeric and duration > 0 and warmup >= duration:
        errors.append('Warmup period must be < duration.')
    time_unit = config.get('timeUnit', 'min')
    if time_unit not in TIME_UNITS:
        errors.append(
            f'Time unit must be one of {", ".join(TIME_UNITS)}, not "{time_unit}".'
        )
