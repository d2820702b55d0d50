import pytest

from flowsim.distributions import Exponential, Fixed, Normal
from flowsim.model import (
    ModelError,
    ProcessModel,
    ProcessParams,
    QueueParams,
    SimConfig,
    build_adjacency,
    distribution_from_dict,
    node_from_dict,
)


def test_from_dict(make_model_dict):
    model = ProcessModel.from_dict(make_model_dict())
    assert model.id == 'test-model'
    assert [n.type for n in model.nodes] == ['source', 'queue', 'process', 'sink']
    assert model.node('src').params.inter_arrival_time == Fixed(5)
    assert model.node('p1').params == ProcessParams(Fixed(3), 1, 'Worker')
    assert model.edges[0].from_id == 'src'
    assert model.config == SimConfig(42, 100, 'min', 0)


def test_to_dict_round_trip(make_model_dict):
    model = ProcessModel.from_dict(make_model_dict())
    data = model.to_dict()
    assert data['nodes'][0]['params'] == {
        'interArrivalTime': {'type': 'fixed', 'value': 5}, 'priority': 0}
    assert data['edges'][1] == {'id': 'e2', 'from': 'q1', 'to': 'p1'}
    assert ProcessModel.from_dict(data) == model


def test_node_missing_node():
    with pytest.raises(KeyError):
        ProcessModel('m', 'm', (), ()).node('nope')


def test_config_defaults():
    assert SimConfig() == SimConfig(42, 480, 'min', 60)


def test_config_merge():
    config = SimConfig().merge({'duration': 100, 'warmup_period': 5, 'seed': 7})
    assert config == SimConfig(7, 100, 'min', 5)
    assert SimConfig().merge({'warmupPeriod': 0}).warmup_period == 0


def test_config_merge_unknown():
    with pytest.raises(ModelError):
        SimConfig().merge({'speed': 2})


def test_config_to_dict():
    assert SimConfig().to_dict()['warmupPeriod'] == 60


def test_unbounded_capacity():
    node = node_from_dict(
        {'id': 'q', 'type': 'queue', 'params': {'capacity': float('inf')}})
    assert node.params == QueueParams(0, 'FIFO')
    node = node_from_dict({'id': 'q', 'type': 'queue', 'params': {}})
    assert node.params.capacity == 0


def test_node_label():
    node = node_from_dict(
        {'id': 'k', 'type': 'sink', 'params': {}, 'label': 'Exit'})
    assert node.label == 'Exit'


@pytest.mark.parametrize('data', [
    {'type': 'queue', 'params': {}},
    {'id': 'x', 'type': 'router', 'params': {}},
    {'id': 'x', 'type': 'queue', 'params': {'size': 3}},
    {'id': 'x', 'type': 'process', 'params': {'resourceCount': 2}},
    {'id': 'x', 'type': 'process',
     'params': {'serviceTime': {'type': 'gamma', 'shape': 1}}},
])
def test_bad_node(data):
    with pytest.raises(ModelError):
        node_from_dict(data)


def test_missing_model_field():
    with pytest.raises(ModelError):
        ProcessModel.from_dict({'id': 'm', 'nodes': [], 'edges': []})


@pytest.mark.parametrize('data, expected', [
    ({'type': 'fixed', 'value': 2}, Fixed(2)),
    ({'type': 'exponential', 'mean': 10}, Exponential(10)),
    ({'type': 'normal', 'mean': 5, 'stddev': 1}, Normal(5, 1)),
])
def test_distribution_from_dict(data, expected):
    assert distribution_from_dict(data) == expected


def test_distribution_from_dict_bad_fields():
    with pytest.raises(ModelError):
        distribution_from_dict({'type': 'normal', 'mean': 5})


def test_replace_params(make_model):
    model = make_model()
    changed = model.replace_params('p1', resource_count=3)
    assert changed.node('p1').params.resource_count == 3
    assert model.node('p1').params.resource_count == 1


def test_replace_params_errors(make_model):
    model = make_model()
    with pytest.raises(ModelError):
        model.replace_params('nope', capacity=1)
    with pytest.raises(ModelError):
        model.replace_params('q1', resource_count=1)


def test_build_adjacency(make_model_dict):
    data = make_model_dict()
    data['nodes'].append({'id': 'sink2', 'type': 'sink', 'params': {}})
    data['edges'] += [
        {'id': 'e4', 'from': 'q1', 'to': 'sink2'},
        {'id': 'e5', 'from': 'q1', 'to': 'ghost'},
    ]
    downstream, upstream = build_adjacency(ProcessModel.from_dict(data))
    assert downstream['q1'] == ['p1', 'sink2']
    assert upstream['p1'] == ['q1']
    assert downstream['sink'] == []
    assert 'ghost' not in upstream
