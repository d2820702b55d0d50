import os

import pytest

from flowsim.model import ProcessModel


def line_model_dict(
    inter_arrival=None,
    service_time=None,
    resource_count=1,
    capacity=0,
    discipline='FIFO',
    duration=100,
    warmup=0,
    seed=42,
):
    """Source -> Queue -> Process -> Sink in wire format."""
    if inter_arrival is None:
        inter_arrival = {'type': 'fixed', 'value': 5}
    if service_time is None:
        service_time = {'type': 'fixed', 'value': 3}
    return {
        'id': 'test-model',
        'name': 'Simple Model',
        'nodes': [
            {'id': 'src', 'type': 'source',
             'params': {'interArrivalTime': inter_arrival}},
            {'id': 'q1', 'type': 'queue',
             'params': {'capacity': capacity, 'discipline': discipline}},
            {'id': 'p1', 'type': 'process',
             'params': {'serviceTime': service_time,
                        'resourceCount': resource_count,
                        'name': 'Worker'}},
            {'id': 'sink', 'type': 'sink', 'params': {'collectStats': True}},
        ],
        'edges': [
            {'id': 'e1', 'from': 'src', 'to': 'q1'},
            {'id': 'e2', 'from': 'q1', 'to': 'p1'},
            {'id': 'e3', 'from': 'p1', 'to': 'sink'},
        ],
        'config': {'seed': seed, 'duration': duration, 'timeUnit': 'min',
                   'warmupPeriod': warmup},
    }


@pytest.fixture
def make_model_dict():
    return line_model_dict


@pytest.fixture
def make_model():
    """Factory fixture building the Source-Queue-Process-Sink line model."""
    def make(**kwargs):
        return ProcessModel.from_dict(line_model_dict(**kwargs))
    return make


@pytest.fixture
def cleandir(tmpdir):
    origin = os.getcwd()
    tmpdir.chdir()
    yield None
    os.chdir(origin)
