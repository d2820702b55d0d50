import pytest

from flowsim.config import model_config
from flowsim.engine import RunawaySimulationError, SimEngine
from flowsim.environment import SimEnvironment
from flowsim.model import ProcessModel


def _run(model, **config):
    engine = SimEngine(model, SimEnvironment(model_config(dict(config), model)))
    return engine, engine.run()


def _assert_conserved(engine, result):
    departed = sum(
        engine.handlers[node_id].departure_count
        for node_id in ('sink',) if node_id in engine.handlers
    )
    lost = sum(engine.lost.values())
    assert result.summary.total_entities == departed + lost + engine.in_flight


def test_steady_line(make_model):
    engine, result = _run(make_model())
    assert result.summary.total_entities == 20
    assert result.node_metrics['src'].processed == 20
    assert result.node_metrics['p1'].processed == 20
    assert result.node_metrics['sink'].processed == 20
    assert result.summary.throughput == pytest.approx(0.2)
    assert result.summary.avg_lead_time == pytest.approx(3)
    assert result.summary.avg_wip == pytest.approx(0.6)
    assert result.summary.simulated_time == 100
    assert result.node_metrics['p1'].utilization == pytest.approx(0.6)
    assert result.node_metrics['p1'].avg_service_time == pytest.approx(3)
    assert result.node_metrics['p1'].avg_wait_time == 0
    assert result.node_metrics['q1'].avg_queue_length == 0
    assert result.bottlenecks == []
    assert engine.in_flight == 0
    assert not engine.lost
    assert engine.env.now == 100


def test_time_series(make_model):
    _, result = _run(make_model(warmup=20))
    series = result.time_series
    assert len(series.timestamps) == 101
    assert series.timestamps[0] == 20
    assert series.timestamps[-1] == pytest.approx(100)
    assert len(series.wip) == len(series.throughput_cumulative) == 101
    assert all(w in (0, 1) for w in series.wip)
    assert series.throughput_cumulative == sorted(series.throughput_cumulative)
    assert series.throughput_cumulative[-1] == 16


def test_warmup(make_model):
    _, result = _run(make_model(warmup=20))
    # Arrivals at 20, 25, ..., 95.
    assert result.summary.total_entities == 16
    assert result.node_metrics['p1'].processed == 16
    assert result.summary.throughput == pytest.approx(16 / 80)
    assert result.node_metrics['p1'].utilization == pytest.approx(48 / 80)


def test_bounded_queue_overflow(make_model):
    model = make_model(
        inter_arrival={'type': 'fixed', 'value': 1},
        service_time={'type': 'fixed', 'value': 5},
        capacity=2,
        duration=50,
    )
    engine, result = _run(model)
    processed = result.node_metrics['p1'].processed
    assert processed < result.summary.total_entities
    assert engine.handlers['q1'].queue.peak_length <= 2
    assert all(length <= 2 for _, length in engine.handlers['q1'].queue.snapshots)
    assert engine.lost['q1'] > 0
    assert result.node_metrics['p1'].utilization == pytest.approx(1)
    _assert_conserved(engine, result)


def test_bottleneck_detected(make_model):
    model = make_model(
        inter_arrival={'type': 'exponential', 'mean': 2},
        service_time={'type': 'exponential', 'mean': 3},
        duration=500,
    )
    _, result = _run(model)
    assert [b.node_id for b in result.bottlenecks] == ['p1']
    assert result.bottlenecks[0].utilization > 0.85


def test_same_seed_same_result(make_model):
    model = make_model(
        inter_arrival={'type': 'exponential', 'mean': 4},
        service_time={'type': 'normal', 'mean': 3, 'stddev': 1},
        duration=480,
        warmup=60,
    )
    _, first = _run(model)
    _, second = _run(model)
    assert first == second
    assert first.to_dict() == second.to_dict()


def test_different_seed_different_result(make_model):
    kwargs = dict(
        inter_arrival={'type': 'exponential', 'mean': 4},
        service_time={'type': 'exponential', 'mean': 3},
        duration=480,
    )
    _, first = _run(make_model(seed=1, **kwargs))
    _, second = _run(make_model(seed=2, **kwargs))
    assert first.summary != second.summary


def test_config_seed_overrides_model(make_model):
    model = make_model(inter_arrival={'type': 'exponential', 'mean': 4})
    _, first = _run(model, **{'sim.seed': 1})
    _, second = _run(model, **{'sim.seed': 1})
    _, third = _run(model, **{'sim.seed': 2})
    assert first == second
    assert first != third


def test_utilization_decreases_with_resources(make_model):
    utilizations = []
    for count in (1, 2, 4):
        model = make_model(
            inter_arrival={'type': 'exponential', 'mean': 2},
            service_time={'type': 'exponential', 'mean': 3},
            resource_count=count,
            duration=1000,
        )
        _, result = _run(model)
        utilizations.append(result.node_metrics['p1'].utilization)
    assert utilizations == sorted(utilizations, reverse=True)
    assert utilizations[0] > utilizations[-1]


@pytest.mark.parametrize('seed', [1, 2, 3])
def test_bounds_and_conservation(make_model, seed):
    model = make_model(
        inter_arrival={'type': 'exponential', 'mean': 2},
        service_time={'type': 'uniform', 'min': 1, 'max': 6},
        resource_count=2,
        capacity=5,
        duration=300,
        seed=seed,
    )
    engine, result = _run(model)
    for metrics in result.node_metrics.values():
        assert 0 <= metrics.utilization <= 1
        assert metrics.avg_queue_length >= 0
        assert metrics.avg_wait_time >= 0
    assert engine.handlers['q1'].queue.peak_length <= 5
    assert result.summary.avg_wip >= 0
    _assert_conserved(engine, result)


@pytest.mark.parametrize('discipline', ['FIFO', 'LIFO', 'PRIORITY'])
def test_disciplines(make_model, discipline):
    model = make_model(
        inter_arrival={'type': 'fixed', 'value': 1},
        service_time={'type': 'fixed', 'value': 2},
        discipline=discipline,
        duration=50,
    )
    engine, result = _run(model)
    assert result.node_metrics['q1'].avg_queue_length > 0
    _assert_conserved(engine, result)


def test_process_without_queue_loses_entities():
    model = ProcessModel.from_dict({
        'id': 'm',
        'name': 'No buffer',
        'nodes': [
            {'id': 'src', 'type': 'source',
             'params': {'interArrivalTime': {'type': 'fixed', 'value': 1}}},
            {'id': 'p1', 'type': 'process',
             'params': {'serviceTime': {'type': 'fixed', 'value': 3}}},
            {'id': 'sink', 'type': 'sink', 'params': {}},
        ],
        'edges': [
            {'id': 'e1', 'from': 'src', 'to': 'p1'},
            {'id': 'e2', 'from': 'p1', 'to': 'sink'},
        ],
        'config': {'seed': 1, 'duration': 30, 'warmupPeriod': 0},
    })
    engine, result = _run(model)
    assert engine.lost['p1'] > 0
    assert result.node_metrics['p1'].processed == 10
    assert result.node_metrics['p1'].avg_queue_length == 0
    _assert_conserved(engine, result)


def test_parallel_processes():
    model = ProcessModel.from_dict({
        'id': 'm',
        'name': 'Two stations',
        'nodes': [
            {'id': 'src', 'type': 'source',
             'params': {'interArrivalTime': {'type': 'fixed', 'value': 1}}},
            {'id': 'q1', 'type': 'queue', 'params': {}},
            {'id': 'p1', 'type': 'process',
             'params': {'serviceTime': {'type': 'fixed', 'value': 2}}},
            {'id': 'p2', 'type': 'process',
             'params': {'serviceTime': {'type': 'fixed', 'value': 2}}},
            {'id': 'sink', 'type': 'sink', 'params': {}},
        ],
        'edges': [
            {'id': 'e1', 'from': 'src', 'to': 'q1'},
            {'id': 'e2', 'from': 'q1', 'to': 'p1'},
            {'id': 'e3', 'from': 'q1', 'to': 'p2'},
            {'id': 'e4', 'from': 'p1', 'to': 'sink'},
            {'id': 'e5', 'from': 'p2', 'to': 'sink'},
        ],
        'config': {'seed': 1, 'duration': 40, 'warmupPeriod': 0},
    })
    engine, result = _run(model)
    assert result.node_metrics['p1'].processed > 0
    assert result.node_metrics['p2'].processed > 0
    assert result.node_metrics['q1'].avg_queue_length == 0
    assert not engine.lost
    _assert_conserved(engine, result)


def test_route_ends_at_process():
    model = ProcessModel.from_dict({
        'id': 'm',
        'name': 'Dead end',
        'nodes': [
            {'id': 'src', 'type': 'source',
             'params': {'interArrivalTime': {'type': 'fixed', 'value': 5}}},
            {'id': 'p1', 'type': 'process',
             'params': {'serviceTime': {'type': 'fixed', 'value': 1}}},
            {'id': 'sink', 'type': 'sink', 'params': {}},
        ],
        'edges': [{'id': 'e1', 'from': 'src', 'to': 'p1'}],
        'config': {'seed': 1, 'duration': 20, 'warmupPeriod': 0},
    })
    engine, result = _run(model)
    assert engine.lost['p1'] == 4
    assert result.node_metrics['sink'].processed == 0
    assert engine.in_flight == 0


def test_runaway_simulation(make_model):
    model = make_model(inter_arrival={'type': 'fixed', 'value': 0})
    with pytest.raises(RunawaySimulationError):
        _run(model, **{'sim.max_events': 500})


def test_event_limit_not_reached(make_model):
    engine, _ = _run(make_model(), **{'sim.max_events': 1000})
    # Six events per entity: created, enqueued, started, ended, routed, departed.
    assert engine.event_count == 120


def test_progress_callback(make_model):
    model = make_model()
    calls = []
    config = model_config({'sim.progress.update_events': 10}, model)
    engine = SimEngine(model, SimEnvironment(config),
                       lambda now, t_stop: calls.append((now, t_stop)))
    engine.run()
    assert len(calls) == 13
    assert calls[-1] == (100, 100)
    assert all(t_stop == 100 for _, t_stop in calls)


def test_default_environment(make_model):
    engine = SimEngine(make_model())
    assert engine.env.duration == 100
    assert engine.run().summary.total_entities == 20


def test_model_not_modified(make_model):
    model = make_model()
    before = model.to_dict()
    _run(model)
    assert model.to_dict() == before


def test_sink_reports(make_model):
    engine, _ = _run(make_model())
    report = engine.sink_reports()['sink']
    assert report['departed'] == 20
    assert report['avgLeadTime'] == pytest.approx(3)
    assert len(report['departures']) == 20
    assert set(report['departures'][0]) == {'entityId', 'leadTime', 'time'}
    assert report['departures'][0]['leadTime'] == pytest.approx(3)


def test_sink_reports_without_stats(make_model_dict):
    data = make_model_dict()
    data['nodes'][3]['params']['collectStats'] = False
    engine, _ = _run(ProcessModel.from_dict(data))
    assert engine.sink_reports() == {'sink': {'departed': 20}}
