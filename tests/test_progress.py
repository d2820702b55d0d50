from queue import Queue
import io

import pytest

from flowsim.environment import SimEnvironment
from flowsim.progress import (
    _print_progress,
    consume_multi_progress,
    get_multi_progress_manager,
    standalone_progress_manager,
)


@pytest.fixture
def env():
    return SimEnvironment({
        'sim.duration': 100,
        'sim.time_unit': 'min',
        'sim.progress.enable': True,
        'sim.progress.update_period': '0 s',
    })


@pytest.mark.parametrize('sim_index, now, t_stop, expected', [
    (None, 50, 100, '    50 min (50%)\n'),
    (3, 100, 100, 'Sim 3    100 min (100%)\n'),
    (None, 5, None, '     5 min (N/A%)\n'),
])
def test_print_progress(sim_index, now, t_stop, expected):
    fd = io.StringIO()
    _print_progress(sim_index, now, t_stop, (1, 'min'), '\n', fd)
    assert fd.getvalue() == expected


def test_standalone_disabled(env):
    env.config['sim.progress.enable'] = False
    with standalone_progress_manager(env) as progress:
        assert progress is None


def test_standalone(env, capsys):
    with standalone_progress_manager(env) as progress:
        progress(50, 100)
    _, err = capsys.readouterr()
    assert err == '    50 min (50%)\n   100 min (100%)\n'


def test_multi_producer(env):
    queue = Queue()
    manager = get_multi_progress_manager(queue)
    with manager(env) as progress:
        progress(10, 100)
        env.now = 100
    assert queue.get_nowait() == (None, 10, 100, (1, 'min'))
    assert queue.get_nowait() == (None, 100, 100, (1, 'min'))
    assert queue.empty()


def test_multi_producer_disabled(env):
    with get_multi_progress_manager(None)(env) as progress:
        assert progress is None


def test_consume_multi_progress(capsys):
    queue = Queue()
    for index in range(2):
        queue.put((index, 50, 100, (1, 'min')))
        queue.put((index, 100, 100, (1, 'min')))
    consume_multi_progress(queue, 1, 2, 0)
    _, err = capsys.readouterr()
    lines = err.splitlines()
    assert lines[0].endswith('0 of 2 simulations (0%)')
    assert lines[-1].endswith('2 of 2 simulations (100%)')
    assert len(lines) == 3
