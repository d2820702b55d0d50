import pytest

from flowsim.model import Entity
from flowsim.queue import EntityQueue


def _entity(n, priority=0):
    return Entity(f'entity-{n}', 0, 'q1', priority)


def _fill(queue, priorities, now=0):
    for n, priority in enumerate(priorities):
        assert queue.enqueue(_entity(n, priority), now)


def _drain(queue, now=0):
    ids = []
    while not queue.is_empty:
        ids.append(queue.dequeue(now).id)
    return ids


def test_fifo():
    queue = EntityQueue()
    _fill(queue, [0, 0, 0])
    assert _drain(queue) == ['entity-0', 'entity-1', 'entity-2']


def test_lifo():
    queue = EntityQueue(discipline='LIFO')
    _fill(queue, [0, 0, 0])
    assert _drain(queue) == ['entity-2', 'entity-1', 'entity-0']


def test_priority():
    queue = EntityQueue(discipline='PRIORITY')
    _fill(queue, [3, 1, 2, 1])
    assert _drain(queue) == ['entity-1', 'entity-3', 'entity-2', 'entity-0']


def test_unknown_discipline():
    with pytest.raises(ValueError):
        EntityQueue(discipline='RANDOM')


def test_capacity():
    queue = EntityQueue(capacity=2, name='q1')
    assert queue.enqueue(_entity(0), 0)
    assert queue.enqueue(_entity(1), 0)
    assert queue.is_full
    assert not queue.enqueue(_entity(2), 0)
    assert queue.size == 2
    assert 'q1' in repr(queue)


def test_unlimited_capacity():
    queue = EntityQueue(capacity=0)
    _fill(queue, [0] * 1000)
    assert not queue.is_full
    assert queue.peak_length == 1000


def test_dequeue_empty():
    assert EntityQueue().dequeue(0) is None


def test_avg_length():
    queue = EntityQueue()
    queue.enqueue(_entity(0), 0)
    queue.enqueue(_entity(1), 2)
    queue.dequeue(4)
    queue.dequeue(6)
    # Length 1 for 2, 2 for 2, 1 for 2, 0 for 4.
    assert queue.avg_length(10) == pytest.approx(0.8)
    assert queue.peak_length == 2


def test_avg_length_empty_window():
    assert EntityQueue().avg_length(0) == 0


def test_snapshots_collapse_same_time():
    queue = EntityQueue()
    _fill(queue, [0, 0, 0], now=5)
    assert queue.snapshots == [(0, 0), (5, 3)]


def test_avg_wait():
    queue = EntityQueue()
    assert queue.avg_wait() == 0
    queue.enqueue(_entity(0), 0)
    queue.enqueue(_entity(1), 1)
    queue.dequeue(4)
    queue.dequeue(9)
    assert queue.wait_count == 2
    assert queue.avg_wait() == pytest.approx((4 + 8) / 2)


def test_mark():
    queue = EntityQueue()
    queue.enqueue(_entity(0), 0)
    queue.dequeue(2)
    queue.enqueue(_entity(1), 5)
    queue.mark(10)
    assert queue.wait_count == 0
    assert queue.snapshots == [(10, 1)]
    queue.dequeue(15)
    assert queue.avg_wait() == pytest.approx(10)
    assert queue.avg_length(20) == pytest.approx(0.5)


def test_change_hook():
    queue = EntityQueue()
    lengths = []
    queue._change_hook = lambda: lengths.append(queue.size)
    _fill(queue, [0, 0])
    queue.dequeue(1)
    assert lengths == [1, 2, 1]
