import pytest

from flowsim.pool import ResourcePool


def test_acquire_release():
    pool = ResourcePool(2, name='p1')
    assert pool.available == 2
    assert pool.acquire(0)
    assert pool.acquire(0)
    assert not pool.acquire(0)
    assert pool.busy == 2
    assert pool.available == 0
    pool.release(1)
    assert pool.busy == 1
    assert 'p1' in repr(pool)


def test_invalid_total():
    with pytest.raises(ValueError):
        ResourcePool(0)


def test_utilization():
    pool = ResourcePool(2)
    pool.acquire(0)
    pool.acquire(5)
    pool.release(10)
    pool.release(10)
    # 1 busy for 5, 2 busy for 5: 15 of 2 * 20 resource-time units.
    assert pool.utilization(20) == pytest.approx(15 / 40)


def test_utilization_flushes_busy_tail():
    pool = ResourcePool(1)
    pool.acquire(2)
    assert pool.utilization(10) == pytest.approx(0.8)


def test_utilization_empty_window():
    pool = ResourcePool(1)
    pool.acquire(0)
    assert pool.utilization(0) == 0


def test_utilization_bounds():
    pool = ResourcePool(3)
    for t in range(10):
        pool.acquire(t)
    assert 0 <= pool.utilization(20) <= 1


def test_release_when_idle_is_ignored():
    pool = ResourcePool(1)
    pool.release(3)
    assert pool.busy == 0
    assert pool.utilization(10) == 0


def test_mark():
    pool = ResourcePool(1)
    pool.acquire(0)
    pool.mark(10)
    pool.release(15)
    # Busy from the mark at 10 until 15 within [10, 20].
    assert pool.utilization(20) == pytest.approx(0.5)


def test_change_hook():
    pool = ResourcePool(2)
    values = []
    pool._change_hook = lambda: values.append(pool.busy)
    pool.acquire(0)
    pool.acquire(1)
    pool.acquire(2)
    pool.release(3)
    assert values == [1, 2, 1]
