"""Pool class for modeling a fixed set of identical resources.

A :class:`ResourcePool` models `total` interchangeable resources, e.g. the
workers or machines of a process step. Resources are acquired and released
one at a time. The pool integrates the number of busy resources over
simulation time so that its utilization can be reported at the end of a run.

"""
from typing import Any, Callable, Optional, Union

Time = Union[int, float]


class ResourcePool:
    """Fixed-size pool of identical resources with busy-time accounting.

    :param int total: Number of resources in the pool.
    :param str name: Optional name to associate with the pool.

    """

    def __init__(self, total: int, name: Optional[str] = None) -> None:
        if total < 1:
            raise ValueError('total must be >= 1')
        #: Number of resources in the pool.
        self.total = total
        self.name = name
        self._busy = 0
        #: Busy resource-time accumulated since the measurement start.
        self._busy_time: float = 0
        self._last_change: Time = 0
        self._start: Time = 0
        self._change_hook: Optional[Callable[[], Any]] = None

    @property
    def busy(self) -> int:
        """Number of resources currently acquired."""
        return self._busy

    @property
    def available(self) -> int:
        """Number of resources currently free."""
        return self.total - self._busy

    def acquire(self, now: Time) -> bool:
        """Acquire one resource at time `now`.

        :returns: True on success; False if every resource is busy.

        """
        if self._busy >= self.total:
            return False
        self._flush(now)
        self._busy += 1
        if self._change_hook:
            self._change_hook()
        return True

    def release(self, now: Time) -> None:
        """Release one resource at time `now`."""
        if self._busy <= 0:
            return
        self._flush(now)
        self._busy -= 1
        if self._change_hook:
            self._change_hook()

    def mark(self, now: Time) -> None:
        """Start measuring utilization at time `now`.

        Busy time accumulated before `now` is discarded.

        """
        self._flush(now)
        self._busy_time = 0
        self._start = now

    def utilization(self, end: Time) -> float:
        """Fraction of resource-time busy between the measurement start and `end`.

        Returns 0 for an empty measurement window.

        """
        span = end - self._start
        if span <= 0:
            return 0.0
        self._flush(end)
        return self._busy_time / (self.total * span)

    def _flush(self, now: Time) -> None:
        dt = now - self._last_change
        if dt > 0:
            self._busy_time += self._busy * dt
            self._last_change = now

    def __repr__(self) -> str:
        return (
            f'{self.__class__.__name__}('
            f'name={self.name!r} busy={self._busy} total={self.total})'
        )
