"""Attach observation callbacks to simulation state.

Probes report a new value every time the probed state changes. Supported
targets are a :class:`~flowsim.pool.ResourcePool` (busy resources), an
:class:`~flowsim.queue.EntityQueue` (buffered entities), a
:class:`~flowsim.stats.StatsCollector` (work-in-progress) and any bound
method (its return value).

With the `trace_remaining` hint, pools report their available resources
and queues their remaining capacity instead.

"""
from functools import wraps
from operator import attrgetter
from types import MethodType
from typing import Any, Callable, Iterable, Optional, Tuple, Union

from .pool import ResourcePool
from .queue import EntityQueue
from .stats import StatsCollector

ProbeCallback = Callable[[Any], None]
ProbeCallbacks = Iterable[ProbeCallback]
ProbeTarget = Union[ResourcePool, EntityQueue, StatsCollector, MethodType]

Getter = Callable[[Any], Any]


def _queue_remaining(queue: EntityQueue) -> int:
    # An unlimited queue has no meaningful remaining space.
    return queue.capacity - queue.size if queue.capacity else 0


#: (target type, hook attribute, value getter, remaining getter)
_HOOKS: Tuple[Tuple[type, str, Getter, Optional[Getter]], ...] = (
    (EntityQueue, '_change_hook', attrgetter('size'), _queue_remaining),
    (ResourcePool, '_change_hook', attrgetter('busy'), attrgetter('available')),
    (StatsCollector, '_wip_hook', attrgetter('wip'), None),
)


def attach(
    scope: str, target: ProbeTarget, callbacks: ProbeCallbacks, **hints: Any
) -> None:
    if isinstance(target, MethodType):
        _attach_method(target, callbacks)
        return
    for target_type, hook_attr, value_getter, remaining_getter in _HOOKS:
        if isinstance(target, target_type):
            getter = value_getter
            if hints.get('trace_remaining', False) and remaining_getter:
                getter = remaining_getter
            setattr(target, hook_attr, _make_hook(target, getter, callbacks))
            return
    raise TypeError(f'Cannot probe {scope} of type {type(target)}')


def _make_hook(target: Any, getter: Getter, callbacks: ProbeCallbacks):
    def hook():
        value = getter(target)
        for callback in callbacks:
            callback(value)

    return hook


def _attach_method(method: MethodType, callbacks: ProbeCallbacks) -> None:
    func = method.__func__

    @wraps(method)
    def wrapper(*args, **kwargs):
        value = method(*args, **kwargs)
        for callback in callbacks:
            callback(value)
        return value

    setattr(method.__self__, func.__name__, wrapper)
