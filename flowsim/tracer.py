"""Trace and probe output for simulation runs.

A :class:`TraceManager` owns one instance of each tracer. Tracers are
enabled and configured through the `sim.<name>.*` config keys:

- :class:`LogTracer` (`sim.log.*`) writes leveled, timestamped text lines.
- :class:`VCDTracer` (`sim.vcd.*`) writes a value change dump waveform of
  probed signals such as queue lengths and busy resources.

Trace scopes are dotted names (e.g. `engine.lost` or `model.q1.length`)
that can be filtered with the `include_pat` and `exclude_pat` regular
expression lists.

Engine code does not talk to tracers directly. It asks the manager for a
trace function, which fans a call out to every tracer interested in the
scope, or has the manager probe one of the model's state holders (see
:mod:`flowsim.probe`).

"""
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Tuple
import os
import re
import sys
import traceback

from vcd import VCDWriter

from .pool import ResourcePool
from .probe import ProbeCallback, ProbeTarget
from .probe import attach as probe_attach
from .queue import EntityQueue
from .stats import StatsCollector
from .timescale import parse_time, scale_time
from .util import partial_format

if TYPE_CHECKING:
    from .environment import SimEnvironment

TraceCallback = Callable[..., None]

#: Attribute holding the probed value of each kind of probe target.
PROBED_ATTRS: Dict[type, str] = {
    ResourcePool: 'busy',
    EntityQueue: 'size',
    StatsCollector: 'wip',
}


def probed_value(target: ProbeTarget) -> int:
    for target_type, attr in PROBED_ATTRS.items():
        if isinstance(target, target_type):
            return getattr(target, attr)
    raise TypeError(f'Cannot probe {target!r}')


class Tracer:
    """Base class of the tracers managed by :class:`TraceManager`.

    Subclasses name their config scope with `name` and the config key of
    their output file with `file_key`.

    """

    name: str = ''
    file_key: str = ''
    default_file: str = ''

    def __init__(self, env: 'SimEnvironment'):
        self.env = env
        config = env.config
        self.enabled: bool = config.setdefault(f'sim.{self.name}.enable', False)
        self.persist: bool = config.setdefault(f'sim.{self.name}.persist', True)
        self.filename: str = ''
        self._opened = False
        if self.enabled:
            self.filename = config.setdefault(self.file_key, self.default_file)
            self.open()
            self._opened = True
            self._include_re = self._patterns('include_pat', ['.*'])
            self._exclude_re = self._patterns('exclude_pat', [])

    def _patterns(self, kind: str, default: List[str]) -> List['re.Pattern']:
        pats = self.env.config.setdefault(f'sim.{self.name}.{kind}', default)
        return [re.compile(pat) for pat in pats]

    def is_scope_enabled(self, scope: str) -> bool:
        if not self.enabled:
            return False
        if not any(r.match(scope) for r in self._include_re):
            return False
        return not any(r.match(scope) for r in self._exclude_re)

    def open(self) -> None:
        raise NotImplementedError()  # pragma: no cover

    def close(self) -> None:
        if self._opened:
            self._close()

    def _close(self) -> None:
        raise NotImplementedError()  # pragma: no cover

    def remove_files(self) -> None:
        if self.filename and os.path.isfile(self.filename):
            os.remove(self.filename)

    def flush(self) -> None:
        pass

    def activate_probe(
        self, scope: str, target: ProbeTarget, **hints: Any
    ) -> Optional[ProbeCallback]:
        raise NotImplementedError()  # pragma: no cover

    def activate_trace(self, scope: str, **hints) -> Optional[TraceCallback]:
        """Tracers that only record probed state ignore traces."""
        return None

    def trace_exception(self) -> None:
        pass


class LogTracer(Tracer):
    """Leveled text log.

    Each line starts with a prefix rendered from 'sim.log.format', whose
    fields are `level`, `ts` (the model time), `ts_unit` and `scope`. Lines
    above 'sim.log.level' are discarded. Probed values are logged at the
    PROBE level, which sits between INFO and DEBUG. An empty 'sim.log.file'
    sends the log to stderr.

    """

    name = 'log'
    file_key = 'sim.log.file'
    default_file = 'sim.log'
    default_format = '{level:7} {ts:.3f} {ts_unit}: {scope}:'

    levels = {
        'ERROR': 1,
        'WARNING': 2,
        'INFO': 3,
        'PROBE': 4,
        'DEBUG': 5,
    }

    def open(self) -> None:
        config = self.env.config
        level: str = config.setdefault('sim.log.level', 'INFO')
        try:
            self.max_level = self.levels[level]
        except KeyError:
            raise ValueError(f'Invalid sim.log.level "{level}"') from None
        self.format_str: str = config.setdefault('sim.log.format', self.default_format)
        magnitude, unit = self.env.timescale
        self.ts_unit = unit if magnitude == 1 else f'({magnitude}{unit})'
        buffering: int = config.setdefault('sim.log.buffering', -1)
        self.should_close = bool(self.filename)
        if self.should_close:
            self.file = open(self.filename, 'w', buffering)
        else:
            self.file = sys.stderr

    def flush(self) -> None:
        self.file.flush()

    def _close(self) -> None:
        if self.should_close:
            self.file.close()

    def is_scope_enabled(self, scope: str, level: Optional[str] = None) -> bool:
        if level is not None and self.levels[level] > self.max_level:
            return False
        return super().is_scope_enabled(scope)

    def _writer(self, scope: str, level: str) -> Optional[TraceCallback]:
        if not self.is_scope_enabled(scope, level):
            return None
        prefix = partial_format(
            self.format_str, level=level, ts_unit=self.ts_unit, scope=scope
        )

        def write(*values: Any) -> None:
            print(prefix.format(ts=self.env.now), *values, file=self.file)

        return write

    def activate_probe(
        self, scope: str, target: ProbeTarget, **hints: Any
    ) -> Optional[ProbeCallback]:
        return self._writer(scope, hints.get('level', 'PROBE'))

    def activate_trace(self, scope: str, **hints) -> Optional[TraceCallback]:
        return self._writer(scope, hints.get('level', 'DEBUG'))

    def trace_exception(self) -> None:
        tb_lines = traceback.format_exception(*sys.exc_info())
        prefix = self.format_str.format(
            level='ERROR', ts=self.env.now, ts_unit=self.ts_unit, scope='exception'
        )
        print(prefix, tb_lines[-1], file=self.file)
        print(''.join(tb_lines), file=self.file)


class VCDTracer(Tracer):
    """Value change dump of probed integer and real signals.

    VCD only has second-based timescales, so model time in minutes or hours
    is scaled into `sim.vcd.timescale` and rounded to whole ticks.

    """

    name = 'vcd'
    file_key = 'sim.vcd.dump_file'
    default_file = 'sim.vcd'

    def open(self) -> None:
        config = self.env.config
        magnitude, unit = parse_time(config.setdefault('sim.vcd.timescale', '1 ms'))
        if int(magnitude) != magnitude:
            raise ValueError(
                f'sim.vcd.timescale magnitude must be an integer, got {magnitude}'
            )
        timescale = int(magnitude), unit
        self.scale_factor = scale_time(self.env.timescale, timescale)
        self.dump_file = open(self.filename, 'w')
        self.vcd = VCDWriter(
            self.dump_file,
            timescale=timescale,
            check_values=config.setdefault('sim.vcd.check_values', True),
        )

    def vcd_now(self) -> int:
        return round(self.env.now * self.scale_factor)

    def flush(self) -> None:
        self.dump_file.flush()

    def _close(self) -> None:
        self.vcd.close(self.vcd_now())
        self.dump_file.close()

    def _register(self, scope: str, var_type: str, hints: Dict[str, Any]):
        kwargs = {k: hints[k] for k in ('size', 'init', 'ident') if k in hints}
        parent_scope, name = scope.rsplit('.', 1)
        return self.vcd.register_var(parent_scope, name, var_type, **kwargs)

    def activate_probe(
        self, scope: str, target: ProbeTarget, **hints: Any
    ) -> Optional[ProbeCallback]:
        assert self.enabled
        if not isinstance(target, tuple(PROBED_ATTRS)):
            raise ValueError(f'Could not infer VCD var_type for {scope}')
        hints.setdefault('init', probed_value(target))
        var = self._register(scope, hints.get('var_type', 'integer'), hints)

        def probe_callback(value: Any) -> None:
            self.vcd.change(var, self.vcd_now(), value)

        return probe_callback


class TraceManager:
    """Fans probes and traces out to the enabled tracers.

    Hints are passed per tracer: ``log={'level': 'INFO'}`` activates a
    scope for the :class:`LogTracer` only, while ``log={}, vcd={}`` activates
    it for both tracers with their default hints.

    """

    def __init__(self, env: 'SimEnvironment') -> None:
        self.tracers: List[Tracer] = []
        try:
            self.log_tracer = LogTracer(env)
            self.tracers.append(self.log_tracer)
            self.vcd_tracer = VCDTracer(env)
            self.tracers.append(self.vcd_tracer)
        except BaseException:
            self.close()
            raise

    def _interested(self, scope: str, hints: Dict[str, Any]):
        for tracer in self.tracers:
            if tracer.name in hints and tracer.is_scope_enabled(scope):
                yield tracer, dict(hints[tracer.name])

    def flush(self) -> None:
        for tracer in self.tracers:
            if tracer.enabled:
                tracer.flush()

    def close(self) -> None:
        for tracer in self.tracers:
            tracer.close()
            if tracer.enabled and not tracer.persist:
                tracer.remove_files()

    def auto_probe(self, scope: str, target: ProbeTarget, **hints: Any) -> None:
        """Report changes of `target`'s value to the interested tracers."""
        callbacks: List[ProbeCallback] = []
        for tracer, tracer_hints in self._interested(scope, hints):
            callback = tracer.activate_probe(scope, target, **tracer_hints)
            if callback:
                callbacks.append(callback)
        if callbacks:
            probe_attach(scope, target, callbacks, **hints)

    def get_trace_function(self, scope: str, **hints) -> TraceCallback:
        """Get a function that traces its arguments in `scope`.

        The returned function is a no-op when no tracer is interested.

        """
        callbacks: Tuple[TraceCallback, ...] = tuple(
            callback
            for callback in (
                tracer.activate_trace(scope, **tracer_hints)
                for tracer, tracer_hints in self._interested(scope, hints)
            )
            if callback
        )

        def trace_function(*values) -> None:
            for callback in callbacks:
                callback(*values)

        return trace_function

    def trace_exception(self) -> None:
        for tracer in self.tracers:
            if tracer.enabled:
                tracer.trace_exception()
