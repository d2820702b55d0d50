"""Run-time environment shared by the parts of one simulation run."""
from typing import Optional, Union

from .timescale import model_timescale, parse_time, scale_time
from .tracer import TraceManager

Time = Union[int, float]


class SimEnvironment:
    """Simulation environment.

    The environment gives everything taking part in a run access to:

     - the configuration dictionary (`config`),
     - the simulation timescale (`timescale`),
     - the run horizon and measurement window (`duration`, `warmup`),
     - the simulation clock (`now`), advanced by the engine,
     - the :class:`~flowsim.tracer.TraceManager` (`tracemgr`).

    It may be subclassed to share additional state with custom tracers or
    progress managers.

    :param dict config:
        A configuration dictionary with the `sim.*` run keys populated, see
        :func:`flowsim.config.model_config`.

    """

    def __init__(self, config: dict) -> None:
        #: The configuration dictionary.
        self.config = config

        #: Seed of the run's random number stream.
        self.seed: int = config.setdefault('sim.seed', 42)

        time_unit = config.setdefault('sim.time_unit', 'min')

        #: Simulation timescale ``(magnitude, units)`` tuple. The current
        #: simulation time is ``now * timescale``.
        self.timescale = model_timescale(time_unit)

        #: The simulation horizon, in units of :attr:`timescale`.
        self.duration: Time = config.setdefault('sim.duration', 480)

        #: Start of the measurement window, in units of :attr:`timescale`.
        self.warmup: Time = config.setdefault('sim.warmup_period', 60)

        #: The simulation runs "until" this time. By default, this is the
        #: configured "sim.duration", but may be overridden by subclasses.
        self.until: Time = self.duration

        #: Current simulation time.
        self.now: Time = 0

        #: From 'meta.sim.index', the simulation's index when running multiple
        #: related simulations or `None` for a standalone simulation.
        self.sim_index: Optional[int] = config.get('meta.sim.index')

        #: :class:`TraceManager` instance.
        self.tracemgr = TraceManager(self)

    def time(self, t: Optional[Time] = None, unit: str = 's') -> Time:
        """The current simulation time scaled to specified unit.

        :param float t: Time in simulation units. Default is :attr:`now`.
        :param str unit: Unit of time to scale to. Default is 's' (seconds).
        :returns: Simulation time scaled to to `unit`.

        """
        target_scale = parse_time(unit)
        ts_mag, ts_unit = self.timescale
        sim_time = ((self.now if t is None else t) * ts_mag, ts_unit)
        return scale_time(sim_time, target_scale)
