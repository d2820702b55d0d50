"""Progress display for simulation runs.

A progress manager is a context manager taking the
:class:`~flowsim.environment.SimEnvironment` of a run and yielding either
`None` (progress disabled) or a callback. The engine calls the callback
with `(now, t_stop)` as the run advances and once when it finishes. Output
is throttled to one update per `sim.progress.update_period` of wall-clock
time.

A standalone run draws a progressbar2 bar when stderr is a terminal and
prints plain progress lines otherwise. Runs in worker processes put
progress tuples on a queue instead, and :func:`consume_multi_progress`
shows how many of the runs completed.

"""
from contextlib import contextmanager
from datetime import datetime, timedelta
from queue import Queue
from typing import (
    IO,
    TYPE_CHECKING,
    Callable,
    Generator,
    Iterator,
    List,
    Optional,
    Set,
    Tuple,
    Union,
)
import sys
import timeit

from .timescale import parse_time, scale_time

try:
    import progressbar
except ImportError:
    progressbar = None

if TYPE_CHECKING:
    from .environment import SimEnvironment

Time = Union[int, float]

ProgressTuple = Tuple[
    Optional[int],  # simulation index
    Time,  # now
    Optional[Time],  # t_stop
    Tuple[int, str],  # timescale
]

ProgressCallback = Callable[[Time, Time], None]


class _Throttle:
    """Lets one update through per `period_s` seconds of wall-clock time."""

    def __init__(self, period_s: Time) -> None:
        self.period_s = period_s
        self.last: Optional[float] = None

    def ready(self) -> bool:
        t = timeit.default_timer()
        if self.last is None or t - self.last >= self.period_s:
            self.last = t
            return True
        return False

    @classmethod
    def from_config(cls, config: dict) -> '_Throttle':
        period = config.setdefault('sim.progress.update_period', '1 s')
        return cls(scale_time(parse_time(period), (1, 's')))


def _time_format(timescale: Tuple[int, str], value_format: str) -> str:
    magnitude, unit = timescale
    if magnitude == 1:
        return f'{value_format} {unit}'
    return f'{magnitude}x{value_format} {unit}'


def progress_text(
    sim_index: Optional[int],
    now: Time,
    t_stop: Optional[Time],
    timescale: Tuple[int, str],
) -> str:
    """Format one line of progress, e.g. ``'Sim 3    100 min (100%)'``."""
    parts = []
    if sim_index:
        parts.append(f'Sim {sim_index}')
    parts.append(_time_format(timescale, '{:6.0f}').format(now))
    parts.append(f'({100 * now / t_stop:.0f}%)' if t_stop else '(N/A%)')
    return ' '.join(parts)


def _print_progress(
    sim_index: Optional[int],
    now: Time,
    t_stop: Optional[Time],
    timescale: Tuple[int, str],
    end: str,
    fd: IO,
) -> None:
    print(progress_text(sim_index, now, t_stop, timescale), end=end, file=fd)
    fd.flush()


def _make_pbar(max_value: Time, widgets: list, max_width: int, fd: IO):
    pbar = progressbar.ProgressBar(
        fd=fd, min_value=0, max_value=max_value, widgets=widgets
    )
    if max_width and pbar.term_width > max_width:
        pbar.term_width = max_width
    return pbar


def _run_widgets(sim_index: Optional[int], timescale: Tuple[int, str]) -> List:
    widgets: List = []
    if sim_index is not None:
        widgets.append(f'Sim {sim_index:3}|')
    widgets += [
        progressbar.FormatLabel(_time_format(timescale, '%(value)6.0f') + '|'),
        progressbar.Percentage(),
        progressbar.Bar(),
        progressbar.ETA(),
    ]
    return widgets


@contextmanager
def standalone_progress_manager(
    env: 'SimEnvironment',
) -> Generator[Optional[ProgressCallback], None, None]:
    enabled: bool = env.config.setdefault('sim.progress.enable', False)
    max_width: int = env.config.setdefault('sim.progress.max_width')
    throttle = _Throttle.from_config(env.config)
    if not enabled:
        yield None
        return

    fd = sys.stderr
    if fd.isatty() and progressbar:
        pbar = _make_pbar(
            env.until, _run_widgets(env.sim_index, env.timescale), max_width, fd
        )

        def update_pbar(now: Time, t_stop: Time) -> None:
            if throttle.ready():
                pbar.update(min(now, t_stop))

        try:
            yield update_pbar
        finally:
            pbar.finish()
    else:
        end = '\r' if fd.isatty() else '\n'

        def update_text(now: Time, t_stop: Time) -> None:
            if throttle.ready():
                _print_progress(env.sim_index, now, t_stop, env.timescale, end, fd)

        try:
            yield update_text
        finally:
            _print_progress(
                env.sim_index, env.until, env.until, env.timescale, '\n', fd
            )


def get_multi_progress_manager(progress_queue: Optional['Queue[ProgressTuple]']):
    """Progress manager for runs in worker processes.

    Progress tuples are put on `progress_queue` for
    :func:`consume_multi_progress` to display in the parent process. The
    final tuple of a run has `now == t_stop`.

    """

    @contextmanager
    def progress_producer(env):
        if not progress_queue:
            yield None
            return
        throttle = _Throttle.from_config(env.config)

        def enqueue_progress(now, t_stop):
            if throttle.ready():
                progress_queue.put((env.sim_index, now, t_stop, env.timescale))

        try:
            yield enqueue_progress
        finally:
            progress_queue.put((env.sim_index, env.now, env.now, env.timescale))

    return progress_producer


def _completions(
    progress_queue: 'Queue[ProgressTuple]', num_simulations: int
) -> Iterator[Tuple[int, bool]]:
    """Yield `(num_completed, just_completed)` for each progress tuple."""
    completed: Set[Optional[int]] = set()
    while len(completed) < num_simulations:
        sim_index, now, t_stop, _ = progress_queue.get()
        done = now == t_stop
        if done:
            completed.add(sim_index)
        yield len(completed), done


def consume_multi_progress(
    progress_queue: 'Queue[ProgressTuple]',
    num_workers: int,
    num_simulations: int,
    max_width: int,
) -> None:
    """Display the overall progress of `num_simulations` runs.

    Runs until every simulation reported its completion or the user
    interrupts.

    """
    fd = sys.stderr
    try:
        if fd.isatty() and progressbar:
            _display_overall_pbar(progress_queue, num_simulations, max_width, fd)
        else:
            _display_overall_text(progress_queue, num_simulations, fd)
    except KeyboardInterrupt:
        pass


def _print_overall(
    num_completed: int, num_simulations: int, td: timedelta, end: str, fd: IO
) -> None:
    if fd.closed:
        return
    print(
        timedelta(td.days, td.seconds),
        f'{num_completed} of {num_simulations} simulations',
        f'({num_completed / num_simulations:.0%})',
        end=end,
        file=fd,
    )
    fd.flush()


def _display_overall_text(
    progress_queue: 'Queue[ProgressTuple]', num_simulations: int, fd: IO
) -> None:
    isatty = fd.isatty()
    end = '\r' if isatty else '\n'
    start = last_print = datetime.now()
    _print_overall(0, num_simulations, timedelta(), end, fd)
    try:
        for num_completed, done in _completions(progress_queue, num_simulations):
            now = datetime.now()
            # Terminals also get a once-a-second refresh of the elapsed time.
            if done or (isatty and (now - last_print).total_seconds() >= 1):
                _print_overall(num_completed, num_simulations, now - start, end, fd)
                last_print = now
    finally:
        if isatty:
            print(file=fd)


def _display_overall_pbar(
    progress_queue: 'Queue[ProgressTuple]',
    num_simulations: int,
    max_width: int,
    fd: IO,
) -> None:
    widgets = [
        progressbar.FormatLabel('%(value)s of %(max_value)s '),
        'simulations (',
        progressbar.Percentage(),
        ') ',
        progressbar.Bar(),
        progressbar.ETA(),
    ]
    pbar = _make_pbar(num_simulations, widgets, max_width, fd)
    try:
        for num_completed, done in _completions(progress_queue, num_simulations):
            if done:
                pbar.update(num_completed)
    finally:
        pbar.finish()
