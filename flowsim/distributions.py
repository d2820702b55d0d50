"""Probability distributions for inter-arrival and service times.

Each distribution is an immutable record tagged by its `kind`. The
:func:`sample` function turns a distribution and a draw from the run's
:class:`~flowsim.rng.Mulberry32` stream into a non-negative duration.

The number of draws consumed per sample is part of the reproducibility
contract: `fixed` consumes none, `normal` consumes two, and every other kind
consumes exactly one.

"""
from typing import NamedTuple, Union
import math

from .rng import Mulberry32


class Fixed(NamedTuple):
    value: float

    kind = 'fixed'


class Exponential(NamedTuple):
    mean: float

    kind = 'exponential'


class Normal(NamedTuple):
    mean: float
    stddev: float

    kind = 'normal'


class Uniform(NamedTuple):
    min: float
    max: float

    kind = 'uniform'


class Triangular(NamedTuple):
    min: float
    mode: float
    max: float

    kind = 'triangular'


Distribution = Union[Fixed, Exponential, Normal, Uniform, Triangular]

#: Distribution classes keyed by their `kind` tag.
DISTRIBUTIONS = {
    cls.kind: cls for cls in (Fixed, Exponential, Normal, Uniform, Triangular)
}


def sample(dist: Distribution, rng: Mulberry32) -> float:
    """Sample a duration from `dist`, clamped to be >= 0.

    :param dist: Distribution record.
    :param rng: Random stream to draw from.
    :raises TypeError: If `dist` is not a known distribution.

    """
    if isinstance(dist, Fixed):
        value = dist.value
    elif isinstance(dist, Exponential):
        # 1 - U is in (0, 1], so the log never sees zero.
        value = -dist.mean * math.log(1 - rng.next())
    elif isinstance(dist, Normal):
        u1 = rng.next()
        u2 = rng.next()
        z = math.sqrt(-2 * math.log(1 - u1)) * math.cos(2 * math.pi * u2)
        value = dist.mean + dist.stddev * z
    elif isinstance(dist, Uniform):
        value = dist.min + (dist.max - dist.min) * rng.next()
    elif isinstance(dist, Triangular):
        value = _triangular(dist, rng.next())
    else:
        raise TypeError(f'Unknown distribution type: {dist!r}')
    return max(0.0, value)


def _triangular(dist: Triangular, u: float) -> float:
    lo, mode, hi = dist
    span = hi - lo
    if span == 0:
        return lo
    if u < (mode - lo) / span:
        return lo + math.sqrt(u * span * (mode - lo))
    else:
        return hi - math.sqrt((1 - u) * span * (hi - mode))
