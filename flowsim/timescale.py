"""Parsing and scaling of simulation time units.

Process models express their clock in one of the :data:`TIME_UNITS`
("sec", "min" or "hour"). Tracers and progress displays need to relate the
simulation clock to other units; e.g. VCD waveforms only support SI
sub-second units, so minutes must be scaled into milliseconds.

"""
from fractions import Fraction
import re

#: Model time units and their canonical unit string.
TIME_UNITS = {'sec': 's', 'min': 'min', 'hour': 'hour'}

# Number of each unit per second.
_unit_map = {
    'fs': Fraction(10**15),
    'ps': Fraction(10**12),
    'ns': Fraction(10**9),
    'us': Fraction(10**6),
    'ms': Fraction(10**3),
    's': Fraction(1),
    'sec': Fraction(1),
    'min': Fraction(1, 60),
    'hour': Fraction(1, 3600),
}

_num_re = r'[-+]? (?: \d*\.\d+ | \d+\.?\d* ) (?: [eE] [-+]? \d+)?'

_timescale_re = re.compile(
    r'(?P<num>{})?'.format(_num_re)
    + r'\s?'
    + r'(?P<unit> sec | min | hour | [fpnum]?s)?'
    + r'$',
    re.VERBOSE,
)


def parse_time(time_str, default_unit=None):
    """Parse a string containing a time magnitude and optional unit.

    :param str time_str: Time string to parse, e.g. "5 min" or "1.5hour".
    :param str default_unit:
        Unit applied when `time_str` does not specify one.
    :returns:
        `(magnitude, unit)` tuple where magnitude is an int or float and the
        unit is one of "hour", "min", "s", "ms", "us", "ns", "ps" or "fs".
        "sec" is normalized to "s".
    :raises ValueError:
        If the string cannot be parsed or has no unit and no `default_unit`.

    """
    match = _timescale_re.match(time_str)
    if not match or not time_str:
        raise ValueError(f'Invalid time string "{time_str}"')
    num_str = match.group('num')
    if num_str:
        try:
            num = int(num_str)
        except ValueError:
            num = float(num_str)
    else:
        num = 1

    unit = match.group('unit') or default_unit
    if not unit:
        raise ValueError(f'No unit specified in "{time_str}"')
    if unit not in _unit_map:
        raise ValueError(f'Unknown time unit "{unit}"')
    return num, TIME_UNITS.get(unit, unit)


def scale_time(from_time, to_time):
    """Scale time values.

    :param tuple from_time: `(magnitude, unit)` tuple to be scaled.
    :param tuple to_time: `(magnitude, unit)` tuple to scale to.
    :returns:
        How many `to_time` fit into `from_time`; an int when exact.

    """
    from_t, from_u = from_time
    to_t, to_u = to_time
    ratio = _unit_map[to_u] / _unit_map[from_u]
    scaled = float(ratio * Fraction(from_t) / Fraction(to_t))
    if scaled % 1.0 == 0.0:
        return int(scaled)
    else:
        return scaled


def model_timescale(time_unit):
    """Timescale tuple for a model's time unit, e.g. `(1, 'min')`."""
    try:
        return 1, TIME_UNITS[time_unit]
    except KeyError:
        raise ValueError(f'Invalid time unit "{time_unit}"') from None
