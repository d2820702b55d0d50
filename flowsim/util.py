import re
import string

_camel_re = re.compile(r'(?<=[a-z0-9])([A-Z])')
_acronyms = {'wip': 'WIP'}
_formatter = string.Formatter()


def camel_to_snake(name):
    """Convert a camelCase wire name to a snake_case attribute name.

    >>> camel_to_snake('interArrivalTime')
    'inter_arrival_time'

    """
    return _camel_re.sub(r'_\1', name).lower()


def snake_to_camel(name):
    """Convert a snake_case attribute name to a camelCase wire name.

    >>> snake_to_camel('avg_queue_length')
    'avgQueueLength'

    """
    head, *rest = name.split('_')
    return head + ''.join(_acronyms.get(part, part.capitalize()) for part in rest)


def record_to_dict(record):
    """Render a NamedTuple record as a dict with camelCase keys."""
    return {snake_to_camel(k): v for k, v in record._asdict().items()}


def linspace(start, stop, num_intervals):
    """Return `num_intervals` + 1 evenly spaced values over [start, stop]."""
    step = (stop - start) / num_intervals
    values = [start + i * step for i in range(num_intervals)]
    values.append(stop)
    return values


def partial_format(format_string, **kwargs):
    """Replace only the named fields given in `kwargs`.

    Fields not named in `kwargs` are left in place, escaped, so that the
    result can be formatted again later, e.g. a log prefix whose scope is
    known when a tracer is activated but whose timestamp is only known when
    a line is written.

    >>> partial_format('{ts:.1f} {scope}:', scope='engine')
    '{ts:.1f} engine:'

    """
    result = []
    for literal, field, spec, conversion in _formatter.parse(format_string):
        if literal:
            result.append(literal.replace('{', '{{').replace('}', '}}'))
        if field is None:
            continue
        inner = field
        if conversion:
            inner += '!' + conversion
        if spec:
            inner += ':' + partial_format(spec, **kwargs)
        if field in kwargs:
            result.append('{' + inner + '}')
        else:
            result.append('{{' + inner + '}}')
    return ''.join(result).format(**kwargs)
