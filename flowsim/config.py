"""Tools for managing simulation configurations.

Each simulation run is configured by one flat dictionary whose keys use a
dotted notation so that different namespaces can coexist:

- `sim.*` keys configure the run itself, e.g. 'sim.duration', 'sim.seed',
  'sim.log.enable' or 'sim.result.file'.
- `model.<nodeId>.<param>` keys override node parameters of the process
  model, e.g. 'model.p1.resourceCount' or 'model.src.interArrivalTime'.
- `meta.sim.*` keys are maintained by multi-run orchestration.

Defaults are filled in with :meth:`dict.setdefault` where they are consumed,
so a config dict returned with a result documents every value that was used.
:func:`model_config` fills the `sim.*` run keys and the `model.*` keys from a
:class:`~flowsim.model.ProcessModel`, which makes the model's own
configuration the baseline that user overrides and factors are applied to.

Most other functions in this module are provided to support building user
interfaces for configuring simulations.

"""
from collections.abc import Mapping, Sequence
from copy import deepcopy
from itertools import product
import builtins

from .distributions import DISTRIBUTIONS
from .model import (
    ModelError,
    SimConfig,
    distribution_from_dict,
    distribution_to_dict,
    node_to_dict,
)
from .util import camel_to_snake

_sim_keys = {
    'seed': 'sim.seed',
    'duration': 'sim.duration',
    'time_unit': 'sim.time_unit',
    'warmup_period': 'sim.warmup_period',
}


class ConfigError(Exception):
    """Exception raised for a variety of configuration errors."""


def model_config(config, model):
    """Populate `config` with defaults taken from `model`.

    The `sim.seed`, `sim.duration`, `sim.time_unit` and `sim.warmup_period`
    keys default to the model's :class:`~flowsim.model.SimConfig` and every
    node parameter is exposed as a `model.<nodeId>.<param>` key. Values
    already present in `config` are kept.

    :param dict config: Configuration dictionary to populate.
    :param model: The :class:`~flowsim.model.ProcessModel` to be simulated.
    :returns: The populated `config`.

    """
    for attr, key in _sim_keys.items():
        config.setdefault(key, getattr(model.config, attr))
    for node in model.nodes:
        for param, value in node_to_dict(node)['params'].items():
            config.setdefault(f'model.{node.id}.{param}', value)
    return config


def sim_config(config):
    """Build the :class:`~flowsim.model.SimConfig` described by `config`."""
    defaults = SimConfig()
    return SimConfig(
        **{
            attr: config.setdefault(key, getattr(defaults, attr))
            for attr, key in _sim_keys.items()
        }
    )


def apply_model_overrides(model, config):
    """Return a copy of `model` with the `model.*` keys of `config` applied.

    The run keys of `config` replace the model's
    :class:`~flowsim.model.SimConfig`. Parameters given as
    `model.<nodeId>.<param>` replace the corresponding node parameters;
    distributions may be given in wire format (a dict with a 'type' key).

    :raises `flowsim.model.ModelError`:
        For unknown nodes, unknown parameters or invalid distributions.

    """
    model = model._replace(config=sim_config(config))
    for key, value in config.items():
        if not key.startswith('model.'):
            continue
        if '.' not in key[len('model.'):]:
            raise ConfigError(f'Invalid model config key "{key}"')
        node_id, param = key[len('model.'):].rsplit('.', 1)
        attr = camel_to_snake(param)
        if isinstance(value, Mapping) and 'type' in value:
            value = distribution_from_dict(value)
        elif attr == 'capacity' and value in (None, float('inf')):
            value = 0
        try:
            current = getattr(model.node(node_id).params, attr, None)
        except KeyError:
            raise ModelError(f'Unknown node "{node_id}" in "{key}"') from None
        if current != value:
            model = model.replace_params(node_id, **{attr: value})
    return model


def apply_user_overrides(config, overrides, eval_locals=None):
    """Apply command line style `(key, expression)` overrides to `config`.

    Keys are resolved with :func:`fuzzy_lookup`, so only keys already
    present in `config` can be overridden; call :func:`model_config` first
    to make the `model.*` keys available. Expressions are evaluated with
    :func:`_safe_eval` and coerced to the type of the value they replace.
    Distributions are written as calls, e.g. ``exponential(4)`` or
    ``triangular(min=1, mode=2, max=5)``.

    :param dict config: Configuration dictionary to modify.
    :param list overrides: `(user key, value expression)` pairs.
    :param dict eval_locals:
        Names available to the expressions instead of the default safe set.
    :raises `flowsim.config.ConfigError`: For an invalid key or expression.

    """
    for user_key, user_expr in overrides:
        key, current_value = fuzzy_lookup(config, user_key)
        config[key] = _safe_eval(user_expr, type(current_value), eval_locals)


def parse_user_factors(config, user_factors, eval_locals=None):
    """Parse several factors with :func:`parse_user_factor`.

    :param dict config: Configuration the factors are checked against.
    :param user_factors: `(user keys, user expressions)` pairs.
    :returns:
        List of factors suitable for
        :func:`~flowsim.simulation.simulate_factors()`.
    :raises `flowsim.config.ConfigError`: For invalid user keys or expressions.

    """
    return [
        parse_user_factor(config, user_keys, user_exprs, eval_locals)
        for user_keys, user_exprs in user_factors
    ]


def parse_user_factor(config, user_keys, user_exprs, eval_locals=None):
    """Parse one user-provided factor.

    A factor names one or more config keys and lists the combinations of
    values those keys take, e.g. comparing staffing levels of two process
    steps:

        >>> config = {'model.p1.resourceCount': 1,
        ...           'model.p2.resourceCount': 1,
        ...           'sim.seed': 42}
        >>> parse_user_factor(config, 'p1.resourceCount,p2.resourceCount',
        ...                   '(1, 2), (2, 2), (2, 3)')
        [['model.p1.resourceCount', 'model.p2.resourceCount'], [[1, 2], [2, 2], [2, 3]]]

    `config` is only read: fuzzy keys are resolved against it and each value
    is coerced to the type of the value currently held by its key.

    :param dict config: Configuration the factor is checked against.
    :param str user_keys: Comma-separated, possibly fuzzy, config keys.
    :param str user_exprs:
        Expression evaluating to a sequence with one item per combination.
        With several keys each item is a tuple holding one value per key.
    :returns:
        A `[keys, values]` pair of lists (lists rather than tuples so that
        configs stay YAML friendly).
    :raises `flowsim.config.ConfigError`: For invalid keys or value expressions.

    """
    current = [fuzzy_lookup(config, key.strip()) for key in user_keys.split(',')]
    user_values = _safe_eval(user_exprs, eval_locals=eval_locals)
    if not isinstance(user_values, Sequence):
        raise ConfigError(f'Factor value not a sequence "{user_values}"')
    values = []
    for user_items in user_values:
        if len(current) == 1:
            user_items = [user_items]
        values.append(
            [_coerce(item, value) for (_, value), item in zip(current, user_items)]
        )
    return [[key for key, _ in current], values]


def _coerce(item, current_value):
    value_type = type(current_value)
    if isinstance(item, value_type):
        return item
    try:
        return value_type(item)
    except (ValueError, TypeError):
        raise ConfigError(f'Failed to coerce {item} to {value_type.__name__}') from None


def factorial_config(base_config, factors, special_key=None):
    """Yield one config per combination of the `factors`' values.

    Each yielded config is a deep copy of `base_config` with one value list
    of every factor applied, in the order of the cartesian product (the last
    factor varies fastest). With `special_key`, each config also records the
    `[key, value]` pairs that make it special under that key, which
    :func:`~flowsim.simulation.simulate_factors` stores as 'meta.sim.special'.

    :param dict base_config: Configuration to specialize; it is not modified.
    :param list factors: `(keys, values lists)` pairs.
    :param str special_key: Optional key for the applied `[key, value]` pairs.

    """
    per_factor = [
        [list(zip(keys, values)) for values in values_lists]
        for keys, values_lists in factors
    ]
    for combination in product(*per_factor):
        config = deepcopy(base_config)
        applied = [[key, value] for items in combination for key, value in items]
        config.update(applied)
        if special_key:
            config[special_key] = applied
        yield config


def fuzzy_lookup(config, fuzzy_key):
    """Find the config item named by a partial (fuzzy) key.

    `fuzzy_key` may be a complete key or any tail of one: 'p1.resourceCount'
    and 'resourceCount' both find 'model.p1.resourceCount' as long as no
    other key matches. Tails made of whole dotted components take precedence
    over plain string suffixes.

    :param dict config: Configuration dict in which to lookup `fuzzy_key`.
    :param str fuzzy_key: Partially specified key to lookup in `config`.
    :returns:
        `(key, value)` tuple. The returned key is the regular, fully-qualified
        key name, not the provided `fuzzy_key`.
    :raises `flowsim.config.ConfigError`:
        When `fuzzy_key` matches no key or more than one key.

    """
    if fuzzy_key in config:
        return fuzzy_key, config[fuzzy_key]
    matches = [k for k in config if k.endswith('.' + fuzzy_key)]
    if not matches:
        matches = [k for k in config if k.endswith(fuzzy_key)]
    if not matches:
        raise ConfigError(f'Invalid config key "{fuzzy_key}"')
    if len(matches) > 1:
        raise ConfigError(
            f'Ambiguous config key "{fuzzy_key}"; '
            f'possible matches: {", ".join(matches)}'
        )
    key = matches[0]
    return key, config[key]


def _distribution_locals():
    def make(kind):
        def build(*args, **kwargs):
            return distribution_to_dict(DISTRIBUTIONS[kind](*args, **kwargs))

        return build

    return {kind: make(kind) for kind in DISTRIBUTIONS}


_safe_builtins = [
    'abs',
    'bin',
    'bool',
    'dict',
    'float',
    'frozenset',
    'hex',
    'int',
    'len',
    'list',
    'max',
    'min',
    'oct',
    'ord',
    'range',
    'round',
    'set',
    'str',
    'sum',
    'tuple',
    'zip',
]

_default_eval_locals = {
    name: getattr(builtins, name) for name in _safe_builtins if hasattr(builtins, name)
}
_default_eval_locals.update(_distribution_locals())


def _safe_eval(expr, coerce_type=None, eval_locals=None):
    """Evaluate a user expression without access to Python's builtins.

    With a `coerce_type`, the value is converted to that type. Strings need
    no quoting: when a string is wanted, an expression that fails to evaluate
    or that merely names a local (e.g. 'normal') is taken literally.

    """
    if eval_locals is None:
        eval_locals = _default_eval_locals
    try:
        value = eval(expr, {'__builtins__': None}, eval_locals)
    except Exception:
        if not (coerce_type and issubclass(coerce_type, str)):
            raise ConfigError(f'Failed evaluation of expression "{expr}"') from None
        value = expr
    if coerce_type is None or isinstance(value, coerce_type):
        return value
    if expr in eval_locals:
        value = expr
        if isinstance(value, coerce_type):
            return value
    try:
        return coerce_type(value)
    except (ValueError, TypeError):
        raise ConfigError(
            f'Failed to coerce expression {_quote_expr(expr)} to '
            f'{coerce_type.__name__}'
        ) from None


def _quote_expr(expr):
    quote_char = "'" if expr.startswith('"') else '"'
    return ''.join([quote_char, expr, quote_char])
