"""Running simulations, alone or many at once.

:func:`simulate` runs one process model with one configuration dictionary
and returns a result dictionary. It takes care of everything around the
engine: validating the model, applying configuration overrides to it, the
workspace directory, tracing, progress display and result files.

:func:`simulate_many` and :func:`simulate_factors` run several independent
simulations in separate processes, e.g. to compare scenarios or to repeat a
scenario with different seeds.

"""
from collections.abc import Mapping
from contextlib import closing
from multiprocessing import Process, Queue, cpu_count
from pprint import pprint
from threading import Thread
import json
import os
import shutil
import timeit

import yaml

from .config import apply_model_overrides, factorial_config, model_config
from .dot import generate_dot
from .engine import SimEngine
from .environment import SimEnvironment
from .model import ProcessModel
from .progress import (
    consume_multi_progress,
    get_multi_progress_manager,
    standalone_progress_manager,
)
from .validator import ModelValidationError, validate_model
from .workspace import Workspace


def prepare_model(config, model):
    """Resolve the model to simulate from `model` and `config`.

    `model` may be a :class:`~flowsim.model.ProcessModel` or its wire-format
    dict. `config` is populated with the model's defaults (see
    :func:`~flowsim.config.model_config`) and its overrides are applied. When
    'sim.validate' is set (the default), the model is validated both before
    and after the overrides are applied.

    :returns: The :class:`~flowsim.model.ProcessModel` to simulate.
    :raises `flowsim.validator.ModelValidationError`: For an invalid model.

    """
    validate = config.setdefault('sim.validate', True)
    if isinstance(model, Mapping):
        if validate:
            _check(model)
        model = ProcessModel.from_dict(model)
    model_config(config, model)
    model = apply_model_overrides(model, config)
    if validate:
        _check(model)
    return model


def _check(model):
    validation = validate_model(model)
    if not validation.valid:
        raise ModelValidationError(validation.errors)


def simulate(
    config,
    model,
    env_type=SimEnvironment,
    reraise=True,
    progress_manager=standalone_progress_manager,
):
    """Validate, configure and run one simulation.

    The exception of a failing run is recorded as its `repr()` under
    'sim.exception' of the result, which is still written to
    'sim.result.file'; a model rejected by validation is such a failure. Runs
    that fail after tracing started also log the traceback. The exception is
    then re-raised unless `reraise` is False, in which case the caller finds
    it in the returned result dict only.

    :param dict config: Configuration dictionary for the simulation.
    :param model:
        The :class:`~flowsim.model.ProcessModel` (or wire-format dict) to
        simulate.
    :param env_type: :class:`SimEnvironment` subclass.
    :param bool reraise: Whether exceptions propagate to the caller.
    :returns:
        Result dictionary. 'sim.result' holds the
        :meth:`~flowsim.result.SimResult.to_dict` form of the run's result,
        'sim.lost' the entities lost at each node, 'sim.sinks' the
        :meth:`~flowsim.engine.SimEngine.sink_reports` and 'sim.in_flight' the
        entities still in the system at the end of the run.

    """
    t0 = timeit.default_timer()
    result = {}
    result_file = config.setdefault('sim.result.file')
    config_file = config.setdefault('sim.config.file')
    try:
        with Workspace.from_config(config):
            env = None
            try:
                model = prepare_model(config, model)
                env = env_type(config)
                with closing(env.tracemgr):
                    try:
                        with progress_manager(env) as progress:
                            engine = SimEngine(model, env, progress)
                            sim_result = engine.run()
                        env.tracemgr.flush()
                        generate_dot(model, config, sim_result)
                        result['sim.result'] = sim_result.to_dict()
                        result['sim.lost'] = dict(engine.lost)
                        result['sim.in_flight'] = engine.in_flight
                        result['sim.sinks'] = engine.sink_reports()
                        result['sim.events'] = engine.event_count
                    except BaseException:
                        env.tracemgr.trace_exception()
                        raise
                    finally:
                        env.tracemgr.flush()
            except BaseException as e:
                result['sim.exception'] = repr(e)
                raise
            else:
                result['sim.exception'] = None
            finally:
                # Result files are written for rejected models too.
                result['config'] = config
                result['sim.now'] = env.now if env else 0
                result['sim.time'] = env.time() if env else 0
                result['sim.runtime'] = timeit.default_timer() - t0
                _dump_dict(config_file, config)
                _dump_dict(result_file, result)
    except BaseException as e:
        if reraise:
            raise
        result.setdefault('config', config)
        result.setdefault('sim.runtime', timeit.default_timer() - t0)
        if result.get('sim.exception') is None:
            result['sim.exception'] = repr(e)
    return result


def simulate_factors(
    base_config, factors, model, env_type=SimEnvironment, jobs=None, config_filter=None
):
    """Run multi-factor simulations of `model` in separate processes.

    The `factors` are used to compose specialized config dictionaries for the
    simulations, e.g. ``[[['model.p1.resourceCount'], [[1], [2], [3]]]]``
    compares three staffing levels of process "p1". Each simulation runs in
    its own workspace, a numbered subdirectory of 'sim.workspace'.

    :param dict base_config: Base configuration dictionary to be specialized.
    :param list factors: List of factors.
    :param model: The process model (or wire-format dict) to simulate.
    :param env_type: :class:`SimEnvironment` subclass.
    :param int jobs: Maximum number of worker processes.
    :param function config_filter:
        A function which will be passed a config and returns a bool to filter.
    :returns: Sequence of result dictionaries for each simulation.

    """
    configs = list(factorial_config(base_config, factors, 'meta.sim.special'))
    ws = base_config.setdefault('sim.workspace', os.curdir)
    overwrite = base_config.setdefault('sim.workspace.overwrite', False)

    for index, config in enumerate(configs):
        config['meta.sim.index'] = index
        config['meta.sim.workspace'] = os.path.join(ws, str(index))
    if config_filter is not None:
        configs[:] = filter(config_filter, configs)
    if overwrite and os.path.relpath(ws) != os.curdir and os.path.isdir(ws):
        shutil.rmtree(ws)
    return simulate_many([(config, model) for config in configs], env_type, jobs)


def simulate_many(runs, env_type=SimEnvironment, jobs=None):
    """Run independent simulations in parallel worker processes.

    Every run gets its own engine, RNG and workspace, so runs may complete in
    any order. Failures are isolated: a failing run reports its exception in
    its result's 'sim.exception' and the remaining runs carry on.

    :param list runs: `(config, model)` pairs, one per simulation.
    :param env_type: :class:`SimEnvironment` subclass.
    :param int jobs:
        Maximum number of worker processes. Defaults to the number of CPUs.
    :returns: Result dictionaries ordered by 'meta.sim.index'.
    :raises ValueError: For invalid `jobs` or runs sharing a workspace.

    """
    if jobs is not None and jobs < 1:
        raise ValueError(f'Invalid number of jobs: {jobs}')

    progress_enable = any(
        config.setdefault('sim.progress.enable', False) for config, _ in runs
    )
    max_width = _prepare_runs(runs, progress_enable)

    progress_queue = Queue() if progress_enable else None
    run_queue = Queue()
    result_queue = Queue()
    for run in runs:
        run_queue.put(run)

    num_workers = min(len(runs), cpu_count(), jobs or len(runs))
    workers = [
        Process(
            name=f'sim-worker-{i}',
            target=_simulate_worker,
            args=(env_type, progress_queue, run_queue, result_queue),
            daemon=True,
        )
        for i in range(num_workers)
    ]
    for worker in workers:
        worker.start()
        # One stop sentinel per worker.
        run_queue.put(None)

    progress_thread = None
    if progress_enable:
        progress_thread = Thread(
            target=consume_multi_progress,
            args=(progress_queue, num_workers, len(runs), max_width),
            daemon=True,
        )
        progress_thread.start()

    results = [result_queue.get() for _ in runs]

    if progress_thread:
        # Short join; the thread must not outlive stderr.
        progress_thread.join(1)
    for worker in workers:
        worker.join(5)

    return sorted(results, key=lambda r: r['config']['meta.sim.index'])


def _prepare_runs(runs, progress_enable):
    """Index the runs' configs and check that their workspaces are distinct.

    :returns: The widest 'sim.progress.max_width' of the runs.

    """
    workspaces = set()
    max_width = 0
    for index, (config, _) in enumerate(runs):
        config.setdefault('meta.sim.index', index)
        config['sim.progress.enable'] = progress_enable
        max_width = max(max_width, config.setdefault('sim.progress.max_width', 0))
        workspace = os.path.normpath(
            config.setdefault(
                'meta.sim.workspace', config.setdefault('sim.workspace', os.curdir)
            )
        )
        if workspace in workspaces:
            raise ValueError(f'Duplicate workspace: {workspace}')
        workspaces.add(workspace)
    return max_width


def _simulate_worker(env_type, progress_queue, run_queue, result_queue):
    progress_manager = get_multi_progress_manager(progress_queue)
    for config, model in iter(run_queue.get, None):
        result = simulate(
            config, model, env_type, reraise=False, progress_manager=progress_manager
        )
        result_queue.put(result)


def _dump_yaml(data, stream):
    yaml.safe_dump(data, stream=stream)


def _dump_json(data, stream):
    json.dump(data, stream, sort_keys=True, indent=2)


def _dump_py(data, stream):
    pprint(data, stream=stream)


#: Writers of config and result files by file extension.
_dumpers = {
    '.yaml': _dump_yaml,
    '.yml': _dump_yaml,
    '.json': _dump_json,
    '.py': _dump_py,
}


def _dump_dict(filename, dump_dict):
    if filename is None:
        return
    ext = os.path.splitext(filename)[1]
    try:
        dump = _dumpers[ext]
    except KeyError:
        raise ValueError(f'Invalid extension: {ext}') from None
    with open(filename, 'w') as dump_file:
        dump(dump_dict, dump_file)
