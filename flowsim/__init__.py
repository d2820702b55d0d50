"""Discrete event simulation of process flows.

The `flowsim` package simulates process models: directed graphs of sources,
queues, processes and sinks through which entities (orders, patients,
parts...) flow. A run produces performance metrics for the model as a
whole (throughput, lead time, work in progress) and for each node
(utilization, queue lengths, wait and service times), identifies bottlenecks
and samples time series of work in progress and cumulative throughput.

Runs are deterministic: the same model and seed always produce the same
result.

Models
======

A :class:`~flowsim.model.ProcessModel` is usually built from its
JSON-compatible wire format with :meth:`~flowsim.model.ProcessModel.from_dict`.
Node parameters include the :mod:`~flowsim.distributions` from which
inter-arrival and service times are sampled. The
:func:`~flowsim.validator.validate_model` function checks a model for
structural and semantic errors before it is simulated.

The :func:`flowsim.dot.model_to_dot()` function renders a model, optionally
annotated with results, in the `DOT`__ language for `GraphViz`__ tools.

__ http://graphviz.org/content/dot-language
__ http://graphviz.org/

Configuration
=============

A single, flat configuration dictionary with dot-separated keys captures all
configuration of a run: the `sim.*` keys configure the run itself and the
`model.<nodeId>.<param>` keys override node parameters. The
:mod:`flowsim.config` module provides functionality for managing
configuration dictionaries, including user overrides and factors.

Simulation
==========

:func:`~flowsim.simulation.simulate()` runs one model with one configuration
and :func:`~flowsim.simulation.simulate_factors()` runs a multi-factor set of
simulations in parallel, e.g. to compare scenarios. The
:class:`~flowsim.engine.SimEngine` may also be used directly::

    result = SimEngine(model).run()

Monitoring
==========

Runs are traced with the tracers of :mod:`flowsim.tracer`: a text log of
engine activity and lost entities, and a VCD waveform of work in progress,
queue lengths and busy resources.

"""

__all__ = ()
