"""Result records produced by a simulation run.

All records are immutable. :meth:`SimResult.to_dict` renders the
JSON-compatible structure stored by callers, with camelCase field names
(`avgLeadTime`, `nodeMetrics`, `throughputCumulative`, ...), and
:meth:`SimResult.from_dict` reads it back.

"""
from typing import Any, Dict, List, Mapping, NamedTuple

from .util import camel_to_snake, record_to_dict


class SimSummary(NamedTuple):
    #: Departures per time unit over the measurement window.
    throughput: float
    avg_lead_time: float
    avg_wip: float
    #: Entities created during the measurement window.
    total_entities: int
    simulated_time: float


class NodeMetrics(NamedTuple):
    #: Busy fraction of the node's resources, in [0, 1].
    utilization: float = 0.0
    avg_queue_length: float = 0.0
    avg_wait_time: float = 0.0
    avg_service_time: float = 0.0
    processed: int = 0


class Bottleneck(NamedTuple):
    node_id: str
    utilization: float
    avg_queue_length: float


class TimeSeries(NamedTuple):
    timestamps: List[float]
    wip: List[int]
    throughput_cumulative: List[int]


def _from_camel(record_type, data):
    return record_type(**{camel_to_snake(k): v for k, v in data.items()})


class SimResult(NamedTuple):
    summary: SimSummary
    node_metrics: Dict[str, NodeMetrics]
    bottlenecks: List[Bottleneck]
    time_series: TimeSeries

    def to_dict(self) -> Dict[str, Any]:
        return {
            'summary': record_to_dict(self.summary),
            'nodeMetrics': {
                node_id: record_to_dict(metrics)
                for node_id, metrics in self.node_metrics.items()
            },
            'bottlenecks': [record_to_dict(b) for b in self.bottlenecks],
            'timeSeries': {
                'timestamps': list(self.time_series.timestamps),
                'wip': list(self.time_series.wip),
                'throughputCumulative': list(self.time_series.throughput_cumulative),
            },
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'SimResult':
        return cls(
            summary=_from_camel(SimSummary, data['summary']),
            node_metrics={
                node_id: _from_camel(NodeMetrics, metrics)
                for node_id, metrics in data['nodeMetrics'].items()
            },
            bottlenecks=[_from_camel(Bottleneck, b) for b in data['bottlenecks']],
            time_series=_from_camel(TimeSeries, data['timeSeries']),
        )
