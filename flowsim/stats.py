"""System-level statistics for a simulation run.

The :class:`StatsCollector` follows entities from creation to departure. The
work-in-progress (WIP) level is tracked for the whole run so that it is
correct when the measurement window opens; counts, lead times and
departure times only include activity at or after the warmup time.

"""
from bisect import insort
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

Time = Union[int, float]


class StatsCollector:
    """Accumulate entity lifecycle statistics.

    :param warmup: Start of the measurement window.

    """

    def __init__(self, warmup: Time = 0) -> None:
        self.warmup = warmup
        #: Entities created at or after the warmup time.
        self.total_created = 0
        #: Entities departed at or after the warmup time.
        self.total_departed = 0
        #: Entities lost at or after the warmup time.
        self.total_lost = 0
        #: Entities currently in the system.
        self.wip = 0
        #: `(time, wip)` history, one entry per change.
        self.wip_snapshots: List[Tuple[Time, int]] = []
        self._births: Dict[str, Time] = {}
        self._deaths: Dict[str, Time] = {}
        self._departure_times: List[Time] = []
        self._wip_hook: Optional[Callable[[], Any]] = None

    def record_creation(self, entity_id: str, now: Time) -> None:
        self._change_wip(now, 1)
        if now >= self.warmup:
            self.total_created += 1
            self._births[entity_id] = now

    def record_departure(self, entity_id: str, now: Time) -> None:
        self._change_wip(now, -1)
        if now >= self.warmup:
            self.total_departed += 1
            self._deaths[entity_id] = now
            insort(self._departure_times, now)

    def record_loss(self, entity_id: str, now: Time) -> None:
        """Record an entity leaving the system without departing."""
        self._change_wip(now, -1)
        self._births.pop(entity_id, None)
        if now >= self.warmup:
            self.total_lost += 1

    def compute_avg_lead_time(self) -> float:
        """Mean lead time of entities both created and departed in the window.

        Entities still in the system are excluded.

        """
        lead_times = [
            death - self._births[entity_id]
            for entity_id, death in self._deaths.items()
            if entity_id in self._births
        ]
        if not lead_times:
            return 0.0
        return sum(lead_times) / len(lead_times)

    def compute_avg_wip(self, start: Time, end: Time) -> float:
        """Time-weighted average WIP over [start, end]."""
        if end <= start or not self.wip_snapshots:
            return 0.0
        area = 0.0
        level = 0
        last = start
        for t, count in self.wip_snapshots:
            if t > end:
                break
            if t > start:
                area += level * (t - last)
                last = t
            level = count
        area += level * (end - last)
        return area / (end - start)

    def sample_wip(self, timestamps: Sequence[Time]) -> List[int]:
        """WIP level at each of the ascending `timestamps`."""
        result = []
        snapshots = self.wip_snapshots
        i = 0
        level = 0
        for t in timestamps:
            while i < len(snapshots) and snapshots[i][0] <= t:
                level = snapshots[i][1]
                i += 1
            result.append(level)
        return result

    def sample_throughput(self, timestamps: Sequence[Time]) -> List[int]:
        """Cumulative departures at each of the ascending `timestamps`."""
        result = []
        departures = self._departure_times
        i = 0
        for t in timestamps:
            while i < len(departures) and departures[i] <= t:
                i += 1
            result.append(i)
        return result

    def _change_wip(self, now: Time, delta: int) -> None:
        self.wip += delta
        self.wip_snapshots.append((now, self.wip))
        if self._wip_hook:
            self._wip_hook()
