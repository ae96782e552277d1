"""
Encapsulates logic related to benchmark statistics
- Per-call records produced by the batch runner
- Immutable summary computed once a batch has completed
- Aggregation helpers (mean, nearest-rank percentiles)
"""
import math
import time
from dataclasses import dataclass, asdict

from .exceptions import NoSuccessfulCalls


class CallRecord:
    """Outcome of a single call, finalized exactly once"""
    def __init__(self, index=0, started_at=None):
        self.index = index
        self.started_at = time.perf_counter() if started_at is None else started_at
        self.ended_at = None
        self.elapsed_ms = None
        self.success = False
        self.error = None

    @property
    def settled(self):
        return self.elapsed_ms is not None

    def finish(self, ended_at=None):
        """ Mark the call as succeeded; ignored if the record already settled """
        if self.settled:
            return self
        self.ended_at = time.perf_counter() if ended_at is None else ended_at
        self.elapsed_ms = (self.ended_at - self.started_at) * 1000
        self.success = True
        return self

    def fail(self, error, failed_at=None):
        """ Mark the call as failed with a cause; no end timestamp is kept """
        if self.settled:
            return self
        failed_at = time.perf_counter() if failed_at is None else failed_at
        self.elapsed_ms = (failed_at - self.started_at) * 1000
        self.success = False
        self.error = error
        return self

    def __repr__(self):
        state = 'ok' if self.success else f'failed({type(self.error).__name__})'
        return f"CallRecord(index={self.index}, elapsed_ms={self.elapsed_ms}, {state})"


@dataclass(frozen=True)
class BenchmarkSummary:
    """Statistics for one completed batch; latencies and total_time in ms"""

    method: str
    avg_latency: float
    min_latency: float
    max_latency: float
    p95_latency: float
    p99_latency: float
    success_rate: float
    throughput: float
    error_count: int
    total_time: float

    def to_dict(self):
        return asdict(self)


def mean(array):
    """ Arithmetic mean of a non-empty sequence, kept within its extremes """
    average = math.fsum(array) / len(array)
    return min(max(average, min(array)), max(array))


def percentile(sorted_array, p):
    """Return the p-th percentile of an ascending list by nearest rank

    The value at index floor(p/100 * n) is returned, without interpolation.
    The index is clamped to the last element so p=100 stays in range.
    """
    if not sorted_array:
        return None
    k = int(math.floor((p / 100.0) * len(sorted_array)))
    return sorted_array[min(k, len(sorted_array) - 1)]


def summarize(records, total_elapsed_ms, method_name, total_attempted):
    """
    Compute a BenchmarkSummary from the records of a completed batch

    Args:
        records: Iterable of CallRecord
        total_elapsed_ms: Wall clock time of the batch in milliseconds
        method_name: Name reported in the summary
        total_attempted: Number of calls the batch issued

    Returns:
        BenchmarkSummary

    Raises:
        NoSuccessfulCalls: if none of the records succeeded
    """
    durations = sorted(r.elapsed_ms for r in records if r.success)
    if not durations:
        raise NoSuccessfulCalls(method_name, total_attempted)

    successes = len(durations)
    if total_elapsed_ms > 0:
        throughput = successes / total_elapsed_ms * 1000
    else:
        throughput = 0.0

    return BenchmarkSummary(
        method=method_name,
        avg_latency=mean(durations),
        min_latency=durations[0],
        max_latency=durations[-1],
        p95_latency=percentile(durations, 95),
        p99_latency=percentile(durations, 99),
        success_rate=successes / total_attempted * 100,
        throughput=throughput,
        error_count=total_attempted - successes,
        total_time=total_elapsed_ms,
    )
