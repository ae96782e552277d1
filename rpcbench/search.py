"""
Adaptive search for the concurrency level that maximises sustained throughput

Each level runs back-to-back waves for a fixed wall-clock duration. The
search keeps the best level seen, stops after three consecutive levels that
fail to beat it by 5%, and gives up on a level whose error rate exceeds 30%
once its first second has passed.
"""
import asyncio
import time
import logging

from .exceptions import ExcessiveErrorRate
from .performance_async import run_wave

logger = logging.getLogger('rpcbench.search')

IMPROVEMENT_MARGIN = 1.05
PLATEAU_LIMIT = 3
MAX_ERROR_RATE = 0.3


class LevelResult:
    """Counts observed while one concurrency level ran"""
    def __init__(self, concurrency, attempted, succeeded, elapsed_ms):
        self.concurrency = concurrency
        self.attempted = attempted
        self.succeeded = succeeded
        self.elapsed_ms = elapsed_ms

    @property
    def failed(self):
        return self.attempted - self.succeeded

    @property
    def throughput(self):
        """Successful calls per second"""
        if self.elapsed_ms <= 0:
            return 0.0
        return self.succeeded / self.elapsed_ms * 1000

    def to_dict(self):
        return {
            "concurrency": self.concurrency,
            "attempted": self.attempted,
            "succeeded": self.succeeded,
            "elapsed_ms": self.elapsed_ms,
            "throughput": self.throughput,
        }


class SearchState:
    """Mutable bookkeeping of a running search"""
    def __init__(self, start):
        self.current_concurrency = start
        self.best_throughput = 0.0
        self.concurrency_at_best = start
        self.plateau_count = 0
        self.levels = []

    def record(self, level):
        """Fold a completed level in; returns True when it improved on the best"""
        self.levels.append(level)
        if level.throughput > self.best_throughput * IMPROVEMENT_MARGIN:
            self.best_throughput = level.throughput
            self.concurrency_at_best = level.concurrency
            self.plateau_count = 0
            return True
        self.plateau_count += 1
        return False


class SearchResult:
    def __init__(self, best_throughput, concurrency_at_best, levels=None, aborted_at=None):
        self.best_throughput = best_throughput
        self.concurrency_at_best = concurrency_at_best
        self.levels = list(levels or [])
        self.aborted_at = aborted_at

    def to_dict(self):
        return {
            "max_throughput": self.best_throughput,
            "optimal_concurrency": self.concurrency_at_best,
            "aborted_at": self.aborted_at,
            "levels": [level.to_dict() for level in self.levels],
        }


async def run_level(invoker, operation, concurrency, duration, timeout, error_check_after=1.0):
    """
    Keep launching waves of concurrency calls until duration seconds pass

    Raises:
        ExcessiveErrorRate: after error_check_after seconds, more than 30% of
            the calls attempted at this level failed, or the level ended
            without a single successful call
    """
    attempted = 0
    succeeded = 0
    level_start = time.perf_counter()

    while time.perf_counter() - level_start < duration:
        records = await run_wave(invoker, operation, concurrency, timeout, attempted)
        attempted += len(records)
        succeeded += len([r for r in records if r.success])

        if time.perf_counter() - level_start > error_check_after:
            error_rate = (attempted - succeeded) / attempted
            if error_rate > MAX_ERROR_RATE:
                raise ExcessiveErrorRate(concurrency, error_rate)

    if succeeded == 0:
        raise ExcessiveErrorRate(concurrency, 1.0)

    elapsed_ms = (time.perf_counter() - level_start) * 1000
    return LevelResult(concurrency, attempted, succeeded, elapsed_ms)


async def find_max_throughput(invoker, operation, start=5, max_concurrency=250, step=5,
                              duration=5.0, timeout=10.0, settle_delay=1.0,
                              error_check_after=1.0):
    """
    Search increasing concurrency levels for the best sustained throughput

    Args:
        invoker: Invoker shared by all calls
        operation: Operation to invoke
        start: First concurrency level (default: 5)
        max_concurrency: Highest level to try (default: 250)
        step: Increment between levels (default: 5)
        duration: Seconds each level runs (default: 5.0)
        timeout: Per-call deadline in seconds (default: 10.0)
        settle_delay: Seconds to pause between levels (default: 1.0)
        error_check_after: Seconds into a level before the error rate is judged (default: 1.0)

    Returns:
        SearchResult; best_throughput is in calls per second
    """
    if start < 1:
        raise ValueError(f"start concurrency must be >= 1, got {start}")
    if step < 1:
        raise ValueError(f"step must be >= 1, got {step}")
    if max_concurrency < start:
        raise ValueError(f"max concurrency {max_concurrency} is below start {start}")
    if duration <= 0:
        raise ValueError(f"duration must be > 0, got {duration}")

    logger.info(f"Finding maximum throughput for {operation.name}...")
    state = SearchState(start)
    aborted_at = None

    while state.current_concurrency <= max_concurrency and state.plateau_count < PLATEAU_LIMIT:
        concurrency = state.current_concurrency
        logger.info(f"Testing concurrency level: {concurrency}")
        try:
            level = await run_level(invoker, operation, concurrency, duration, timeout,
                                    error_check_after)
        except ExcessiveErrorRate as e:
            logger.warning(f"Error at concurrency {concurrency}: {e}")
            aborted_at = concurrency
            break

        improved = state.record(level)
        logger.info(f"Concurrency {concurrency}: {level.throughput:.2f} req/s"
                    + ("" if improved else f" (no improvement, plateau {state.plateau_count})"))

        state.current_concurrency += step
        if (settle_delay and state.current_concurrency <= max_concurrency
                and state.plateau_count < PLATEAU_LIMIT):
            await asyncio.sleep(settle_delay)

    return SearchResult(state.best_throughput, state.concurrency_at_best, state.levels, aborted_at)


def execute_search(invoker, operation, **kwargs):
    """Entry point for running a search outside an event loop"""
    return asyncio.run(find_max_throughput(invoker, operation, **kwargs))
