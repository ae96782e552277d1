import asyncio
import time
import logging

from .exceptions import CallTimeout
from .stats import CallRecord, summarize

logger = logging.getLogger('rpcbench.performance_async')


class BatchConfig:
    """Parameters for one fixed-size benchmark batch"""
    def __init__(self, operation, total_calls=100, concurrency=5, warmup=True,
                 inter_batch_delay=0.1, timeout=10.0, warmup_pause=1.0):
        """
        Args:
            operation: Operation to invoke
            total_calls: Number of calls to issue (default: 100)
            concurrency: Calls launched together per wave (default: 5)
            warmup: Issue one discarded call before measuring (default: True)
            inter_batch_delay: Seconds to wait between waves (default: 0.1)
            timeout: Per-call deadline in seconds (default: 10.0)
            warmup_pause: Seconds to wait after the warmup call (default: 1.0)
        """
        self.operation = operation
        self.total_calls = total_calls
        self.concurrency = concurrency
        self.warmup = warmup
        self.inter_batch_delay = inter_batch_delay
        self.timeout = timeout
        self.warmup_pause = warmup_pause

    def validate(self):
        """Raise ValueError if the configuration cannot be run"""
        if self.total_calls is None or int(self.total_calls) < 1:
            raise ValueError(f"total_calls must be >= 1, got {self.total_calls}")
        if self.concurrency is None or int(self.concurrency) < 1:
            raise ValueError(f"concurrency must be >= 1, got {self.concurrency}")
        if self.timeout is None or self.timeout <= 0:
            raise ValueError(f"timeout must be > 0, got {self.timeout}")
        if self.inter_batch_delay is None or self.inter_batch_delay < 0:
            raise ValueError(f"inter_batch_delay must be >= 0, got {self.inter_batch_delay}")
        return self

    def wave_sizes(self):
        """Sizes of the sequential waves, the last one possibly partial"""
        sizes = []
        remaining = self.total_calls
        while remaining > 0:
            size = min(self.concurrency, remaining)
            sizes.append(size)
            remaining -= size
        return sizes


def _discard_outcome(task):
    # Consume the result of an abandoned call so a late failure is never reported
    if not task.cancelled():
        task.exception()


async def timed_call(invoker, operation, timeout, index=0):
    """
    Race one call against its own deadline

    Whichever settles first decides the record. On timeout the call task is
    cancelled, but cancellation is best-effort: an invoker whose transport
    does not honour it keeps running in the background until it finishes,
    holding whatever resources it uses.

    Returns:
        CallRecord, already finalized
    """
    record = CallRecord(index)
    task = asyncio.ensure_future(invoker.invoke(operation.name, operation.params))
    done, _ = await asyncio.wait({task}, timeout=timeout)

    if not done:
        record.fail(CallTimeout(timeout))
        task.add_done_callback(_discard_outcome)
        task.cancel()
        logger.debug(f"Request {index + 1} to {operation.name} timed out after {timeout}s")
        return record

    error = task.exception() if not task.cancelled() else asyncio.CancelledError()
    if error is None:
        record.finish()
    else:
        record.fail(error)
        logger.debug(f"Request {index + 1} to {operation.name} failed: {error!r}")
    return record


async def run_wave(invoker, operation, size, timeout, first_index=0):
    """Launch size calls together and wait until every one has settled"""
    calls = [timed_call(invoker, operation, timeout, first_index + i) for i in range(size)]
    return list(await asyncio.gather(*calls))


async def warmup_call(invoker, operation):
    """Issue one call whose outcome is discarded; errors are only logged"""
    try:
        await invoker.invoke(operation.name, operation.params)
    except Exception as e:
        logger.warning(f"Warmup request for {operation.name} failed: {e}")


async def run_batch(invoker, config):
    """
    Run a fixed number of calls in waves of config.concurrency

    Args:
        invoker: Invoker shared by all calls
        config: BatchConfig

    Returns:
        BenchmarkSummary

    Raises:
        ValueError: invalid config
        NoSuccessfulCalls: every call failed or timed out
    """
    config.validate()
    operation = config.operation

    if config.warmup:
        logger.info(f"Warming up {operation.name}...")
        await warmup_call(invoker, operation)
        if config.warmup_pause:
            await asyncio.sleep(config.warmup_pause)

    logger.info(f"Starting benchmark for {operation.name}")
    logger.info(f"Parameters: {list(operation.params)}")
    logger.info(f"Requests: {config.total_calls}, Concurrency: {config.concurrency}")

    records = []
    wall_start = time.perf_counter()

    sizes = config.wave_sizes()
    for wave_number, size in enumerate(sizes):
        records.extend(await run_wave(invoker, operation, size, config.timeout, len(records)))
        if wave_number < len(sizes) - 1 and config.inter_batch_delay:
            await asyncio.sleep(config.inter_batch_delay)

    wall_elapsed_ms = (time.perf_counter() - wall_start) * 1000

    failed = len([r for r in records if not r.success])
    if failed:
        logger.info(f"{operation.name}: {failed}/{len(records)} requests failed")

    return summarize(records, wall_elapsed_ms, operation.name, config.total_calls)


def execute_batch(invoker, config):
    """
    Entry point for running a batch outside an event loop

    Args:
        invoker: Invoker; it is used but not closed
        config: BatchConfig

    Returns:
        BenchmarkSummary
    """
    return asyncio.run(run_batch(invoker, config))
