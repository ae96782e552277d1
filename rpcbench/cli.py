import sys
import asyncio
import argparse
import logging

from .config import load_run_config, parse_operation
from .exceptions import NoSuccessfulCalls
from .invoker import JsonRpcInvoker, Operation, identify_network
from .performance_async import BatchConfig, run_batch
from .report import build_results_document, print_results, print_search_result, write_results
from .search import find_max_throughput

logger = logging.getLogger('rpcbench.cli')

PAUSE_BETWEEN_METHODS = 1.0


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description='Benchmark latency and throughput of a JSON-RPC endpoint')
    parser.add_argument('--url', help='JSON-RPC endpoint (default: $RPC_ENDPOINT)')
    parser.add_argument('--config', help='YAML plan file')

    # Batch overrides
    parser.add_argument('--requests', type=int, default=None, help='Requests per method')
    parser.add_argument('--concurrency', type=int, default=None, help='Concurrent requests per wave')
    parser.add_argument('--timeout', type=float, default=None, help='Per-request timeout in seconds')
    parser.add_argument('--cooldown', type=float, default=None, help='Seconds between waves')
    parser.add_argument('--no-warmup', action='store_true', help='Skip the warmup request')
    parser.add_argument('--method', action='append', default=None,
                        help='Only benchmark this method (repeatable, no params)')

    # Search overrides
    parser.add_argument('--find-max-rps', action='store_true', help='Search for the maximum throughput')
    parser.add_argument('--search-method', default=None, help='Method to use for the search')
    parser.add_argument('--search-start', type=int, default=None)
    parser.add_argument('--search-max', type=int, default=None)
    parser.add_argument('--search-step', type=int, default=None)
    parser.add_argument('--search-duration', type=float, default=None, help='Seconds per concurrency level')

    parser.add_argument('--output-dir', default=None, help='Directory for the results JSON')
    parser.add_argument('--no-export', action='store_true', help='Do not write the results JSON')
    parser.add_argument('--log', default=None, help='Logging level')
    return parser.parse_args(argv)


def apply_overrides(config, args):
    """Command line flags win over plan file and environment

    The merged settings are validated here, so bad values fail before any
    network work starts.
    """
    if args.url:
        config.url = args.url
    bench = config.benchmark
    if args.requests is not None:
        bench.requests = args.requests
    if args.concurrency is not None:
        bench.concurrency = args.concurrency
    if args.timeout is not None:
        bench.timeout = args.timeout
    if args.cooldown is not None:
        bench.cooldown = args.cooldown
    if args.no_warmup:
        bench.warmup = False
    if args.method:
        known = {op.name: op for op in config.methods}
        config.methods = [known.get(name, Operation(name, [])) for name in args.method]

    search = config.search
    if args.find_max_rps:
        search.enabled = True
    if args.search_method:
        search.method = parse_operation(args.search_method)
    if args.search_start is not None:
        search.start = args.search_start
    if args.search_max is not None:
        search.max_concurrency = args.search_max
    if args.search_step is not None:
        search.step = args.search_step
    if args.search_duration is not None:
        search.duration = args.search_duration

    if args.output_dir:
        config.output_dir = args.output_dir
    if args.log:
        config.log_level = args.log

    config.benchmark.validate()
    config.search.validate()
    return config


def setup_logging(level):
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
    )


async def run_benchmarks(invoker, config):
    """Benchmark every configured method; methods with no successful call are skipped"""
    bench = config.benchmark
    summaries = []
    for index, operation in enumerate(config.methods):
        batch = BatchConfig(
            operation,
            total_calls=bench.requests,
            concurrency=bench.concurrency,
            warmup=bench.warmup,
            inter_batch_delay=bench.cooldown,
            timeout=bench.timeout,
        )
        try:
            summaries.append(await run_batch(invoker, batch))
        except NoSuccessfulCalls as e:
            logger.error(f"Failed to benchmark {operation.name}: {e}")
        if index < len(config.methods) - 1:
            await asyncio.sleep(PAUSE_BETWEEN_METHODS)
    return summaries


async def run(config, export=True):
    """
    Execute a full run: identify the network, benchmark, optional search, export

    Returns:
        The results document
    """
    search = config.search
    async with JsonRpcInvoker(config.url, timeout=max(config.benchmark.timeout, 1.0) * 3) as invoker:
        logger.info(f"Connected to RPC endpoint: {config.url}")
        network = await identify_network(invoker)

        summaries = await run_benchmarks(invoker, config)
        print_results(summaries)

        search_result = None
        if search.enabled:
            logger.info("Finding maximum RPS for selected method...")
            search_result = await find_max_throughput(
                invoker,
                search.method,
                start=search.start,
                max_concurrency=search.max_concurrency,
                step=search.step,
                duration=search.duration,
                timeout=config.benchmark.timeout,
            )
            print_search_result(search.method.name, search_result)

    document = build_results_document(
        summaries,
        config.benchmark.to_dict(),
        network=network,
        search_method=search.method.name if search_result is not None else None,
        search_result=search_result,
    )
    if export:
        out_file = write_results(document, config.output_dir)
        print(f"Results exported to '{out_file}'")
    return document


def main(argv=None):
    args = parse_args(argv)
    try:
        config = apply_overrides(load_run_config(args.config), args)
    except (ValueError, TypeError) as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 2
    setup_logging(config.log_level)

    if not config.url:
        logger.error("No endpoint configured: pass --url or set RPC_ENDPOINT")
        return 2

    try:
        asyncio.run(run(config, export=not args.no_export))
    except KeyboardInterrupt:
        logger.warning("Interrupted")
        return 130
    except Exception as e:
        logger.error(f"Error in benchmark run: {e}")
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
