"""
Console output and JSON export of benchmark results
"""
import os
import json
import logging
from datetime import datetime, timezone

logger = logging.getLogger('rpcbench.report')


def print_results(summaries):
    """Print one block per summary, then rankings when there are several"""
    print(f"\n{'='*60}")
    print("Benchmark Results Summary")
    print(f"{'='*60}")

    for s in summaries:
        print(f"\nMethod: {s.method}")
        print(f"   Average Latency : {s.avg_latency:.2f} ms")
        print(f"   Min Latency     : {s.min_latency:.2f} ms")
        print(f"   Max Latency     : {s.max_latency:.2f} ms")
        print(f"   P95 Latency     : {s.p95_latency:.2f} ms")
        print(f"   P99 Latency     : {s.p99_latency:.2f} ms")
        print(f"   Success Rate    : {s.success_rate:.2f}%")
        print(f"   Throughput      : {s.throughput:.2f} req/s")
        print(f"   Error Count     : {s.error_count}")
        print(f"   Total Time      : {s.total_time / 1000:.2f} s")

    if len(summaries) > 1:
        rankings = rank_methods(summaries)
        print(f"\n{'='*60}")
        print("Method Comparison")
        print(f"{'='*60}")
        for key in ('by_latency', 'by_throughput'):
            print(f"\n{rankings[key]['title']}")
            for line in rankings[key]['rankings']:
                print(line)
    print()


def rank_methods(summaries):
    """Rank summaries by average latency (ascending) and throughput (descending)"""
    by_latency = sorted(summaries, key=lambda s: s.avg_latency)
    by_throughput = sorted(summaries, key=lambda s: s.throughput, reverse=True)
    return {
        "by_latency": {
            "title": "Methods ranked by average latency:",
            "rankings": [f"{i}. {s.method}: {s.avg_latency:.2f} ms"
                         for i, s in enumerate(by_latency, 1)],
        },
        "by_throughput": {
            "title": "Methods ranked by throughput:",
            "rankings": [f"{i}. {s.method}: {s.throughput:.2f} req/s"
                         for i, s in enumerate(by_throughput, 1)],
        },
    }


def print_search_result(method, result):
    print(f"\n{'='*60}")
    print("Maximum Throughput Results")
    print(f"{'='*60}")
    print(f"Method              : {method}")
    print(f"Max Throughput      : {result.best_throughput:.2f} req/s")
    print(f"Optimal Concurrency : {result.concurrency_at_best}")
    if result.aborted_at is not None:
        print(f"Stopped at          : {result.aborted_at} (error rate too high)")
    print(f"{'='*60}\n")


def build_results_document(summaries, benchmark_options, network=None,
                           search_method=None, search_result=None, timestamp=None):
    """
    Assemble the exportable record of a run

    Args:
        summaries: List of BenchmarkSummary
        benchmark_options: Dict of the batch settings used
        network: Optional dict from identify_network
        search_method: Name of the searched method, if a search ran
        search_result: SearchResult, if a search ran
        timestamp: Optional datetime; defaults to now (UTC)
    """
    timestamp = timestamp or datetime.now(timezone.utc)
    document = {
        "timestamp": timestamp.isoformat(),
        "network": network,
        "benchmark_options": benchmark_options,
        "results": [s.to_dict() for s in summaries],
        "rankings": rank_methods(summaries),
    }
    if search_result is not None:
        document["max_throughput_test"] = dict(method=search_method, **search_result.to_dict())
    return document


def write_results(document, output_dir='.'):
    """Write the document to benchmark_results_<timestamp>.json and return its path"""
    stamp = document["timestamp"].replace(':', '-')
    out_file = os.path.join(output_dir, f"benchmark_results_{stamp}.json")
    if output_dir and not os.path.exists(output_dir):
        os.makedirs(output_dir)
    with open(out_file, 'w') as fh:
        json.dump(document, fh, indent=2)
    logger.info(f"Results exported to {out_file}")
    return out_file
