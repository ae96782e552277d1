#!/usr/bin/env python
"""
Using rpcbench from a Python script instead of the CLI
"""
import asyncio
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from rpcbench import (BatchConfig, JsonRpcInvoker, NoSuccessfulCalls, Operation,
                      ScriptedInvoker, execute_batch, find_max_throughput, run_batch)
from rpcbench.report import print_results, print_search_result


def example_1_fake_endpoint():
    """Example 1: benchmark an in-process fake, no network needed"""
    invoker = ScriptedInvoker(delay=0.02, failure_rate=0.05, seed=1)
    config = BatchConfig(Operation("eth_blockNumber"), total_calls=50, concurrency=10,
                         warmup=False, inter_batch_delay=0)
    print_results([execute_batch(invoker, config)])


async def example_2_real_node(url):
    """Example 2: benchmark two methods and search for the best concurrency"""
    async with JsonRpcInvoker(url) as invoker:
        summaries = []
        for op in (Operation("eth_blockNumber"), Operation("eth_gasPrice")):
            try:
                summaries.append(await run_batch(invoker, BatchConfig(op, total_calls=20)))
            except NoSuccessfulCalls as e:
                print(f"Skipping {op.name}: {e}")
        print_results(summaries)

        result = await find_max_throughput(invoker, Operation("eth_blockNumber"),
                                           start=5, max_concurrency=50, step=5, duration=2.0)
        print_search_result("eth_blockNumber", result)


if __name__ == '__main__':
    example_1_fake_endpoint()
    if os.environ.get('RPC_ENDPOINT'):
        asyncio.run(example_2_real_node(os.environ['RPC_ENDPOINT']))
