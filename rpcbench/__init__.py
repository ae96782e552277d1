"""
rpcbench: latency and throughput benchmarking for request-response endpoints
"""
from .exceptions import (BenchmarkError, CallFailure, CallTimeout, RpcError,
                         NoSuccessfulCalls, ExcessiveErrorRate)
from .invoker import Operation, Invoker, JsonRpcInvoker, ScriptedInvoker
from .stats import CallRecord, BenchmarkSummary, summarize
from .performance_async import BatchConfig, run_batch, execute_batch
from .search import SearchResult, find_max_throughput, execute_search

__version__ = '0.1.0'
