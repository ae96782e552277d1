"""
Exceptions raised and recorded by the benchmarking harness
"""


class BenchmarkError(Exception):
    """Base class for all rpcbench errors"""


class CallFailure(BenchmarkError):
    """A single call to the remote endpoint failed"""


class CallTimeout(CallFailure):
    """The per-call deadline elapsed before the call settled"""
    def __init__(self, timeout):
        self.timeout = timeout
        super(CallTimeout, self).__init__(f"Request timeout after {timeout:.3f}s")


class RpcError(CallFailure):
    """The endpoint answered with a JSON-RPC error object"""
    def __init__(self, code, message, data=None):
        self.code = code
        self.data = data
        super(RpcError, self).__init__(f"RPC error {code}: {message}")


class NoSuccessfulCalls(BenchmarkError):
    """Every call of a batch failed, so no statistics can be computed"""
    def __init__(self, method, attempted=0):
        self.method = method
        self.attempted = attempted
        super(NoSuccessfulCalls, self).__init__(
            f"No successful requests to calculate statistics for {method} "
            f"({attempted} attempted)")


class ExcessiveErrorRate(BenchmarkError):
    """Too many calls failed within one concurrency level of a search"""
    def __init__(self, concurrency, error_rate):
        self.concurrency = concurrency
        self.error_rate = error_rate
        super(ExcessiveErrorRate, self).__init__(
            f"Too many errors at concurrency {concurrency} "
            f"({error_rate * 100:.1f}% failed), concurrency too high")
