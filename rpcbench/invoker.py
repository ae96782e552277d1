"""
Invokers: the capability the harness uses to reach the remote endpoint
Real transport is JSON-RPC 2.0 over HTTP via aiohttp; a scripted fake
stands in for it when no network is wanted.
"""
import asyncio
import itertools
import logging
import random
from collections import namedtuple

import aiohttp

from .exceptions import CallFailure, RpcError

logger = logging.getLogger('rpcbench.invoker')


class Operation(namedtuple('Operation', ['name', 'params'])):
    """A named call with its ordered parameters, immutable once defined"""
    __slots__ = ()

    def __new__(cls, name, params=()):
        return super(Operation, cls).__new__(cls, name, tuple(params or ()))

    def __str__(self):
        return self.name


class Invoker:
    """Interface every invoker implements"""

    async def invoke(self, name, params):
        raise NotImplementedError

    async def close(self):
        pass

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()


class JsonRpcInvoker(Invoker):
    """
    JSON-RPC 2.0 client sharing one aiohttp ClientSession across all calls

    The session is created lazily inside the running event loop and reused,
    so concurrent calls share pooled keep-alive connections instead of
    paying a TCP/TLS handshake per request.
    """
    def __init__(self, url, timeout=30.0, connect_timeout=10.0, connector_limit=0, headers=None):
        self.url = url
        self.timeout = timeout
        self.connect_timeout = connect_timeout
        self.connector_limit = connector_limit
        self.headers = dict(headers or {})
        self._ids = itertools.count(1)
        self._session = None

    def _get_session(self):
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.timeout, connect=self.connect_timeout)
            connector = aiohttp.TCPConnector(limit=self.connector_limit)
            self._session = aiohttp.ClientSession(
                timeout=timeout, connector=connector, headers=self.headers)
        return self._session

    def build_payload(self, name, params):
        return {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": name,
            "params": list(params),
        }

    async def invoke(self, name, params=()):
        """
        Send one JSON-RPC request and return its result member

        Raises:
            RpcError: the response carried an error object
            CallFailure: HTTP status >= 400 or a malformed response
            aiohttp.ClientError: transport failures
        """
        session = self._get_session()
        payload = self.build_payload(name, params)
        async with session.post(self.url, json=payload) as resp:
            if resp.status >= 400:
                body = await resp.text()
                raise CallFailure(f"HTTP {resp.status} from {self.url}: {body[:200]}")
            try:
                data = await resp.json(content_type=None)
            except ValueError as e:
                raise CallFailure(f"Invalid JSON-RPC response from {self.url}: {e}")

        if not isinstance(data, dict):
            raise CallFailure(f"Unexpected JSON-RPC response type: {type(data).__name__}")
        error = data.get('error')
        if error is not None:
            if isinstance(error, dict):
                raise RpcError(error.get('code'), error.get('message'), error.get('data'))
            raise RpcError(None, str(error))
        if 'result' not in data:
            raise CallFailure("JSON-RPC response has neither result nor error")
        return data['result']

    async def close(self):
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None


class ScriptedInvoker(Invoker):
    """
    In-process fake endpoint

    Args:
        delay: Seconds every call takes before settling
        failure_rate: Probability (0-1) that a call fails, drawn from a seeded RNG
        outcomes: Optional sequence consumed one per call; True succeeds,
            False fails, an exception instance is raised, anything else is
            returned as the result. Once exhausted, calls fall back to
            delay/failure_rate behaviour.
        result: Value returned by successful calls
        seed: Seed for the failure RNG
    """
    def __init__(self, delay=0.0, failure_rate=0.0, outcomes=None, result=None, seed=None):
        self.delay = delay
        self.failure_rate = failure_rate
        self.outcomes = list(outcomes or [])
        self.result = result
        self.calls = []
        self._random = random.Random(seed)

    async def invoke(self, name, params=()):
        self.calls.append((name, tuple(params)))
        outcome = self.outcomes.pop(0) if self.outcomes else None
        if self.delay:
            await asyncio.sleep(self.delay)

        if isinstance(outcome, BaseException):
            raise outcome
        if outcome is False:
            raise CallFailure(f"scripted failure for {name}")
        if outcome is None and self.failure_rate and self._random.random() < self.failure_rate:
            raise CallFailure(f"random failure for {name}")
        if outcome is None or outcome is True:
            return self.result
        return outcome


def parse_quantity(value):
    """ JSON-RPC quantities are hex strings; plain ints pass through """
    if isinstance(value, str):
        return int(value, 16) if value.lower().startswith('0x') else int(value)
    return int(value)


async def identify_network(invoker):
    """
    Check the endpoint answers and identify the network behind it

    Returns:
        Dict with chain_id (int) and name (str)
    """
    chain_id = parse_quantity(await invoker.invoke('eth_chainId', []))
    try:
        name = str(await invoker.invoke('net_version', []))
    except CallFailure as e:
        logger.debug(f"net_version unavailable: {e}")
        name = 'unknown'
    logger.info(f"Connected to network: {name} (chainId: {chain_id})")
    return {"name": name, "chain_id": chain_id}
