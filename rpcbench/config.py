"""
Run configuration: defaults, .env/environment variables and YAML plan files

Precedence is command line > plan file > environment > defaults; the CLI
applies its own overrides on top of what load_run_config returns.
"""
import os
import logging

import yaml
from dotenv import load_dotenv

from .invoker import Operation

logger = logging.getLogger('rpcbench.config')

EXAMPLE_ADDRESS = "0x742d35Cc6634C0532925a3b844Bc454e4438f44e"

DEFAULT_METHODS = [
    Operation("eth_blockNumber", []),
    Operation("eth_getBalance", [EXAMPLE_ADDRESS, "latest"]),
    Operation("eth_gasPrice", []),
    Operation("eth_getTransactionCount", [EXAMPLE_ADDRESS, "latest"]),
    Operation("eth_getBlockByNumber", ["latest", False]),
    Operation("eth_chainId", []),
]

TRUE_STRINGS = ('1', 'true', 'yes', 'on')


def parse_bool(value):
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in TRUE_STRINGS


class BenchmarkOptions:
    """Batch settings applied to every benchmarked method"""
    def __init__(self, requests=100, concurrency=5, warmup=True, cooldown=0.1, timeout=10.0):
        self.requests = requests
        self.concurrency = concurrency
        self.warmup = warmup
        self.cooldown = cooldown
        self.timeout = timeout

    def to_dict(self):
        return {
            "requests": self.requests,
            "concurrency": self.concurrency,
            "warmup": self.warmup,
            "cooldown": self.cooldown,
            "timeout": self.timeout,
        }

    def validate(self):
        """Raise ValueError if a batch could not run with these settings"""
        if self.requests < 1:
            raise ValueError(f"requests must be >= 1, got {self.requests}")
        if self.concurrency < 1:
            raise ValueError(f"concurrency must be >= 1, got {self.concurrency}")
        if self.timeout <= 0:
            raise ValueError(f"timeout must be > 0, got {self.timeout}")
        if self.cooldown < 0:
            raise ValueError(f"cooldown must be >= 0, got {self.cooldown}")
        return self


class SearchOptions:
    """Settings for the maximum-throughput search"""
    def __init__(self, enabled=False, method=None, start=5, max_concurrency=250, step=5, duration=5.0):
        self.enabled = enabled
        self.method = method or Operation("eth_blockNumber", [])
        self.start = start
        self.max_concurrency = max_concurrency
        self.step = step
        self.duration = duration

    def validate(self):
        """Raise ValueError if the search could not run with these settings"""
        if self.start < 1:
            raise ValueError(f"search start must be >= 1, got {self.start}")
        if self.step < 1:
            raise ValueError(f"search step must be >= 1, got {self.step}")
        if self.max_concurrency < self.start:
            raise ValueError(f"search max {self.max_concurrency} is below start {self.start}")
        if self.duration <= 0:
            raise ValueError(f"search duration must be > 0, got {self.duration}")
        return self


class RunConfig:
    def __init__(self, url=None, benchmark=None, methods=None, search=None,
                 output_dir='.', log_level='INFO'):
        self.url = url
        self.benchmark = benchmark or BenchmarkOptions()
        self.methods = list(methods) if methods is not None else list(DEFAULT_METHODS)
        self.search = search or SearchOptions()
        self.output_dir = output_dir
        self.log_level = log_level


def lowercase_keys(node):
    if not isinstance(node, dict):
        raise TypeError(f"Expected a mapping, got {type(node).__name__}")
    return {str(k).lower(): v for k, v in node.items()}


def parse_operation(node):
    """ Build an Operation from {method: name, params: [...]} or a bare name """
    if isinstance(node, str):
        return Operation(node, [])
    node = lowercase_keys(node)
    name = node.get('method') or node.get('name')
    if not name or not isinstance(name, str):
        raise ValueError(f"Method entry needs a string 'method' name: {node!r}")
    params = node.get('params') or []
    if not isinstance(params, (list, tuple)):
        raise TypeError(f"params for {name} must be a list")
    return Operation(name, params)


def parse_benchmark_options(node, options=None):
    options = options or BenchmarkOptions()
    for key, value in lowercase_keys(node).items():
        if key in ('requests', 'num_requests', 'total_calls'):
            options.requests = int(value)
        elif key == 'concurrency':
            options.concurrency = int(value)
        elif key == 'warmup':
            options.warmup = parse_bool(value)
        elif key in ('cooldown', 'inter_batch_delay'):
            options.cooldown = float(value)
        elif key == 'timeout':
            options.timeout = float(value)
        else:
            logger.debug(f"Ignoring unknown benchmark option: {key}")
    return options.validate()


def parse_search_options(node, options=None):
    options = options or SearchOptions()
    node = lowercase_keys(node)
    for key, value in node.items():
        if key == 'enabled':
            options.enabled = parse_bool(value)
        elif key == 'method':
            options.method = parse_operation({'method': value, 'params': node.get('params')})
        elif key == 'start':
            options.start = int(value)
        elif key in ('max', 'max_concurrency'):
            options.max_concurrency = int(value)
        elif key == 'step':
            options.step = int(value)
        elif key == 'duration':
            options.duration = float(value)
        elif key != 'params':
            logger.debug(f"Ignoring unknown search option: {key}")
    return options.validate()


def parse_plan(node, config=None):
    """Apply a deserialized plan document onto a RunConfig"""
    config = config or RunConfig()
    if node is None:
        return config
    for key, value in lowercase_keys(node).items():
        if key == 'url':
            config.url = str(value)
        elif key == 'benchmark':
            parse_benchmark_options(value, config.benchmark)
        elif key == 'methods':
            if not isinstance(value, list):
                raise TypeError("methods must be a list")
            config.methods = [parse_operation(m) for m in value]
        elif key == 'search':
            parse_search_options(value, config.search)
        elif key == 'output_dir':
            config.output_dir = str(value)
        else:
            logger.debug(f"Ignoring unknown plan key: {key}")
    return config


def read_plan_file(path):
    with open(path, 'r', encoding='utf-8') as f:
        return yaml.safe_load(f)


def load_run_config(plan_path=None, environ=None, dotenv=True):
    """
    Resolve a RunConfig from defaults, the environment and an optional plan file

    Args:
        plan_path: Optional path to a YAML plan
        environ: Mapping to read variables from (default: os.environ)
        dotenv: Load a .env file into os.environ first (default: True)
    """
    if dotenv:
        load_dotenv()
    environ = os.environ if environ is None else environ

    config = RunConfig(
        url=environ.get('RPC_ENDPOINT'),
        output_dir=environ.get('RPCBENCH_OUTPUT_DIR', '.'),
        log_level=environ.get('RPCBENCH_LOG_LEVEL', 'INFO'),
    )
    config.search.enabled = parse_bool(environ.get('FIND_MAX_RPS'))

    if plan_path:
        parse_plan(read_plan_file(plan_path), config)
    return config
