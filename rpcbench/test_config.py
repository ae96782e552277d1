"""
Unit tests for config module
"""
import os
import tempfile
import unittest

from rpcbench.config import (DEFAULT_METHODS, BenchmarkOptions, RunConfig,
                             load_run_config, parse_benchmark_options,
                             parse_bool, parse_operation, parse_plan,
                             parse_search_options)
from rpcbench.invoker import Operation

PLAN = """
url: http://localhost:8545
benchmark:
  Requests: 20
  concurrency: 4
  warmup: false
  cooldown: 0.05
  timeout: 2
methods:
  - eth_blockNumber
  - method: eth_getBalance
    params: ["0x742d35Cc6634C0532925a3b844Bc454e4438f44e", latest]
search:
  enabled: true
  method: eth_gasPrice
  start: 2
  max: 20
  step: 2
  duration: 1.5
"""


class TestDefaults(unittest.TestCase):

    def test_benchmark_defaults(self):
        """Test default batch settings"""
        options = BenchmarkOptions()
        self.assertEqual(options.requests, 100)
        self.assertEqual(options.concurrency, 5)
        self.assertTrue(options.warmup)
        self.assertEqual(options.cooldown, 0.1)
        self.assertEqual(options.timeout, 10.0)

    def test_run_config_defaults(self):
        """Test default run and search settings"""
        config = RunConfig()
        self.assertEqual(config.methods, DEFAULT_METHODS)
        self.assertFalse(config.search.enabled)
        self.assertEqual(config.search.method.name, "eth_blockNumber")
        self.assertEqual((config.search.start, config.search.max_concurrency, config.search.step),
                         (5, 250, 5))
        self.assertEqual(config.search.duration, 5.0)

    def test_default_methods_are_copied(self):
        """Test that editing a config's methods leaves the defaults alone"""
        config = RunConfig()
        config.methods.append(Operation("x"))
        self.assertEqual(len(DEFAULT_METHODS), 6)


class TestParsing(unittest.TestCase):

    def test_parse_bool(self):
        """Test truthy and falsy strings"""
        for value in ('true', 'TRUE', '1', 'yes', True):
            self.assertTrue(parse_bool(value))
        for value in ('false', '0', '', None, False, 'nope'):
            self.assertFalse(parse_bool(value))

    def test_parse_operation(self):
        """Test bare names and method mappings"""
        self.assertEqual(parse_operation("eth_gasPrice"), Operation("eth_gasPrice"))
        op = parse_operation({"Method": "eth_getBlockByNumber", "params": ["latest", False]})
        self.assertEqual(op.params, ("latest", False))

    def test_parse_operation_errors(self):
        """Test malformed method entries"""
        with self.assertRaises(ValueError):
            parse_operation({"params": []})
        with self.assertRaises(TypeError):
            parse_operation({"method": "m", "params": "latest"})
        with self.assertRaises(TypeError):
            parse_operation(42)

    def test_invalid_benchmark_values(self):
        """Test that out-of-range batch values raise ValueError"""
        for node in ({'requests': 0}, {'concurrency': 0}, {'timeout': 0}, {'cooldown': -1}):
            with self.subTest(**node):
                with self.assertRaises(ValueError):
                    parse_benchmark_options(node)

    def test_invalid_search_values(self):
        """Test that out-of-range search values raise ValueError"""
        for node in ({'start': 0}, {'step': 0}, {'max': 3}, {'start': 10, 'max': 9},
                     {'duration': 0}):
            with self.subTest(**node):
                with self.assertRaises(ValueError):
                    parse_search_options(node)

    def test_search_max_equal_to_start(self):
        """Test that a single-level search range is accepted"""
        options = parse_search_options({'start': 10, 'max': 10})
        self.assertEqual((options.start, options.max_concurrency), (10, 10))

    def test_unknown_keys_ignored(self):
        """Test that unknown plan keys are skipped"""
        config = parse_plan({"benchmark": {"colour": "blue"}, "whatever": 1})
        self.assertEqual(config.benchmark.requests, 100)

    def test_empty_plan(self):
        """Test that an empty plan keeps the defaults"""
        config = parse_plan(None)
        self.assertEqual(config.methods, DEFAULT_METHODS)


class TestLoadRunConfig(unittest.TestCase):

    def setUp(self):
        fd, self.plan_path = tempfile.mkstemp(suffix='.yaml')
        with os.fdopen(fd, 'w') as fh:
            fh.write(PLAN)

    def tearDown(self):
        os.remove(self.plan_path)

    def test_environment_only(self):
        """Test settings read from environment variables"""
        environ = {"RPC_ENDPOINT": "http://node:8545", "FIND_MAX_RPS": "true",
                   "RPCBENCH_LOG_LEVEL": "DEBUG", "RPCBENCH_OUTPUT_DIR": "/tmp/out"}
        config = load_run_config(environ=environ, dotenv=False)
        self.assertEqual(config.url, "http://node:8545")
        self.assertTrue(config.search.enabled)
        self.assertEqual(config.log_level, "DEBUG")
        self.assertEqual(config.output_dir, "/tmp/out")

    def test_plan_overrides_environment(self):
        """Test that plan file values win over the environment"""
        environ = {"RPC_ENDPOINT": "http://node:8545"}
        config = load_run_config(self.plan_path, environ=environ, dotenv=False)
        self.assertEqual(config.url, "http://localhost:8545")
        self.assertEqual(config.benchmark.requests, 20)
        self.assertEqual(config.benchmark.concurrency, 4)
        self.assertFalse(config.benchmark.warmup)
        self.assertEqual(config.benchmark.cooldown, 0.05)
        self.assertEqual(config.benchmark.timeout, 2.0)
        self.assertEqual([m.name for m in config.methods], ["eth_blockNumber", "eth_getBalance"])
        self.assertEqual(config.methods[1].params[1], "latest")
        self.assertTrue(config.search.enabled)
        self.assertEqual(config.search.method, Operation("eth_gasPrice"))
        self.assertEqual(config.search.max_concurrency, 20)
        self.assertEqual(config.search.duration, 1.5)


if __name__ == '__main__':
    unittest.main()
