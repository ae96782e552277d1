"""
Unit tests for report module
"""
import io
import json
import os
import shutil
import tempfile
import unittest
from contextlib import redirect_stdout
from datetime import datetime, timezone

from rpcbench.report import (build_results_document, print_results,
                             print_search_result, rank_methods, write_results)
from rpcbench.search import LevelResult, SearchResult
from rpcbench.stats import BenchmarkSummary


def summary(method, avg, throughput):
    return BenchmarkSummary(method=method, avg_latency=avg, min_latency=avg / 2,
                            max_latency=avg * 2, p95_latency=avg * 1.5, p99_latency=avg * 1.9,
                            success_rate=100.0, throughput=throughput, error_count=0,
                            total_time=1000.0)


class TestRankings(unittest.TestCase):

    def test_rank_methods(self):
        """Test latency and throughput rankings"""
        summaries = [summary("slow", 30.0, 50.0), summary("fast", 10.0, 40.0),
                     summary("mid", 20.0, 90.0)]
        rankings = rank_methods(summaries)
        self.assertEqual(rankings["by_latency"]["title"], "Methods ranked by average latency:")
        self.assertEqual(rankings["by_latency"]["rankings"],
                         ["1. fast: 10.00 ms", "2. mid: 20.00 ms", "3. slow: 30.00 ms"])
        self.assertEqual(rankings["by_throughput"]["rankings"],
                         ["1. mid: 90.00 req/s", "2. slow: 50.00 req/s", "3. fast: 40.00 req/s"])


class TestPrinting(unittest.TestCase):

    def test_single_result_has_no_comparison(self):
        """Test that one result prints no comparison block"""
        out = io.StringIO()
        with redirect_stdout(out):
            print_results([summary("eth_blockNumber", 12.345, 80.0)])
        text = out.getvalue()
        self.assertIn("Method: eth_blockNumber", text)
        self.assertIn("12.35 ms", text)
        self.assertIn("1.00 s", text)
        self.assertNotIn("Method Comparison", text)

    def test_multiple_results_include_rankings(self):
        """Test that several results print the rankings"""
        out = io.StringIO()
        with redirect_stdout(out):
            print_results([summary("a", 1.0, 2.0), summary("b", 3.0, 4.0)])
        self.assertIn("Methods ranked by throughput:", out.getvalue())

    def test_search_result(self):
        """Test the search result block"""
        out = io.StringIO()
        with redirect_stdout(out):
            print_search_result("eth_blockNumber", SearchResult(321.5, 40, aborted_at=55))
        text = out.getvalue()
        self.assertIn("321.50 req/s", text)
        self.assertIn("Optimal Concurrency : 40", text)
        self.assertIn("55", text)


class TestExport(unittest.TestCase):

    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.tmpdir)

    def test_document_and_write(self):
        """Test the results document and its JSON file"""
        stamp = datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc)
        search = SearchResult(100.0, 10, levels=[LevelResult(10, 200, 200, 2000.0)])
        document = build_results_document(
            [summary("a", 1.0, 2.0)], {"requests": 100}, network={"name": "1", "chain_id": 1},
            search_method="eth_blockNumber", search_result=search, timestamp=stamp)

        self.assertEqual(document["timestamp"], "2024-05-01T12:30:00+00:00")
        self.assertEqual(document["results"][0]["method"], "a")
        self.assertEqual(document["max_throughput_test"]["method"], "eth_blockNumber")
        self.assertEqual(document["max_throughput_test"]["optimal_concurrency"], 10)
        self.assertEqual(document["max_throughput_test"]["levels"][0]["throughput"], 100.0)

        out_dir = os.path.join(self.tmpdir, "nested")
        path = write_results(document, out_dir)
        self.assertTrue(os.path.basename(path).startswith("benchmark_results_2024-05-01T12-30-00"))
        with open(path) as fh:
            self.assertEqual(json.load(fh), document)

    def test_document_without_search(self):
        """Test that the search section is left out when no search ran"""
        document = build_results_document([], {})
        self.assertNotIn("max_throughput_test", document)
        self.assertEqual(document["rankings"]["by_latency"]["rankings"], [])


if __name__ == '__main__':
    unittest.main()
