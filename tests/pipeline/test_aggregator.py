"""Tests for nomenclator/pipeline/aggregator.py"""

import threading

from nomenclator.pipeline.aggregator import RunAggregator, print_summary


class TestRunAggregator:
    def test_counts(self):
        aggregator = RunAggregator()
        aggregator.record_success("a.xml")
        aggregator.record_success("b.xml", merged=True)
        aggregator.record_failure("c.xml", "parse", "missing required field des_nomco")
        aggregator.record_skipped("d.xml", "duplicate record")
        aggregator.record_dictionary(10, skipped=2)

        summary = aggregator.finish({"products": 2}, 1.23456)
        assert summary.documents_attempted == 3
        assert summary.documents_succeeded == 2
        assert summary.documents_merged == 1
        assert summary.documents_failed == 1
        assert summary.documents_skipped == 1
        assert summary.dictionary_records == 10
        assert summary.dictionary_records_skipped == 2
        assert summary.failures[0].stage == "parse"
        assert summary.skipped[0].reason == "duplicate record"
        assert summary.elapsed_seconds == 1.235
        assert summary.ok

    def test_fail_on_error(self):
        aggregator = RunAggregator(fail_on_error=True)
        assert not aggregator.failed
        aggregator.record_failure("c.xml", "parse", "bad")
        assert aggregator.failed
        assert aggregator.finish().exit_code == 1

    def test_fatal_marks_incomplete(self):
        aggregator = RunAggregator()
        aggregator.record_fatal("table write failed")
        summary = aggregator.finish()
        assert summary.incomplete
        assert not summary.ok

    def test_cancelled(self):
        aggregator = RunAggregator()
        aggregator.mark_cancelled()
        summary = aggregator.finish()
        assert summary.cancelled and summary.incomplete
        assert summary.exit_code == 1

    def test_concurrent_recording(self):
        aggregator = RunAggregator()

        def worker(n):
            for i in range(200):
                aggregator.record_success(f"{n}-{i}")

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        assert aggregator.finish().documents_succeeded == 1600


class TestPrintSummary:
    def test_status_line(self, capsys):
        aggregator = RunAggregator()
        aggregator.record_failure("bad.xml", "parse", "malformed XML")
        aggregator.mark_cancelled()
        print_summary(aggregator.finish({"products": 3}), output_dir="csv_output")
        out = capsys.readouterr().out
        assert "[parse] bad.xml: malformed XML" in out
        assert "Status: FAILED (cancelled, tables incomplete)" in out
        assert "csv_output" in out
