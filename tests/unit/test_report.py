"""Tests for the report aggregator.

Validates:
  - Totals, passed/failed/cancelled counts
  - all_passed semantics (empty runs never pass)
  - Thread-safe concurrent recording
  - summary() is a repeatable snapshot
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

from storefront_qa.scenarios.models import PredicateFailure, VerificationOutcome
from storefront_qa.scenarios.report import ReportAggregator


def _pass(name: str) -> VerificationOutcome:
    return VerificationOutcome(name, passed=True)


def _fail(name: str) -> VerificationOutcome:
    return VerificationOutcome(
        name, passed=False, failures=(PredicateFailure('status == 403', 'got 200', 403, 200),),
    )


class TestSummary:

    def test_empty_report_is_not_a_pass(self):
        summary = ReportAggregator().summary()
        assert summary.total == 0
        assert summary.all_passed is False

    def test_counts(self):
        report = ReportAggregator()
        report.record(_pass('a'))
        report.record(_fail('b'))
        report.record(VerificationOutcome('c', passed=False, cancelled=True))
        summary = report.summary()
        assert (summary.total, summary.passed, summary.failed, summary.cancelled) == (3, 1, 2, 1)
        assert summary.all_passed is False

    def test_failure_details(self):
        report = ReportAggregator()
        report.record(_pass('a'))
        report.record(_fail('b'))
        details = report.summary().failure_details
        assert len(details) == 1
        assert details[0]['scenario'] == 'b'
        assert details[0]['failures'][0]['actual'] == 200

    def test_to_dict(self):
        report = ReportAggregator()
        report.record(_pass('a'))
        data = report.summary().to_dict()
        assert data == {
            'total': 1,
            'passed': 1,
            'failed': 0,
            'cancelled': 0,
            'all_passed': True,
            'failure_details': [],
        }

    def test_summary_is_repeatable(self):
        report = ReportAggregator()
        report.record(_fail('b'))
        assert report.summary() == report.summary()


class TestConcurrency:

    def test_concurrent_records_are_all_kept(self):
        report = ReportAggregator()
        names = [f's{i}' for i in range(500)]

        with ThreadPoolExecutor(max_workers=16) as pool:
            list(pool.map(lambda n: report.record(_pass(n)), names))

        assert len(report) == 500
        assert sorted(o.scenario_name for o in report.outcomes()) == sorted(names)
        assert report.summary().passed == 500
