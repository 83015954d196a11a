"""Collect scenario verdicts into a run summary.

The aggregator is the only state shared between concurrently running
scenarios. Recording is append-only and guarded by a lock, so ``record``
calls from asyncio tasks or worker threads never interleave, and
``summary()`` always returns a consistent snapshot of what has been
recorded so far.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any

from .models import VerificationOutcome


@dataclass(frozen=True, slots=True)
class ReportSummary:
    """Immutable snapshot of a run's results."""

    total: int
    passed: int
    failed: int
    cancelled: int
    failure_details: tuple[dict[str, Any], ...]

    @property
    def all_passed(self) -> bool:
        return self.total > 0 and self.failed == 0

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-serializable summary."""
        return {
            'total': self.total,
            'passed': self.passed,
            'failed': self.failed,
            'cancelled': self.cancelled,
            'all_passed': self.all_passed,
            'failure_details': [dict(d) for d in self.failure_details],
        }


class ReportAggregator:
    """Thread-safe, append-only store of :class:`VerificationOutcome`."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._outcomes: list[VerificationOutcome] = []

    def __len__(self) -> int:
        with self._lock:
            return len(self._outcomes)

    def record(self, outcome: VerificationOutcome) -> None:
        """Append one scenario verdict."""
        with self._lock:
            self._outcomes.append(outcome)

    def outcomes(self) -> tuple[VerificationOutcome, ...]:
        """Recorded outcomes in recording order."""
        with self._lock:
            return tuple(self._outcomes)

    def summary(self) -> ReportSummary:
        """Snapshot totals and failure details.

        ``failed`` counts every scenario that did not pass, including
        cancelled ones; ``cancelled`` breaks those out.
        """
        outcomes = self.outcomes()
        passed = sum(1 for o in outcomes if o.passed)
        details = tuple(
            {
                'scenario': o.scenario_name,
                'verdict': o.verdict,
                'failures': [f.to_dict() for f in o.failures],
            }
            for o in outcomes
            if not o.passed
        )
        return ReportSummary(
            total=len(outcomes),
            passed=passed,
            failed=len(outcomes) - passed,
            cancelled=sum(1 for o in outcomes if o.cancelled),
            failure_details=details,
        )
