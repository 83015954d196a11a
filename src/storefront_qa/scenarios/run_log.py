"""Machine-readable evidence for one scenario run.

A run log freezes the report aggregator's outcomes together with when the
run happened and what it ran against. It is written as a single JSON
document so CI jobs can archive it and later tooling can diff two runs.

Usage::

    started = utc_now()
    summary = await runner.run_all(scenarios)
    log = RunLog.from_report(runner.report, started_at=started,
                             metadata={'api_base_url': settings.api_base_url})
    log.write(Path('evidence/run.json'))
    again = RunLog.read(Path('evidence/run.json'))
"""

from __future__ import annotations

import json
import secrets
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from .report import ReportAggregator

FORMAT_VERSION = 1


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec='milliseconds')


def new_run_id(now: datetime | None = None) -> str:
    """Sortable run id: ``run-<UTC timestamp>-<random suffix>``."""
    stamp = (now or datetime.now(timezone.utc)).strftime('%Y%m%dT%H%M%SZ')
    return f'run-{stamp}-{secrets.token_hex(3)}'


@dataclass(frozen=True, slots=True)
class RunLog:
    """Snapshot of a finished (or cancelled) run.

    Attributes:
        run_id: Identifier, sortable by start time when auto-generated.
        started_at: ISO-8601 UTC time the run began.
        finished_at: ISO-8601 UTC time the log was taken.
        summary: :meth:`ReportSummary.to_dict` minus failure details,
            which live on each scenario entry instead.
        scenarios: :meth:`VerificationOutcome.to_dict` per scenario, in
            recording order.
        metadata: Free-form context such as target URLs and tag filters.
    """

    run_id: str
    started_at: str
    finished_at: str
    summary: dict[str, Any]
    scenarios: tuple[dict[str, Any], ...]
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_report(
        cls,
        report: ReportAggregator,
        *,
        run_id: str | None = None,
        started_at: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> RunLog:
        finished_at = utc_now()
        summary = report.summary().to_dict()
        summary.pop('failure_details', None)
        return cls(
            run_id=run_id or new_run_id(),
            started_at=started_at or finished_at,
            finished_at=finished_at,
            summary=summary,
            scenarios=tuple(o.to_dict() for o in report.outcomes()),
            metadata=dict(metadata or {}),
        )

    @classmethod
    def read(cls, path: Path) -> RunLog:
        """Load a log previously written with :meth:`write`.

        Raises:
            ValueError: If the file is not a run log of a known format.
        """
        data = json.loads(path.read_text(encoding='utf-8'))
        if data.get('format_version') != FORMAT_VERSION:
            raise ValueError(
                f'{path}: unsupported run log format {data.get("format_version")!r}'
            )
        return cls(
            run_id=data['run_id'],
            started_at=data['started_at'],
            finished_at=data['finished_at'],
            summary=data['summary'],
            scenarios=tuple(data['scenarios']),
            metadata=data.get('metadata', {}),
        )

    @property
    def overall_passed(self) -> bool:
        return bool(self.summary.get('all_passed'))

    def failed_scenarios(self) -> list[dict[str, Any]]:
        """Scenario entries whose verdict is not ``pass``."""
        return [s for s in self.scenarios if s['verdict'] != 'pass']

    def failures(self) -> list[dict[str, Any]]:
        """Every predicate failure across the run, tagged with its scenario."""
        return [
            {'scenario': entry['scenario'], **failure}
            for entry in self.scenarios
            for failure in entry['failures']
        ]

    def to_dict(self) -> dict[str, Any]:
        return {
            'format_version': FORMAT_VERSION,
            'run_id': self.run_id,
            'started_at': self.started_at,
            'finished_at': self.finished_at,
            'overall_passed': self.overall_passed,
            'summary': dict(self.summary),
            'metadata': dict(self.metadata),
            'scenarios': list(self.scenarios),
        }

    def to_json(self, *, indent: int | None = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)

    def write(self, path: Path) -> Path:
        """Write the log as UTF-8 JSON, creating parent directories."""
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.to_json() + '\n', encoding='utf-8')
        return path
