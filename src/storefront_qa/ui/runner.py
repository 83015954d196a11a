"""Run browser scenarios against the storefront UI.

UI scenarios share one page, so they run one after another. Each goes
through the same lifecycle as an API scenario and lands in the same kind
of report. Navigation, actions and check polling make up the executing
phase; verification turns the polled evidence into predicate failures.

Waits are best-effort: every check gets ``settings.ui_timeout_seconds``
and a check that never holds is a failure, never a hang.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Iterable

from playwright.async_api import Error as PlaywrightError

from storefront_qa.config import RunSettings
from storefront_qa.observability import get_logger, scenario_ctx
from storefront_qa.scenarios.errors import ScenarioDefinitionError
from storefront_qa.scenarios.lifecycle import (
    RunCancelled,
    ScenarioLifecycle,
    ScenarioState,
    until_cancelled,
)
from storefront_qa.scenarios.models import PredicateFailure, VerificationOutcome
from storefront_qa.scenarios.report import ReportAggregator, ReportSummary

from .checks import UiAction, UiCheck
from .driver import PageDriver
from .polling import PollResult, poll_until

logger = get_logger(__name__)

# Errors a page driver raises that fail one scenario, not the run.
DRIVER_ERRORS = (PlaywrightError, OSError)


@dataclass(frozen=True, slots=True)
class UiScenario:
    """One browser check: open *path*, act, then poll *checks*.

    When *precondition* is given and does not hold after the page loads,
    actions and checks are skipped and the scenario passes with a note.
    """

    name: str
    path: str
    checks: tuple[UiCheck, ...]
    actions: tuple[UiAction, ...] = ()
    precondition: UiCheck | None = None
    tags: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, 'checks', tuple(self.checks))
        object.__setattr__(self, 'actions', tuple(self.actions))
        object.__setattr__(self, 'tags', tuple(self.tags))
        if not self.name or not self.name.strip():
            raise ScenarioDefinitionError('UI scenario needs a name')
        if not self.path.startswith('/'):
            raise ScenarioDefinitionError(f'{self.name}: path must start with "/"')
        if not self.checks:
            raise ScenarioDefinitionError(f'{self.name}: at least one check is required')
        for check in (*self.checks, *filter(None, (self.precondition,))):
            if not isinstance(check, UiCheck):
                raise ScenarioDefinitionError(f'{self.name}: {check!r} is not a UI check')


@dataclass(frozen=True, slots=True)
class _Evidence:
    check: UiCheck
    poll: PollResult
    observed: Any = None


class UiScenarioRunner:
    """Drive :class:`UiScenario` objects through a :class:`PageDriver`.

    Args:
        driver: Page to drive.
        settings: Run configuration (UI timeout and poll interval).
        report: Aggregator to record into; pass the API runner's report
            to get a single summary for a mixed run.
    """

    def __init__(
        self,
        driver: PageDriver,
        settings: RunSettings | None = None,
        report: ReportAggregator | None = None,
    ) -> None:
        self._driver = driver
        self._settings = settings or RunSettings()
        self._report = report or ReportAggregator()
        self._cancel_event = asyncio.Event()

    @property
    def report(self) -> ReportAggregator:
        return self._report

    def cancel(self) -> None:
        """Signal run-level cancellation."""
        self._cancel_event.set()

    async def run_all(self, scenarios: Iterable[UiScenario]) -> ReportSummary:
        for scenario in scenarios:
            await self.run(scenario)
        return self._report.summary()

    async def run(self, scenario: UiScenario) -> VerificationOutcome:
        """Navigate, act, poll checks, and record one scenario."""
        lifecycle = ScenarioLifecycle(scenario.name)
        token = scenario_ctx.set(scenario.name)
        start = time.monotonic()
        try:
            logger.info('ui_scenario_started', path=scenario.path)
            lifecycle.advance(ScenarioState.EXECUTING)
            try:
                if self._cancel_event.is_set():
                    raise RunCancelled()
                evidence, notes, error = await until_cancelled(
                    self._drive(scenario), self._cancel_event,
                )
            except RunCancelled:
                lifecycle.advance(ScenarioState.CANCELLED)
                outcome = VerificationOutcome(
                    scenario_name=scenario.name,
                    passed=False,
                    cancelled=True,
                    notes=('run cancelled before verification',),
                    duration_ms=_elapsed_ms(start),
                )
                logger.warning('scenario_cancelled')
            else:
                lifecycle.advance(ScenarioState.EXECUTED)
                outcome = self._verify(scenario, evidence, notes, error, start)
                lifecycle.advance(ScenarioState.VERIFIED)

            self._report.record(outcome)
            lifecycle.advance(ScenarioState.RECORDED)
            logger.info('scenario_recorded', verdict=outcome.verdict, failures=len(outcome.failures))
            return outcome
        finally:
            scenario_ctx.reset(token)

    # ── Execution ──────────────────────────────────────────────────

    async def _drive(
        self,
        scenario: UiScenario,
    ) -> tuple[list[_Evidence], list[str], PredicateFailure | None]:
        evidence: list[_Evidence] = []
        notes: list[str] = []
        try:
            await self._driver.goto(scenario.path)
            await self._driver.wait_for_load()

            if scenario.precondition is not None:
                if not await scenario.precondition.probe(self._driver):
                    notes.append(
                        f'precondition not met ({scenario.precondition.describe()}); checks skipped'
                    )
                    return evidence, notes, None

            for action in scenario.actions:
                await action.apply(self._driver)

            for check in scenario.checks:
                poll = await poll_until(
                    lambda c=check: c.probe(self._driver),
                    timeout=self._settings.ui_timeout_seconds,
                    interval=self._settings.poll_interval_seconds,
                )
                observed = None if poll.met else await check.observe(self._driver)
                evidence.append(_Evidence(check, poll, observed))
        except DRIVER_ERRORS as exc:
            logger.warning('driver_error', error=str(exc), error_type=type(exc).__name__)
            return evidence, notes, driver_failure(exc)
        return evidence, notes, None

    # ── Verification ───────────────────────────────────────────────

    def _verify(
        self,
        scenario: UiScenario,
        evidence: list[_Evidence],
        notes: list[str],
        error: PredicateFailure | None,
        start: float,
    ) -> VerificationOutcome:
        timeout = self._settings.ui_timeout_seconds
        failures = [
            PredicateFailure(
                predicate=e.check.describe(),
                explanation=f'not met within {timeout:g}s ({e.poll.attempts} attempts)',
                expected=e.check.describe(),
                actual=e.observed,
            )
            for e in evidence
            if not e.poll.met
        ]
        if error is not None:
            failures.append(error)
        return VerificationOutcome(
            scenario_name=scenario.name,
            passed=not failures,
            failures=tuple(failures),
            notes=tuple(notes),
            duration_ms=_elapsed_ms(start),
        )


def _elapsed_ms(start: float) -> float:
    return (time.monotonic() - start) * 1000


def driver_failure(error: BaseException) -> PredicateFailure:
    """The failure recorded when the browser or page errors out."""
    return PredicateFailure(
        'driver', f'{type(error).__name__}: {error}', actual=type(error).__name__,
    )


def record_not_run(
    scenarios: Iterable[UiScenario],
    report: ReportAggregator,
    *,
    failure: PredicateFailure | None = None,
) -> None:
    """Record UI scenarios that never reached a page.

    Without *failure* each is recorded as cancelled (the run was stopped
    first). With it, each fails with that failure, e.g. when the browser
    could not be launched.
    """
    for scenario in scenarios:
        if failure is None:
            outcome = VerificationOutcome(
                scenario_name=scenario.name,
                passed=False,
                cancelled=True,
                notes=('run cancelled before the scenario started',),
            )
        else:
            outcome = VerificationOutcome(
                scenario_name=scenario.name,
                passed=False,
                failures=(failure,),
            )
        report.record(outcome)
