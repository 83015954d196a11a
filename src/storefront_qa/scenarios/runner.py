"""Execute scenarios and record their verdicts.

The runner wires the identity provider, request executor, outcome
verifier and report aggregator together and drives each scenario through
its lifecycle (see :mod:`.lifecycle`). Runtime failures (unknown role,
transport error, unresolved path variable, or any unexpected exception)
become failures of that one scenario; a run always completes and always
yields a summary.

Usage::

    async with ScenarioRunner(RunSettings(api_base_url='http://localhost:8091')) as runner:
        summary = await runner.run_all(scenarios)
    assert summary.all_passed

For test environments, pass an httpx.AsyncClient directly::

    runner = ScenarioRunner(settings, client=httpx.AsyncClient(transport=transport))

Cancellation: ``runner.cancel()`` aborts in-flight requests promptly and
records their scenarios as cancelled instead of verified. Scenarios that
have not started yet are recorded as cancelled without a network call.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Iterable

import httpx

from storefront_qa.config import RunSettings
from storefront_qa.observability import get_logger, scenario_ctx

from .errors import (
    ScenarioDefinitionError,
    TransportError,
    UnknownRoleError,
)
from .executor import RequestExecutor
from .identity import Credentials, IdentityProvider
from .lifecycle import (
    RunCancelled,
    ScenarioLifecycle,
    ScenarioState,
    until_cancelled,
)
from .models import (
    ExecutionResult,
    ExpectedOutcome,
    PredicateFailure,
    RequestDescriptor,
    Scenario,
    VerificationOutcome,
)
from .report import ReportAggregator, ReportSummary
from .verifier import OutcomeVerifier

logger = get_logger(__name__)

# Expected runtime errors, recorded without a traceback.
_CAPTURED_ERRORS = (UnknownRoleError, TransportError, ScenarioDefinitionError)


class ScenarioRunner:
    """Run API scenarios concurrently against the storefront.

    Args:
        settings: Run configuration.
        identity: Role resolver (defaults to one built from settings).
        executor: Request executor (defaults to one built from settings).
        verifier: Outcome verifier.
        report: Shared report aggregator.
        client: Optional httpx.AsyncClient for the default executor.
    """

    def __init__(
        self,
        settings: RunSettings | None = None,
        *,
        identity: IdentityProvider | None = None,
        executor: RequestExecutor | None = None,
        verifier: OutcomeVerifier | None = None,
        report: ReportAggregator | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._settings = settings or RunSettings()
        self._identity = identity or IdentityProvider.from_settings(self._settings)
        self._owns_executor = executor is None
        self._executor = executor or RequestExecutor(
            self._settings.api_base_url,
            variables=self._settings.variables,
            timeout_seconds=self._settings.timeout_seconds,
            client=client,
        )
        self._verifier = verifier or OutcomeVerifier()
        self._report = report or ReportAggregator()
        self._cancel_event = asyncio.Event()

    async def __aenter__(self) -> ScenarioRunner:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_executor:
            await self._executor.aclose()

    @property
    def report(self) -> ReportAggregator:
        return self._report

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def cancel(self) -> None:
        """Signal run-level cancellation."""
        if not self._cancel_event.is_set():
            logger.info('run_cancel_requested')
        self._cancel_event.set()

    async def run_all(self, scenarios: Iterable[Scenario]) -> ReportSummary:
        """Run *scenarios* concurrently, bounded by ``settings.concurrency``.

        Returns:
            Summary snapshot of the report after every scenario is recorded.
        """
        semaphore = asyncio.Semaphore(self._settings.concurrency)

        async def _bounded(scenario: Scenario) -> VerificationOutcome:
            async with semaphore:
                return await self.run(scenario)

        await asyncio.gather(*(_bounded(s) for s in scenarios))
        return self._report.summary()

    async def run(self, scenario: Scenario) -> VerificationOutcome:
        """Execute, verify and record one scenario."""
        lifecycle = ScenarioLifecycle(scenario.name)
        token = scenario_ctx.set(scenario.name)
        start = time.monotonic()
        try:
            logger.info('scenario_started', request=scenario.request.describe())
            lifecycle.advance(ScenarioState.EXECUTING)
            try:
                if self._cancel_event.is_set():
                    raise RunCancelled()
                results, error = await until_cancelled(
                    self._execute_steps(scenario), self._cancel_event,
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
                try:
                    outcome = self._verify(scenario, results, error, start)
                except Exception as exc:
                    logger.exception('verification_error')
                    outcome = VerificationOutcome(
                        scenario_name=scenario.name,
                        passed=False,
                        failures=(_error_failure(exc),),
                        duration_ms=_elapsed_ms(start),
                    )
                lifecycle.advance(ScenarioState.VERIFIED)

            self._report.record(outcome)
            lifecycle.advance(ScenarioState.RECORDED)
            logger.info(
                'scenario_recorded',
                verdict=outcome.verdict,
                failures=len(outcome.failures),
                duration_ms=round(outcome.duration_ms, 1),
            )
            return outcome
        finally:
            scenario_ctx.reset(token)

    # ── Execution ──────────────────────────────────────────────────

    async def _execute_steps(
        self,
        scenario: Scenario,
    ) -> tuple[list[ExecutionResult], Exception | None]:
        """Issue the primary request then each follow-up, in order.

        Stops at the first runtime error, returning the results gathered
        so far together with the error.
        """
        results: list[ExecutionResult] = []
        for request, _ in _steps(scenario):
            try:
                credentials = self._credentials(request)
                results.append(await self._executor.execute(request, credentials))
            except _CAPTURED_ERRORS as exc:
                return results, exc
            except Exception as exc:
                logger.exception('execution_error', request=request.describe())
                return results, exc
        return results, None

    def _credentials(self, request: RequestDescriptor) -> Credentials | None:
        if request.acting_as is None:
            return None
        return self._identity.resolve(request.acting_as)

    # ── Verification ───────────────────────────────────────────────

    def _verify(
        self,
        scenario: Scenario,
        results: list[ExecutionResult],
        error: Exception | None,
        start: float,
    ) -> VerificationOutcome:
        failures: list[PredicateFailure] = []
        notes: list[str] = []
        steps = _steps(scenario)

        for index, ((request, outcomes), result) in enumerate(zip(steps, results)):
            step_failures = self._verifier.check_all(result, outcomes)
            if index > 0:
                step_failures = [_prefixed(f, request) for f in step_failures]
            failures.extend(step_failures)

        if error is not None:
            failures.append(_error_failure(error))
            skipped = len(steps) - len(results) - 1
            if skipped > 0:
                notes.append(f'{skipped} follow-up request(s) not executed')

        return VerificationOutcome(
            scenario_name=scenario.name,
            passed=not failures,
            failures=tuple(failures),
            notes=tuple(notes),
            duration_ms=_elapsed_ms(start),
        )


# ── Helpers ────────────────────────────────────────────────────────


def _steps(
    scenario: Scenario,
) -> list[tuple[RequestDescriptor, tuple[ExpectedOutcome, ...]]]:
    return [
        (scenario.request, scenario.outcomes),
        *((f.request, f.outcomes) for f in scenario.follow_ups),
    ]


def _prefixed(failure: PredicateFailure, request: RequestDescriptor) -> PredicateFailure:
    return PredicateFailure(
        predicate=f'follow-up {request.describe()}: {failure.predicate}',
        explanation=failure.explanation,
        expected=failure.expected,
        actual=failure.actual,
    )


def _error_failure(error: Exception) -> PredicateFailure:
    if isinstance(error, UnknownRoleError):
        return PredicateFailure('identity', str(error), expected='registered role', actual=error.role)
    if isinstance(error, TransportError):
        return PredicateFailure('transport', str(error), actual=type(error.cause).__name__)
    if isinstance(error, ScenarioDefinitionError):
        return PredicateFailure('definition', str(error))
    return PredicateFailure(
        'error', f'{type(error).__name__}: {error}', actual=type(error).__name__,
    )


def _elapsed_ms(start: float) -> float:
    return (time.monotonic() - start) * 1000
