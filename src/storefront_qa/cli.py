"""Command-line entry point: run storefront scenarios and report.

Usage::

    # Built-in API catalog against a local storefront:
    storefront-qa --catalog --var brand_id=01HXYZ

    # JSON scenario files plus the UI catalog, JSON output:
    storefront-qa --scenario-dir test-scenarios --ui --json

    # Security checks only, with a machine-readable run log:
    storefront-qa --catalog --tag security --run-log evidence/run.json

Exit status is 0 when every scenario passed, 1 when any failed or was
cancelled, and 2 on configuration or scenario-definition errors.
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import signal
import sys
from pathlib import Path
from typing import Sequence

from storefront_qa.config import RunSettings, SettingsError, load_settings
from storefront_qa.observability import configure_logging, get_logger
from storefront_qa.scenarios import (
    ReportAggregator,
    RunLog,
    Scenario,
    ScenarioDefinitionError,
    ScenarioRunner,
    scan_scenario_dir,
    storefront_api_scenarios,
)
from storefront_qa.scenarios.run_log import utc_now
from storefront_qa.ui import (
    DRIVER_ERRORS,
    UiScenario,
    UiScenarioRunner,
    driver_failure,
    open_browser,
    record_not_run,
    storefront_ui_scenarios,
)

logger = get_logger(__name__)

EXIT_PASSED = 0
EXIT_FAILED = 1
EXIT_CONFIG_ERROR = 2


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog='storefront-qa',
        description='Run declarative API and UI scenarios against a storefront.',
    )
    parser.add_argument('--api-url', help='Storefront API base URL (env: STOREFRONT_API_URL)')
    parser.add_argument('--ui-url', help='Storefront UI base URL (env: STOREFRONT_UI_URL)')
    parser.add_argument(
        '--scenario-dir',
        type=Path,
        help='Directory of JSON scenario files',
    )
    parser.add_argument(
        '--catalog',
        action='store_true',
        help='Run the built-in API catalog (default when no other source is given)',
    )
    parser.add_argument(
        '--ui',
        action='store_true',
        help='Run the built-in UI catalog in headless Chromium',
    )
    parser.add_argument(
        '--include-destructive',
        action='store_true',
        help='Include catalog scenarios that delete data',
    )
    parser.add_argument(
        '--var',
        action='append',
        default=[],
        help='Path variable (key=value), repeatable',
    )
    parser.add_argument('--concurrency', type=int, help='Scenarios in flight at once')
    parser.add_argument('--timeout', type=float, help='Request timeout in seconds')
    parser.add_argument(
        '--tag',
        action='append',
        default=[],
        help='Only run scenarios carrying this tag, repeatable',
    )
    parser.add_argument(
        '--json',
        action='store_true',
        dest='json_output',
        help='Output results as JSON',
    )
    parser.add_argument('--run-log', type=Path, help='Write a JSON run log to this path')
    parser.add_argument('--log-level', help='Log level (env: LOG_LEVEL, default WARNING)')
    return parser.parse_args(argv)


def build_variable_map(var_args: list[str]) -> dict[str, str]:
    """Parse --var key=value arguments into a dict."""
    result: dict[str, str] = {}
    for arg in var_args:
        if '=' not in arg:
            print(f'WARNING: Ignoring malformed --var: {arg}', file=sys.stderr)
            continue
        key, value = arg.split('=', 1)
        result[key.strip()] = value.strip()
    return result


def filter_by_tags(scenarios: list, tags: Sequence[str]) -> list:
    """Keep scenarios carrying at least one of *tags* (all when empty)."""
    if not tags:
        return list(scenarios)
    wanted = set(tags)
    return [s for s in scenarios if wanted.intersection(s.tags)]


def collect_api_scenarios(args: argparse.Namespace, settings: RunSettings) -> list[Scenario]:
    """Gather API scenarios from the catalog and/or a scenario directory.

    Raises:
        ScenarioDefinitionError: If a scenario file is malformed.
    """
    scenarios: list[Scenario] = []
    use_catalog = args.catalog or (args.scenario_dir is None and not args.ui)
    if use_catalog:
        scenarios.extend(
            storefront_api_scenarios(settings, include_destructive=args.include_destructive)
        )
    if args.scenario_dir is not None:
        scenarios.extend(scan_scenario_dir(args.scenario_dir))
    return filter_by_tags(scenarios, args.tag)


def print_text_results(report: ReportAggregator) -> None:
    """Print human-readable results."""
    outcomes = report.outcomes()
    for outcome in outcomes:
        icon = {'pass': '✔', 'cancelled': '⏹'}.get(outcome.verdict, '✘')
        print(f'{icon} {outcome.scenario_name} [{outcome.verdict}] '
              f'({outcome.duration_ms:.0f}ms)')
        for failure in outcome.failures:
            print(f'    - {failure.predicate}: {failure.explanation}')
        for note in outcome.notes:
            print(f'    note: {note}')

    summary = report.summary()
    print(f'\n{"=" * 60}')
    summary_icon = '✔' if summary.all_passed else '✘'
    print(f'{summary_icon} Total: {summary.total} | Passed: {summary.passed} | '
          f'Failed: {summary.failed} | Cancelled: {summary.cancelled}')


def print_json_results(log: RunLog) -> None:
    print(log.to_json())


async def run_ui_scenarios(
    settings: RunSettings,
    report: ReportAggregator,
    scenarios: list[UiScenario],
) -> None:
    """Run *scenarios* in one headless browser, recording into *report*.

    If the browser cannot be launched, or fails outside any one scenario,
    the scenarios not yet recorded fail with a ``driver`` failure so the
    run still reports them.
    """
    loop = asyncio.get_running_loop()
    recorded_before = len(report.outcomes())
    try:
        async with open_browser(settings) as driver:
            ui_runner = UiScenarioRunner(driver, settings, report=report)
            with contextlib.suppress(NotImplementedError):
                loop.add_signal_handler(signal.SIGINT, ui_runner.cancel)
            await ui_runner.run_all(scenarios)
    except DRIVER_ERRORS as exc:
        logger.error('browser_failed', error=str(exc), error_type=type(exc).__name__)
        ran = len(report.outcomes()) - recorded_before
        record_not_run(scenarios[ran:], report, failure=driver_failure(exc))


async def run(args: argparse.Namespace) -> int:
    settings = load_settings(
        api_base_url=args.api_url.rstrip('/') if args.api_url else None,
        ui_base_url=args.ui_url.rstrip('/') if args.ui_url else None,
        timeout_seconds=args.timeout,
        concurrency=args.concurrency,
        variables=build_variable_map(args.var) or None,
    )
    api_scenarios = collect_api_scenarios(args, settings)
    ui_scenarios: list[UiScenario] = (
        filter_by_tags(storefront_ui_scenarios(), args.tag) if args.ui else []
    )
    if not api_scenarios and not ui_scenarios:
        print('ERROR: No scenarios selected', file=sys.stderr)
        return EXIT_FAILED

    report = ReportAggregator()
    started_at = utc_now()
    async with ScenarioRunner(settings, report=report) as runner:
        loop = asyncio.get_running_loop()
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(signal.SIGINT, runner.cancel)
        try:
            if api_scenarios:
                await runner.run_all(api_scenarios)
            if ui_scenarios and runner.cancelled:
                record_not_run(ui_scenarios, report)
            elif ui_scenarios:
                await run_ui_scenarios(settings, report, ui_scenarios)
        finally:
            with contextlib.suppress(NotImplementedError):
                loop.remove_signal_handler(signal.SIGINT)

    log = RunLog.from_report(report, started_at=started_at, metadata={
        'api_base_url': settings.api_base_url,
        'ui_base_url': settings.ui_base_url if ui_scenarios else None,
        'tags': list(args.tag),
    })
    if args.run_log is not None:
        log.write(args.run_log)
        logger.info('run_log_written', path=str(args.run_log), run_id=log.run_id)

    if args.json_output:
        print_json_results(log)
    else:
        print_text_results(report)

    return EXIT_PASSED if log.overall_passed else EXIT_FAILED


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    configure_logging(level=args.log_level)
    try:
        return asyncio.run(run(args))
    except (SettingsError, ScenarioDefinitionError) as exc:
        print(f'ERROR: {exc}', file=sys.stderr)
        return EXIT_CONFIG_ERROR


if __name__ == '__main__':
    sys.exit(main())
