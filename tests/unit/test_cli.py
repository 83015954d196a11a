"""Tests for the command-line entry point.

Validates:
  - Argument helpers: --var parsing, tag filtering, scenario collection
  - Exit codes: 0 all passed, 1 failures, 2 configuration errors
  - Text and JSON output, run log file
  - UI phase: browser launch failure and cancellation still reported
"""

from __future__ import annotations

import contextlib
import json
import os
from pathlib import Path

import httpx
import pytest
from playwright.async_api import Error as PlaywrightError

from storefront_qa import cli
from storefront_qa.config import RunSettings
from storefront_qa.scenarios.run_log import RunLog
from storefront_qa.scenarios.runner import ScenarioRunner

STATUS_SCENARIO = {
    'name': 'status_ok',
    'tags': ['smoke'],
    'request': {'method': 'GET', 'path': '/status'},
    'expect': [{'status': 200}],
}


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    """Remove storefront env vars for isolated tests."""
    for var in list(os.environ):
        if var.startswith('STOREFRONT_'):
            monkeypatch.delenv(var, raising=False)


@pytest.fixture
def scenario_files(tmp_path: Path) -> Path:
    (tmp_path / 'status.json').write_text(json.dumps(STATUS_SCENARIO))
    return tmp_path


def _serve(monkeypatch, handler) -> None:
    """Route the CLI's runner through an httpx MockTransport."""
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))

    def runner(settings, *, report):
        return ScenarioRunner(settings, report=report, client=client)

    monkeypatch.setattr(cli, 'ScenarioRunner', runner)


class TestHelpers:

    def test_build_variable_map(self, capsys):
        result = cli.build_variable_map(['brand_id=01H', 'bad', 'x = y'])
        assert result == {'brand_id': '01H', 'x': 'y'}
        assert 'Ignoring malformed --var: bad' in capsys.readouterr().err

    def test_filter_by_tags(self):
        args = cli.parse_args(['--catalog', '--tag', 'uploads'])
        scenarios = cli.collect_api_scenarios(args, RunSettings())
        assert scenarios
        assert all('uploads' in s.tags for s in scenarios)

    def test_catalog_is_default_source(self):
        args = cli.parse_args([])
        names = [s.name for s in cli.collect_api_scenarios(args, RunSettings())]
        assert 'api_status_reachable' in names
        assert 'brand_delete_as_admin_allowed' not in names

    def test_scenario_dir_only(self, scenario_files):
        args = cli.parse_args(['--scenario-dir', str(scenario_files)])
        assert [s.name for s in cli.collect_api_scenarios(args, RunSettings())] == ['status_ok']


class TestExitCodes:

    def test_invalid_settings_exit_2(self, capsys):
        assert cli.main(['--concurrency', '0']) == cli.EXIT_CONFIG_ERROR
        assert 'concurrency must be >= 1' in capsys.readouterr().err

    def test_malformed_scenario_file_exit_2(self, tmp_path, capsys):
        (tmp_path / 'bad.json').write_text('{')
        assert cli.main(['--scenario-dir', str(tmp_path)]) == cli.EXIT_CONFIG_ERROR
        assert 'bad.json' in capsys.readouterr().err

    def test_no_scenarios_selected_exit_1(self, scenario_files, capsys):
        code = cli.main(['--scenario-dir', str(scenario_files), '--tag', 'nothing'])
        assert code == cli.EXIT_FAILED
        assert 'No scenarios selected' in capsys.readouterr().err

    def test_all_passed_exit_0(self, monkeypatch, scenario_files, capsys):
        _serve(monkeypatch, lambda req: httpx.Response(200, json={'status': 'ok'}))
        code = cli.main(['--api-url', 'http://test', '--scenario-dir', str(scenario_files)])
        assert code == cli.EXIT_PASSED
        out = capsys.readouterr().out
        assert 'status_ok [pass]' in out
        assert 'Total: 1 | Passed: 1' in out

    def test_failure_exit_1_with_details(self, monkeypatch, scenario_files, capsys):
        _serve(monkeypatch, lambda req: httpx.Response(503, json={}))
        code = cli.main(['--api-url', 'http://test', '--scenario-dir', str(scenario_files)])
        assert code == cli.EXIT_FAILED
        out = capsys.readouterr().out
        assert 'status_ok [fail]' in out
        assert 'expected status 200, got 503' in out


class TestOutput:

    def test_json_output_and_run_log(self, monkeypatch, scenario_files, tmp_path, capsys):
        _serve(monkeypatch, lambda req: httpx.Response(200, json={}))
        log_path = tmp_path / 'evidence' / 'run.json'
        code = cli.main([
            '--api-url', 'http://test',
            '--scenario-dir', str(scenario_files),
            '--json',
            '--run-log', str(log_path),
        ])
        assert code == cli.EXIT_PASSED

        printed = json.loads(capsys.readouterr().out)
        assert printed['overall_passed'] is True
        assert printed['metadata']['api_base_url'] == 'http://test'
        assert printed['scenarios'][0]['scenario'] == 'status_ok'

        written = json.loads(log_path.read_text())
        assert written['run_id'] == printed['run_id']


class TestUiPhase:

    def test_browser_launch_failure_still_reports(self, monkeypatch, scenario_files, tmp_path, capsys):
        _serve(monkeypatch, lambda req: httpx.Response(200, json={}))

        @contextlib.asynccontextmanager
        async def missing_browser(settings, **kwargs):
            raise PlaywrightError("Executable doesn't exist")
            yield

        monkeypatch.setattr(cli, 'open_browser', missing_browser)
        log_path = tmp_path / 'run.json'
        code = cli.main([
            '--api-url', 'http://test',
            '--scenario-dir', str(scenario_files),
            '--ui',
            '--tag', 'smoke',
            '--run-log', str(log_path),
        ])
        assert code == cli.EXIT_FAILED

        out = capsys.readouterr().out
        assert 'status_ok [pass]' in out
        assert 'ui_homepage_title [fail]' in out
        assert 'Total: 3 | Passed: 1 | Failed: 2' in out

        log = RunLog.read(log_path)
        assert [f['predicate'] for f in log.failures()] == ['driver', 'driver']
        assert log.failures()[0]['actual'] == 'Error'

    def test_cancel_during_api_phase_records_ui_as_cancelled(self, monkeypatch, scenario_files, capsys):
        runners: list[ScenarioRunner] = []

        def handler(req):
            runners[0].cancel()
            return httpx.Response(200, json={})

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))

        def runner(settings, *, report):
            runners.append(ScenarioRunner(settings, report=report, client=client))
            return runners[0]

        def no_browser(*args, **kwargs):
            raise AssertionError('browser launched after cancel')

        monkeypatch.setattr(cli, 'ScenarioRunner', runner)
        monkeypatch.setattr(cli, 'open_browser', no_browser)
        code = cli.main([
            '--api-url', 'http://test',
            '--scenario-dir', str(scenario_files),
            '--ui',
            '--tag', 'smoke',
        ])
        assert code == cli.EXIT_FAILED

        out = capsys.readouterr().out
        assert 'ui_homepage_title [cancelled]' in out
        assert 'ui_navigation_visible [cancelled]' in out
        assert 'Total: 3 |' in out
