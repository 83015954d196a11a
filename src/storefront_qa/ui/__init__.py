"""Browser scenarios for the storefront UI, driven through Playwright."""

from .catalog import storefront_ui_scenarios
from .checks import (
    AnyOf,
    ElementCountAtLeast,
    ElementVisible,
    Fill,
    Press,
    TitleMatches,
    UiCheck,
)
from .driver import PageDriver, PlaywrightDriver, open_browser
from .polling import PollResult, poll_until, wait_for
from .runner import DRIVER_ERRORS, UiScenario, UiScenarioRunner, driver_failure, record_not_run

__all__ = [
    'AnyOf',
    'DRIVER_ERRORS',
    'ElementCountAtLeast',
    'ElementVisible',
    'Fill',
    'PageDriver',
    'PlaywrightDriver',
    'PollResult',
    'Press',
    'TitleMatches',
    'UiCheck',
    'UiScenario',
    'UiScenarioRunner',
    'driver_failure',
    'open_browser',
    'poll_until',
    'record_not_run',
    'storefront_ui_scenarios',
    'wait_for',
]
