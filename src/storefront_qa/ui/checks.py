"""UI checks and actions.

A check is a side-effect-free probe of the current page; the runner polls
it until it holds or the UI budget runs out. ``observe`` reports what the
page actually showed, for failure evidence. Actions change the page and
run once, before any check is polled.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

from storefront_qa.scenarios.errors import ScenarioDefinitionError

from .driver import PageDriver


# ── Checks ─────────────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class UiCheck:
    """Base for page checks."""

    async def probe(self, driver: PageDriver) -> bool:
        raise NotImplementedError

    async def observe(self, driver: PageDriver) -> Any:
        return None

    def describe(self) -> str:
        raise NotImplementedError


@dataclass(frozen=True, slots=True)
class TitleMatches(UiCheck):
    """Page title matches *pattern* (case-insensitive search)."""

    pattern: str

    def __post_init__(self) -> None:
        try:
            re.compile(self.pattern)
        except re.error as exc:
            raise ScenarioDefinitionError(f'invalid title pattern {self.pattern!r}: {exc}') from exc

    async def probe(self, driver: PageDriver) -> bool:
        return re.search(self.pattern, await driver.title(), re.IGNORECASE) is not None

    async def observe(self, driver: PageDriver) -> Any:
        return await driver.title()

    def describe(self) -> str:
        return f'title matches /{self.pattern}/i'


@dataclass(frozen=True, slots=True)
class ElementVisible(UiCheck):
    selector: str

    def __post_init__(self) -> None:
        _require_selector(self.selector)

    async def probe(self, driver: PageDriver) -> bool:
        return await driver.is_visible(self.selector)

    async def observe(self, driver: PageDriver) -> Any:
        return {'visible': await driver.is_visible(self.selector)}

    def describe(self) -> str:
        return f'{self.selector} visible'


@dataclass(frozen=True, slots=True)
class ElementCountAtLeast(UiCheck):
    selector: str
    minimum: int = 1

    def __post_init__(self) -> None:
        _require_selector(self.selector)
        if self.minimum < 1:
            raise ScenarioDefinitionError(f'minimum must be >= 1, got {self.minimum}')

    async def probe(self, driver: PageDriver) -> bool:
        return await driver.count(self.selector) >= self.minimum

    async def observe(self, driver: PageDriver) -> Any:
        return {'count': await driver.count(self.selector)}

    def describe(self) -> str:
        return f'at least {self.minimum} x {self.selector}'


@dataclass(frozen=True, slots=True)
class AnyOf(UiCheck):
    """Holds when any of *checks* holds."""

    checks: tuple[UiCheck, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, 'checks', tuple(self.checks))
        if not self.checks:
            raise ScenarioDefinitionError('AnyOf needs at least one check')

    async def probe(self, driver: PageDriver) -> bool:
        for check in self.checks:
            if await check.probe(driver):
                return True
        return False

    async def observe(self, driver: PageDriver) -> Any:
        return [await c.observe(driver) for c in self.checks]

    def describe(self) -> str:
        return ' or '.join(c.describe() for c in self.checks)


# ── Actions ────────────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class Fill:
    selector: str
    value: str

    async def apply(self, driver: PageDriver) -> None:
        await driver.fill(self.selector, self.value)

    def describe(self) -> str:
        return f'fill {self.selector} with {self.value!r}'


@dataclass(frozen=True, slots=True)
class Press:
    selector: str
    key: str

    async def apply(self, driver: PageDriver) -> None:
        await driver.press(self.selector, self.key)

    def describe(self) -> str:
        return f'press {self.key} in {self.selector}'


UiAction = Fill | Press


def _require_selector(selector: str) -> None:
    if not selector or not selector.strip():
        raise ScenarioDefinitionError('selector must be non-empty')
