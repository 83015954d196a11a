"""Per-scenario run state machine.

Canonical flow::

    defined -> executing -> executed -> verified -> recorded

Cancellation is only possible while a request is in flight::

    executing -> cancelled -> recorded

No transition may skip a state; ``recorded`` is terminal.

:func:`until_cancelled` races in-flight work against a run-level cancel
event; the runners use it to abort requests and navigations promptly.
"""

from __future__ import annotations

import asyncio
from enum import Enum
from types import MappingProxyType
from typing import Awaitable, TypeVar

from storefront_qa.observability import get_logger

logger = get_logger(__name__)

T = TypeVar('T')


class ScenarioState(str, Enum):
    DEFINED = 'defined'
    EXECUTING = 'executing'
    EXECUTED = 'executed'
    VERIFIED = 'verified'
    CANCELLED = 'cancelled'
    RECORDED = 'recorded'


ALLOWED_TRANSITIONS = MappingProxyType(
    {
        ScenarioState.DEFINED: frozenset({ScenarioState.EXECUTING}),
        ScenarioState.EXECUTING: frozenset({
            ScenarioState.EXECUTED,
            ScenarioState.CANCELLED,
        }),
        ScenarioState.EXECUTED: frozenset({ScenarioState.VERIFIED}),
        ScenarioState.VERIFIED: frozenset({ScenarioState.RECORDED}),
        ScenarioState.CANCELLED: frozenset({ScenarioState.RECORDED}),
        ScenarioState.RECORDED: frozenset(),
    }
)

TERMINAL_STATES = frozenset({ScenarioState.RECORDED})


class InvalidStateTransition(ValueError):
    """Raised for invalid scenario state transitions."""

    def __init__(self, from_state: ScenarioState, to_state: ScenarioState) -> None:
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            f'invalid state transition: {from_state.value!r} -> {to_state.value!r}'
        )


class ScenarioLifecycle:
    """Tracks one scenario run through its states."""

    def __init__(self, scenario_name: str) -> None:
        self.scenario_name = scenario_name
        self._state = ScenarioState.DEFINED
        self._history: list[ScenarioState] = [ScenarioState.DEFINED]

    @property
    def state(self) -> ScenarioState:
        return self._state

    @property
    def history(self) -> tuple[ScenarioState, ...]:
        return tuple(self._history)

    @property
    def is_terminal(self) -> bool:
        return self._state in TERMINAL_STATES

    def advance(self, to_state: ScenarioState) -> None:
        """Move to *to_state*.

        Raises:
            InvalidStateTransition: If the move is not allowed from the
                current state.
        """
        if to_state not in ALLOWED_TRANSITIONS[self._state]:
            raise InvalidStateTransition(self._state, to_state)
        logger.debug(
            'scenario_state',
            scenario=self.scenario_name,
            from_state=self._state.value,
            to_state=to_state.value,
        )
        self._state = to_state
        self._history.append(to_state)


class RunCancelled(Exception):
    """The run-level cancel event fired while work was in flight."""


async def until_cancelled(work: Awaitable[T], cancel_event: asyncio.Event) -> T:
    """Await *work* unless *cancel_event* fires first.

    Raises:
        RunCancelled: If cancellation won; the work is cancelled and
            awaited before raising.
    """
    task = asyncio.ensure_future(work)
    waiter = asyncio.ensure_future(cancel_event.wait())
    try:
        done, _ = await asyncio.wait(
            {task, waiter}, return_when=asyncio.FIRST_COMPLETED,
        )
    except BaseException:
        task.cancel()
        waiter.cancel()
        raise
    waiter.cancel()

    if task in done:
        return task.result()

    task.cancel()
    await asyncio.gather(task, return_exceptions=True)
    raise RunCancelled()
