"""Poll-until-condition-or-timeout waits for UI checks.

A condition is an async callable returning a truthy value once satisfied.
Each probe runs under ``asyncio.wait_for`` bounded by the remaining budget,
so a slow probe can never push the wait past ``timeout``.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Awaitable, Callable

from storefront_qa.scenarios.errors import PollTimeoutError

Condition = Callable[[], Awaitable[object]]


@dataclass(frozen=True, slots=True)
class PollResult:
    met: bool
    attempts: int
    elapsed: float


async def poll_until(
    condition: Condition,
    *,
    timeout: float,
    interval: float = 0.25,
) -> PollResult:
    """Probe *condition* until it holds or *timeout* seconds have passed.

    A probe that is still running when the budget ends counts as an
    attempt that did not meet the condition. Exceptions raised by the
    probe propagate.
    """
    if timeout <= 0:
        raise ValueError('timeout must be > 0')
    if interval <= 0:
        raise ValueError('interval must be > 0')

    start = time.monotonic()
    deadline = start + timeout
    attempts = 0
    while True:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            break
        attempts += 1
        try:
            met = await asyncio.wait_for(condition(), timeout=remaining)
        except asyncio.TimeoutError:
            break
        if met:
            return PollResult(True, attempts, time.monotonic() - start)
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            break
        await asyncio.sleep(min(interval, remaining))
    return PollResult(False, attempts, time.monotonic() - start)


async def wait_for(
    condition: Condition,
    *,
    timeout: float,
    interval: float = 0.25,
    description: str = 'condition',
) -> PollResult:
    """Like :func:`poll_until` but raise when the budget runs out.

    Raises:
        PollTimeoutError: If the condition was never met.
    """
    result = await poll_until(condition, timeout=timeout, interval=interval)
    if not result.met:
        raise PollTimeoutError(description, timeout, result.attempts)
    return result
