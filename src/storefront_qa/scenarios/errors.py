"""Scenario error hierarchy.

Definition and configuration errors are raised eagerly, before any network
activity. Runtime errors (unknown role, transport, assertion, poll timeout)
are captured by the runners into the scenario's outcome instead of aborting
the run.
"""

from __future__ import annotations

from typing import Any


class ScenarioError(Exception):
    """Base class for all scenario engine errors."""


class ScenarioDefinitionError(ScenarioError, ValueError):
    """A scenario, request, file, or outcome definition is malformed."""


class ScenarioConfigError(ScenarioError):
    """Identity or runner configuration cannot support the request."""


class UnknownRoleError(ScenarioError, LookupError):
    """A scenario acts as a role that was never registered."""

    def __init__(self, role: str, known: tuple[str, ...] = ()) -> None:
        self.role = role
        self.known = known
        hint = f' (known: {", ".join(known)})' if known else ''
        super().__init__(f'unknown role {role!r}{hint}')


class TransportError(ScenarioError):
    """The HTTP exchange failed before a response arrived."""

    def __init__(self, method: str, url: str, cause: BaseException) -> None:
        self.method = method
        self.url = url
        self.cause = cause
        super().__init__(f'{method} {url} failed: {type(cause).__name__}: {cause}')


class AssertionFailure(ScenarioError):
    """An expected outcome did not match the observed result."""

    def __init__(
        self,
        predicate: str,
        explanation: str,
        *,
        expected: Any = None,
        actual: Any = None,
    ) -> None:
        self.predicate = predicate
        self.explanation = explanation
        self.expected = expected
        self.actual = actual
        super().__init__(f'{predicate}: {explanation}')


class PollTimeoutError(ScenarioError, TimeoutError):
    """A polled UI condition was not met within its budget."""

    def __init__(self, description: str, timeout: float, attempts: int) -> None:
        self.description = description
        self.timeout = timeout
        self.attempts = attempts
        super().__init__(
            f'{description} not met within {timeout:g}s ({attempts} attempts)'
        )
