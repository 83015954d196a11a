"""Evaluate expected outcomes against a captured execution result.

Each predicate is checked independently and every failure is kept, so a
single run surfaces all violations rather than the first one.

Record-wise field checks: when the body is a mapping with a ``data``
list (the storefront's paginated envelope), ``JsonFieldAbsent`` and
``JsonFieldPresent`` quantify over every element of that list::

    JsonFieldAbsent('stock')   # for all records: 'stock' not in record
    JsonFieldPresent('stock')  # for all records: 'stock' in record

Otherwise they are evaluated against the root document.
"""

from __future__ import annotations

from typing import Any, Callable, Iterator, Mapping, Sequence

from .errors import AssertionFailure
from .models import (
    ExecutionResult,
    ExpectedOutcome,
    JsonFieldAbsent,
    JsonFieldPresent,
    JsonFragmentContains,
    JsonFragmentMissing,
    PredicateFailure,
    StatusCode,
    ValidationErrorOn,
    VerificationOutcome,
)

ERRORS_KEY = 'errors'
RECORDS_KEY = 'data'

_MISSING = object()


class OutcomeVerifier:
    """Judge execution results against outcome predicates."""

    def verify(
        self,
        result: ExecutionResult,
        outcomes: Sequence[ExpectedOutcome],
        *,
        scenario_name: str = '',
    ) -> VerificationOutcome:
        """Evaluate all *outcomes* against *result*.

        Returns:
            VerificationOutcome whose ``passed`` is the AND of all
            predicates and whose ``failures`` lists every violation in
            declaration order.
        """
        failures = tuple(self.check_all(result, outcomes))
        return VerificationOutcome(
            scenario_name=scenario_name,
            passed=not failures,
            failures=failures,
        )

    def check_all(
        self,
        result: ExecutionResult,
        outcomes: Sequence[ExpectedOutcome],
    ) -> list[PredicateFailure]:
        """Return the failures for *outcomes*, in order."""
        failures: list[PredicateFailure] = []
        for outcome in outcomes:
            try:
                check_outcome(result, outcome)
            except AssertionFailure as exc:
                failures.append(PredicateFailure(
                    predicate=exc.predicate,
                    explanation=exc.explanation,
                    expected=exc.expected,
                    actual=exc.actual,
                ))
        return failures


def check_outcome(result: ExecutionResult, outcome: ExpectedOutcome) -> None:
    """Check one predicate.

    Raises:
        AssertionFailure: If the predicate does not hold.
        TypeError: If the outcome type has no checker.
    """
    checker = _CHECKERS.get(type(outcome))
    if checker is None:
        raise TypeError(f'no checker for {type(outcome).__name__}')
    checker(result, outcome)


# ── Predicate checkers ─────────────────────────────────────────────


def _check_status(result: ExecutionResult, outcome: StatusCode) -> None:
    if result.status_code != outcome.code:
        raise AssertionFailure(
            outcome.describe(),
            f'expected status {outcome.code}, got {result.status_code}',
            expected=outcome.code,
            actual=result.status_code,
        )


def _check_field_absent(result: ExecutionResult, outcome: JsonFieldAbsent) -> None:
    records, scope = _records(result, outcome)
    violating = [
        index for index, record in enumerate(records)
        if _lookup(record, outcome.path) is not _MISSING
    ]
    if violating:
        raise AssertionFailure(
            outcome.describe(),
            f'{outcome.path!r} present in {len(violating)} of {len(records)} '
            f'{scope} (indexes {_format_indexes(violating)})',
            expected='absent',
            actual=violating,
        )


def _check_field_present(result: ExecutionResult, outcome: JsonFieldPresent) -> None:
    records, scope = _records(result, outcome)
    if not records:
        raise AssertionFailure(
            outcome.describe(),
            f'no {scope} to check {outcome.path!r} against',
            expected='present',
            actual=[],
        )
    missing = [
        index for index, record in enumerate(records)
        if _lookup(record, outcome.path) is _MISSING
    ]
    if missing:
        raise AssertionFailure(
            outcome.describe(),
            f'{outcome.path!r} missing from {len(missing)} of {len(records)} '
            f'{scope} (indexes {_format_indexes(missing)})',
            expected='present',
            actual=missing,
        )


def _check_fragment_contains(
    result: ExecutionResult,
    outcome: JsonFragmentContains,
) -> None:
    body = _require_json(result, outcome)
    absent = {
        key: value for key, value in outcome.fragment.items()
        if not _contains_pair(body, key, value)
    }
    if absent:
        raise AssertionFailure(
            outcome.describe(),
            f'no match at any depth for {absent!r}',
            expected=dict(outcome.fragment),
            actual=absent,
        )


def _check_fragment_missing(
    result: ExecutionResult,
    outcome: JsonFragmentMissing,
) -> None:
    body = _require_json(result, outcome)
    found = {
        key: value for key, value in outcome.fragment.items()
        if _contains_pair(body, key, value)
    }
    if found:
        raise AssertionFailure(
            outcome.describe(),
            f'unexpected match for {found!r}',
            expected='missing',
            actual=found,
        )


def _check_validation_error(
    result: ExecutionResult,
    outcome: ValidationErrorOn,
) -> None:
    body = _require_json(result, outcome)
    errors = body.get(ERRORS_KEY) if isinstance(body, Mapping) else None
    if not isinstance(errors, Mapping):
        raise AssertionFailure(
            outcome.describe(),
            f'response has no {ERRORS_KEY!r} object',
            expected=outcome.field,
            actual=None,
        )
    if outcome.field not in errors:
        raise AssertionFailure(
            outcome.describe(),
            f'no validation error for {outcome.field!r} '
            f'(errors on: {", ".join(sorted(map(str, errors))) or "none"})',
            expected=outcome.field,
            actual=sorted(map(str, errors)),
        )
    if outcome.message is None:
        return
    raw = errors[outcome.field]
    messages = [raw] if isinstance(raw, str) else list(raw or ())
    if outcome.message not in messages:
        raise AssertionFailure(
            outcome.describe(),
            f'{outcome.field!r} errors do not include {outcome.message!r}',
            expected=outcome.message,
            actual=messages,
        )


_CHECKERS: Mapping[type, Callable[[ExecutionResult, Any], None]] = {
    StatusCode: _check_status,
    JsonFieldAbsent: _check_field_absent,
    JsonFieldPresent: _check_field_present,
    JsonFragmentContains: _check_fragment_contains,
    JsonFragmentMissing: _check_fragment_missing,
    ValidationErrorOn: _check_validation_error,
}


# ── Helpers ────────────────────────────────────────────────────────


def _require_json(result: ExecutionResult, outcome: ExpectedOutcome) -> Any:
    if result.parsed_json is None:
        raise AssertionFailure(
            outcome.describe(),
            f'response body is not JSON (status {result.status_code}, '
            f'{len(result.raw_body)} bytes)',
            actual=None,
        )
    return result.parsed_json


def _records(
    result: ExecutionResult,
    outcome: ExpectedOutcome,
) -> tuple[list[Any], str]:
    """Return the elements a field predicate quantifies over."""
    body = _require_json(result, outcome)
    if isinstance(body, Mapping) and isinstance(body.get(RECORDS_KEY), list):
        return body[RECORDS_KEY], 'records'
    return [body], 'documents'


def _lookup(document: Any, path: str) -> Any:
    """Follow a dotted path through nested mappings."""
    current = document
    for part in path.split('.'):
        if not isinstance(current, Mapping) or part not in current:
            return _MISSING
        current = current[part]
    return current


def _walk_mappings(node: Any) -> Iterator[Mapping[str, Any]]:
    """Yield every mapping in a JSON document, depth-first."""
    if isinstance(node, Mapping):
        yield node
        for value in node.values():
            yield from _walk_mappings(value)
    elif isinstance(node, list):
        for item in node:
            yield from _walk_mappings(item)


def _contains_pair(body: Any, key: str, value: Any) -> bool:
    for mapping in _walk_mappings(body):
        if key in mapping and _value_matches(mapping[key], value):
            return True
    return False


def _value_matches(actual: Any, expected: Any) -> bool:
    """JSON equality, with a scalar expected also matching inside a list."""
    if _json_equal(actual, expected):
        return True
    return (
        isinstance(actual, list)
        and not isinstance(expected, list)
        and any(_json_equal(item, expected) for item in actual)
    )


def _json_equal(actual: Any, expected: Any) -> bool:
    """Equality on JSON values; booleans never equal numbers."""
    if isinstance(actual, bool) or isinstance(expected, bool):
        return type(actual) is type(expected) and actual == expected
    if isinstance(actual, list) and isinstance(expected, list):
        return len(actual) == len(expected) and all(map(_json_equal, actual, expected))
    if isinstance(actual, Mapping) and isinstance(expected, Mapping):
        return actual.keys() == expected.keys() and all(
            _json_equal(actual[key], expected[key]) for key in actual
        )
    return actual == expected


def _format_indexes(indexes: list[int], limit: int = 10) -> str:
    shown = ', '.join(str(i) for i in indexes[:limit])
    if len(indexes) > limit:
        shown += f', ... (+{len(indexes) - limit})'
    return shown
