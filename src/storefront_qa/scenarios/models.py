"""Scenario definition data model.

A :class:`Scenario` is one declarative test: a single request, the
outcomes expected from it, and optional follow-up requests whose outcomes
belong to the same verdict. Everything here is immutable and validated at
construction time so malformed definitions fail before any network call.

Usage::

    scenario = Scenario(
        name='customer_cannot_delete_brand',
        request=RequestDescriptor('DELETE', '/brands/{brand_id}', acting_as='customer'),
        outcomes=(StatusCode(403),),
        follow_ups=(FollowUp(RequestDescriptor('GET', '/brands/{brand_id}'),
                             (StatusCode(200),)),),
    )
"""

from __future__ import annotations

import json
import mimetypes
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping

from .errors import ScenarioDefinitionError

HTTP_METHODS = frozenset({'GET', 'POST', 'PUT', 'PATCH', 'DELETE'})

# Leading bytes that make synthetic files sniff as their declared type.
_MAGIC_BYTES: Mapping[str, bytes] = {
    'application/pdf': b'%PDF-1.4\n',
    'image/jpeg': b'\xff\xd8\xff\xe0\x00\x10JFIF\x00',
    'image/png': b'\x89PNG\r\n\x1a\n',
    'image/gif': b'GIF89a',
}

_PADDING = b'storefront-qa synthetic payload\n'


# ── Request side ───────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class FileDescriptor:
    """A multipart attachment with an exact byte size.

    When ``content`` is omitted the payload is generated on demand:
    format magic bytes (if they fit) padded to exactly ``size_bytes``.
    """

    filename: str
    content_type: str
    size_bytes: int
    content: bytes | None = None

    def __post_init__(self) -> None:
        if not self.filename or not self.filename.strip():
            raise ScenarioDefinitionError('file descriptor needs a filename')
        if self.size_bytes < 0:
            raise ScenarioDefinitionError(
                f'{self.filename}: size_bytes must be >= 0, got {self.size_bytes}'
            )
        if self.content is not None and len(self.content) != self.size_bytes:
            raise ScenarioDefinitionError(
                f'{self.filename}: content is {len(self.content)} bytes, '
                f'declared {self.size_bytes}'
            )

    @classmethod
    def of_kilobytes(
        cls,
        filename: str,
        kilobytes: int,
        content_type: str | None = None,
    ) -> FileDescriptor:
        """Synthetic file of ``kilobytes * 1024`` bytes."""
        return cls(
            filename=filename,
            content_type=content_type or guess_content_type(filename),
            size_bytes=kilobytes * 1024,
        )

    @property
    def size_kb(self) -> float:
        return self.size_bytes / 1024

    def payload(self) -> bytes:
        """Return the exact bytes to upload."""
        if self.content is not None:
            return self.content
        if self.size_bytes == 0:
            return b''
        magic = _MAGIC_BYTES.get(self.content_type, b'')
        if len(magic) > self.size_bytes:
            magic = b''
        remaining = self.size_bytes - len(magic)
        repeats = remaining // len(_PADDING) + 1
        return magic + (_PADDING * repeats)[:remaining]


@dataclass(frozen=True, slots=True)
class RequestDescriptor:
    """One HTTP request, optionally on behalf of a named role."""

    method: str
    path: str
    acting_as: str | None = None
    json_body: Mapping[str, Any] | None = None
    attachments: tuple[FileDescriptor, ...] = ()
    attachment_field: str = 'attachment'

    def __post_init__(self) -> None:
        method = (self.method or '').upper()
        if method not in HTTP_METHODS:
            raise ScenarioDefinitionError(
                f'unsupported method {self.method!r}; '
                f'expected one of {", ".join(sorted(HTTP_METHODS))}'
            )
        # Frozen dataclass: normalise via object.__setattr__.
        object.__setattr__(self, 'method', method)
        object.__setattr__(self, 'attachments', tuple(self.attachments))
        if not (
            self.path.startswith('/')
            or self.path.startswith(('http://', 'https://'))
        ):
            raise ScenarioDefinitionError(
                f'path must start with "/" or be an absolute URL, got {self.path!r}'
            )
        if self.acting_as is not None and not self.acting_as.strip():
            raise ScenarioDefinitionError('acting_as must be a role name or None')
        for item in self.attachments:
            if not isinstance(item, FileDescriptor):
                raise ScenarioDefinitionError(
                    f'attachments must be FileDescriptor, got {type(item).__name__}'
                )
        if self.attachments and not self.attachment_field:
            raise ScenarioDefinitionError('attachment_field must be non-empty')
        if self.json_body is not None:
            object.__setattr__(self, 'json_body', _frozen_json(self.json_body, 'json_body'))

    def describe(self) -> str:
        who = f' as {self.acting_as}' if self.acting_as else ''
        return f'{self.method} {self.path}{who}'


# ── Expected outcomes ──────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class ExpectedOutcome:
    """Base for all outcome predicates."""

    def describe(self) -> str:
        raise NotImplementedError


@dataclass(frozen=True, slots=True)
class StatusCode(ExpectedOutcome):
    code: int

    def describe(self) -> str:
        return f'status == {self.code}'


@dataclass(frozen=True, slots=True)
class JsonFieldAbsent(ExpectedOutcome):
    """Field must not appear in any record (or in the root document)."""

    path: str

    def describe(self) -> str:
        return f'field {self.path!r} absent'


@dataclass(frozen=True, slots=True)
class JsonFieldPresent(ExpectedOutcome):
    """Field must appear in every record (or in the root document)."""

    path: str

    def describe(self) -> str:
        return f'field {self.path!r} present'


@dataclass(frozen=True, slots=True)
class JsonFragmentContains(ExpectedOutcome):
    fragment: Mapping[str, Any]

    def __post_init__(self) -> None:
        object.__setattr__(self, 'fragment', _frozen_json(self.fragment, 'fragment'))

    def describe(self) -> str:
        return f'body contains {dict(self.fragment)!r}'


@dataclass(frozen=True, slots=True)
class JsonFragmentMissing(ExpectedOutcome):
    fragment: Mapping[str, Any]

    def __post_init__(self) -> None:
        object.__setattr__(self, 'fragment', _frozen_json(self.fragment, 'fragment'))

    def describe(self) -> str:
        return f'body lacks {dict(self.fragment)!r}'


@dataclass(frozen=True, slots=True)
class ValidationErrorOn(ExpectedOutcome):
    field: str
    message: str | None = None

    def describe(self) -> str:
        if self.message:
            return f'validation error on {self.field!r}: {self.message!r}'
        return f'validation error on {self.field!r}'


# Outcome types the verifier knows how to check.
OUTCOME_TYPES: frozenset[type] = frozenset({
    StatusCode,
    JsonFieldAbsent,
    JsonFieldPresent,
    JsonFragmentContains,
    JsonFragmentMissing,
    ValidationErrorOn,
})


def _require_outcomes(owner: str, outcomes: tuple[ExpectedOutcome, ...]) -> None:
    if not outcomes:
        raise ScenarioDefinitionError(f'{owner}: at least one expected outcome is required')
    for outcome in outcomes:
        if type(outcome) not in OUTCOME_TYPES:
            raise ScenarioDefinitionError(
                f'{owner}: {outcome!r} is not a supported expected outcome'
            )


# ── Scenario ───────────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class FollowUp:
    """A request issued after the primary one, judged in the same verdict."""

    request: RequestDescriptor
    outcomes: tuple[ExpectedOutcome, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, 'outcomes', tuple(self.outcomes))
        if not isinstance(self.request, RequestDescriptor):
            raise ScenarioDefinitionError('follow-up request must be a RequestDescriptor')
        _require_outcomes(f'follow-up {self.request.describe()}', self.outcomes)


@dataclass(frozen=True, slots=True)
class Scenario:
    """One declarative test case."""

    name: str
    request: RequestDescriptor
    outcomes: tuple[ExpectedOutcome, ...]
    follow_ups: tuple[FollowUp, ...] = ()
    tags: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, 'outcomes', tuple(self.outcomes))
        object.__setattr__(self, 'follow_ups', tuple(self.follow_ups))
        object.__setattr__(self, 'tags', tuple(self.tags))
        if not self.name or not self.name.strip():
            raise ScenarioDefinitionError('scenario needs a name')
        if not isinstance(self.request, RequestDescriptor):
            raise ScenarioDefinitionError(
                f'{self.name}: exactly one RequestDescriptor is required'
            )
        _require_outcomes(self.name, self.outcomes)
        for follow_up in self.follow_ups:
            if not isinstance(follow_up, FollowUp):
                raise ScenarioDefinitionError(
                    f'{self.name}: follow_ups must be FollowUp, got {type(follow_up).__name__}'
                )

    @property
    def roles(self) -> tuple[str, ...]:
        """Roles this scenario acts as, primary request first."""
        seen: list[str] = []
        for request in (self.request, *(f.request for f in self.follow_ups)):
            if request.acting_as and request.acting_as not in seen:
                seen.append(request.acting_as)
        return tuple(seen)


# ── Results ────────────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class ExecutionResult:
    """Captured response of one HTTP exchange."""

    status_code: int
    raw_body: bytes
    parsed_json: Any = None
    headers: Mapping[str, str] = field(default_factory=dict)
    elapsed_ms: float = 0.0

    @property
    def is_json(self) -> bool:
        return self.parsed_json is not None


@dataclass(frozen=True, slots=True)
class PredicateFailure:
    """One failed predicate with expected vs actual detail."""

    predicate: str
    explanation: str
    expected: Any = None
    actual: Any = None

    def to_dict(self) -> dict[str, Any]:
        return {
            'predicate': self.predicate,
            'explanation': self.explanation,
            'expected': _jsonable(self.expected),
            'actual': _jsonable(self.actual),
        }


@dataclass(frozen=True, slots=True)
class VerificationOutcome:
    """Verdict for one scenario run."""

    scenario_name: str
    passed: bool
    failures: tuple[PredicateFailure, ...] = ()
    cancelled: bool = False
    notes: tuple[str, ...] = ()
    duration_ms: float = 0.0

    def __post_init__(self) -> None:
        object.__setattr__(self, 'failures', tuple(self.failures))
        object.__setattr__(self, 'notes', tuple(self.notes))
        if self.passed and (self.failures or self.cancelled):
            raise ValueError(
                f'{self.scenario_name}: a passed outcome cannot carry failures '
                'or be cancelled'
            )

    @property
    def verdict(self) -> str:
        if self.cancelled:
            return 'cancelled'
        return 'pass' if self.passed else 'fail'

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dict."""
        result: dict[str, Any] = {
            'scenario': self.scenario_name,
            'verdict': self.verdict,
            'passed': self.passed,
            'duration_ms': round(self.duration_ms, 2),
            'failures': [f.to_dict() for f in self.failures],
        }
        if self.notes:
            result['notes'] = list(self.notes)
        return result


# ── Helpers ────────────────────────────────────────────────────────


def guess_content_type(filename: str) -> str:
    """Guess a MIME type from a filename, defaulting to octet-stream."""
    guessed, _ = mimetypes.guess_type(filename)
    return guessed or 'application/octet-stream'


def _frozen_json(value: Any, owner: str) -> Mapping[str, Any]:
    """Detached read-only copy of a JSON object.

    Raises:
        ScenarioDefinitionError: If *value* is not a JSON-serialisable object.
    """
    if not isinstance(value, Mapping):
        raise ScenarioDefinitionError(
            f'{owner} must be a JSON object, got {type(value).__name__}'
        )
    try:
        detached = json.loads(json.dumps(dict(value)))
    except (TypeError, ValueError) as exc:
        raise ScenarioDefinitionError(f'{owner} is not JSON-serialisable: {exc}') from exc
    return MappingProxyType(detached)


def _jsonable(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bool, list, dict)):
        return value
    if isinstance(value, tuple):
        return list(value)
    if isinstance(value, Mapping):
        return dict(value)
    return repr(value)
