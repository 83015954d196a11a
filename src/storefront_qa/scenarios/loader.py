"""Load scenario definitions from JSON files.

One scenario per ``*.json`` file::

    {
      "name": "customer_cannot_delete_brand",
      "tags": ["security"],
      "request": {"method": "DELETE", "path": "/brands/{brand_id}",
                  "acting_as": "customer"},
      "expect": [{"status": 403}],
      "follow_ups": [
        {"request": {"method": "GET", "path": "/brands/{brand_id}"},
         "expect": [{"status": 200}]}
      ]
    }

Outcome keys: ``status``, ``field_absent``, ``field_present``,
``fragment``, ``fragment_missing``, ``validation_error`` (+ ``message``).
Attachments take ``filename`` plus ``size_bytes`` or ``size_kb`` and an
optional ``content_type``.

These files are strict: anything malformed raises
:class:`ScenarioDefinitionError` naming the file, before any request runs.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Mapping

from .errors import ScenarioDefinitionError
from .models import (
    ExpectedOutcome,
    FileDescriptor,
    FollowUp,
    JsonFieldAbsent,
    JsonFieldPresent,
    JsonFragmentContains,
    JsonFragmentMissing,
    RequestDescriptor,
    Scenario,
    StatusCode,
    ValidationErrorOn,
    guess_content_type,
)

_REQUEST_KEYS = frozenset({
    'method', 'path', 'acting_as', 'json', 'attachments', 'attachment_field',
})


def parse_scenario(data: Mapping[str, Any], source_path: str = '<string>') -> Scenario:
    """Build a Scenario from decoded JSON.

    Raises:
        ScenarioDefinitionError: If the definition is malformed.
    """
    try:
        if not isinstance(data, Mapping):
            raise ScenarioDefinitionError('top level must be an object')
        follow_ups = tuple(
            FollowUp(
                request=_parse_request(_require(item, 'request')),
                outcomes=_parse_outcomes(_require(item, 'expect')),
            )
            for item in data.get('follow_ups', ())
        )
        return Scenario(
            name=_require(data, 'name'),
            request=_parse_request(_require(data, 'request')),
            outcomes=_parse_outcomes(_require(data, 'expect')),
            follow_ups=follow_ups,
            tags=tuple(data.get('tags', ())),
        )
    except (ValueError, TypeError, AttributeError) as exc:
        raise ScenarioDefinitionError(f'{source_path}: {exc}') from exc


def parse_scenario_file(path: Path) -> Scenario:
    """Parse a scenario JSON file.

    Raises:
        FileNotFoundError: If the file does not exist.
        ScenarioDefinitionError: If the file is not valid JSON or the
            definition is malformed.
    """
    text = path.read_text(encoding='utf-8')
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ScenarioDefinitionError(f'{path}: invalid JSON: {exc}') from exc
    return parse_scenario(data, source_path=str(path))


def scan_scenario_dir(
    directory: Path,
    *,
    pattern: str = '*.json',
) -> list[Scenario]:
    """Parse every scenario file in *directory*, sorted by file name.

    Raises:
        ScenarioDefinitionError: If two files define the same name.
    """
    scenarios: list[Scenario] = []
    seen: dict[str, Path] = {}
    for path in sorted(directory.glob(pattern)):
        scenario = parse_scenario_file(path)
        if scenario.name in seen:
            raise ScenarioDefinitionError(
                f'{path}: duplicate scenario name {scenario.name!r} '
                f'(also in {seen[scenario.name]})'
            )
        seen[scenario.name] = path
        scenarios.append(scenario)
    return scenarios


# ── Private helpers ────────────────────────────────────────────────


def _require(data: Mapping[str, Any], key: str) -> Any:
    if not isinstance(data, Mapping):
        raise ScenarioDefinitionError(f'expected an object holding {key!r}')
    if key not in data:
        raise ScenarioDefinitionError(f'missing required key {key!r}')
    return data[key]


def _parse_request(data: Mapping[str, Any]) -> RequestDescriptor:
    if not isinstance(data, Mapping):
        raise ScenarioDefinitionError('request must be an object')
    unknown = set(data) - _REQUEST_KEYS
    if unknown:
        raise ScenarioDefinitionError(
            f'unknown request keys: {", ".join(sorted(unknown))}'
        )
    json_body = data.get('json')
    if json_body is not None and not isinstance(json_body, Mapping):
        raise ScenarioDefinitionError('request json must be an object')
    return RequestDescriptor(
        method=_require(data, 'method'),
        path=_require(data, 'path'),
        acting_as=data.get('acting_as'),
        json_body=json_body,
        attachments=tuple(_parse_file(f) for f in data.get('attachments', ())),
        attachment_field=data.get('attachment_field', 'attachment'),
    )


def _parse_file(data: Mapping[str, Any]) -> FileDescriptor:
    filename = _require(data, 'filename')
    if 'size_bytes' in data:
        size = int(data['size_bytes'])
    elif 'size_kb' in data:
        size = int(data['size_kb']) * 1024
    else:
        raise ScenarioDefinitionError(f'{filename}: size_bytes or size_kb is required')
    return FileDescriptor(
        filename=filename,
        content_type=data.get('content_type') or guess_content_type(filename),
        size_bytes=size,
    )


def _parse_outcomes(items: Any) -> tuple[ExpectedOutcome, ...]:
    if not isinstance(items, list) or not items:
        raise ScenarioDefinitionError('expect must be a non-empty list')
    return tuple(_parse_outcome(item) for item in items)


def _parse_outcome(item: Mapping[str, Any]) -> ExpectedOutcome:
    if not isinstance(item, Mapping):
        raise ScenarioDefinitionError(f'outcome must be an object, got {item!r}')
    if 'status' in item:
        return StatusCode(int(item['status']))
    if 'field_absent' in item:
        return JsonFieldAbsent(str(item['field_absent']))
    if 'field_present' in item:
        return JsonFieldPresent(str(item['field_present']))
    if 'fragment' in item:
        return JsonFragmentContains(_fragment(item['fragment']))
    if 'fragment_missing' in item:
        return JsonFragmentMissing(_fragment(item['fragment_missing']))
    if 'validation_error' in item:
        return ValidationErrorOn(str(item['validation_error']), item.get('message'))
    raise ScenarioDefinitionError(f'unrecognised outcome {dict(item)!r}')


def _fragment(value: Any) -> dict[str, Any]:
    if not isinstance(value, Mapping) or not value:
        raise ScenarioDefinitionError('fragment must be a non-empty object')
    return dict(value)
