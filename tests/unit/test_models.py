"""Tests for the scenario data model.

Validates:
  - FileDescriptor: exact payload sizes, magic bytes, KB helper
  - RequestDescriptor: method normalisation, path and attachment checks
  - Scenario / FollowUp: construction-time validation
  - VerificationOutcome / PredicateFailure serialization
"""

from __future__ import annotations

from dataclasses import dataclass

import pytest

from storefront_qa.scenarios.errors import ScenarioDefinitionError
from storefront_qa.scenarios.models import (
    ExecutionResult,
    ExpectedOutcome,
    FileDescriptor,
    FollowUp,
    JsonFieldAbsent,
    JsonFragmentContains,
    JsonFragmentMissing,
    PredicateFailure,
    RequestDescriptor,
    Scenario,
    StatusCode,
    ValidationErrorOn,
    VerificationOutcome,
    guess_content_type,
)


# =====================================================================
# 1. FileDescriptor
# =====================================================================


class TestFileDescriptor:

    @pytest.mark.parametrize('size', [0, 1, 5, 1024, 500 * 1024, 501 * 1024])
    def test_payload_has_exact_size(self, size):
        item = FileDescriptor('doc.pdf', 'application/pdf', size)
        assert len(item.payload()) == size

    def test_pdf_payload_starts_with_magic(self):
        item = FileDescriptor.of_kilobytes('doc.pdf', 1)
        assert item.payload().startswith(b'%PDF')

    def test_magic_dropped_when_file_too_small(self):
        item = FileDescriptor('doc.pdf', 'application/pdf', 3)
        assert len(item.payload()) == 3
        assert not item.payload().startswith(b'%PD')

    def test_of_kilobytes_multiplies_by_1024(self):
        item = FileDescriptor.of_kilobytes('image.jpg', 100)
        assert item.size_bytes == 102400
        assert item.size_kb == 100
        assert item.content_type == 'image/jpeg'

    def test_explicit_content_used_verbatim(self):
        item = FileDescriptor('a.txt', 'text/plain', 5, content=b'hello')
        assert item.payload() == b'hello'

    def test_content_size_mismatch_rejected(self):
        with pytest.raises(ScenarioDefinitionError, match='declared 4'):
            FileDescriptor('a.txt', 'text/plain', 4, content=b'hello')

    def test_negative_size_rejected(self):
        with pytest.raises(ScenarioDefinitionError, match='size_bytes'):
            FileDescriptor('a.pdf', 'application/pdf', -1)

    def test_blank_filename_rejected(self):
        with pytest.raises(ScenarioDefinitionError, match='filename'):
            FileDescriptor(' ', 'application/pdf', 1)


# =====================================================================
# 2. RequestDescriptor
# =====================================================================


class TestRequestDescriptor:

    def test_method_is_upper_cased(self):
        request = RequestDescriptor('delete', '/brands/1')
        assert request.method == 'DELETE'

    def test_unsupported_method_rejected(self):
        with pytest.raises(ScenarioDefinitionError, match='unsupported method'):
            RequestDescriptor('TRACE', '/status')

    def test_relative_path_must_start_with_slash(self):
        with pytest.raises(ScenarioDefinitionError, match='path must start'):
            RequestDescriptor('GET', 'status')

    def test_absolute_url_allowed(self):
        request = RequestDescriptor('GET', 'http://localhost:8091/status')
        assert request.path == 'http://localhost:8091/status'

    def test_blank_role_rejected(self):
        with pytest.raises(ScenarioDefinitionError, match='acting_as'):
            RequestDescriptor('GET', '/products', acting_as='  ')

    def test_attachments_must_be_file_descriptors(self):
        with pytest.raises(ScenarioDefinitionError, match='FileDescriptor'):
            RequestDescriptor('POST', '/contact', attachments=('a.pdf',))

    def test_json_body_must_be_serialisable(self):
        with pytest.raises(ScenarioDefinitionError, match='json_body is not JSON-serialisable'):
            RequestDescriptor('POST', '/brands', json_body={'when': {1, 2}})

    def test_json_body_must_be_an_object(self):
        with pytest.raises(ScenarioDefinitionError, match='JSON object'):
            RequestDescriptor('POST', '/brands', json_body=['a'])

    def test_json_body_detached_from_caller(self):
        body = {'subject': 'Hi', 'tags': ['a']}
        request = RequestDescriptor('POST', '/contact', json_body=body)
        body['subject'] = 'changed'
        body['tags'].append('b')
        assert request.json_body == {'subject': 'Hi', 'tags': ['a']}
        with pytest.raises(TypeError):
            request.json_body['subject'] = 'changed'

    def test_describe(self):
        request = RequestDescriptor('GET', '/products', acting_as='admin')
        assert request.describe() == 'GET /products as admin'


# =====================================================================
# 3. Scenario and FollowUp
# =====================================================================


class TestScenario:

    def _request(self, **kwargs) -> RequestDescriptor:
        return RequestDescriptor('DELETE', '/brands/{brand_id}', acting_as='customer', **kwargs)

    def test_valid_scenario(self):
        scenario = Scenario('s', self._request(), (StatusCode(403),))
        assert scenario.outcomes == (StatusCode(403),)
        assert scenario.follow_ups == ()

    def test_lists_are_normalised_to_tuples(self):
        scenario = Scenario('s', self._request(), [StatusCode(403)], tags=['security'])
        assert isinstance(scenario.outcomes, tuple)
        assert scenario.tags == ('security',)

    def test_requires_at_least_one_outcome(self):
        with pytest.raises(ScenarioDefinitionError, match='at least one expected outcome'):
            Scenario('s', self._request(), ())

    def test_requires_a_name(self):
        with pytest.raises(ScenarioDefinitionError, match='name'):
            Scenario('', self._request(), (StatusCode(200),))

    def test_requires_a_request_descriptor(self):
        with pytest.raises(ScenarioDefinitionError, match='exactly one RequestDescriptor'):
            Scenario('s', [self._request(), self._request()], (StatusCode(200),))

    def test_rejects_base_outcome_type(self):
        with pytest.raises(ScenarioDefinitionError, match='not a supported expected outcome'):
            Scenario('s', self._request(), (ExpectedOutcome(),))

    def test_rejects_outcome_without_checker(self):
        @dataclass(frozen=True, slots=True)
        class HeaderPresent(ExpectedOutcome):
            name: str

        with pytest.raises(ScenarioDefinitionError, match='HeaderPresent'):
            Scenario('s', self._request(), (StatusCode(403), HeaderPresent('x-request-id')))

    def test_fragment_detached_from_caller(self):
        fragment = {'error': 'x'}
        outcome = JsonFragmentMissing(fragment)
        fragment['error'] = 'y'
        assert outcome.fragment == {'error': 'x'}
        assert outcome == JsonFragmentMissing({'error': 'x'})

    def test_fragment_must_be_serialisable(self):
        with pytest.raises(ScenarioDefinitionError, match='fragment'):
            JsonFragmentContains({'id': object()})

    def test_follow_up_needs_outcomes(self):
        with pytest.raises(ScenarioDefinitionError, match='follow-up GET'):
            FollowUp(RequestDescriptor('GET', '/brands/1'), ())

    def test_roles_in_request_order(self):
        scenario = Scenario(
            's',
            self._request(),
            (StatusCode(403),),
            follow_ups=(
                FollowUp(RequestDescriptor('GET', '/brands/1', acting_as='admin'), (StatusCode(200),)),
                FollowUp(RequestDescriptor('GET', '/brands/1', acting_as='customer'), (StatusCode(200),)),
            ),
        )
        assert scenario.roles == ('customer', 'admin')


# =====================================================================
# 4. Results and serialization
# =====================================================================


class TestResults:

    def test_execution_result_is_json(self):
        assert ExecutionResult(200, b'{}', parsed_json={}).is_json is True
        assert ExecutionResult(200, b'<html>').is_json is False

    def test_verdicts(self):
        assert VerificationOutcome('s', passed=True).verdict == 'pass'
        assert VerificationOutcome('s', passed=False).verdict == 'fail'
        assert VerificationOutcome('s', passed=False, cancelled=True).verdict == 'cancelled'

    def test_passed_outcome_cannot_carry_failures(self):
        failure = PredicateFailure('status == 200', 'expected status 200, got 500', 200, 500)
        with pytest.raises(ValueError, match='cannot carry failures'):
            VerificationOutcome('s', passed=True, failures=(failure,))
        with pytest.raises(ValueError, match='cancelled'):
            VerificationOutcome('s', passed=True, cancelled=True)

    def test_outcome_to_dict(self):
        outcome = VerificationOutcome(
            's',
            passed=False,
            failures=(PredicateFailure('status == 403', 'expected status 403, got 200', 403, 200),),
            notes=('n',),
            duration_ms=1.234,
        )
        data = outcome.to_dict()
        assert data['verdict'] == 'fail'
        assert data['duration_ms'] == 1.23
        assert data['failures'][0]['expected'] == 403
        assert data['notes'] == ['n']

    def test_failure_to_dict_makes_values_jsonable(self):
        failure = PredicateFailure('p', 'e', expected=('a', 'b'), actual=object())
        data = failure.to_dict()
        assert data['expected'] == ['a', 'b']
        assert isinstance(data['actual'], str)

    def test_describe_outcomes(self):
        assert JsonFieldAbsent('stock').describe() == "field 'stock' absent"
        assert 'File should be' in ValidationErrorOn('attachment', 'File should be smaller').describe()


def test_guess_content_type_defaults_to_octet_stream():
    assert guess_content_type('doc.pdf') == 'application/pdf'
    assert guess_content_type('blob.zzz-unknown') == 'application/octet-stream'
