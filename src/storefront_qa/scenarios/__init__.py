"""Declarative HTTP scenario engine for storefront API checks."""

from .catalog import storefront_api_scenarios
from .errors import (
    AssertionFailure,
    PollTimeoutError,
    ScenarioConfigError,
    ScenarioDefinitionError,
    ScenarioError,
    TransportError,
    UnknownRoleError,
)
from .executor import RequestExecutor
from .identity import Credentials, IdentityProvider, RoleDefinition
from .lifecycle import (
    InvalidStateTransition,
    RunCancelled,
    ScenarioLifecycle,
    ScenarioState,
    until_cancelled,
)
from .loader import parse_scenario, parse_scenario_file, scan_scenario_dir
from .models import (
    ExecutionResult,
    ExpectedOutcome,
    FileDescriptor,
    FollowUp,
    JsonFieldAbsent,
    JsonFieldPresent,
    JsonFragmentContains,
    JsonFragmentMissing,
    PredicateFailure,
    RequestDescriptor,
    Scenario,
    StatusCode,
    ValidationErrorOn,
    VerificationOutcome,
)
from .report import ReportAggregator, ReportSummary
from .run_log import RunLog
from .runner import ScenarioRunner
from .verifier import OutcomeVerifier

__all__ = [
    'AssertionFailure',
    'Credentials',
    'ExecutionResult',
    'ExpectedOutcome',
    'FileDescriptor',
    'FollowUp',
    'IdentityProvider',
    'InvalidStateTransition',
    'JsonFieldAbsent',
    'JsonFieldPresent',
    'JsonFragmentContains',
    'JsonFragmentMissing',
    'OutcomeVerifier',
    'PollTimeoutError',
    'PredicateFailure',
    'ReportAggregator',
    'ReportSummary',
    'RequestDescriptor',
    'RequestExecutor',
    'RoleDefinition',
    'RunCancelled',
    'RunLog',
    'Scenario',
    'ScenarioConfigError',
    'ScenarioDefinitionError',
    'ScenarioError',
    'ScenarioLifecycle',
    'ScenarioRunner',
    'ScenarioState',
    'StatusCode',
    'TransportError',
    'UnknownRoleError',
    'ValidationErrorOn',
    'VerificationOutcome',
    'parse_scenario',
    'parse_scenario_file',
    'scan_scenario_dir',
    'storefront_api_scenarios',
    'until_cancelled',
]
