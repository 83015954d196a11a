"""Pytest configuration for storefront-qa tests."""
import sys
from pathlib import Path

# Add src/ to path for src-layout imports
_PROJECT_ROOT = Path(__file__).parent.parent
_SRC = _PROJECT_ROOT / 'src'
if str(_SRC) not in sys.path:
    sys.path.insert(0, str(_SRC))

import pytest

from storefront_qa.config import RunSettings

TEST_SECRET = 'storefront-qa-test-secret-0123456789abcdef'


@pytest.fixture
def settings():
    """Settings pointing at a fake API with minted role tokens."""
    return RunSettings(
        api_base_url='http://test',
        ui_base_url='http://ui.test',
        jwt_secret=TEST_SECRET,
        variables={'brand_id': 'brand-1', 'disposable_brand_id': 'brand-2'},
        ui_timeout_seconds=0.2,
        poll_interval_seconds=0.01,
    )


@pytest.fixture
def scenario_dir():
    """The sample scenario files shipped with the repo."""
    return _PROJECT_ROOT / 'test-scenarios'
