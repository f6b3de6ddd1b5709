"""Shared fixtures for unit tests."""

import pytest

from invpa.shared.config import OperatorIdentity, Settings


@pytest.fixture
def settings() -> Settings:
    """Create test settings with instant retries and a known operator."""
    return Settings(
        _env_file=None,
        openai_api_key="test-key",
        retry_initial_wait=0,
        retry_max_wait=0,
        max_workers=4,
        my_company=OperatorIdentity(
            name="Operator GmbH",
            vat="DE999999999",
            country="Germany",
            address="9 Operator Way, Hamburg",
        ),
    )
