"""Shared fixtures for unit tests."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from state_backend_operator.identifier import reset_backend_id


@pytest.fixture(autouse=True)
def fresh_backend_id():
    """Forget the process-wide backend identifier between tests."""
    reset_backend_id()
    yield
    reset_backend_id()


@pytest.fixture(autouse=True)
def fast_aws_calls():
    """Disable AWS rate limiting and backoff sleeps."""
    with patch("state_backend_operator.utils.rate_limit._AWS_RATE_LIMIT_PER_SECOND", 1_000_000.0), \
            patch("state_backend_operator.utils.rate_limit.time.sleep"):
        yield
