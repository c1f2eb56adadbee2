"""Rate limiting utilities for AWS API calls."""

from __future__ import annotations

import os
import time
from functools import wraps
from typing import Any, Callable, TypeVar

from botocore.exceptions import ClientError

from .. import metrics

_F = TypeVar("_F", bound=Callable[..., Any])

# Rate limit configuration
_AWS_RATE_LIMIT_PER_SECOND = float(os.getenv("AWS_RATE_LIMIT_PER_SECOND", "5.0"))
_AWS_MAX_RETRIES = int(os.getenv("AWS_MAX_RETRIES", "3"))

THROTTLING_ERROR_CODES = {
    "Throttling",
    "ThrottlingException",
    "ThrottledException",
    "RequestLimitExceeded",
    "TooManyRequestsException",
    "SlowDown",
    "ProvisionedThroughputExceededException",
}

# Track last call time
_aws_last_call_time: float = 0.0


def rate_limit_aws(func: _F) -> _F:
    """Decorator to rate limit AWS API calls.

    Enforces a minimum interval between calls so provisioning does not trip
    account-level API throttling.
    """
    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        global _aws_last_call_time
        current_time = time.time()
        min_interval = 1.0 / _AWS_RATE_LIMIT_PER_SECOND

        time_since_last_call = current_time - _aws_last_call_time
        if time_since_last_call < min_interval:
            time.sleep(min_interval - time_since_last_call)

        _aws_last_call_time = time.time()
        return func(*args, **kwargs)

    return wrapper  # type: ignore


def is_throttling_error(e: Exception) -> bool:
    """Check whether an exception is an AWS throttling error."""
    if not isinstance(e, ClientError):
        return False
    return e.response.get("Error", {}).get("Code") in THROTTLING_ERROR_CODES


def retry_on_throttling(func: _F) -> _F:
    """Decorator retrying AWS calls that fail with a throttling error.

    Exponential backoff: 1s, 2s, 4s, up to AWS_MAX_RETRIES retries.
    """
    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        attempt = 0
        while True:
            try:
                return func(*args, **kwargs)
            except ClientError as e:
                if not is_throttling_error(e) or attempt >= _AWS_MAX_RETRIES:
                    raise
                metrics.rate_limit_hits_total.labels(api_type="aws").inc()
                time.sleep(2 ** attempt)
                attempt += 1

    return wrapper  # type: ignore
