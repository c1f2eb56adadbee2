"""Structured logging configuration for the State Backend Operator.

Every resource event is emitted as one JSON object per line. Extra fields and
the message pass through the same sanitizers used for error messages, so AWS
credentials and account ids in ARNs never reach the log stream.
"""

import json
import logging
import os
import sys
from typing import Any

from .utils.errors import sanitize_dict, sanitize_error_message

# AWS SDK loggers echo request details at INFO and DEBUG
_NOISY_LOGGERS = ("boto3", "botocore", "urllib3", "s3transfer")


def setup_structured_logging(level: str | None = None) -> None:
    """Configure structured JSON logging.

    Args:
        level: Log level name, defaults to the LOG_LEVEL environment variable
    """
    logging.basicConfig(
        level=(level or os.getenv("LOG_LEVEL", "INFO")).upper(),
        format="%(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    sdk_level = os.getenv("AWS_SDK_LOG_LEVEL", "WARNING").upper()
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(sdk_level)


def log_resource_event(
    logger: logging.Logger,
    controller: str,
    resource_kind: str,
    resource_name: str,
    namespace: str,
    uid: str,
    event: str,
    reason: str,
    message: str,
    level: int = logging.INFO,
    **kwargs: Any,
) -> None:
    """Log a structured resource event with sanitized fields."""
    log_data = {
        "controller": controller,
        "resource": resource_kind,
        "name": resource_name,
        "namespace": namespace,
        "uid": uid,
        "event": event,
        "reason": reason,
        "message": sanitize_error_message(message),
    }
    for key, value in sanitize_dict(kwargs).items():
        # Resource identity fields cannot be overridden by extras
        log_data.setdefault(key, value)
    logger.log(level, json.dumps(log_data, default=str))
