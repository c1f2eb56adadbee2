"""Utility functions for the State Backend Operator."""

from .conditions import (
    clear_condition,
    set_apply_failed_condition,
    set_plan_failed_condition,
    set_provider_unsupported_condition,
    set_ready_condition,
    update_condition,
)
from .errors import sanitize_dict, sanitize_error_message, sanitize_exception
from .events import emit_event
from .rate_limit import is_throttling_error, rate_limit_aws, retry_on_throttling

__all__ = [
    "update_condition",
    "clear_condition",
    "set_ready_condition",
    "set_plan_failed_condition",
    "set_apply_failed_condition",
    "set_provider_unsupported_condition",
    "emit_event",
    "sanitize_error_message",
    "sanitize_exception",
    "sanitize_dict",
    "rate_limit_aws",
    "retry_on_throttling",
    "is_throttling_error",
]
