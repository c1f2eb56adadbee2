"""Utilities for emitting Kubernetes events."""

from __future__ import annotations

from typing import Any

import kopf

from ..constants import (
    EVENT_REASON_BACKEND_PROVISIONED,
    EVENT_REASON_PLAN_COMPUTED,
    EVENT_REASON_PROVIDER_UNSUPPORTED,
    EVENT_REASON_RECONCILE_FAILED,
    EVENT_REASON_RECONCILE_STARTED,
)


def emit_event(
    meta: dict[str, Any],
    reason: str,
    message: str,
    type_: str = "Normal",
) -> None:
    """Emit a Kubernetes event.

    Args:
        meta: Resource metadata
        reason: Event reason
        message: Event message
        type_: Event type (Normal or Warning)
    """
    kopf.event(
        meta,
        reason=reason,
        message=message,
        type=type_,
    )


def emit_reconcile_started(meta: dict[str, Any]) -> None:
    """Emit reconcile started event."""
    emit_event(meta, EVENT_REASON_RECONCILE_STARTED, "Reconciliation started")


def emit_reconcile_failed(meta: dict[str, Any], message: str) -> None:
    """Emit reconcile failed event."""
    emit_event(meta, EVENT_REASON_RECONCILE_FAILED, message, type_="Warning")


def emit_plan_computed(meta: dict[str, Any], step_count: int) -> None:
    """Emit plan computed event."""
    emit_event(meta, EVENT_REASON_PLAN_COMPUTED, f"Planned {step_count} provisioning steps")


def emit_backend_provisioned(meta: dict[str, Any], bucket: str) -> None:
    """Emit backend provisioned event."""
    emit_event(meta, EVENT_REASON_BACKEND_PROVISIONED, f"State backend {bucket} provisioned")


def emit_provider_unsupported(meta: dict[str, Any], provider: str) -> None:
    """Emit unsupported provider event."""
    emit_event(
        meta,
        EVENT_REASON_PROVIDER_UNSUPPORTED,
        f"Cloud provider {provider} has no backend resources, nothing to provision",
        type_="Warning",
    )
