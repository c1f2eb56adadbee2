"""Handler for StateBackend CRD."""

from __future__ import annotations

import os
from datetime import datetime, timezone
from typing import Any

import kopf
from botocore.exceptions import BotoCoreError, ClientError

from ..builders.provisioner import create_provisioner
from ..config import ConfigurationError, load_configuration
from ..constants import (
    API_GROUP_VERSION,
    COND_APPLY_FAILED,
    COND_PLAN_FAILED,
    DEFAULT_DEFAULTS_PATH,
    KIND_STATE_BACKEND,
    MODE_APPLY,
    MODE_PLAN,
)
from ..identifier import generate_backend_id, validate_backend_id
from ..planner import PlanError, plan_backend
from ..tracing import add_span_attribute, trace_span
from ..utils.conditions import (
    clear_condition,
    set_apply_failed_condition,
    set_plan_failed_condition,
    set_provider_unsupported_condition,
    set_ready_condition,
)
from ..utils.events import emit_backend_provisioned, emit_plan_computed, emit_provider_unsupported
from .base import BaseHandler


def get_defaults_path() -> str:
    """Path of the defaults document."""
    return os.getenv("BACKEND_DEFAULTS_PATH", DEFAULT_DEFAULTS_PATH)


def override_from_spec(spec: dict[str, Any]) -> dict[str, Any]:
    """Translate a StateBackend spec into an override document."""
    override: dict[str, Any] = {}
    if spec.get("cloudProvider"):
        override["cloud_provider"] = spec["cloudProvider"]
    if spec.get("region"):
        override["region"] = spec["region"]
    if spec.get("tags"):
        override["tags"] = spec["tags"]
    return override


class StateBackendHandler(BaseHandler):
    """Handler for StateBackend resources."""

    def __init__(self):
        """Initialize state backend handler."""
        super().__init__(KIND_STATE_BACKEND)

    def reconcile(
        self,
        spec: dict[str, Any],
        meta: dict[str, Any],
        status: dict[str, Any],
        patch: kopf.Patch,
    ) -> None:
        """Reconcile StateBackend resource."""
        name = meta.get("name", "unknown")
        generation = meta.get("generation")
        conditions = list(status.get("conditions", []))

        mode = spec.get("mode", MODE_PLAN)
        if mode not in (MODE_PLAN, MODE_APPLY):
            self.handle_validation_error(meta, f"mode must be one of {MODE_PLAN}, {MODE_APPLY}, got {mode!r}")

        with trace_span("reconcile_state_backend", kind=KIND_STATE_BACKEND, attributes={"backend.name": name}):
            try:
                configuration = load_configuration(get_defaults_path(), override=override_from_spec(spec))
                # The identifier is persisted in status so the bucket name never changes
                persisted_id = status.get("backendId")
                backend_id = validate_backend_id(persisted_id) if persisted_id else generate_backend_id()
                plan = plan_backend(configuration, backend_id=backend_id)
            except (ConfigurationError, PlanError) as e:
                message = self.handle_reconciliation_error(
                    meta,
                    conditions,
                    patch,
                    e,
                    lambda conds, msg: set_ready_condition(
                        set_plan_failed_condition(conds, msg, generation), False, "Planning failed", generation
                    ),
                )
                raise kopf.PermanentError(f"Planning failed: {message}") from e

            # Recorded before apply so a failed apply retries against the same bucket
            patch.status["backendId"] = backend_id

            emit_plan_computed(meta, len(plan.steps))
            add_span_attribute("backend.steps", len(plan.steps))
            conditions = clear_condition(conditions, COND_PLAN_FAILED)

            status_data: dict[str, Any] = {
                "backendId": backend_id,
                "cloudProvider": configuration.cloud_provider,
                "bucket": plan.outputs["bucket"],
                "region": plan.outputs["region"],
                "steps": plan.addresses,
                "mode": mode,
            }

            if plan.is_empty():
                message = f"Cloud provider {configuration.cloud_provider} has no backend resources"
                self.log_warning(meta, message, reason="ProviderUnsupported", provider=configuration.cloud_provider)
                emit_provider_unsupported(meta, configuration.cloud_provider)
                conditions = set_provider_unsupported_condition(conditions, True, message, generation)
                conditions = set_ready_condition(conditions, False, message, generation)
                self.update_resource_status(patch, meta, False, {**status_data, "conditions": conditions})
                return

            conditions = set_provider_unsupported_condition(
                conditions, False, f"Cloud provider {configuration.cloud_provider} is supported", generation
            )

            if mode == MODE_APPLY:
                with trace_span("apply_state_backend", kind=KIND_STATE_BACKEND):
                    try:
                        provisioner = create_provisioner(configuration, spec)
                        provisioner.apply(plan)
                    except (ClientError, BotoCoreError) as e:
                        message = self.handle_reconciliation_error(
                            meta,
                            conditions,
                            patch,
                            e,
                            lambda conds, msg: set_ready_condition(
                                set_apply_failed_condition(conds, msg, generation), False, "Apply failed", generation
                            ),
                        )
                        raise kopf.TemporaryError(f"Apply failed: {message}", delay=60) from e

                conditions = clear_condition(conditions, COND_APPLY_FAILED)
                status_data["lastAppliedTime"] = datetime.now(timezone.utc).isoformat()
                emit_backend_provisioned(meta, plan.outputs["bucket"])
                self.log_info(meta, "State backend provisioned", event="provisioned", reason="Provisioned", bucket=plan.outputs["bucket"])
                ready_message = "State backend is provisioned"
            else:
                self.log_info(meta, f"Planned {len(plan.steps)} steps", event="planned", reason="Planned")
                ready_message = "State backend is planned"

            conditions = set_ready_condition(conditions, True, ready_message, generation)
            self.update_resource_status(patch, meta, True, {**status_data, "conditions": conditions})

    def delete(
        self,
        spec: dict[str, Any],
        meta: dict[str, Any],
        patch: kopf.Patch,
    ) -> None:
        """Handle StateBackend resource deletion.

        Backend resources hold Terraform state and are never destroyed here.
        """
        self.log_info(meta, "StateBackend is being deleted, backend resources are retained", event="deletion", reason="Deletion")
        self.remove_finalizer(meta, patch)


# Global handler instance
_handler = StateBackendHandler()


@kopf.on.create(API_GROUP_VERSION, KIND_STATE_BACKEND)
@kopf.on.update(API_GROUP_VERSION, KIND_STATE_BACKEND)
@kopf.on.resume(API_GROUP_VERSION, KIND_STATE_BACKEND)
def handle_state_backend(
    spec: dict[str, Any],
    meta: dict[str, Any],
    status: dict[str, Any],
    patch: kopf.Patch,
    **kwargs: Any,
) -> None:
    """Handle StateBackend resource reconciliation."""
    _handler.ensure_finalizer(meta, patch)
    _handler.reconcile_with_metrics(meta, lambda: _handler.reconcile(spec, meta, status, patch))


@kopf.on.delete(API_GROUP_VERSION, KIND_STATE_BACKEND)
def handle_state_backend_delete(
    spec: dict[str, Any],
    meta: dict[str, Any],
    patch: kopf.Patch,
    **kwargs: Any,
) -> None:
    """Handle StateBackend resource deletion."""
    _handler.delete(spec, meta, patch)
