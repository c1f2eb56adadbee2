"""Builder for Terraform JSON configurations."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from ..models import ProvisioningPlan, Reference


def _render_value(value: Any) -> Any:
    if isinstance(value, Reference):
        return value.expression()
    if isinstance(value, dict):
        return {key: _render_value(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_render_value(item) for item in value]
    return value


def render_terraform_json(plan: ProvisioningPlan) -> dict[str, Any]:
    """Render a provisioning plan as a Terraform JSON configuration.

    Args:
        plan: Provisioning plan

    Returns:
        Dict suitable for serializing to a *.tf.json file
    """
    config: dict[str, Any] = {}

    if plan.steps:
        config["provider"] = {plan.configuration.cloud_provider: {"region": plan.configuration.region}}

        resources: dict[str, dict[str, Any]] = {}
        for step in plan.steps:
            body = _render_value(step.attributes)
            if step.tags:
                body["tags"] = dict(step.tags)
            if step.depends_on:
                body["depends_on"] = list(step.depends_on)
            resources.setdefault(step.resource_type, {})[step.name] = body
        config["resource"] = resources

    config["output"] = {name: {"value": value} for name, value in plan.outputs.items()}
    return config


def write_terraform_json(plan: ProvisioningPlan, path: str | Path) -> Path:
    """Write a provisioning plan to a Terraform JSON file."""
    out_path = Path(path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(json.dumps(render_terraform_json(plan), indent=2) + "\n", encoding="utf-8")
    return out_path
