"""Backend provisioner planner.

Filters the resource catalog by cloud provider, attaches tags and orders the
resulting steps by their depends-on edges.
"""

from __future__ import annotations

import logging
import time
from typing import Iterable

from . import metrics
from .builders.catalog import DEFAULT_CATALOG
from .config import BackendConfiguration
from .constants import KNOWN_PROVIDERS
from .identifier import bucket_name, get_backend_id
from .models import ProvisioningPlan, ProvisioningStep, ResourceTemplate
from .tracing import trace_span

logger = logging.getLogger(__name__)


class PlanError(Exception):
    """Raised when steps cannot be ordered."""


def select_templates(
    catalog: Iterable[ResourceTemplate],
    cloud_provider: str,
) -> list[ResourceTemplate]:
    """Select the catalog entries offered by a cloud provider."""
    return [template for template in catalog if template.supports(cloud_provider)]


def build_steps(
    templates: Iterable[ResourceTemplate],
    configuration: BackendConfiguration,
    bucket: str,
) -> list[ProvisioningStep]:
    """Build provisioning steps from templates.

    Tags are attached only to resources that accept them.
    """
    steps = []
    for template in templates:
        steps.append(
            ProvisioningStep(
                resource_type=template.resource_type,
                name=template.name,
                attributes=template.build(configuration, bucket),
                tags=dict(configuration.tags) if template.taggable else None,
                depends_on=list(template.depends_on),
            )
        )
    return steps


def order_steps(steps: list[ProvisioningStep]) -> list[ProvisioningStep]:
    """Topologically sort steps by their depends-on edges.

    Ties are broken by input order so the result is deterministic.

    Raises:
        PlanError: If a step depends on an unknown step or edges form a cycle
    """
    position = {step.address: idx for idx, step in enumerate(steps)}
    remaining = {step.address: set(step.depends_on) for step in steps}

    for address, deps in remaining.items():
        unknown = sorted(dep for dep in deps if dep not in position)
        if unknown:
            raise PlanError(f"Step {address} depends on unknown steps: {', '.join(unknown)}")

    ordered: list[ProvisioningStep] = []
    while remaining:
        ready = [address for address, deps in remaining.items() if not deps]
        if not ready:
            raise PlanError(f"Dependency cycle between steps: {', '.join(sorted(remaining))}")
        address = min(ready, key=position.__getitem__)
        ordered.append(steps[position[address]])
        del remaining[address]
        for deps in remaining.values():
            deps.discard(address)

    return ordered


def plan_backend(
    configuration: BackendConfiguration,
    backend_id: str | None = None,
    catalog: Iterable[ResourceTemplate] | None = None,
) -> ProvisioningPlan:
    """Compute the ordered provisioning steps for a state backend.

    Args:
        configuration: Merged backend configuration
        backend_id: Backend identifier (defaults to the process-wide one)
        catalog: Resource templates to plan from

    Returns:
        ProvisioningPlan with steps in dependency order
    """
    backend_id = backend_id or get_backend_id()
    provider = configuration.cloud_provider

    with trace_span("plan_backend", attributes={"backend.provider": provider, "backend.region": configuration.region}):
        start_time = time.time()
        try:
            templates = select_templates(catalog if catalog is not None else DEFAULT_CATALOG, provider)
            if not templates:
                reason = "unknown" if provider not in KNOWN_PROVIDERS else "unimplemented"
                logger.warning(f"Cloud provider {provider!r} is {reason}, no backend resources planned")
                metrics.unsupported_provider_total.labels(provider=provider).inc()

            steps = order_steps(build_steps(templates, configuration, bucket_name(backend_id)))
            plan = ProvisioningPlan(configuration=configuration, backend_id=backend_id, steps=steps)
        except PlanError:
            metrics.plan_total.labels(provider=provider, result="error").inc()
            raise
        finally:
            metrics.plan_duration_seconds.observe(time.time() - start_time)

    metrics.plan_total.labels(provider=provider, result="success").inc()
    metrics.planned_steps.labels(provider=provider).set(len(plan.steps))
    logger.info(f"Planned {len(plan.steps)} steps for provider {provider} in {configuration.region}")
    return plan
