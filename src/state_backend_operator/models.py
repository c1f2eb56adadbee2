"""Models for backend planning."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable

from .config import BackendConfiguration
from .constants import TYPE_S3_BUCKET


@dataclass(frozen=True)
class Reference:
    """Reference to an attribute exported by another provisioning step."""

    address: str
    attribute: str

    def expression(self) -> str:
        """Render as a Terraform interpolation."""
        return f"${{{self.address}.{self.attribute}}}"


@dataclass(frozen=True)
class ResourceTemplate:
    """Catalog entry describing a resource and the providers that offer it."""

    resource_type: str
    name: str
    providers: frozenset[str]
    build: Callable[[BackendConfiguration, str], dict[str, Any]]
    taggable: bool = False
    depends_on: tuple[str, ...] = ()

    @property
    def address(self) -> str:
        return f"{self.resource_type}.{self.name}"

    def supports(self, cloud_provider: str) -> bool:
        """Check whether this template is offered by a cloud provider."""
        return cloud_provider in self.providers


@dataclass
class ProvisioningStep:
    """A single resource to create, with the steps it must follow."""

    resource_type: str
    name: str
    attributes: dict[str, Any]
    tags: dict[str, str] | None = None
    depends_on: list[str] = field(default_factory=list)

    @property
    def address(self) -> str:
        return f"{self.resource_type}.{self.name}"


@dataclass
class ProvisioningPlan:
    """Ordered provisioning steps for a backend."""

    configuration: BackendConfiguration
    backend_id: str
    steps: list[ProvisioningStep] = field(default_factory=list)

    @property
    def bucket_names(self) -> list[str]:
        return [step.attributes["bucket"] for step in self.steps if step.resource_type == TYPE_S3_BUCKET]

    @property
    def outputs(self) -> dict[str, str]:
        """Named output values: created bucket identifiers and effective region."""
        return {
            "bucket": ",".join(self.bucket_names),
            "region": self.configuration.region,
        }

    @property
    def addresses(self) -> list[str]:
        return [step.address for step in self.steps]

    def count(self, resource_type: str) -> int:
        """Count planned steps of a resource type."""
        return sum(1 for step in self.steps if step.resource_type == resource_type)

    def get_step(self, address: str) -> ProvisioningStep:
        for step in self.steps:
            if step.address == address:
                return step
        raise KeyError(address)

    def is_empty(self) -> bool:
        return not self.steps
