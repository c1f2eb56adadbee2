"""Base backend provisioner interface."""

from __future__ import annotations

from typing import Any, Protocol

from ..models import ProvisioningPlan


class BackendProvisioner(Protocol):
    """Protocol defining backend provisioning operations."""

    def apply(self, plan: ProvisioningPlan) -> dict[str, dict[str, Any]]:
        """Create every step of a plan, in order.

        Returns:
            Results keyed by step address
        """
        ...

    def bucket_exists(self, name: str) -> bool:
        """Check if a bucket exists."""
        ...
