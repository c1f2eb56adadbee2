"""Builder for backend provisioner instances."""

from __future__ import annotations

from typing import Any

import boto3

from ..config import BackendConfiguration
from ..constants import PROVIDER_AWS
from ..services.aws.client import AWSBackendProvisioner
from ..services.base import BackendProvisioner


def create_provisioner(
    configuration: BackendConfiguration,
    spec: dict[str, Any] | None = None,
) -> BackendProvisioner:
    """Create a backend provisioner for a configuration.

    Args:
        configuration: Effective backend configuration
        spec: Optional resource spec; spec.aws.profile selects a named profile

    Returns:
        Configured provisioner

    Raises:
        ValueError: If the cloud provider has no provisioner
    """
    if configuration.cloud_provider != PROVIDER_AWS:
        raise ValueError(f"Unsupported provider type: {configuration.cloud_provider}")

    aws = (spec or {}).get("aws", {}) or {}
    profile = aws.get("profile")
    session = boto3.session.Session(profile_name=profile, region_name=configuration.region) if profile else None
    return AWSBackendProvisioner(region=configuration.region, session=session)
