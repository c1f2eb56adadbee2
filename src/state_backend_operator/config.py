"""Configuration loading for backend planning.

Configuration comes from two key-value documents: a defaults document shipped
with the deployment and an optional override document supplied by the user.
The override is merged over the defaults and the first non-empty value wins.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import yaml

from .constants import DEFAULT_CLOUD_PROVIDER, DEFAULT_REGION

logger = logging.getLogger(__name__)

_MISSING = object()


class ConfigurationError(ValueError):
    """Raised when a configuration key is missing or has the wrong type."""

    def __init__(self, key_path: str, message: str | None = None) -> None:
        self.key_path = key_path
        super().__init__(message or f"Missing configuration key: {key_path}")


@dataclass(frozen=True)
class BackendConfiguration:
    """Effective configuration for a state backend."""

    cloud_provider: str = DEFAULT_CLOUD_PROVIDER
    region: str = DEFAULT_REGION
    tags: dict[str, str] = field(default_factory=dict)


def load_document(path: str | Path | None) -> dict[str, Any]:
    """Load a YAML key-value document.

    Absent, unreadable or malformed documents are not an error: they yield an
    empty mapping so that callers fall back to defaults.

    Args:
        path: Path to the document, or None

    Returns:
        Parsed mapping, or an empty dict
    """
    if path is None:
        return {}

    doc_path = Path(path)
    if not doc_path.is_file():
        logger.debug(f"Configuration document {doc_path} not found, using defaults")
        return {}

    try:
        document = yaml.safe_load(doc_path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, yaml.YAMLError) as e:
        logger.warning(f"Ignoring unreadable configuration document {doc_path}: {e}")
        return {}

    if document is None:
        return {}
    if not isinstance(document, dict):
        logger.warning(f"Ignoring configuration document {doc_path}: top level is not a mapping")
        return {}
    return document


def _lookup(document: Mapping[str, Any], key_path: str) -> Any:
    current: Any = document
    for part in key_path.split("."):
        if not isinstance(current, Mapping) or part not in current:
            return _MISSING
        current = current[part]
    return current


def require(document: Mapping[str, Any], key_path: str, source: str = "defaults") -> Any:
    """Fetch a dotted key from a document.

    Args:
        document: Parsed document
        key_path: Dotted key path (e.g. "metadata.region")
        source: Name of the document, used in error messages

    Returns:
        The value stored under the key

    Raises:
        ConfigurationError: If the key is missing
    """
    value = _lookup(document, key_path)
    if value is _MISSING:
        raise ConfigurationError(f"{source}.{key_path}")
    return value


def _string_value(document: Mapping[str, Any], key_path: str, source: str) -> str | None:
    value = _lookup(document, key_path)
    if value is _MISSING or value is None or value == "":
        return None
    if not isinstance(value, str):
        raise ConfigurationError(
            f"{source}.{key_path}",
            f"Configuration key {source}.{key_path} must be a string, got {type(value).__name__}",
        )
    return value


def _tags_value(document: Mapping[str, Any], source: str) -> dict[str, str] | None:
    value = document.get("tags")
    if not value:
        return None
    if not isinstance(value, Mapping):
        raise ConfigurationError(
            f"{source}.tags",
            f"Configuration key {source}.tags must be a mapping, got {type(value).__name__}",
        )
    return {str(key): str(val) for key, val in value.items()}


def _check_metadata(document: Mapping[str, Any], source: str) -> None:
    metadata = document.get("metadata")
    if metadata is not None and not isinstance(metadata, Mapping):
        raise ConfigurationError(
            f"{source}.metadata",
            f"Configuration key {source}.metadata must be a mapping, got {type(metadata).__name__}",
        )


def merge_configuration(
    defaults: Mapping[str, Any],
    override: Mapping[str, Any] | None = None,
) -> BackendConfiguration:
    """Merge an override document over a defaults document.

    Resolution order:
        cloud_provider: override.cloud_provider > defaults.cloud_provider > "aws",
            kept verbatim (provider matching is exact)
        region: override.metadata.region > override.region
            > defaults.metadata.region > "us-west-2"
        tags: override.tags > defaults.tags > {}

    Args:
        defaults: Parsed defaults document ({} when absent)
        override: Parsed override document

    Returns:
        Effective BackendConfiguration

    Raises:
        ConfigurationError: If the defaults document lacks cloud_provider or a
            value has the wrong type
    """
    override = override or {}
    _check_metadata(override, "override")
    _check_metadata(defaults, "defaults")

    if defaults:
        require(defaults, "cloud_provider", "defaults")

    cloud_provider = (
        _string_value(override, "cloud_provider", "override")
        or _string_value(defaults, "cloud_provider", "defaults")
        or DEFAULT_CLOUD_PROVIDER
    )
    region = (
        _string_value(override, "metadata.region", "override")
        or _string_value(override, "region", "override")
        or _string_value(defaults, "metadata.region", "defaults")
        or DEFAULT_REGION
    )
    tags = _tags_value(override, "override") or _tags_value(defaults, "defaults") or {}

    return BackendConfiguration(
        cloud_provider=cloud_provider,
        region=region.strip(),
        tags=tags,
    )


def load_configuration(
    defaults_path: str | Path | None,
    override_path: str | Path | None = None,
    override: Mapping[str, Any] | None = None,
) -> BackendConfiguration:
    """Load and merge the defaults and override documents.

    Args:
        defaults_path: Path to the defaults document
        override_path: Optional path to an override document
        override: Optional inline override document, merged over override_path

    Returns:
        Effective BackendConfiguration
    """
    defaults = load_document(defaults_path)
    merged_override = dict(load_document(override_path))
    if override:
        merged_override.update({key: value for key, value in override.items() if value not in (None, "", {})})
    return merge_configuration(defaults, merged_override)
