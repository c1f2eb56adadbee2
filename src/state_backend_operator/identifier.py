"""Backend identifier generation and persistence."""

from __future__ import annotations

import logging
import re
import secrets
from pathlib import Path

from .config import ConfigurationError
from .constants import BACKEND_ID_BYTES, BUCKET_NAME_SUFFIX

logger = logging.getLogger(__name__)

_BACKEND_ID_RE = re.compile(rf"^[0-9a-f]{{{BACKEND_ID_BYTES * 2}}}$")

# Process-wide identifier, generated once
_backend_id: str | None = None


def generate_backend_id() -> str:
    """Generate a new random backend identifier.

    Returns:
        16 lowercase hex characters (8 random bytes)
    """
    return secrets.token_hex(BACKEND_ID_BYTES)


def validate_backend_id(value: str) -> str:
    """Validate a persisted backend identifier.

    Raises:
        ConfigurationError: If the value is not 16 lowercase hex characters
    """
    candidate = value.strip().lower()
    if not _BACKEND_ID_RE.match(candidate):
        raise ConfigurationError(
            "backend_id",
            f"Backend identifier must be {BACKEND_ID_BYTES * 2} hex characters, got {value!r}",
        )
    return candidate


def get_backend_id() -> str:
    """Get the process-wide backend identifier, generating it on first use."""
    global _backend_id
    if _backend_id is None:
        _backend_id = generate_backend_id()
        logger.info(f"Generated backend identifier {_backend_id}")
    return _backend_id


def set_backend_id(value: str) -> str:
    """Pin the process-wide backend identifier to a persisted value."""
    global _backend_id
    _backend_id = validate_backend_id(value)
    return _backend_id


def reset_backend_id() -> None:
    """Forget the process-wide backend identifier."""
    global _backend_id
    _backend_id = None


def load_or_create_backend_id(path: str | Path) -> str:
    """Load a persisted backend identifier, creating and persisting one if absent.

    Args:
        path: File holding the identifier

    Returns:
        The backend identifier, also pinned process-wide
    """
    id_path = Path(path)
    if id_path.is_file():
        return set_backend_id(id_path.read_text(encoding="utf-8"))

    backend_id = get_backend_id()
    id_path.parent.mkdir(parents=True, exist_ok=True)
    id_path.write_text(f"{backend_id}\n", encoding="utf-8")
    logger.info(f"Persisted backend identifier to {id_path}")
    return backend_id


def bucket_name(backend_id: str) -> str:
    """Derive the state bucket name from a backend identifier."""
    return f"{backend_id}{BUCKET_NAME_SUFFIX}"
