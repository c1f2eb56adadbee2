"""Builders for backend resources and rendered configurations."""

from .catalog import DEFAULT_CATALOG
from .terraform import render_terraform_json, write_terraform_json

__all__ = ["DEFAULT_CATALOG", "render_terraform_json", "write_terraform_json"]
