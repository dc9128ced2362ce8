"""Report contracts: schema catalog and payload validation."""

from .validate import load_catalog, schema_path, validate

__all__ = ["load_catalog", "schema_path", "validate"]
