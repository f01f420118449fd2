"""Canonical ingest contract helpers for importer adapters."""

from __future__ import annotations

from .sewadar import (
    DOB_FORMAT,
    SEWADAR_CANONICAL_FIELDS,
    FieldSpec,
    get_sewadar_alias_map,
    get_sewadar_field_specs,
    get_sewadar_required_headers,
    normalize_header,
)

__all__ = [
    "DOB_FORMAT",
    "FieldSpec",
    "SEWADAR_CANONICAL_FIELDS",
    "get_sewadar_field_specs",
    "get_sewadar_required_headers",
    "get_sewadar_alias_map",
    "normalize_header",
]
