"""
Registry of spreadsheet formats the sewadar importer accepts.

``IMPORTER_ADAPTERS`` selects which formats are active; uploads with any
other extension are rejected before a job is created.
"""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass
from typing import Iterable, Mapping, Sequence, Tuple


@dataclass(frozen=True)
class AdapterDescriptor:
    """Metadata describing an importer file format."""

    name: str
    title: str
    extensions: Tuple[str, ...]
    dependencies: Tuple[str, ...] = ()
    summary: str | None = None


def get_adapter_registry() -> Mapping[str, AdapterDescriptor]:
    return OrderedDict(
        (
            (
                "xlsx",
                AdapterDescriptor(
                    name="xlsx",
                    title="Excel Workbook",
                    extensions=("xlsx",),
                    dependencies=("openpyxl",),
                    summary="First worksheet of an Excel workbook.",
                ),
            ),
            (
                "csv",
                AdapterDescriptor(
                    name="csv",
                    title="CSV Flat File",
                    extensions=("csv",),
                    summary="UTF-8 comma-separated sewadar export.",
                ),
            ),
        )
    )


def resolve_adapters(
    configured: Sequence[str],
    registry: Mapping[str, AdapterDescriptor] | None = None,
) -> Iterable[AdapterDescriptor]:
    """
    Map configured adapter names to registry descriptors, raising on unknowns.
    """
    registry = registry or get_adapter_registry()
    unknown = sorted({adapter for adapter in configured if adapter not in registry})
    if unknown:
        raise ValueError(
            "Unknown importer adapters configured: "
            + ", ".join(unknown)
            + ". Update configuration or register these adapters first."
        )
    return tuple(registry[adapter] for adapter in configured)


def allowed_extensions(adapters: Iterable[AdapterDescriptor]) -> Tuple[str, ...]:
    return tuple(extension for adapter in adapters for extension in adapter.extensions)
