"""Capability catalog and type resolution."""

from .capabilities import (
    CAPABILITIES,
    CATALOG,
    Capability,
    CapabilityKind,
    input_format_of,
    normalize_format,
)
from .resolver import TypeResolver, get_resolver

__all__ = [
    "CAPABILITIES",
    "CATALOG",
    "Capability",
    "CapabilityKind",
    "TypeResolver",
    "get_resolver",
    "input_format_of",
    "normalize_format",
]
