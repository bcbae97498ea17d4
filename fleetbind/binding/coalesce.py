"""
Optional-field coalescing.

Each optional field resolves to its declared value, or to the fallback when it
was left out. Fields are handled independently; no entity looks at another.
"""

from __future__ import annotations

from dataclasses import fields, replace
from typing import Any, Optional, TypeVar

from fleetbind.models import InstanceDefaults, InstanceSpec

T = TypeVar("T")

# Instance fields that fall back to `InstanceDefaults` when absent.
OPTIONAL_INSTANCE_FIELDS = tuple(f.name for f in fields(InstanceDefaults))


def coalesce(value: Optional[T], fallback: T) -> T:
    """Return `value` unless it is None."""
    return fallback if value is None else value


def coalesce_instance(spec: InstanceSpec, defaults: InstanceDefaults) -> InstanceSpec:
    """
    Fill every absent optional field of `spec` from `defaults`.

    Applying it to a fully specified spec returns an equal spec.
    """
    updates: dict[str, Any] = {}
    for name in OPTIONAL_INSTANCE_FIELDS:
        current = getattr(spec, name)
        resolved = coalesce(current, getattr(defaults, name))
        if resolved is not current:
            updates[name] = resolved
    if not updates:
        return spec
    return replace(spec, **updates)
