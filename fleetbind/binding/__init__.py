"""
Key-correlated binding of declared collections.

Recommended API:
    from fleetbind.binding import build_fleet_store, plan

    store = build_fleet_store(instances, addresses)
    result = plan(store, domain="fleet.internal")
    # result.instances["host-01"].internal_ip
"""

from fleetbind.binding.binder import (
    FLEET_REFERENCES,
    ProvisioningRun,
    bind_instances,
    build_fleet_store,
    plan,
)
from fleetbind.binding.changes import ChangeSet, diff_bindings
from fleetbind.binding.coalesce import coalesce, coalesce_instance
from fleetbind.binding.correlator import correlate, find_entry
from fleetbind.binding.dependency import resolve_order, resolve_tiers
from fleetbind.binding.errors import (
    BindingError,
    ConfigError,
    CyclicDependencyError,
    DeclarationError,
    DependencyError,
    FleetbindError,
    KeyNotFoundError,
    MaterializationError,
    MissingAttributeError,
    UnknownCollectionError,
)
from fleetbind.binding.store import DeclarationStore, Reference

__all__ = [
    "FLEET_REFERENCES",
    "BindingError",
    "ChangeSet",
    "ConfigError",
    "CyclicDependencyError",
    "DeclarationError",
    "DeclarationStore",
    "DependencyError",
    "FleetbindError",
    "KeyNotFoundError",
    "MaterializationError",
    "MissingAttributeError",
    "ProvisioningRun",
    "Reference",
    "UnknownCollectionError",
    "bind_instances",
    "build_fleet_store",
    "coalesce",
    "coalesce_instance",
    "correlate",
    "diff_bindings",
    "find_entry",
    "plan",
    "resolve_order",
    "resolve_tiers",
]
