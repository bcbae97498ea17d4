"""
Shared fleet dataclasses.

These models intentionally remain lightweight so that the binder, the
Terraform renderer and the HTTP API can share them without pulling in any
materializer.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from typing import Any, Dict, Optional

INSTANCES = "instances"
ADDRESSES = "addresses"

DEFAULT_DOMAIN = "fleet.internal"


@dataclass(frozen=True)
class AddressSpec:
    """
    Static addresses reserved for one logical host.

    Both literals are requested from the provider as-is, so the materialized
    address equals the declared one.
    """

    region: str
    subnetwork: str
    internal_ip: str
    external_ip: str


@dataclass(frozen=True)
class InstanceSpec:
    """
    Compute instance declaration.

    Optional fields stay `None` until the coalescer fills them from
    `InstanceDefaults`.
    """

    zone: str
    subnetwork: str
    machine_type: Optional[str] = None
    image: Optional[str] = None
    disk_type: Optional[str] = None
    disk_size_gb: Optional[int] = None
    allow_stopping_for_update: bool = True
    deletion_protection: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class InstanceDefaults:
    """Fallbacks for the optional instance fields."""

    machine_type: str = "e2-medium"
    image: str = "debian-cloud/debian-12"
    disk_type: str = "pd-balanced"
    disk_size_gb: int = 20


@dataclass(frozen=True)
class AddressOutput:
    """
    Computed attributes of a materialized address pair.
    """

    internal_address: str
    external_address: str
    handle: Optional[str] = None


@dataclass(frozen=True)
class ResolvedInstance:
    """
    Fully bound instance: every optional field coalesced and both addresses
    taken from the address collection entry with the same key.
    """

    name: str
    hostname: str
    zone: str
    subnetwork: str
    machine_type: str
    image: str
    disk_type: str
    disk_size_gb: int
    allow_stopping_for_update: bool
    deletion_protection: bool
    internal_ip: str
    external_ip: str
    handle: Optional[str] = None

    @classmethod
    def from_binding(cls, key: str, bound: Dict[str, Any], domain: str) -> ResolvedInstance:
        names = {f.name for f in fields(cls)}
        values = {name: bound[name] for name in names if name in bound}
        values["name"] = key
        values["hostname"] = hostname_for(key, domain)
        return cls(**values)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class RunResult:
    """
    Outcome of a provisioning run.

    - order: collection tiers in the order they were materialized.
    - outputs: materialized outputs per collection, keyed by entity key.
    - instances: resolved instances keyed by entity key.
    """

    order: list = field(default_factory=list)
    outputs: Dict[str, Dict[str, Dict[str, Any]]] = field(default_factory=dict)
    instances: Dict[str, ResolvedInstance] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "order": [list(tier) for tier in self.order],
            "instances": {key: inst.to_dict() for key, inst in self.instances.items()},
        }


def hostname_for(key: str, domain: str) -> str:
    domain = domain.strip(".")
    if not domain:
        return key
    return f"{key}.{domain}"
