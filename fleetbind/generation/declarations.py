"""
Loading fleet declarations from YAML.

Expected document:

    addresses:
      host-01:
        region: us-central1
        subnetwork: default
        internal_ip: 10.128.0.10
        external_ip: 34.122.10.10
    instances:
      host-01:
        zone: us-central1-a
        subnetwork: default
        machine_type: e2-small      # optional
        deletion_protection: true
"""

from __future__ import annotations

import ipaddress
import logging
import re
from dataclasses import fields
from pathlib import Path
from typing import Any, Dict, Mapping, Tuple

import yaml

from fleetbind.binding.binder import build_fleet_store
from fleetbind.binding.errors import DeclarationError
from fleetbind.binding.store import DeclarationStore
from fleetbind.models import ADDRESSES, INSTANCES, AddressSpec, InstanceSpec

logger = logging.getLogger(__name__)

# Keys double as resource names, hostnames and Terraform instance keys.
_KEY_PATTERN = re.compile(r"^[a-z]([-a-z0-9]{0,61}[a-z0-9])?$")
_ZONE_PATTERN = re.compile(r"^[a-z]+-[a-z]+\d+-[a-z]$")
_REGION_PATTERN = re.compile(r"^[a-z]+-[a-z]+\d+$")


class UniqueKeyLoader(yaml.SafeLoader):
    """SafeLoader that rejects mappings with a repeated key instead of keeping the last one."""

    def construct_mapping(self, node, deep=False):
        seen = set()
        for key_node, _ in node.value:
            key = self.construct_object(key_node, deep=deep)
            if key in seen:
                raise DeclarationError(
                    f"Duplicate key {key!r} at line {key_node.start_mark.line + 1}"
                )
            seen.add(key)
        return super().construct_mapping(node, deep=deep)


def load_declarations(path: str | Path) -> DeclarationStore:
    """Read a declarations file into a fleet store."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Declarations file not found: {path}")
    with open(path, "r", encoding="utf-8") as f:
        try:
            data = yaml.load(f, Loader=UniqueKeyLoader) or {}
        except yaml.YAMLError as exc:
            raise DeclarationError(f"Invalid YAML in {path}: {exc}") from exc
    return parse_declarations(data)


def parse_declarations(data: Mapping[str, Any]) -> DeclarationStore:
    instances, addresses = parse_collections(data)
    return build_fleet_store(instances, addresses)


def parse_collections(
    data: Mapping[str, Any],
) -> Tuple[Dict[str, InstanceSpec], Dict[str, AddressSpec]]:
    if not isinstance(data, Mapping):
        raise DeclarationError("Declarations must be a mapping with 'instances' and 'addresses'")
    unknown = sorted(set(data) - {INSTANCES, ADDRESSES})
    if unknown:
        raise DeclarationError(f"Unknown top-level section(s): {', '.join(map(str, unknown))}")

    addresses = {
        key: _parse_address(key, entry)
        for key, entry in _collection(data, ADDRESSES).items()
    }
    instances = {
        key: _parse_instance(key, entry)
        for key, entry in _collection(data, INSTANCES).items()
    }
    return instances, addresses


# ------------------------------------------------------------------ #
# Validation Layer
# ------------------------------------------------------------------ #


def _collection(data: Mapping[str, Any], name: str) -> Dict[str, Mapping[str, Any]]:
    entries = data.get(name) or {}
    if not isinstance(entries, Mapping):
        raise DeclarationError(f"'{name}' must be a mapping of key -> specification")
    for key, entry in entries.items():
        validate_key(key, name)
        if not isinstance(entry, Mapping):
            raise DeclarationError(f'{name}["{key}"] must be a mapping, got {type(entry).__name__}')
    return dict(entries)


def validate_key(key: Any, collection: str) -> str:
    if not isinstance(key, str) or not _KEY_PATTERN.match(key):
        raise DeclarationError(
            f"Invalid key {key!r} in {collection} (must be 1-63 chars, lowercase alphanumeric + hyphens)"
        )
    return key


def _check_fields(key: str, collection: str, entry: Mapping[str, Any], spec_type: type) -> None:
    allowed = {f.name for f in fields(spec_type)}
    extra = sorted(set(entry) - allowed)
    if extra:
        raise DeclarationError(f'{collection}["{key}"] has unknown field(s): {", ".join(extra)}')


def _required_str(key: str, collection: str, entry: Mapping[str, Any], name: str) -> str:
    value = entry.get(name)
    if not isinstance(value, str) or not value.strip():
        raise DeclarationError(f'{collection}["{key}"] is missing required field "{name}"')
    return value.strip()


def _optional_str(key: str, collection: str, entry: Mapping[str, Any], name: str) -> str | None:
    value = entry.get(name)
    if value is None:
        return None
    if not isinstance(value, str) or not value.strip():
        raise DeclarationError(f'{collection}["{key}"].{name} must be a non-empty string')
    return value.strip()


def _bool(key: str, collection: str, entry: Mapping[str, Any], name: str, default: bool) -> bool:
    value = entry.get(name, default)
    if not isinstance(value, bool):
        raise DeclarationError(f'{collection}["{key}"].{name} must be true or false')
    return value


def _ip(key: str, entry: Mapping[str, Any], name: str) -> str:
    value = _required_str(key, ADDRESSES, entry, name)
    try:
        return str(ipaddress.ip_address(value))
    except ValueError as exc:
        raise DeclarationError(f'{ADDRESSES}["{key}"].{name}: invalid IP address {value!r}') from exc


def _parse_address(key: str, entry: Mapping[str, Any]) -> AddressSpec:
    _check_fields(key, ADDRESSES, entry, AddressSpec)
    region = _required_str(key, ADDRESSES, entry, "region")
    if not _REGION_PATTERN.match(region):
        logger.warning(f"Region '{region}' of {ADDRESSES}[\"{key}\"] doesn't match standard format, but accepting it")
    internal_ip = _ip(key, entry, "internal_ip")
    if not ipaddress.ip_address(internal_ip).is_private:
        logger.warning(f"Internal IP {internal_ip} of {ADDRESSES}[\"{key}\"] is not a private address, but accepting it")
    return AddressSpec(
        region=region,
        subnetwork=_required_str(key, ADDRESSES, entry, "subnetwork"),
        internal_ip=internal_ip,
        external_ip=_ip(key, entry, "external_ip"),
    )


def _parse_instance(key: str, entry: Mapping[str, Any]) -> InstanceSpec:
    _check_fields(key, INSTANCES, entry, InstanceSpec)
    zone = _required_str(key, INSTANCES, entry, "zone")
    if not _ZONE_PATTERN.match(zone):
        logger.warning(f"Zone '{zone}' of {INSTANCES}[\"{key}\"] doesn't match standard format, but accepting it")

    disk_size = entry.get("disk_size_gb")
    if disk_size is not None and (isinstance(disk_size, bool) or not isinstance(disk_size, int) or disk_size < 10):
        raise DeclarationError(f'{INSTANCES}["{key}"].disk_size_gb must be an integer >= 10')

    return InstanceSpec(
        zone=zone,
        subnetwork=_required_str(key, INSTANCES, entry, "subnetwork"),
        machine_type=_optional_str(key, INSTANCES, entry, "machine_type"),
        image=_optional_str(key, INSTANCES, entry, "image"),
        disk_type=_optional_str(key, INSTANCES, entry, "disk_type"),
        disk_size_gb=disk_size,
        allow_stopping_for_update=_bool(key, INSTANCES, entry, "allow_stopping_for_update", True),
        deletion_protection=_bool(key, INSTANCES, entry, "deletion_protection", False),
    )
