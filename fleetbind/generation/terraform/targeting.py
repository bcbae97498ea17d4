"""
Resource addresses for single entities of a keyed collection.

Operators re-apply or recreate one entity with

    terraform apply -target='google_compute_instance.vm["host-01"]'
    terraform apply -replace='google_compute_instance.vm["host-01"]'

The address text must match what Terraform prints byte for byte, so it is
only ever built and parsed here.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, List

_ADDRESS_PATTERN = re.compile(
    r'^(?P<collection>[A-Za-z_][A-Za-z0-9_-]*\.[A-Za-z_][A-Za-z0-9_-]*)'
    r'\["(?P<key>(?:[^"\\]|\\.)*)"\]$'
)


@dataclass(frozen=True)
class ResourceAddress:
    """`<collection>["<key>"]`, where collection is `<resource type>.<resource name>`."""

    collection: str
    key: str

    def __str__(self) -> str:
        return format_address(self.collection, self.key)


def format_address(collection: str, key: str) -> str:
    if not collection or "." not in collection:
        raise ValueError(f"Invalid collection address: {collection!r} (expected '<type>.<name>')")
    escaped = key.replace("\\", "\\\\").replace('"', '\\"')
    return f'{collection}["{escaped}"]'


def parse_address(text: str) -> ResourceAddress:
    match = _ADDRESS_PATTERN.match(text.strip())
    if not match:
        raise ValueError(f'Invalid resource address: {text!r} (expected <type>.<name>["<key>"])')
    key = re.sub(r"\\(.)", r"\1", match.group("key"))
    return ResourceAddress(collection=match.group("collection"), key=key)


def target_args(addresses: Iterable[str | ResourceAddress]) -> List[str]:
    return [f"-target={address}" for address in addresses]


def replace_args(addresses: Iterable[str | ResourceAddress]) -> List[str]:
    return [f"-replace={address}" for address in addresses]
