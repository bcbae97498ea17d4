"""
Declaration store: named, key-unique collections plus the references between them.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, is_dataclass
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Tuple

from fleetbind.binding.errors import DeclarationError


@dataclass(frozen=True)
class Reference:
    """
    Cross-collection reference.

    `dependent[k].field` is bound to `collection[k].attribute`, where
    `attribute` is an output of the materialized `collection` entry and `k`
    is the same key on both sides.
    """

    dependent: str
    field: str
    collection: str
    attribute: str


class DeclarationStore:
    """
    Holds the collections declared for one provisioning run.

    Collections are frozen once added: entries are copied into read-only
    mappings, and a collection name can only be declared once.
    """

    def __init__(self) -> None:
        self._collections: Dict[str, Mapping[str, Mapping[str, Any]]] = {}
        self._specs: Dict[str, Mapping[str, Any]] = {}
        self._references: List[Reference] = []

    def add_collection(self, name: str, entries: Mapping[str, Any]) -> None:
        if not name:
            raise DeclarationError("Collection name must be a non-empty string")
        if name in self._collections:
            raise DeclarationError(f'Collection "{name}" is already declared')
        frozen: Dict[str, Mapping[str, Any]] = {}
        for key, spec in entries.items():
            if not isinstance(key, str) or not key:
                raise DeclarationError(f'Collection "{name}" has an invalid key: {key!r}')
            frozen[key] = MappingProxyType(_spec_fields(spec))
        self._collections[name] = MappingProxyType(frozen)
        self._specs[name] = MappingProxyType(dict(entries))

    def add_reference(self, reference: Reference) -> None:
        for name in (reference.dependent, reference.collection):
            if name not in self._collections:
                raise DeclarationError(
                    f'Reference {reference.dependent}.{reference.field} names undeclared collection "{name}"'
                )
        if reference in self._references:
            return
        self._references.append(reference)

    # ------------------------------------------------------------------ #
    # Queries
    # ------------------------------------------------------------------ #

    @property
    def names(self) -> List[str]:
        return list(self._collections.keys())

    def collection(self, name: str) -> Mapping[str, Mapping[str, Any]]:
        """Entries of a collection as plain field mappings."""
        try:
            return self._collections[name]
        except KeyError:
            raise DeclarationError(f'Collection "{name}" is not declared') from None

    def specs(self, name: str) -> Mapping[str, Any]:
        """Entries of a collection as they were declared (typed specs)."""
        self.collection(name)
        return self._specs[name]

    def references(self) -> List[Reference]:
        return list(self._references)

    def references_from(self, dependent: str) -> List[Reference]:
        return [ref for ref in self._references if ref.dependent == dependent]

    def edges(self) -> List[Tuple[str, str]]:
        """Collection-level dependency edges as `(dependent, referenced)` pairs."""
        seen: List[Tuple[str, str]] = []
        for ref in self._references:
            edge = (ref.dependent, ref.collection)
            if edge not in seen:
                seen.append(edge)
        return seen

    def __contains__(self, name: object) -> bool:
        return name in self._collections

    def __len__(self) -> int:
        return len(self._collections)


def _spec_fields(spec: Any) -> Dict[str, Any]:
    if is_dataclass(spec) and not isinstance(spec, type):
        return asdict(spec)
    if isinstance(spec, Mapping):
        return dict(spec)
    raise DeclarationError(f"Unsupported entity specification type: {type(spec).__name__}")
