"""Exceptions raised while declaring, ordering, binding and materializing collections."""

from __future__ import annotations

from typing import Any, Dict, Iterable, Optional


class FleetbindError(Exception):
    """Base class for every error raised by fleetbind."""


class DeclarationError(FleetbindError):
    """Raised when a collection or an entity specification is invalid."""

    pass


class ConfigError(FleetbindError):
    """Raised when fleet_config.yaml cannot be parsed."""


class BindingError(FleetbindError):
    """Raised when a cross-collection reference cannot be bound."""

    def __init__(self, message: str, key: str, collection: str) -> None:
        super().__init__(message)
        self.key = key
        self.collection = collection


class KeyNotFoundError(BindingError):
    """
    A key of a dependent collection has no entry in a referenced collection.

    The whole run is aborted; no entity of the dependent collection is bound.
    """

    def __init__(self, key: str, collection: str, dependent: str) -> None:
        super().__init__(
            f'Key "{key}" of collection "{dependent}" not found in referenced collection "{collection}"',
            key=key,
            collection=collection,
        )
        self.dependent = dependent


class MissingAttributeError(BindingError):
    """The referenced entry exists but does not expose the requested output attribute."""

    def __init__(self, key: str, collection: str, attribute: str) -> None:
        super().__init__(
            f'Entry "{key}" of collection "{collection}" has no output attribute "{attribute}"',
            key=key,
            collection=collection,
        )
        self.attribute = attribute


class DependencyError(FleetbindError):
    """Raised when collection-level dependencies cannot be ordered."""

    pass


class UnknownCollectionError(DependencyError):
    def __init__(self, collection: str, referenced_by: str) -> None:
        super().__init__(
            f'Collection "{referenced_by}" references undeclared collection "{collection}"'
        )
        self.collection = collection
        self.referenced_by = referenced_by


class CyclicDependencyError(DependencyError):
    def __init__(self, collections: Iterable[str]) -> None:
        self.collections = sorted(collections)
        super().__init__(
            "Cycle detected between collections: " + ", ".join(self.collections)
        )


class MaterializationError(FleetbindError):
    """
    The external materializer failed.

    The message is the materializer's own output, unchanged. Outputs already
    materialized before the failure are kept on `partial` for inspection;
    nothing is rolled back.
    """

    def __init__(
        self,
        message: str,
        collection: str,
        key: Optional[str] = None,
        partial: Optional[Dict[str, Dict[str, Dict[str, Any]]]] = None,
    ) -> None:
        super().__init__(message)
        self.collection = collection
        self.key = key
        self.partial = partial or {}
