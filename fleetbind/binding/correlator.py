"""
Same-key correlation between a dependent collection and the collections it references.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, Mapping, Optional, Sequence

from fleetbind.binding.errors import KeyNotFoundError, MissingAttributeError
from fleetbind.binding.store import Reference

logger = logging.getLogger(__name__)

Outputs = Mapping[str, Mapping[str, Any]]


def find_entry(entries: Outputs, key: str) -> Optional[Mapping[str, Any]]:
    """Explicit presence lookup: the entry stored under `key`, or None."""
    if key in entries:
        return entries[key]
    return None


def check_keys(
    dependent: str,
    keys: Iterable[str],
    references: Sequence[Reference],
    referenced_keys: Mapping[str, Iterable[str]],
) -> None:
    """
    Verify that every dependent key exists in every referenced collection.

    Only key presence is checked, so this can run before anything is
    materialized.
    """
    available = {name: set(names) for name, names in referenced_keys.items()}
    collections = _referenced_collections(references)
    for key in sorted(keys):
        for collection in collections:
            if key not in available.get(collection, ()):
                raise KeyNotFoundError(key, collection=collection, dependent=dependent)


def correlate(
    dependent: str,
    entries: Mapping[str, Mapping[str, Any]],
    references: Sequence[Reference],
    materialized: Mapping[str, Outputs],
) -> Dict[str, Dict[str, Any]]:
    """
    Bind every entry of `dependent` to the same-keyed outputs it references.

    Returns a new mapping `key -> fields` where each reference field holds the
    referenced collection's output attribute. Input mappings are not touched.

    Raises:
        KeyNotFoundError: a key is absent from a referenced collection. Nothing
            is returned for any key, the failure aborts the whole binding.
        MissingAttributeError: the referenced entry lacks the output attribute
            or holds null for it.
    """
    bound: Dict[str, Dict[str, Any]] = {}
    for key in sorted(entries):
        values = dict(entries[key])
        for ref in references:
            outputs = materialized.get(ref.collection, {})
            entry = find_entry(outputs, key)
            if entry is None:
                raise KeyNotFoundError(key, collection=ref.collection, dependent=dependent)
            if entry.get(ref.attribute) is None:
                raise MissingAttributeError(key, collection=ref.collection, attribute=ref.attribute)
            values[ref.field] = entry[ref.attribute]
        logger.debug(f"Bound {dependent}[{key!r}] against {len(references)} reference(s)")
        bound[key] = values
    return bound


def _referenced_collections(references: Sequence[Reference]) -> list[str]:
    collections: list[str] = []
    for ref in references:
        if ref.collection not in collections:
            collections.append(ref.collection)
    return collections
