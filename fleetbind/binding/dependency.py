"""
Collection-level dependency ordering.

An edge `(dependent, referenced)` means entities of `dependent` read outputs
of `referenced`, so `referenced` must be fully materialized first.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Set, Tuple

from fleetbind.binding.errors import CyclicDependencyError, UnknownCollectionError

logger = logging.getLogger(__name__)

Edge = Tuple[str, str]


def resolve_tiers(collections: Iterable[str], edges: Iterable[Edge]) -> List[List[str]]:
    """
    Group collections into materialization tiers.

    Every collection appears in a later tier than all collections it
    references. Collections sharing a tier have no dependency on one another
    and are sorted by name so the order is stable between runs.

    Raises:
        UnknownCollectionError: an edge names a collection that was not declared
        CyclicDependencyError: the references form a cycle
    """
    names = set(collections)
    adjacency: Dict[str, Set[str]] = {name: set() for name in names}
    indegree: Dict[str, int] = {name: 0 for name in names}

    for dependent, referenced in edges:
        if dependent not in names:
            raise UnknownCollectionError(dependent, referenced_by=referenced)
        if referenced not in names:
            raise UnknownCollectionError(referenced, referenced_by=dependent)
        if dependent in adjacency[referenced]:
            continue
        adjacency[referenced].add(dependent)
        indegree[dependent] += 1

    tiers: List[List[str]] = []
    ready = sorted(name for name, degree in indegree.items() if degree == 0)
    placed = 0
    while ready:
        tiers.append(ready)
        placed += len(ready)
        upcoming: List[str] = []
        for node in ready:
            for neighbor in adjacency[node]:
                indegree[neighbor] -= 1
                if indegree[neighbor] == 0:
                    upcoming.append(neighbor)
        ready = sorted(upcoming)

    if placed != len(names):
        remaining = [name for name, degree in indegree.items() if degree > 0]
        raise CyclicDependencyError(remaining)

    logger.debug(f"Resolved collection tiers: {tiers}")
    return tiers


def resolve_order(collections: Iterable[str], edges: Iterable[Edge]) -> List[str]:
    """Flattened `resolve_tiers`."""
    return [name for tier in resolve_tiers(collections, edges) for name in tier]
