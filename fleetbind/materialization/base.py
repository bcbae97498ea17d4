"""Materializer interface."""

from __future__ import annotations

from typing import Any, Dict, Mapping, Protocol

Entries = Mapping[str, Mapping[str, Any]]
MaterializedOutputs = Dict[str, Dict[str, Any]]


class Materializer(Protocol):
    """
    Turns bound entities into real resources and reports their computed outputs.

    `materialize` receives one whole collection (every key, already bound) and
    returns the outputs keyed the same way. Raising `MaterializationError`
    aborts the run; whatever was created before stays in place.
    """

    def materialize(self, collection: str, entries: Entries) -> MaterializedOutputs:
        ...
