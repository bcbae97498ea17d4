"""
Provisioning run: orders collections, binds same-keyed references tier by tier
and hands each bound collection to a materializer.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional

from fleetbind.binding.coalesce import coalesce_instance
from fleetbind.binding.correlator import check_keys, correlate
from fleetbind.binding.dependency import resolve_tiers
from fleetbind.binding.errors import MaterializationError
from fleetbind.binding.store import DeclarationStore, Reference
from fleetbind.materialization.base import Materializer
from fleetbind.models import (
    ADDRESSES,
    DEFAULT_DOMAIN,
    INSTANCES,
    AddressOutput,
    AddressSpec,
    InstanceDefaults,
    InstanceSpec,
    ResolvedInstance,
    RunResult,
)

logger = logging.getLogger(__name__)

# Instances read both addresses from the address entry with the same key.
FLEET_REFERENCES = (
    Reference(dependent=INSTANCES, field="internal_ip", collection=ADDRESSES, attribute="internal_address"),
    Reference(dependent=INSTANCES, field="external_ip", collection=ADDRESSES, attribute="external_address"),
)


def build_fleet_store(
    instances: Mapping[str, InstanceSpec],
    addresses: Mapping[str, AddressSpec],
) -> DeclarationStore:
    """Declare the two fleet collections and the references between them."""
    store = DeclarationStore()
    store.add_collection(ADDRESSES, addresses)
    store.add_collection(INSTANCES, instances)
    for reference in FLEET_REFERENCES:
        store.add_reference(reference)
    return store


def bind_instances(
    instances: Mapping[str, InstanceSpec],
    addresses: Mapping[str, AddressOutput],
    *,
    defaults: InstanceDefaults,
    domain: str,
) -> Dict[str, ResolvedInstance]:
    """
    Coalesce and correlate instances against already materialized addresses.

    Pure function of its arguments; raises `KeyNotFoundError` when any
    instance key has no address entry.
    """
    entries = {key: coalesce_instance(spec, defaults).to_dict() for key, spec in instances.items()}
    outputs = {
        key: {"internal_address": out.internal_address, "external_address": out.external_address}
        for key, out in addresses.items()
    }
    bound = correlate(INSTANCES, entries, FLEET_REFERENCES, {ADDRESSES: outputs})
    return {key: ResolvedInstance.from_binding(key, values, domain) for key, values in bound.items()}


class ProvisioningRun:
    """
    One pass over a declaration store.

    Every reference is key-checked before the first materializer call, so a
    missing key aborts the run with nothing created. Materializer failures
    abort the remaining tiers and leave earlier tiers in place.
    """

    def __init__(
        self,
        store: DeclarationStore,
        materializer: Materializer,
        *,
        defaults: Optional[InstanceDefaults] = None,
        domain: str = DEFAULT_DOMAIN,
    ) -> None:
        self.store = store
        self.materializer = materializer
        self.defaults = defaults or InstanceDefaults()
        self.domain = domain

    def execute(self) -> RunResult:
        tiers = resolve_tiers(self.store.names, self.store.edges())
        self._preflight()
        logger.info(f"Materializing {len(self.store)} collection(s) in {len(tiers)} tier(s)")

        result = RunResult(order=tiers)
        bound_by_collection: Dict[str, Dict[str, Dict[str, Any]]] = {}
        for tier in tiers:
            for name in tier:
                entries = self._prepare(name)
                bound = correlate(name, entries, self.store.references_from(name), result.outputs)
                bound_by_collection[name] = bound
                result.outputs[name] = self._materialize(name, bound, result)

        if INSTANCES in bound_by_collection:
            result.instances = self._resolve_instances(
                bound_by_collection[INSTANCES], result.outputs.get(INSTANCES, {})
            )
        logger.info(f"Run complete: {len(result.instances)} instance(s) resolved")
        return result

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    def _preflight(self) -> None:
        for name in self.store.names:
            references = self.store.references_from(name)
            if not references:
                continue
            referenced = {ref.collection: self.store.collection(ref.collection).keys() for ref in references}
            check_keys(name, self.store.collection(name).keys(), references, referenced)

    def _prepare(self, name: str) -> Dict[str, Dict[str, Any]]:
        if name != INSTANCES:
            return {key: dict(values) for key, values in self.store.collection(name).items()}
        prepared: Dict[str, Dict[str, Any]] = {}
        for key, spec in self.store.specs(name).items():
            if isinstance(spec, InstanceSpec):
                prepared[key] = coalesce_instance(spec, self.defaults).to_dict()
            else:
                prepared[key] = dict(self.store.collection(name)[key])
        return prepared

    def _materialize(
        self, name: str, bound: Dict[str, Dict[str, Any]], result: RunResult
    ) -> Dict[str, Dict[str, Any]]:
        partial = {collection: dict(outputs) for collection, outputs in result.outputs.items()}
        try:
            outputs = self.materializer.materialize(name, bound)
        except MaterializationError as exc:
            exc.partial = partial
            logger.error(f"Materialization of {name} failed: {exc}")
            raise
        except Exception as exc:
            logger.error(f"Materialization of {name} failed: {exc}")
            raise MaterializationError(str(exc), collection=name, partial=partial) from exc

        missing = sorted(set(bound) - set(outputs))
        if missing:
            raise MaterializationError(
                f'Materializer returned no outputs for {name}["{missing[0]}"]',
                collection=name,
                key=missing[0],
                partial=partial,
            )
        return {key: dict(outputs[key]) for key in bound}

    def _resolve_instances(
        self,
        bound: Dict[str, Dict[str, Any]],
        outputs: Dict[str, Dict[str, Any]],
    ) -> Dict[str, ResolvedInstance]:
        resolved: Dict[str, ResolvedInstance] = {}
        for key, values in bound.items():
            values = dict(values)
            values["handle"] = outputs.get(key, {}).get("handle")
            resolved[key] = ResolvedInstance.from_binding(key, values, self.domain)
        return resolved


def plan(
    store: DeclarationStore,
    *,
    defaults: Optional[InstanceDefaults] = None,
    domain: str = DEFAULT_DOMAIN,
    project: str = "",
) -> RunResult:
    """Run the store against predicted outputs; nothing is created."""
    from fleetbind.materialization.declared import DeclaredOutputMaterializer

    run = ProvisioningRun(
        store,
        DeclaredOutputMaterializer(project=project),
        defaults=defaults,
        domain=domain,
    )
    return run.execute()
