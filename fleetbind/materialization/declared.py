"""
Materializer that predicts outputs from the declarations themselves.

Static addresses are reserved with the literal they were declared with, so the
assigned address is known in advance; handles are the resource paths the
provider would report. Nothing is created, which makes this the `plan`
materializer.
"""

from __future__ import annotations

import logging
from typing import Any, Dict

from fleetbind.models import ADDRESSES, INSTANCES
from fleetbind.materialization.base import Entries, MaterializedOutputs

logger = logging.getLogger(__name__)


class DeclaredOutputMaterializer:
    def __init__(self, project: str = "") -> None:
        self.project = project
        self.calls: list[str] = []

    def materialize(self, collection: str, entries: Entries) -> MaterializedOutputs:
        self.calls.append(collection)
        outputs: MaterializedOutputs = {}
        for key, values in entries.items():
            if collection == ADDRESSES:
                outputs[key] = self._address_outputs(key, values)
            elif collection == INSTANCES:
                outputs[key] = {"handle": self._path("zones", values.get("zone"), "instances", key)}
            else:
                outputs[key] = dict(values)
                outputs[key]["handle"] = f"{collection}/{key}"
        logger.info(f"Predicted outputs for {len(outputs)} {collection} entr{'y' if len(outputs) == 1 else 'ies'}")
        return outputs

    def _address_outputs(self, key: str, values: Any) -> Dict[str, Any]:
        return {
            "internal_address": values["internal_ip"],
            "external_address": values["external_ip"],
            "handle": self._path("regions", values.get("region"), "addresses", key),
        }

    def _path(self, scope: str, location: Any, kind: str, key: str) -> str:
        prefix = f"projects/{self.project}/" if self.project else ""
        return f"{prefix}{scope}/{location}/{kind}/{key}"
