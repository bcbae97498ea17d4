"""
Materializers backed by Terraform.

`StateFileMaterializer` only reads outputs that an earlier apply left in the
state file. `TerraformMaterializer` runs a targeted `terraform apply` for the
collection being materialized and then reads the same state.
"""

from __future__ import annotations

import logging
import os
import subprocess
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from fleetbind.binding.errors import MaterializationError
from fleetbind.generation.terraform.targeting import format_address, replace_args, target_args
from fleetbind.generation.yaml_config import TerraformConfig
from fleetbind.materialization.base import Entries, MaterializedOutputs
from fleetbind.materialization.state_parser import TerraformStateParser
from fleetbind.models import ADDRESSES, INSTANCES

logger = logging.getLogger(__name__)


class StateFileMaterializer:
    """Reads materialized outputs of keyed resources from a Terraform state file."""

    def __init__(self, state_file: str | Path, terraform: Optional[TerraformConfig] = None) -> None:
        self.state_file = Path(state_file)
        self.terraform = terraform or TerraformConfig()

    def resource_addresses(self, collection: str) -> List[str]:
        """Terraform resources (without key) that make up one collection."""
        if collection == ADDRESSES:
            return [self.terraform.internal_address_resource, self.terraform.external_address_resource]
        if collection == INSTANCES:
            return [self.terraform.instance_resource]
        raise MaterializationError(f'No Terraform resource is mapped to collection "{collection}"', collection)

    def materialize(self, collection: str, entries: Entries) -> MaterializedOutputs:
        try:
            parser = TerraformStateParser(self.state_file)
            parser.parse()
        except (FileNotFoundError, ValueError) as exc:
            raise MaterializationError(str(exc), collection) from exc

        if collection == ADDRESSES:
            return self._address_outputs(parser, entries)
        if collection == INSTANCES:
            return self._instance_outputs(parser, entries)
        raise MaterializationError(f'No Terraform resource is mapped to collection "{collection}"', collection)

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    def _lookup(
        self,
        parser: TerraformStateParser,
        resource: str,
        collection: str,
        keys: Sequence[str],
    ) -> Dict[str, Dict[str, Any]]:
        keyed = parser.keyed_instances(resource)
        for key in keys:
            if key not in keyed:
                raise MaterializationError(
                    f"{format_address(resource, key)} not found in state {self.state_file}",
                    collection,
                    key=key,
                )
        return keyed

    def _required(
        self,
        parser: TerraformStateParser,
        resource: str,
        attributes: Dict[str, Any],
        key: str,
        path: str,
    ) -> Any:
        value = parser.get_resource_attribute(attributes, path)
        if value is None:
            raise MaterializationError(
                f'{format_address(resource, key)} has no "{path}" in state {self.state_file}',
                ADDRESSES,
                key=key,
            )
        return value

    def _address_outputs(self, parser: TerraformStateParser, entries: Entries) -> MaterializedOutputs:
        keys = sorted(entries)
        internal_resource = self.terraform.internal_address_resource
        external_resource = self.terraform.external_address_resource
        internal = self._lookup(parser, internal_resource, ADDRESSES, keys)
        external = self._lookup(parser, external_resource, ADDRESSES, keys)
        outputs: MaterializedOutputs = {}
        for key in keys:
            outputs[key] = {
                "internal_address": self._required(parser, internal_resource, internal[key], key, "address"),
                "external_address": self._required(parser, external_resource, external[key], key, "address"),
                "handle": parser.get_resource_attribute(internal[key], "id"),
            }
        logger.info(f"Read {len(outputs)} address pair(s) from {self.state_file}")
        return outputs

    def _instance_outputs(self, parser: TerraformStateParser, entries: Entries) -> MaterializedOutputs:
        keys = sorted(entries)
        instances = self._lookup(parser, self.terraform.instance_resource, INSTANCES, keys)
        outputs: MaterializedOutputs = {}
        for key in keys:
            attributes = instances[key]
            outputs[key] = {
                "handle": parser.get_resource_attribute(attributes, "id"),
                "network_ip": parser.get_resource_attribute(attributes, "network_interface.0.network_ip"),
                "nat_ip": parser.get_resource_attribute(
                    attributes, "network_interface.0.access_config.0.nat_ip"
                ),
            }
        logger.info(f"Read {len(outputs)} instance(s) from {self.state_file}")
        return outputs


Runner = Callable[..., "subprocess.CompletedProcess[str]"]


class TerraformMaterializer:
    """
    Applies one collection at a time with `terraform apply -target=...`.

    Each key of the collection is targeted through its resource address,
    e.g. `google_compute_address.internal["host-01"]`, so siblings outside the
    collection are left alone. Terraform's own error output is surfaced
    unchanged; nothing is retried.
    """

    def __init__(
        self,
        workdir: str | Path,
        terraform: Optional[TerraformConfig] = None,
        env: Optional[Mapping[str, str]] = None,
        runner: Optional[Runner] = None,
    ) -> None:
        self.workdir = Path(workdir)
        self.terraform = terraform or TerraformConfig()
        self.state = StateFileMaterializer(self.workdir / self.terraform.state_file, self.terraform)
        self._env = dict(env) if env is not None else None
        self._runner = runner or subprocess.run
        self._initialized = False

    def materialize(self, collection: str, entries: Entries) -> MaterializedOutputs:
        if not entries:
            return {}
        self.init()
        addresses = [
            format_address(resource, key)
            for resource in self.state.resource_addresses(collection)
            for key in sorted(entries)
        ]
        self.run(["apply", "-auto-approve", "-input=false", "-no-color", *target_args(addresses)], collection)
        return self.state.materialize(collection, entries)

    def replace(self, collection: str, keys: Sequence[str]) -> None:
        """Force recreation of single entities of a collection."""
        self.init()
        addresses = [
            format_address(resource, key)
            for resource in self.state.resource_addresses(collection)
            for key in sorted(keys)
        ]
        self.run(["apply", "-auto-approve", "-input=false", "-no-color", *replace_args(addresses)], collection)

    def init(self) -> None:
        if self._initialized:
            return
        self.run(["init", "-input=false", "-no-color"], collection="")
        self._initialized = True

    def run(self, args: List[str], collection: str) -> str:
        """Run a terraform subcommand in the workdir and return its stdout."""
        cmd = [self.terraform.binary, *args]
        label = f"terraform {args[0]}"
        logger.info(f"{label} ({len(args) - 1} argument(s)) in {self.workdir}")
        try:
            proc = self._runner(
                cmd,
                cwd=str(self.workdir),
                env=self._environment(),
                text=True,
                capture_output=True,
                check=False,
            )
        except OSError as exc:
            raise MaterializationError(f"{label} could not be started: {exc}", collection) from exc

        for line in (proc.stdout or "").splitlines():
            logger.debug(line)
        if proc.returncode != 0:
            message = (proc.stderr or "").strip() or (proc.stdout or "").strip()
            logger.error(f"{label} failed (rc={proc.returncode})")
            raise MaterializationError(message or f"{label} failed (rc={proc.returncode})", collection)
        return proc.stdout or ""

    def _environment(self) -> Dict[str, str]:
        env = dict(self._env) if self._env is not None else os.environ.copy()
        env["TF_IN_AUTOMATION"] = "1"
        return env
