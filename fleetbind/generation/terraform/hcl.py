"""
Terraform HCL rendering for a fleet declaration store.

Renders the keyed-collection pattern: both collections become maps in
`locals`, addresses and instances are declared with `for_each`, and every
instance reads its addresses with `google_compute_address.<name>[each.key]`.
Optional instance fields are rendered as `null` and coalesced against
variables carrying the configured defaults.
"""

from __future__ import annotations

import logging
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from fleetbind.binding.correlator import check_keys
from fleetbind.binding.errors import FleetbindError
from fleetbind.binding.store import DeclarationStore
from fleetbind.generation.yaml_config import SettingsConfig
from fleetbind.models import ADDRESSES, INSTANCES

logger = logging.getLogger(__name__)

WORKSPACE_FILES = ("versions.tf", "variables.tf", "main.tf", "outputs.tf")


class TerraformRenderError(FleetbindError):
    """Raised when a workspace cannot be rendered."""

    pass


@dataclass
class TerraformWorkspace:
    """Represents a rendered Terraform workspace with file paths."""

    path: Path
    files: Dict[str, Path]

    @property
    def main_tf_path(self) -> Path:
        return self.files["main.tf"]


class TerraformRenderer:
    """
    Converts a fleet declaration store into Terraform HCL.

    Features:
    - Same-key correlation checked before anything is rendered
    - `for_each` collections fed from `locals`
    - Coalescing of optional fields against variable defaults
    - Outputs exposing the resolved instance attributes per key
    """

    def __init__(self, settings: Optional[SettingsConfig] = None) -> None:
        self.settings = settings or SettingsConfig()
        tf = self.settings.terraform
        self.instance_type, self.instance_name = _split_resource(tf.instance_resource)
        self.internal_type, self.internal_name = _split_resource(tf.internal_address_resource)
        self.external_type, self.external_name = _split_resource(tf.external_address_resource)

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #

    def render(self, store: DeclarationStore) -> Dict[str, str]:
        """
        Render every workspace file.

        Raises:
            KeyNotFoundError: an instance key has no address entry
            TerraformRenderError: the store lacks one of the fleet collections
        """
        for name in (ADDRESSES, INSTANCES):
            if name not in store:
                raise TerraformRenderError(f'Declaration store has no "{name}" collection')

        instances = store.collection(INSTANCES)
        addresses = store.collection(ADDRESSES)
        references = store.references_from(INSTANCES)
        check_keys(INSTANCES, instances.keys(), references, {ADDRESSES: addresses.keys()})

        files = {
            "versions.tf": self._generate_versions_tf(),
            "variables.tf": self._generate_variables_tf(),
            "main.tf": self._generate_main_tf(instances, addresses),
            "outputs.tf": self._generate_outputs_tf(),
        }
        logger.info(
            f"Rendered workspace for {len(instances)} instance(s) and {len(addresses)} address pair(s)"
        )
        return files

    def write_workspace(
        self, store: DeclarationStore, directory: Optional[str | Path] = None
    ) -> TerraformWorkspace:
        """
        Render and write the workspace.

        Nothing is created when rendering fails. Without `directory` a fresh
        temporary directory is used; it is removed again when writing fails.
        """
        contents = self.render(store)
        created = directory is None
        workspace_dir = Path(directory) if directory else Path(tempfile.mkdtemp(prefix="fleetbind_tf_"))
        workspace_dir.mkdir(parents=True, exist_ok=True)

        try:
            paths: Dict[str, Path] = {}
            for filename in WORKSPACE_FILES:
                path = workspace_dir / filename
                path.write_text(contents[filename], encoding="utf-8")
                paths[filename] = path
        except Exception:
            if created and workspace_dir.exists():
                shutil.rmtree(workspace_dir, ignore_errors=True)
            raise

        logger.info(f"Wrote Terraform workspace to {workspace_dir}")
        return TerraformWorkspace(path=workspace_dir, files=paths)

    # ------------------------------------------------------------------ #
    # HCL Generation
    # ------------------------------------------------------------------ #

    def _generate_versions_tf(self) -> str:
        """Generate versions.tf with provider constraints."""
        version = self.settings.terraform.provider_version
        return f'''terraform {{
  required_version = ">= 1.5.0"
  required_providers {{
    google = {{
      source  = "hashicorp/google"
      version = "{version}"
    }}
  }}
}}
'''

    def _generate_variables_tf(self) -> str:
        settings = self.settings
        defaults = settings.defaults
        project_default = _hcl_value(settings.project or None)
        return f'''variable "project" {{
  type    = string
  default = {project_default}
}}

variable "domain" {{
  type    = string
  default = {_hcl_value(settings.domain)}
}}

variable "default_machine_type" {{
  type    = string
  default = {_hcl_value(defaults.machine_type)}
}}

variable "default_image" {{
  type    = string
  default = {_hcl_value(defaults.image)}
}}

variable "default_disk_type" {{
  type    = string
  default = {_hcl_value(defaults.disk_type)}
}}

variable "default_disk_size_gb" {{
  type    = number
  default = {_hcl_value(defaults.disk_size_gb)}
}}
'''

    def _generate_main_tf(
        self,
        instances: Mapping[str, Mapping[str, Any]],
        addresses: Mapping[str, Mapping[str, Any]],
    ) -> str:
        parts = [
            'provider "google" {\n  project = var.project\n}\n',
            self._generate_locals(instances, addresses),
            self._generate_internal_addresses(),
            self._generate_external_addresses(),
            self._generate_instances(),
        ]
        return "\n".join(parts)

    def _generate_locals(
        self,
        instances: Mapping[str, Mapping[str, Any]],
        addresses: Mapping[str, Mapping[str, Any]],
    ) -> str:
        address_block = _hcl_map(addresses, indent=2)
        vm_block = _hcl_map(instances, indent=2)
        return f'''locals {{
  addresses = {address_block}

  vms = {vm_block}
}}
'''

    def _generate_internal_addresses(self) -> str:
        return f'''resource "{self.internal_type}" "{self.internal_name}" {{
  for_each     = local.addresses
  name         = "${{each.key}}-internal"
  region       = each.value.region
  subnetwork   = each.value.subnetwork
  address_type = "INTERNAL"
  address      = each.value.internal_ip
}}
'''

    def _generate_external_addresses(self) -> str:
        return f'''resource "{self.external_type}" "{self.external_name}" {{
  for_each     = local.addresses
  name         = "${{each.key}}-external"
  region       = each.value.region
  address_type = "EXTERNAL"
  address      = each.value.external_ip
}}
'''

    def _generate_instances(self) -> str:
        internal_ref = f"{self.internal_type}.{self.internal_name}[each.key].address"
        external_ref = f"{self.external_type}.{self.external_name}[each.key].address"
        return f'''resource "{self.instance_type}" "{self.instance_name}" {{
  for_each     = local.vms
  name         = each.key
  hostname     = "${{each.key}}.${{var.domain}}"
  zone         = each.value.zone
  machine_type = coalesce(each.value.machine_type, var.default_machine_type)

  allow_stopping_for_update = each.value.allow_stopping_for_update
  deletion_protection       = each.value.deletion_protection

  boot_disk {{
    initialize_params {{
      image = coalesce(each.value.image, var.default_image)
      type  = coalesce(each.value.disk_type, var.default_disk_type)
      size  = coalesce(each.value.disk_size_gb, var.default_disk_size_gb)
    }}
  }}

  network_interface {{
    subnetwork = each.value.subnetwork
    network_ip = {internal_ref}

    access_config {{
      nat_ip = {external_ref}
    }}
  }}
}}
'''

    def _generate_outputs_tf(self) -> str:
        return f'''output "instances" {{
  value = {{
    for key, vm in {self.instance_type}.{self.instance_name} : key => {{
      name        = vm.name
      hostname    = vm.hostname
      zone        = vm.zone
      internal_ip = vm.network_interface[0].network_ip
      external_ip = vm.network_interface[0].access_config[0].nat_ip
      handle      = vm.id
    }}
  }}
}}
'''


# ------------------------------------------------------------------ #
# Helper Functions
# ------------------------------------------------------------------ #


def render_workspace(store: DeclarationStore, settings: Optional[SettingsConfig] = None) -> Dict[str, str]:
    return TerraformRenderer(settings).render(store)


def _split_resource(address: str) -> tuple[str, str]:
    parts = address.split(".")
    if len(parts) != 2 or not all(parts):
        raise TerraformRenderError(f"Invalid resource address {address!r} (expected '<type>.<name>')")
    return parts[0], parts[1]


def _hcl_string(value: str) -> str:
    escaped = (
        value.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\n", "\\n")
        .replace("${", "$${")
        .replace("%{", "%%{")
    )
    return f'"{escaped}"'


def _hcl_value(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    return _hcl_string(str(value))


def _hcl_map(entries: Mapping[str, Mapping[str, Any]], indent: int) -> str:
    """Render `key -> object` as an HCL map literal with aligned attributes."""
    if not entries:
        return "{}"
    pad = " " * indent
    lines: List[str] = ["{"]
    for key in sorted(entries):
        values = dict(entries[key])
        width = max((len(name) for name in values), default=0)
        lines.append(f"{pad}  {_hcl_string(key)} = {{")
        for name, value in values.items():
            lines.append(f"{pad}    {name.ljust(width)} = {_hcl_value(value)}")
        lines.append(f"{pad}  }}")
    lines.append(f"{pad}}}")
    return "\n".join(lines)
