"""Terraform state file parser for keyed (`for_each`) resources."""
import json
from pathlib import Path
from typing import Any, Dict, List, Optional


class TerraformStateParser:
    """Parse and extract keyed resource instances from Terraform state files."""

    def __init__(self, state_file_path: str | Path):
        """
        Initialize parser with a state file.

        Args:
            state_file_path: Path to terraform.tfstate file
        """
        self.state_file_path = Path(state_file_path)
        self._state_data: Optional[Dict[str, Any]] = None
        self._resources: Optional[List[Dict[str, Any]]] = None

    def parse(self) -> Dict[str, Any]:
        """
        Parse the Terraform state file.

        Returns:
            The full state data as a dictionary

        Raises:
            FileNotFoundError: If state file doesn't exist
            ValueError: If state file is invalid JSON
        """
        if self._state_data is not None:
            return self._state_data

        if not self.state_file_path.exists():
            raise FileNotFoundError(f"State file not found: {self.state_file_path}")

        try:
            with open(self.state_file_path, "r", encoding="utf-8") as f:
                self._state_data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in state file: {e}")

        return self._state_data

    def get_resources(self) -> List[Dict[str, Any]]:
        """
        Extract all managed resource instances from the state file.

        Returns:
            List of resource dictionaries with flattened structure

        State file structure:
        {
          "resources": [
            {
              "mode": "managed",
              "type": "google_compute_address",
              "name": "internal",
              "instances": [
                {
                  "index_key": "host-01",
                  "attributes": {
                    "address": "10.128.0.10",
                    ...
                  }
                }
              ]
            }
          ]
        }
        """
        if self._resources is not None:
            return self._resources

        state = self.parse()
        self._resources = []

        # Terraform state v4 structure
        for resource in state.get("resources", []):
            # Data sources never hold materialized entities
            if resource.get("mode", "managed") != "managed":
                continue

            for instance in resource.get("instances", []):
                self._resources.append(
                    {
                        "type": resource.get("type"),
                        "name": resource.get("name"),
                        "module": resource.get("module"),
                        "index_key": instance.get("index_key"),
                        "attributes": instance.get("attributes", {}),
                    }
                )

        return self._resources

    def keyed_instances(self, address: str) -> Dict[str, Dict[str, Any]]:
        """
        Attributes of every instance of a `for_each` resource, by key.

        Args:
            address: Resource address without key, e.g. "google_compute_address.internal"

        Returns:
            Mapping of index_key -> attributes. Instances without a string
            index_key (count-based or single resources) are skipped.
        """
        resource_type, _, name = address.partition(".")
        keyed: Dict[str, Dict[str, Any]] = {}
        for resource in self.get_resources():
            if resource["type"] != resource_type or resource["name"] != name:
                continue
            if resource.get("module"):
                continue
            key = resource.get("index_key")
            if isinstance(key, str):
                keyed[key] = resource["attributes"]
        return keyed

    def get_resource_attribute(self, attributes: Dict[str, Any], path: str) -> Optional[Any]:
        """
        Extract a nested attribute using dot notation.

        Args:
            attributes: Attributes of one resource instance
            path: Attribute path like "address" or "network_interface.0.network_ip"

        Returns:
            The attribute value, or None if not found
        """
        current: Any = attributes
        for part in path.split("."):
            if current is None:
                return None

            # Handle array indices: network_interface.0.network_ip
            if part.isdigit():
                if isinstance(current, list):
                    try:
                        current = current[int(part)]
                    except (IndexError, ValueError):
                        return None
                else:
                    return None
            elif isinstance(current, dict):
                current = current.get(part)
            else:
                return None

        return current
