"""
YAML-based hierarchical fleet configuration.

Holds everything that is not part of the declarations themselves: the
hostname domain, instance fallbacks, Terraform locations and the API bind
address.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from fleetbind.binding.errors import ConfigError
from fleetbind.models import DEFAULT_DOMAIN, InstanceDefaults

CONFIG_ENV_VAR = "FLEETBIND_CONFIG"
CONFIG_FILENAME = "fleet_config.yaml"


@dataclass
class TerraformConfig:
    """Terraform CLI and resource address settings."""
    binary: str = "terraform"
    workdir: str = "./terraform"
    state_file: str = "terraform.tfstate"
    instance_resource: str = "google_compute_instance.vm"
    internal_address_resource: str = "google_compute_address.internal"
    external_address_resource: str = "google_compute_address.external"
    provider_version: str = "7.12.0"


@dataclass
class ApiConfig:
    """HTTP API bind address."""
    host: str = "0.0.0.0"
    port: int = 8000


@dataclass
class LoggingConfig:
    level: str = "INFO"


@dataclass
class SettingsConfig:
    """Global settings."""
    domain: str = DEFAULT_DOMAIN
    project: str = ""
    defaults: InstanceDefaults = field(default_factory=InstanceDefaults)
    terraform: TerraformConfig = field(default_factory=TerraformConfig)
    api: ApiConfig = field(default_factory=ApiConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


@dataclass
class FleetConfig:
    """
    Fleet configuration loaded from YAML.

    Structure:
        settings -> (domain, project, defaults, terraform, api, logging)
    """
    settings: SettingsConfig = field(default_factory=SettingsConfig)

    @classmethod
    def from_yaml(cls, yaml_path: str | Path) -> FleetConfig:
        """Load configuration from YAML file."""
        path = Path(yaml_path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {yaml_path}")

        try:
            with open(path, 'r') as f:
                data = yaml.safe_load(f) or {}
            if not isinstance(data, dict):
                raise ConfigError(f"Config file {yaml_path} must contain a mapping")
            return cls._from_dict(data)
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid YAML in config file {yaml_path}: {exc}") from exc
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"Invalid value in config file {yaml_path}: {exc}") from exc

    @classmethod
    def _from_dict(cls, data: Dict[str, Any]) -> FleetConfig:
        """Parse configuration dictionary."""
        settings_data = data.get('settings', {}) or {}

        fallback = InstanceDefaults()
        defaults_data = settings_data.get('defaults', {}) or {}
        defaults = InstanceDefaults(
            machine_type=defaults_data.get('machine_type', fallback.machine_type),
            image=defaults_data.get('image', fallback.image),
            disk_type=defaults_data.get('disk_type', fallback.disk_type),
            disk_size_gb=int(defaults_data.get('disk_size_gb', fallback.disk_size_gb)),
        )

        tf_fallback = TerraformConfig()
        tf_data = settings_data.get('terraform', {}) or {}
        terraform = TerraformConfig(
            binary=tf_data.get('binary', tf_fallback.binary),
            workdir=tf_data.get('workdir', tf_fallback.workdir),
            state_file=tf_data.get('state_file', tf_fallback.state_file),
            instance_resource=tf_data.get('instance_resource', tf_fallback.instance_resource),
            internal_address_resource=tf_data.get(
                'internal_address_resource', tf_fallback.internal_address_resource
            ),
            external_address_resource=tf_data.get(
                'external_address_resource', tf_fallback.external_address_resource
            ),
            provider_version=str(tf_data.get('provider_version', tf_fallback.provider_version)),
        )

        api_data = settings_data.get('api', {}) or {}
        api = ApiConfig(
            host=api_data.get('host', '0.0.0.0'),
            port=int(api_data.get('port', 8000)),
        )

        logging_data = settings_data.get('logging', {}) or {}
        logging_config = LoggingConfig(level=str(logging_data.get('level', 'INFO')).upper())

        settings = SettingsConfig(
            domain=settings_data.get('domain', DEFAULT_DOMAIN),
            project=settings_data.get('project', ''),
            defaults=defaults,
            terraform=terraform,
            api=api,
            logging=logging_config,
        )
        return cls(settings=settings)


# Global configuration instance
_fleet_config: Optional[FleetConfig] = None


def get_fleet_config(config_path: Optional[str | Path] = None) -> FleetConfig:
    """
    Get the global fleet configuration.

    Args:
        config_path: Path to YAML config file. If None, uses default locations:
                    1. FLEETBIND_CONFIG environment variable
                    2. ./fleet_config.yaml (current directory)
                    3. fleet_config.yaml shipped inside the package
                    4. ~/.fleetbind/fleet_config.yaml (home directory)

    Returns:
        FleetConfig instance
    """
    global _fleet_config

    if _fleet_config is not None and config_path is None:
        return _fleet_config

    if config_path is None:
        env_path = os.getenv(CONFIG_ENV_VAR)
        if env_path:
            config_path = Path(env_path)
        else:
            package_root = Path(__file__).resolve().parents[1]
            candidates = [
                Path.cwd() / CONFIG_FILENAME,
                package_root / CONFIG_FILENAME,
                Path.home() / '.fleetbind' / CONFIG_FILENAME,
            ]
            for candidate in candidates:
                if candidate.exists():
                    config_path = candidate
                    break

    if config_path is None:
        raise FileNotFoundError(
            f"No config file found. Create {CONFIG_FILENAME} or set {CONFIG_ENV_VAR} environment variable."
        )

    _fleet_config = FleetConfig.from_yaml(config_path)
    return _fleet_config


def reset_fleet_config() -> None:
    """Reset the global fleet configuration cache."""
    global _fleet_config
    _fleet_config = None


def set_fleet_config(config: FleetConfig) -> None:
    """Set a custom fleet configuration."""
    global _fleet_config
    _fleet_config = config
