"""
Pytest configuration and shared fixtures for all tests.
"""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Ensure the repo root is on `sys.path` so `import fleetbind` works without an install.
repo_root = Path(__file__).resolve().parents[1]
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))

from fleetbind.generation.yaml_config import reset_fleet_config
from fleetbind.models import AddressSpec, InstanceSpec


@pytest.fixture(autouse=True)
def cleanup_fleet_config():
    """
    Automatically reset the cached configuration after each test.

    This ensures tests that load or set a config don't leak it into others.
    """
    yield
    reset_fleet_config()


@pytest.fixture
def instances():
    """Two instances, one relying on every fallback."""
    return {
        "host-01": InstanceSpec(zone="us-central1-a", subnetwork="default"),
        "host-02": InstanceSpec(
            zone="us-central1-b",
            subnetwork="default",
            machine_type="e2-small",
            image="ubuntu-os-cloud/ubuntu-2204-lts",
            disk_type="pd-ssd",
            disk_size_gb=50,
            allow_stopping_for_update=False,
            deletion_protection=True,
        ),
    }


@pytest.fixture
def addresses():
    return {
        "host-01": AddressSpec(
            region="us-central1",
            subnetwork="default",
            internal_ip="10.128.0.10",
            external_ip="34.122.10.10",
        ),
        "host-02": AddressSpec(
            region="us-central1",
            subnetwork="default",
            internal_ip="10.128.0.11",
            external_ip="34.122.10.11",
        ),
    }


DECLARATIONS_YAML = """\
addresses:
  host-01:
    region: us-central1
    subnetwork: default
    internal_ip: 10.128.0.10
    external_ip: 34.122.10.10
  host-02:
    region: us-central1
    subnetwork: default
    internal_ip: 10.128.0.11
    external_ip: 34.122.10.11
instances:
  host-01:
    zone: us-central1-a
    subnetwork: default
  host-02:
    zone: us-central1-b
    subnetwork: default
    machine_type: e2-small
    disk_size_gb: 50
    deletion_protection: true
"""


@pytest.fixture
def declarations_file(tmp_path):
    """Write a two-host declarations file and return its path."""
    path = tmp_path / "fleet.yaml"
    path.write_text(DECLARATIONS_YAML, encoding="utf-8")
    return path


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "fleet_config.yaml"
    path.write_text(
        "settings:\n"
        "  domain: example.internal\n"
        "  project: demo-project\n"
        "  defaults:\n"
        "    machine_type: e2-micro\n"
        "  terraform:\n"
        f"    workdir: {tmp_path / 'tf'}\n",
        encoding="utf-8",
    )
    return path
