"""
Test suite for optional-field coalescing.
"""

from fleetbind.binding import coalesce, coalesce_instance
from fleetbind.models import InstanceDefaults, InstanceSpec

DEFAULTS = InstanceDefaults(
    machine_type="e2-medium",
    image="debian-cloud/debian-12",
    disk_type="pd-balanced",
    disk_size_gb=20,
)


def test_coalesce_prefers_declared_value():
    assert coalesce("e2-small", "e2-medium") == "e2-small"
    assert coalesce(None, "e2-medium") == "e2-medium"


def test_coalesce_keeps_falsy_values():
    assert coalesce(0, 20) == 0
    assert coalesce(False, True) is False
    assert coalesce("", "fallback") == ""


def test_absent_fields_take_defaults():
    spec = coalesce_instance(InstanceSpec(zone="z1", subnetwork="s1"), DEFAULTS)

    assert spec.machine_type == "e2-medium"
    assert spec.image == "debian-cloud/debian-12"
    assert spec.disk_type == "pd-balanced"
    assert spec.disk_size_gb == 20


def test_fields_coalesced_independently():
    spec = coalesce_instance(InstanceSpec(zone="z1", subnetwork="s1", disk_size_gb=100), DEFAULTS)

    assert spec.disk_size_gb == 100
    assert spec.machine_type == "e2-medium"


def test_fully_specified_spec_unchanged():
    full = InstanceSpec(
        zone="z1",
        subnetwork="s1",
        machine_type="n2-standard-2",
        image="cos-cloud/cos-stable",
        disk_type="pd-ssd",
        disk_size_gb=64,
        allow_stopping_for_update=False,
        deletion_protection=True,
    )
    assert coalesce_instance(full, DEFAULTS) == full


def test_coalescing_is_idempotent():
    once = coalesce_instance(InstanceSpec(zone="z1", subnetwork="s1", image="x/y"), DEFAULTS)
    assert coalesce_instance(once, DEFAULTS) == once
    assert coalesce_instance(once, InstanceDefaults(machine_type="other")) == once


def test_flags_are_not_coalesced():
    spec = coalesce_instance(
        InstanceSpec(zone="z1", subnetwork="s1", allow_stopping_for_update=False), DEFAULTS
    )
    assert spec.allow_stopping_for_update is False
    assert spec.deletion_protection is False
