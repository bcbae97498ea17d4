"""
Test suite for the Terraform-backed materializers.

Tests reading keyed outputs from state and the targeted apply workflow,
with the terraform binary replaced by a recording stub.
"""

import json
import subprocess

import pytest

from fleetbind.binding import MaterializationError, ProvisioningRun, build_fleet_store
from fleetbind.materialization.state_parser import TerraformStateParser
from fleetbind.materialization.terraform import StateFileMaterializer, TerraformMaterializer


def keyed_resource(resource_type, name, instances):
    return {
        "mode": "managed",
        "type": resource_type,
        "name": name,
        "provider": 'provider["registry.terraform.io/hashicorp/google"]',
        "instances": [
            {"index_key": key, "schema_version": 0, "attributes": attributes}
            for key, attributes in instances.items()
        ],
    }


def state_document(keys=("host-01", "host-02")):
    internal = {
        key: {"address": f"10.128.0.{10 + i}", "id": f"projects/p/regions/us-central1/addresses/{key}-internal"}
        for i, key in enumerate(keys)
    }
    external = {
        key: {"address": f"34.122.10.{10 + i}", "id": f"projects/p/regions/us-central1/addresses/{key}-external"}
        for i, key in enumerate(keys)
    }
    vms = {
        key: {
            "id": f"projects/p/zones/us-central1-a/instances/{key}",
            "network_interface": [
                {
                    "network_ip": internal[key]["address"],
                    "access_config": [{"nat_ip": external[key]["address"]}],
                }
            ],
        }
        for key in keys
    }
    return {
        "version": 4,
        "resources": [
            {"mode": "data", "type": "google_project", "name": "current", "instances": [{"attributes": {}}]},
            keyed_resource("google_compute_address", "internal", internal),
            keyed_resource("google_compute_address", "external", external),
            keyed_resource("google_compute_instance", "vm", vms),
        ],
    }


@pytest.fixture
def state_file(tmp_path):
    path = tmp_path / "terraform.tfstate"
    path.write_text(json.dumps(state_document()), encoding="utf-8")
    return path


class FakeTerraform:
    """Stands in for subprocess.run and records every terraform invocation."""

    def __init__(self, returncode=0, stderr="", fail_on=None, state=None):
        self.calls = []
        self.returncode = returncode
        self.stderr = stderr
        self.fail_on = fail_on
        self.state = state

    def __call__(self, cmd, cwd, env, text, capture_output, check):
        self.calls.append(cmd)
        failing = self.fail_on is None or any(self.fail_on in part for part in cmd)
        if cmd[1] == "apply" and self.state is not None:
            self.state.write_text(json.dumps(state_document()), encoding="utf-8")
        if cmd[1] == "apply" and failing and self.returncode != 0:
            return subprocess.CompletedProcess(cmd, self.returncode, "", self.stderr)
        return subprocess.CompletedProcess(cmd, 0, "Apply complete!", "")


class TestStateParser:
    """Test keyed instance extraction."""

    def test_keyed_instances(self, state_file):
        parser = TerraformStateParser(state_file)
        internal = parser.keyed_instances("google_compute_address.internal")

        assert set(internal) == {"host-01", "host-02"}
        assert internal["host-02"]["address"] == "10.128.0.11"

    def test_data_sources_skipped(self, state_file):
        parser = TerraformStateParser(state_file)
        assert all(r["type"] != "google_project" for r in parser.get_resources())

    def test_nested_attribute(self, state_file):
        parser = TerraformStateParser(state_file)
        vm = parser.keyed_instances("google_compute_instance.vm")["host-01"]

        assert parser.get_resource_attribute(vm, "network_interface.0.access_config.0.nat_ip") == "34.122.10.10"
        assert parser.get_resource_attribute(vm, "network_interface.5.network_ip") is None

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "terraform.tfstate"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ValueError, match="Invalid JSON"):
            TerraformStateParser(path).parse()


class TestStateFileMaterializer:
    """Test reading outputs through the materializer interface."""

    def test_address_outputs(self, state_file):
        outputs = StateFileMaterializer(state_file).materialize("addresses", {"host-01": {}, "host-02": {}})

        assert outputs["host-01"]["internal_address"] == "10.128.0.10"
        assert outputs["host-01"]["external_address"] == "34.122.10.10"
        assert outputs["host-01"]["handle"].endswith("host-01-internal")

    def test_instance_outputs(self, state_file):
        outputs = StateFileMaterializer(state_file).materialize("instances", {"host-02": {}})
        assert outputs["host-02"]["handle"] == "projects/p/zones/us-central1-a/instances/host-02"

    def test_missing_key_in_state(self, state_file):
        with pytest.raises(MaterializationError) as excinfo:
            StateFileMaterializer(state_file).materialize("addresses", {"host-07": {}})

        assert excinfo.value.key == "host-07"
        assert 'google_compute_address.internal["host-07"]' in str(excinfo.value)

    def test_address_without_ip_in_state(self, tmp_path, instances, addresses):
        document = state_document()
        for resource in document["resources"]:
            if resource["type"] == "google_compute_address":
                for instance in resource["instances"]:
                    del instance["attributes"]["address"]
        path = tmp_path / "terraform.tfstate"
        path.write_text(json.dumps(document), encoding="utf-8")
        run = ProvisioningRun(build_fleet_store(instances, addresses), StateFileMaterializer(path))

        with pytest.raises(MaterializationError) as excinfo:
            run.execute()

        assert excinfo.value.key == "host-01"
        assert excinfo.value.collection == "addresses"
        assert 'google_compute_address.internal["host-01"] has no "address"' in str(excinfo.value)

    def test_missing_state_file(self, tmp_path):
        with pytest.raises(MaterializationError, match="State file not found"):
            StateFileMaterializer(tmp_path / "terraform.tfstate").materialize("addresses", {"host-01": {}})

    def test_full_run_from_state(self, state_file, instances, addresses):
        result = ProvisioningRun(
            build_fleet_store(instances, addresses), StateFileMaterializer(state_file), domain="fleet.internal"
        ).execute()

        assert result.instances["host-02"].internal_ip == "10.128.0.11"
        assert result.instances["host-02"].handle == "projects/p/zones/us-central1-a/instances/host-02"


class TestTerraformMaterializer:
    """Test the targeted apply workflow."""

    def test_targets_each_key(self, tmp_path):
        fake = FakeTerraform(state=tmp_path / "terraform.tfstate")
        materializer = TerraformMaterializer(tmp_path, runner=fake)

        outputs = materializer.materialize("addresses", {"host-02": {}, "host-01": {}})

        assert fake.calls[0] == ["terraform", "init", "-input=false", "-no-color"]
        apply_cmd = fake.calls[1]
        assert apply_cmd[:2] == ["terraform", "apply"]
        assert '-target=google_compute_address.internal["host-01"]' in apply_cmd
        assert '-target=google_compute_address.internal["host-02"]' in apply_cmd
        assert '-target=google_compute_address.external["host-01"]' in apply_cmd
        assert outputs["host-01"]["internal_address"] == "10.128.0.10"

    def test_init_runs_once(self, tmp_path):
        fake = FakeTerraform(state=tmp_path / "terraform.tfstate")
        materializer = TerraformMaterializer(tmp_path, runner=fake)

        materializer.materialize("addresses", {"host-01": {}})
        materializer.materialize("instances", {"host-01": {}})

        assert [cmd[1] for cmd in fake.calls] == ["init", "apply", "apply"]

    def test_error_surfaced_verbatim(self, tmp_path):
        stderr = "Error: Error creating Address: googleapi: Error 409: already exists\n"
        fake = FakeTerraform(returncode=1, stderr=stderr)

        with pytest.raises(MaterializationError) as excinfo:
            TerraformMaterializer(tmp_path, runner=fake).materialize("addresses", {"host-01": {}})

        assert str(excinfo.value) == stderr.strip()
        assert excinfo.value.collection == "addresses"

    def test_partial_apply_left_in_place(self, tmp_path, instances, addresses):
        fake = FakeTerraform(returncode=1, stderr="Error: quota exceeded", fail_on="google_compute_instance",
                             state=tmp_path / "terraform.tfstate")
        run = ProvisioningRun(build_fleet_store(instances, addresses), TerraformMaterializer(tmp_path, runner=fake))

        with pytest.raises(MaterializationError) as excinfo:
            run.execute()

        assert str(excinfo.value) == "Error: quota exceeded"
        assert set(excinfo.value.partial) == {"addresses"}
        assert not any("destroy" in cmd for cmd in fake.calls)

    def test_replace(self, tmp_path):
        fake = FakeTerraform()
        TerraformMaterializer(tmp_path, runner=fake).replace("instances", ["host-01"])

        assert fake.calls[-1][-1] == '-replace=google_compute_instance.vm["host-01"]'

    def test_binary_missing(self, tmp_path):
        def missing(*args, **kwargs):
            raise FileNotFoundError("terraform")

        with pytest.raises(MaterializationError, match="could not be started"):
            TerraformMaterializer(tmp_path, runner=missing).materialize("addresses", {"host-01": {}})

    def test_automation_env(self, tmp_path):
        seen = {}

        def runner(cmd, cwd, env, text, capture_output, check):
            seen.update(env)
            return subprocess.CompletedProcess(cmd, 0, "", "")

        TerraformMaterializer(tmp_path, env={"PATH": "/usr/bin"}, runner=runner).init()
        assert seen == {"PATH": "/usr/bin", "TF_IN_AUTOMATION": "1"}
