#!/usr/bin/env python3
"""
Command line entry point.

    fleetbind plan fleet.yaml
    fleetbind render fleet.yaml -o ./terraform
    fleetbind apply fleet.yaml --workdir ./terraform
    fleetbind diff old.yaml new.yaml
    fleetbind target host-01 --replace
    fleetbind serve --port 8000
"""

from __future__ import annotations

import argparse
import json
import logging
import shlex
import sys
from pathlib import Path
from typing import List, Optional

from fleetbind.binding import ProvisioningRun, diff_bindings, plan
from fleetbind.binding.errors import FleetbindError, MaterializationError
from fleetbind.generation.declarations import load_declarations
from fleetbind.generation.terraform.hcl import TerraformRenderer
from fleetbind.generation.terraform.targeting import format_address, replace_args, target_args
from fleetbind.generation.yaml_config import FleetConfig, get_fleet_config
from fleetbind.models import ADDRESSES, INSTANCES, RunResult

logger = logging.getLogger("fleetbind")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fleetbind",
        description="Bind keyed instance declarations to their same-keyed addresses.",
    )
    parser.add_argument("--config", help="Path to fleet_config.yaml (default: FLEETBIND_CONFIG or search path)")
    parser.add_argument("--log-level", help="Override settings.logging.level")
    sub = parser.add_subparsers(dest="command", required=True)

    plan_cmd = sub.add_parser("plan", help="Resolve instances against predicted address outputs")
    plan_cmd.add_argument("declarations", help="Declarations YAML file")
    plan_cmd.add_argument("--json", action="store_true", help="Print the resolved instances as JSON")

    render_cmd = sub.add_parser("render", help="Render the Terraform workspace")
    render_cmd.add_argument("declarations", help="Declarations YAML file")
    render_cmd.add_argument("-o", "--output", help="Target directory (default: settings.terraform.workdir)")

    apply_cmd = sub.add_parser("apply", help="Render, then materialize tier by tier with Terraform")
    apply_cmd.add_argument("declarations", help="Declarations YAML file")
    apply_cmd.add_argument("--workdir", help="Terraform working directory (default: settings.terraform.workdir)")
    apply_cmd.add_argument(
        "--from-state",
        action="store_true",
        help="Do not run Terraform; read outputs from the existing state file",
    )
    apply_cmd.add_argument("--json", action="store_true", help="Print the resolved instances as JSON")

    diff_cmd = sub.add_parser("diff", help="Compare the resolved instances of two declaration files")
    diff_cmd.add_argument("previous", help="Declarations currently applied")
    diff_cmd.add_argument("current", help="Declarations to apply next")

    target_cmd = sub.add_parser("target", help="Print the terraform command addressing single entities")
    target_cmd.add_argument("keys", nargs="+", help="Entity keys, e.g. host-01")
    target_cmd.add_argument("--collection", choices=(INSTANCES, ADDRESSES), default=INSTANCES)
    target_cmd.add_argument("--replace", action="store_true", help="Mark the entities for recreation")

    serve_cmd = sub.add_parser("serve", help="Run the HTTP API")
    serve_cmd.add_argument("--host")
    serve_cmd.add_argument("--port", type=int)

    return parser


# ------------------------------------------------------------------ #
# Commands
# ------------------------------------------------------------------ #


def cmd_plan(args: argparse.Namespace, config: FleetConfig) -> int:
    settings = config.settings
    store = load_declarations(args.declarations)
    result = plan(store, defaults=settings.defaults, domain=settings.domain, project=settings.project)
    _print_result(result, as_json=args.json)
    return 0


def cmd_render(args: argparse.Namespace, config: FleetConfig) -> int:
    store = load_declarations(args.declarations)
    output = Path(args.output or config.settings.terraform.workdir)
    workspace = TerraformRenderer(config.settings).write_workspace(store, output)
    for path in workspace.files.values():
        print(path)
    return 0


def cmd_apply(args: argparse.Namespace, config: FleetConfig) -> int:
    from fleetbind.materialization.terraform import StateFileMaterializer, TerraformMaterializer

    settings = config.settings
    store = load_declarations(args.declarations)
    workdir = Path(args.workdir or settings.terraform.workdir)
    if args.from_state:
        materializer = StateFileMaterializer(workdir / settings.terraform.state_file, settings.terraform)
    else:
        TerraformRenderer(settings).write_workspace(store, workdir)
        materializer = TerraformMaterializer(workdir, settings.terraform)

    run = ProvisioningRun(store, materializer, defaults=settings.defaults, domain=settings.domain)
    try:
        result = run.execute()
    except MaterializationError as exc:
        done = ", ".join(sorted(exc.partial)) or "nothing"
        logger.error(f"Materialized before failure: {done}. Left in place for inspection.")
        raise
    _print_result(result, as_json=args.json)
    return 0


def cmd_diff(args: argparse.Namespace, config: FleetConfig) -> int:
    settings = config.settings
    previous = plan(load_declarations(args.previous), defaults=settings.defaults, domain=settings.domain)
    current = plan(load_declarations(args.current), defaults=settings.defaults, domain=settings.domain)
    changes = diff_bindings(previous.instances, current.instances)
    resource = settings.terraform.instance_resource
    for label, keys in (("+", changes.create), ("~", changes.update), ("-", changes.destroy)):
        for key in keys:
            print(f"  {label} {format_address(resource, key)}")
    print(changes.summary())
    return 0


def cmd_target(args: argparse.Namespace, config: FleetConfig) -> int:
    tf = config.settings.terraform
    if args.collection == INSTANCES:
        resources = [tf.instance_resource]
    else:
        resources = [tf.internal_address_resource, tf.external_address_resource]
    addresses = [format_address(resource, key) for resource in resources for key in args.keys]
    flags = replace_args(addresses) if args.replace else target_args(addresses)
    print(" ".join(shlex.quote(part) for part in [tf.binary, "apply", *flags]))
    return 0


def cmd_serve(args: argparse.Namespace, config: FleetConfig) -> int:
    from fleetbind.api import run_api

    run_api(host=args.host, port=args.port, config=config)
    return 0


COMMANDS = {
    "plan": cmd_plan,
    "render": cmd_render,
    "apply": cmd_apply,
    "diff": cmd_diff,
    "target": cmd_target,
    "serve": cmd_serve,
}


def _print_result(result: RunResult, as_json: bool) -> None:
    if as_json:
        print(json.dumps(result.to_dict(), indent=2, sort_keys=True))
        return
    for key in sorted(result.instances):
        inst = result.instances[key]
        print(f"{key}\t{inst.hostname}\t{inst.zone}\t{inst.internal_ip}\t{inst.external_ip}")


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = get_fleet_config(args.config)
    except (FileNotFoundError, FleetbindError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    level = (args.log_level or config.settings.logging.level).upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        return COMMANDS[args.command](args, config)
    except FleetbindError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    except FileNotFoundError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
