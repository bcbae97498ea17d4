"""Terraform HCL rendering and resource addressing."""

from fleetbind.generation.terraform.hcl import (
    TerraformRenderError,
    TerraformRenderer,
    TerraformWorkspace,
    render_workspace,
)
from fleetbind.generation.terraform.targeting import (
    ResourceAddress,
    format_address,
    parse_address,
    replace_args,
    target_args,
)

__all__ = [
    "ResourceAddress",
    "TerraformRenderError",
    "TerraformRenderer",
    "TerraformWorkspace",
    "format_address",
    "parse_address",
    "render_workspace",
    "replace_args",
    "target_args",
]
