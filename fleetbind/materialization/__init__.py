"""Materializers.

Public symbols are exposed via lazy attribute access so importing the
interface does not pull in the Terraform-backed implementations.
"""

from __future__ import annotations

from typing import Any

__all__ = (
    "Materializer",
    "DeclaredOutputMaterializer",
    "StateFileMaterializer",
    "TerraformMaterializer",
    "TerraformStateParser",
)


def __getattr__(name: str) -> Any:  # pragma: no cover
    if name == "Materializer":
        from .base import Materializer

        return Materializer
    if name == "DeclaredOutputMaterializer":
        from .declared import DeclaredOutputMaterializer

        return DeclaredOutputMaterializer
    if name == "StateFileMaterializer":
        from .terraform import StateFileMaterializer

        return StateFileMaterializer
    if name == "TerraformMaterializer":
        from .terraform import TerraformMaterializer

        return TerraformMaterializer
    if name == "TerraformStateParser":
        from .state_parser import TerraformStateParser

        return TerraformStateParser
    raise AttributeError(name)


def __dir__() -> list[str]:  # pragma: no cover
    return sorted(list(globals().keys()) + list(__all__))
