"""
FastAPI endpoint for planning and rendering fleet declarations.

Every request carries its own declarations; the service keeps no state
between requests apart from the loaded configuration.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field
from uvicorn import run as uvicorn_run

from fleetbind.binding import plan
from fleetbind.binding.errors import BindingError, DeclarationError, DependencyError
from fleetbind.generation.declarations import parse_declarations
from fleetbind.generation.terraform.hcl import TerraformRenderer
from fleetbind.generation.yaml_config import FleetConfig, get_fleet_config

logger = logging.getLogger(__name__)


# ================================================================== #
# REQUEST/RESPONSE MODELS
# ================================================================== #


class DeclarationsRequest(BaseModel):
    """Both fleet collections, keyed by logical host name."""

    instances: Dict[str, Dict[str, Any]] = Field(default_factory=dict)
    addresses: Dict[str, Dict[str, Any]] = Field(default_factory=dict)


class PlanResponse(BaseModel):
    """Resolved instances predicted from the declarations."""

    success: bool
    order: List[List[str]]
    instances: Dict[str, Dict[str, Any]]
    count: int


class RenderResponse(BaseModel):
    """Rendered Terraform workspace, file name -> content."""

    success: bool
    files: Dict[str, str]


class HealthCheckResponse(BaseModel):
    """Health check response."""

    status: str
    domain: str
    timestamp: str


# ================================================================== #
# FASTAPI APPLICATION
# ================================================================== #


def create_app(config: Optional[FleetConfig] = None) -> FastAPI:
    """Create and configure FastAPI application."""
    settings = (config or get_fleet_config()).settings
    app = FastAPI(
        title="fleetbind",
        description="Plan and render key-correlated instance/address fleets",
        version="1.0.0",
    )

    def _store(request: DeclarationsRequest):
        try:
            return parse_declarations(request.model_dump())
        except DeclarationError as exc:
            raise HTTPException(status_code=400, detail=str(exc))

    @app.get("/health", response_model=HealthCheckResponse)
    async def health_check() -> HealthCheckResponse:
        """Check API health."""
        return HealthCheckResponse(
            status="healthy",
            domain=settings.domain,
            timestamp=datetime.now(timezone.utc).isoformat(),
        )

    @app.post("/plan", response_model=PlanResponse)
    async def plan_fleet(request: DeclarationsRequest) -> PlanResponse:
        """
        Bind instances to their same-keyed addresses without creating anything.

        Raises:
            HTTPException: 400 for invalid declarations, 422 when binding fails
        """
        store = _store(request)
        try:
            result = plan(
                store,
                defaults=settings.defaults,
                domain=settings.domain,
                project=settings.project,
            )
        except BindingError as exc:
            logger.warning(f"Plan rejected: {exc}")
            raise HTTPException(
                status_code=422,
                detail={"message": str(exc), "key": exc.key, "collection": exc.collection},
            )
        except DependencyError as exc:
            raise HTTPException(status_code=422, detail={"message": str(exc)})

        payload = result.to_dict()
        return PlanResponse(
            success=True,
            order=payload["order"],
            instances=payload["instances"],
            count=len(result.instances),
        )

    @app.post("/render", response_model=RenderResponse)
    async def render_fleet(request: DeclarationsRequest) -> RenderResponse:
        """Render the Terraform workspace for the declarations."""
        store = _store(request)
        try:
            files = TerraformRenderer(settings).render(store)
        except BindingError as exc:
            raise HTTPException(
                status_code=422,
                detail={"message": str(exc), "key": exc.key, "collection": exc.collection},
            )
        return RenderResponse(success=True, files=files)

    return app


# ================================================================== #
# MAIN
# ================================================================== #


def run_api(host: Optional[str] = None, port: Optional[int] = None, config: Optional[FleetConfig] = None) -> None:
    """
    Run the binding API server.

    Args:
        host: Host to bind to (default from settings.api.host)
        port: Port to bind to (default from settings.api.port)
    """
    config = config or get_fleet_config()
    host = host or config.settings.api.host
    port = port or config.settings.api.port
    app = create_app(config)

    logger.info(f"Starting fleetbind API on {host}:{port}")

    uvicorn_run(
        app,
        host=host,
        port=port,
        log_level="info",
    )


if __name__ == "__main__":
    run_api()
