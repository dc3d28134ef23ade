"""FastAPI application for the quota controller.

The controller's loops run inside the application lifespan; the registry
and usage routers are bound to the controller through dependency overrides.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from .__version__ import __version__
from .config.settings import ControllerSettings, get_settings
from .controller import QuotaController, build_controller
from .core.exceptions import NeoQuotaError, create_error_response, get_http_status_code
from .features.tenants.routers.tenant_router import (
    get_reconciliation_engine,
    get_registry_service,
    tenant_router,
)
from .features.usage.routers.usage_router import get_usage_repository, usage_router

logger = logging.getLogger(__name__)


def bind_controller(app: FastAPI, controller: QuotaController) -> None:
    """Point the routers' dependencies at a controller."""
    app.state.controller = controller
    app.dependency_overrides[get_registry_service] = lambda: controller.registry
    app.dependency_overrides[get_reconciliation_engine] = lambda: controller.engine
    app.dependency_overrides[get_usage_repository] = lambda: controller.usage_repository


def register_exception_handlers(app: FastAPI, is_production: bool = False) -> None:
    @app.exception_handler(NeoQuotaError)
    async def neo_quota_error_handler(request: Request, exc: NeoQuotaError):
        status_code = get_http_status_code(exc)
        if status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc}")
        return JSONResponse(status_code=status_code, content=create_error_response(exc))

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        message = "An unexpected error occurred" if is_production else str(exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": {"code": "INTERNAL_ERROR", "message": message, "details": {}, "type": type(exc).__name__}},
        )


def create_app(
    settings: Optional[ControllerSettings] = None,
    controller: Optional[QuotaController] = None,
    start_controller: bool = True,
) -> FastAPI:
    """Create the controller API.

    Args:
        settings: Settings, ``get_settings()`` when omitted
        controller: Pre-built controller (tests); built from settings otherwise
        start_controller: Whether the lifespan starts the controller loops
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        active = controller or await build_controller(settings)
        bind_controller(app, active)
        if start_controller:
            await active.start()
        try:
            yield
        finally:
            if start_controller:
                await active.stop()

    app = FastAPI(
        title="Neo Quota Controller",
        version=__version__,
        description="Tenant quota, RBAC and cost reconciliation controller",
        lifespan=lifespan,
    )
    if controller is not None:
        bind_controller(app, controller)
    register_exception_handlers(app, settings.is_production)

    app.include_router(tenant_router, prefix="/api/v1")
    app.include_router(usage_router, prefix="/api/v1")

    @app.get("/health", tags=["System"])
    async def health():
        active: Optional[QuotaController] = getattr(app.state, "controller", None)
        return {
            "status": "ok",
            "version": __version__,
            "controller_running": bool(active and active.running),
            "degraded_tenants": len(active.engine.degraded()) if active else 0,
        }

    logger.info(f"Created {settings.app_name} API")
    return app
