import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI
from sqlalchemy.engine import Engine

from .client_context import ClientContextStore
from .config import is_admin_api_enabled, is_secondary_system_enabled
from .db import init_db
from .errors import register_error_handlers
from .observability.logging import setup_logging, bind_request_id
from .observability.metrics import metrics_endpoint, request_metrics_middleware
from .observability.sentry import init_sentry
from .resolution import SecondaryIdentitySystem
from .roles import RoleCatalog
from .routers import status
from .routers.clients_v1 import router as clients_v1_router
from .routers.oidc_v1 import router as oidc_v1_router
from .routers.role_mappings_v1 import router as role_mappings_v1_router
from .routers.role_overrides_v1 import router as role_overrides_v1_router
from .secondary import load_secondary_system
from .services import build_services


logger = logging.getLogger(__name__)


def create_app(
    *,
    engine: Optional[Engine] = None,
    catalog: Optional[RoleCatalog] = None,
    secondary: Optional[SecondaryIdentitySystem] = None,
    client_context: Optional[ClientContextStore] = None,
) -> FastAPI:
    tags_metadata = [
        {"name": "status", "description": "Service and database health"},
        {"name": "admin", "description": "Client registry, role mappings and overrides"},
        {"name": "oidc", "description": "Hooks called by the identity provider during a flow"},
        {"name": "v1", "description": "Versioned API endpoints"},
    ]

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        # None keeps the configured database's own init rules.
        init_db(engine)
        yield

    app = FastAPI(
        title="Passport Roles API",
        version="0.1.0",
        openapi_tags=tags_metadata,
        lifespan=lifespan,
    )

    if secondary is None and is_secondary_system_enabled():
        secondary = load_secondary_system()
    app.state.services = build_services(
        engine,
        catalog=catalog,
        secondary=secondary,
        client_context=client_context,
    )
    if secondary is None:
        logger.info("No secondary identity system configured; entity tiers are skipped")

    register_error_handlers(app)
    setup_logging()
    init_sentry()

    # Metrics middleware
    app.middleware("http")(request_metrics_middleware)
    # Request ID binder
    @app.middleware("http")
    async def add_request_id(request, call_next):
        rid = request.headers.get("X-Request-Id")
        bind_request_id(rid)
        response = await call_next(request)
        if rid:
            response.headers["X-Request-Id"] = rid
        return response

    # Routers
    app.include_router(status.router)
    app.include_router(status.router, prefix="/v1", tags=["v1"])
    app.include_router(oidc_v1_router)
    if is_admin_api_enabled():
        app.include_router(clients_v1_router)
        app.include_router(role_mappings_v1_router)
        app.include_router(role_overrides_v1_router)
    else:
        logger.info("PASSPORT_ADMIN_API is disabled; administrative routes are not mounted")
    # Prometheus metrics
    app.add_api_route("/metrics", metrics_endpoint, include_in_schema=False)

    return app


app = create_app()
