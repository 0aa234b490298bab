import logging
import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .auth.identity import build_identity_extractor
from .cache import build_menu_tree_cache
from .db import init_db
from .errors import register_error_handlers
from .guard import DatabaseMenuTreeLoader, RouteGuard, install_route_guard
from .observability.logging import bind_request_id, bind_user_id, setup_logging
from .observability.metrics import metrics_endpoint, request_metrics_middleware
from .observability.sentry import init_sentry
from .routers import menus, permissions, qr_codes, short_urls, status
from .security.ratelimit import build_api_rate_limiter


logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    tags_metadata = [
        {"name": "status", "description": "Service health and the forbidden landing payload"},
        {"name": "permissions", "description": "Permission checks and caller identity"},
        {"name": "menus", "description": "Role navigation trees"},
        {"name": "qr-codes", "description": "QR codes guarded by ownership scopes"},
        {"name": "short-urls", "description": "Short URLs guarded by ownership scopes"},
    ]
    app = FastAPI(title="Scanly Access API", version="0.1.0", openapi_tags=tags_metadata)

    app.add_event_handler("startup", init_db)
    register_error_handlers(app)
    setup_logging()
    init_sentry(app)

    # CORS from environment configuration
    origins = os.getenv("CORS_ALLOW_ORIGINS", "*")
    allow_origins = [o.strip() for o in origins.split(",") if o.strip()]
    allow_credentials = os.getenv("CORS_ALLOW_CREDENTIALS", "1") in ("1", "true", "TRUE")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow_origins,
        allow_credentials=allow_credentials,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Registered first so it runs innermost, after identity is resolved.
    guard = RouteGuard(DatabaseMenuTreeLoader(), build_menu_tree_cache())
    install_route_guard(app, guard, build_identity_extractor(), build_api_rate_limiter())

    # Metrics middleware
    app.middleware("http")(request_metrics_middleware)

    # Request ID binder
    @app.middleware("http")
    async def add_request_id(request, call_next):
        rid = request.headers.get("X-Request-Id")
        bind_request_id(rid)
        bind_user_id(None)
        response = await call_next(request)
        if rid:
            response.headers["X-Request-Id"] = rid
        return response

    app.include_router(status.router)
    app.include_router(permissions.router)
    app.include_router(menus.router)
    app.include_router(qr_codes.router)
    app.include_router(short_urls.router)
    # Prometheus metrics
    app.add_api_route("/metrics", metrics_endpoint, include_in_schema=False)

    return app


app = create_app()
