import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from unimark_admin.config.settings import Settings, settings as default_settings
from unimark_admin.core.errors import AdminError
from unimark_admin.database.session import Database
from unimark_admin.identity.keycloak_client import KeycloakClient
from unimark_admin.modules.auth import routes as auth_routes
from unimark_admin.modules.auth.service import TokenCache
from unimark_admin.modules.permission_sets import routes as permission_sets_routes
from unimark_admin.modules.profiles import routes as profiles_routes
from unimark_admin.modules.roles import routes as roles_routes
from unimark_admin.modules.users import routes as users_routes

logger = logging.getLogger(__name__)


class SecurityHeadersMiddleware:
    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        async def send_with_headers(message):
            if message["type"] == "http.response.start":
                message.setdefault("headers", [])
                message["headers"].extend([
                    (b"X-Content-Type-Options", b"nosniff"),
                    (b"X-Frame-Options", b"DENY"),
                    (b"X-XSS-Protection", b"1; mode=block"),
                ])
            await send(message)

        await self.app(scope, receive, send_with_headers)


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%SZ",
    )


def _validation_details(exc: RequestValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ()) if item != "body")
        parts.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return "; ".join(parts)


def register_exception_handlers(app: FastAPI, settings: Settings) -> None:
    @app.exception_handler(AdminError)
    async def admin_error_handler(request: Request, exc: AdminError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        # Unknown paths and unsupported methods
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail, "details": None},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={"error": "Invalid request", "details": _validation_details(exc)},
        )

    @app.exception_handler(SQLAlchemyError)
    async def database_error_handler(request: Request, exc: SQLAlchemyError):
        logger.exception("Database error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"error": "Database error", "details": None})

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled exception: %s", exc)
        if settings.is_production:
            return JSONResponse(status_code=500, content={"error": "Internal server error", "details": None})
        return JSONResponse(status_code=500, content={"error": "Internal server error", "details": str(exc)})


def create_app(
    settings: Optional[Settings] = None,
    database: Optional[Database] = None,
    identity_client: Optional[KeycloakClient] = None,
) -> FastAPI:
    settings = settings or default_settings
    configure_logging(settings)

    limiter = Limiter(
        key_func=get_remote_address,
        default_limits=[settings.rate_limit],
        enabled=settings.rate_limit_enabled,
    )
    app = FastAPI(
        title=settings.app_name,
        debug=settings.debug,
        redirect_slashes=False,
    )
    app.state.settings = settings
    app.state.database = database or Database.from_settings(settings)
    app.state.identity_client = identity_client or KeycloakClient.from_settings(settings)
    app.state.token_cache = TokenCache(ttl_sec=settings.auth_cache_ttl_sec, max_size=settings.auth_cache_max_size)
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    register_exception_handlers(app, settings)

    app.add_middleware(SlowAPIMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.get_cors_origins_list(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include module routes
    app.include_router(auth_routes.router, prefix="/api")
    app.include_router(roles_routes.router, prefix="/api")
    app.include_router(profiles_routes.router, prefix="/api")
    app.include_router(permission_sets_routes.router, prefix="/api")
    app.include_router(users_routes.router, prefix="/api")

    @app.on_event("startup")
    async def startup_event():
        logger.info("Application startup (%s)", settings.environment)
        if settings.should_create_schema():
            app.state.database.create_schema()

    @app.on_event("shutdown")
    async def shutdown_event():
        app.state.database.close()
        app.state.identity_client.close()
        logger.info("Application shutdown")

    @app.get("/")
    async def root():
        return {"message": f"Welcome to {settings.app_name}", "status": "healthy"}

    @app.get("/health")
    @limiter.exempt
    async def health():
        return {"status": "healthy"}

    @app.get("/ready")
    @limiter.exempt
    def ready():
        """Readiness probe: the database must answer."""
        if not app.state.database.ping():
            return JSONResponse(status_code=503, content={"status": "unavailable", "database": "down"})
        return {"status": "ready", "database": "up"}

    return app


app = create_app()
