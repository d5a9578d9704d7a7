"""FastAPI application factory for Tenancy-Engine."""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from tenancy_engine.common.config import get_settings
from tenancy_engine.common.logging import get_logger, setup_logging
from tenancy_engine.common.schemas import ErrorResponse, HealthResponse

logger = get_logger("app")

_ERROR_CODES = {
    400: "VALIDATION_ERROR",
    401: "UNAUTHORIZED",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    500: "BACKEND_ERROR",
}


def _error(status_code: int, message: str, detail: str = "", headers=None) -> JSONResponse:
    body = ErrorResponse(
        error=message,
        code=_ERROR_CODES.get(status_code, f"HTTP_{status_code}"),
        detail=detail,
    )
    return JSONResponse(status_code=status_code, content=body.model_dump(), headers=headers)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return _error(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    fields = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
        fields.append(f"{loc}: {err.get('msg', 'invalid')}" if loc else err.get("msg", "invalid"))
    return _error(400, "Invalid request", detail="; ".join(fields))


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return _error(500, str(exc) or exc.__class__.__name__)


def create_app() -> FastAPI:
    settings = get_settings()
    setup_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        from tenancy_engine.deps import get_db, get_tenant_registry
        db = get_db()
        await db.init()
        if settings.auto_initialize:
            await get_tenant_registry().initialize()
        yield
        # Shutdown
        await db.close()

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    @app.get("/health", response_model=HealthResponse)
    async def health():
        return HealthResponse(version=settings.api_version)

    # Mount routers
    from tenancy_engine.tenants.router import router as tenant_router
    from tenancy_engine.tenants.binding import router as context_router

    prefix = settings.api_prefix
    app.include_router(tenant_router, prefix=prefix, tags=["tenants"])
    app.include_router(context_router, prefix=prefix, tags=["tenant-context"])

    return app
