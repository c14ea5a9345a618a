import logging
import traceback
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from app.api.v1.router import api_v1_router
from app.core.config import settings, validate_settings_for_production
from app.core.exceptions import (
    AppError,
    BadGatewayError,
    BadRequestError,
    ConflictError,
    NotFoundError,
    ServiceUnavailableError,
    TooManyRequestsError,
)
from app.core.logging import setup_logging
from app.core.metrics import PrometheusMiddleware, metrics_response
from app.core.middleware import RequestLoggingMiddleware
from app.core.rate_limit import limiter
from app.core.sentry import init_sentry
from app.prompt.exceptions import (
    PromptError,
    TemplateExistsError,
    TemplateNotFoundError,
)
from app.provider.exceptions import (
    ProviderConfigError,
    ProviderError,
    RateLimitTimeoutError,
)

# Configure logging before anything else
setup_logging()
init_sentry()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    validate_settings_for_production()
    logger.info("Starting %s (env=%s)...", settings.app_name, settings.app_env)

    yield

    # Shutdown
    logger.info("%s shut down", settings.app_name)


app = FastAPI(
    title="AI Scaffold",
    description="Multi-provider AI chat routing with prompt templates",
    version=settings.app_version,
    lifespan=lifespan,
    docs_url="/api/docs" if settings.app_debug else None,
    redoc_url="/api/redoc" if settings.app_debug else None,
)


# ---------------------------------------------------------------------------
# Error rendering: {"detail": ..., "code": ...}
# ---------------------------------------------------------------------------


def _error_response(exc: AppError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail, "code": exc.code})


def _provider_error_to_app_error(exc: ProviderError) -> AppError:
    if isinstance(exc, ProviderConfigError):
        return ServiceUnavailableError(str(exc))
    if isinstance(exc, RateLimitTimeoutError):
        return TooManyRequestsError(str(exc))
    return BadGatewayError(str(exc))


def _prompt_error_to_app_error(exc: PromptError) -> AppError:
    if isinstance(exc, TemplateNotFoundError):
        return NotFoundError(str(exc))
    if isinstance(exc, TemplateExistsError):
        return ConflictError(str(exc))
    return BadRequestError(str(exc))


@app.exception_handler(AppError)
async def _app_error_handler(request: Request, exc: AppError):
    return _error_response(exc)


@app.exception_handler(ProviderError)
async def _provider_error_handler(request: Request, exc: ProviderError):
    logger.warning("Provider error on %s %s: %s", request.method, request.url.path, exc)
    return _error_response(_provider_error_to_app_error(exc))


@app.exception_handler(PromptError)
async def _prompt_error_handler(request: Request, exc: PromptError):
    return _error_response(_prompt_error_to_app_error(exc))


# Log unhandled exceptions with the traceback
@app.exception_handler(Exception)
async def _unhandled_exception_handler(request: Request, exc: Exception):
    tb = traceback.format_exception(type(exc), exc, exc.__traceback__)
    logger.error("Unhandled %s on %s %s:\n%s", type(exc).__name__, request.method, request.url.path, "".join(tb))
    return JSONResponse(status_code=500, content={"detail": f"{type(exc).__name__}: {exc}", "code": AppError.code})


# Rate limiter
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Request logging + metrics middleware
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(PrometheusMiddleware)

# CORS: parse allowed_origins from settings (comma-separated)
_origins = [o.strip() for o in settings.allowed_origins.split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=_origins,
    allow_credentials=_origins != ["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

# API routes
app.include_router(api_v1_router)


@app.get("/health")
async def health():
    return {"status": "ok", "app": settings.app_name, "version": settings.app_version}


@app.get("/metrics", include_in_schema=False)
async def metrics():
    return metrics_response()
