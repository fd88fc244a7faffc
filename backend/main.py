"""
FastAPI main application entry point.

Routes:
  POST /api/generate  → streams a model reply as raw text
  GET  /api/models    → public model listing and the default id
  POST /api/auth      → site password probe
  GET  /api/health    → liveness probe

Security model:
  - Optional site password and request signature on /api/generate
  - RateLimitMiddleware prevents brute-force on /api/auth
  - Security headers prevent clickjacking, MIME sniffing, etc.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from config import get_settings
from errors import ChatError, InvalidRequestError, scrub_message
from llm.registry import load_registry
from middleware.rate_limit import RateLimitMiddleware
from routers import auth, generate, model_catalog

# ============================================================
# Logging Configuration
# ============================================================
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# httpx logs every request line at INFO
logging.getLogger("httpx").setLevel(logging.WARNING)


# ============================================================
# Application Lifespan (startup/shutdown)
# ============================================================
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle application startup and shutdown events."""
    logger.info("Starting up chat gateway...")

    _settings = get_settings()
    # Raises ConfigurationError here when REQUIRE_MODELS is set and nothing is configured
    registry = load_registry(_settings)
    logger.info(f"Default model: {registry.pick_default_model_id()}")

    if _settings.password_list:
        logger.info("Site password gate enabled")
    if _settings.signing_secret:
        logger.info("Request signing enabled")
    logger.info(f"CORS origins: {_settings.cors_origins_list}")

    yield

    logger.info("Shutting down chat gateway...")


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to every response."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        return response


# ============================================================
# Exception Handlers
# ============================================================
async def chat_error_handler(request: Request, exc: ChatError) -> JSONResponse:
    """Render a typed error as {"error": {"code", "message"}}."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.code}: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected: {exc.code}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    detail = errors[0].get("msg", "Invalid request body") if errors else "Invalid request body"
    error = InvalidRequestError(f"Invalid request body: {detail}")
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=500,
        content={"error": {"code": type(exc).__name__, "message": scrub_message(str(exc))}},
    )


# ============================================================
# Create FastAPI Application
# ============================================================
def create_app() -> FastAPI:
    """Build the application with its middleware stack and routes."""
    settings = get_settings()

    app = FastAPI(
        title="Chat Gateway API",
        description="Multi-provider streaming chat gateway",
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
    )

    app.add_exception_handler(ChatError, chat_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    # Middleware stack (executes bottom-to-top)
    # 1. Security headers (outermost, runs on every response)
    app.add_middleware(SecurityHeadersMiddleware)

    # 2. CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # 3. Rate limiting on the password probe
    app.add_middleware(RateLimitMiddleware)

    app.include_router(generate.router, prefix="/api", tags=["Generate"])
    app.include_router(model_catalog.router, prefix="/api", tags=["Models"])
    app.include_router(auth.router, prefix="/api", tags=["Authentication"])

    @app.get("/api/health")
    async def health_check() -> dict:
        """Liveness probe, confirms the process is running."""
        return {"status": "healthy", "version": "1.0.0"}

    return app


app = create_app()


# ============================================================
# Run with Uvicorn (for development)
# ============================================================
if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
