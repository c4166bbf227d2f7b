from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from slowapi.errors import RateLimitExceeded
from typing import Optional
import logging
import os

from core.config import Settings, load_settings, setup_logging
from core.database import DatabaseManager
from core.errors import AppError
from core.limiter import limiter, rate_limit_exceeded_handler
from api.auth_routes import router as auth_router
from api.recipe_routes import router as recipes_router
from api.profile_routes import router as profile_router
from api.saved_routes import router as saved_router

logger = logging.getLogger(__name__)

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
    "Cross-Origin-Resource-Policy": "same-origin",
}


# --- Error handlers: every failure leaves as {"message": ...} ---
async def app_error_handler(request: Request, exc: AppError):
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message})


async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


async def request_validation_handler(request: Request, exc: RequestValidationError):
    logger.info(f"Rejected request body on {request.method} {request.url.path}: {exc.errors()}")
    return JSONResponse(status_code=400, content={"message": "Invalid request body"})


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(status_code=500, content={"message": "Server error"})


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the API. Without explicit settings they are read from .env/environment."""
    if settings is None:
        settings = load_settings()
        setup_logging(settings)

    app = FastAPI(
        title="What Will You Cook API",
        description="Share recipes, search by ingredients, rate, comment and bookmark",
        version="1.0.0",
    )
    app.state.settings = settings
    app.state.db = DatabaseManager(settings.database_path)
    app.state.limiter = limiter

    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def security_headers(request: Request, call_next):
        response = await call_next(request)
        for header, value in SECURITY_HEADERS.items():
            response.headers.setdefault(header, value)
        return response

    app.include_router(auth_router, prefix="/api/auth", tags=["authentication"])
    app.include_router(recipes_router, prefix="/api/recipes")
    app.include_router(saved_router, prefix="/api/saved-recipes")
    app.include_router(profile_router, prefix="/api/protected")

    @app.get("/", response_class=PlainTextResponse)
    async def read_index():
        return "What Will You Cook backend is running"

    @app.get("/health")
    async def health_check():
        return {"status": "healthy"}

    logger.info(f"App created (env={settings.environment}, origins={settings.allowed_origins})")
    return app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:create_app",
        factory=True,
        host=os.getenv("HOST", "127.0.0.1"),
        port=int(os.getenv("PORT", "5000")),
    )
