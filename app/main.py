"""
Blogsite - Main Application Entry Point
"""

import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from app.api import blogs, public
from app.core.config import Settings, get_settings
from app.core.database import close_db, configure_engine, init_db
from app.core.exceptions import register_exception_handlers
from app.middleware.security import setup_security_middleware
from app.services.media import UPLOAD_URL_PREFIX, build_uploader

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    settings: Settings = app.state.settings
    logger.info("Starting %s...", settings.app_name)
    logger.info("Environment: %s", settings.environment)
    logger.info("Media backend: %s", settings.media_backend)
    if settings.media_backend == "local":
        Path(settings.upload_dir).mkdir(parents=True, exist_ok=True)
    if not settings.admin_secret:
        logger.warning("ADMIN_SECRET is not set: all admin endpoints will reject requests")
    await init_db()
    logger.info("Database initialized")
    yield
    # Shutdown
    logger.info("Shutting down %s...", settings.app_name)
    await close_db()
    logger.info("Database connections closed")


def create_app(settings: Settings | None = None) -> FastAPI:
    """
    Build the application from settings.

    The deployment knobs are plain settings: ``static_root``,
    ``admin_secret``, ``media_backend`` and ``port``.
    """
    settings = settings or get_settings()
    configure_engine(settings)

    app = FastAPI(
        title=f"{settings.app_name} API",
        description="Blog publishing platform with SEO-rendered public pages",
        version=settings.app_version,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.settings = settings
    app.state.uploader = build_uploader(settings)

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["*"],
    )
    setup_security_middleware(app, settings)
    register_exception_handlers(app)

    @app.get("/health", tags=["Health"])
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy", "version": settings.app_version}

    # Include routers
    app.include_router(blogs.router, prefix="/api/blogs", tags=["Blogs"])
    app.include_router(blogs.frontend_router, tags=["Blogs"])

    # Static files
    if settings.media_backend == "local":
        app.mount(
            UPLOAD_URL_PREFIX,
            StaticFiles(directory=settings.upload_dir, check_dir=False),
            name="uploads",
        )
    if Path(settings.static_root).is_dir():
        app.mount(
            "/static",
            StaticFiles(directory=settings.static_root),
            name="static",
        )

    # Public pages last: it ends with the catch-all slug route
    app.include_router(public.router, tags=["Public"])

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
