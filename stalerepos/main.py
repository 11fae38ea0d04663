"""FastAPI application entry point"""

from contextlib import asynccontextmanager
from datetime import UTC, datetime
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from stalerepos.api import auth, config, public, repositories, scan
from stalerepos.config.database import SessionLocal, init_db
from stalerepos.config.settings import REQUIRED_SETTINGS, settings, validate_required_settings
from stalerepos.jobs.registry import ScanTaskRegistry
from stalerepos.jobs.scan_job import ScanJob
from stalerepos.services.scan.scan_service import recover_interrupted_scans

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

SECURITY_HEADERS = {
    "X-Frame-Options": "DENY",
    "X-Content-Type-Options": "nosniff",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": "camera=(), microphone=(), geolocation=()",
    "Content-Security-Policy": (
        "default-src 'self'; img-src 'self' data: https://avatars.githubusercontent.com; "
        "connect-src 'self' https://api.github.com; frame-ancestors 'none'"
    ),
}


def create_app(
    *,
    scan_job: ScanJob | None = None,
    session_factory=SessionLocal,
    create_tables: bool = True,
) -> FastAPI:
    """Build the app; tests pass their own scan job and session factory and skip table creation."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        validate_required_settings(REQUIRED_SETTINGS)
        if create_tables:
            init_db()
        # Scan tasks do not survive a restart, so no running record has an owner.
        db = session_factory()
        try:
            recover_interrupted_scans(db)
        finally:
            db.close()
        logger.info("%s %s started", settings.APP_NAME, settings.APP_VERSION)
        yield
        await app.state.scan_registry.shutdown()

    app = FastAPI(
        title=settings.APP_NAME,
        description="Find abandoned GitHub repositories",
        version=settings.APP_VERSION,
        lifespan=lifespan,
    )
    app.state.scan_registry = ScanTaskRegistry()
    app.state.scan_job = scan_job or ScanJob(session_factory=session_factory)

    # CORS configuration
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
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

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "ok",
            "timestamp": datetime.now(UTC).isoformat(),
            "message": "Stale repos dashboard is running",
        }

    app.include_router(auth.router)
    app.include_router(scan.router)
    app.include_router(repositories.router)
    app.include_router(config.router)
    app.include_router(public.router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("stalerepos.main:app", host="0.0.0.0", port=8000, reload=settings.DEBUG)
