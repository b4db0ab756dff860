"""
Offline Attendance Sync Service - Main Application Entry Point.

Local sidecar used by the attendance app on the device. It handles:
- Check-in/Check-out capture with duplicate (cooldown) prevention
- Durable offline storage of punches
- Reconciliation of offline punches with the attendance server
- Periodic and connectivity-triggered background sync
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from attendance_sync.api.routes.attendance import router as attendance_router
from attendance_sync.api.routes.sync import router as sync_router
from attendance_sync.container import Container, build_container
from attendance_sync.core.config import Settings, settings
from attendance_sync.core.logging import get_logger, setup_logging

logger = get_logger(__name__)


def create_app(
    app_settings: Optional[Settings] = None,
    container: Optional[Container] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    A prebuilt container may be passed in (tests inject fakes this way);
    otherwise one is built from settings during startup.
    """
    app_settings = app_settings or settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Application lifespan manager.
        Handles startup and shutdown events.
        """
        # Startup
        setup_logging(app_settings.LOG_LEVEL)
        logger.info("Starting Offline Attendance Sync Service...")

        app.state.container = container or build_container(app_settings)
        logger.info("Local database and sync core initialized")

        unsynced = await app.state.container.attendance.unsynced_count()
        logger.info(f"{unsynced} attendance records pending sync")

        await app.state.container.scheduler.start()
        if app_settings.SYNC_ON_START and unsynced:
            app.state.container.scheduler.trigger("startup")

        logger.info("Offline Attendance Sync Service startup complete")

        yield

        # Shutdown
        logger.info("Offline Attendance Sync Service shutting down...")

        logger.info("Stopping sync scheduler...")
        await app.state.container.scheduler.stop()
        logger.info("Sync scheduler stopped")

        if container is None:
            app.state.container.dispose()
            logger.info("Local database closed")

        logger.info("Offline Attendance Sync Service shutdown complete")

    app = FastAPI(
        title=app_settings.APP_NAME,
        version=app_settings.APP_VERSION,
        description="Offline attendance capture and reconciliation for the attendance app",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Configure CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.cors_origins_list,
        allow_credentials=app_settings.CORS_ALLOW_CREDENTIALS,
        allow_methods=app_settings.CORS_ALLOW_METHODS,
        allow_headers=app_settings.CORS_ALLOW_HEADERS,
    )

    # Include routers
    app.include_router(attendance_router, prefix="/api/v1")
    app.include_router(sync_router, prefix="/api/v1")

    @app.get("/health", tags=["health"])
    async def health_check():
        """
        Health check endpoint for the host app and monitoring.
        """
        return {
            "status": "healthy",
            "service": app_settings.APP_NAME,
            "version": app_settings.APP_VERSION,
        }

    @app.get("/ready", tags=["health"])
    async def readiness_check():
        """
        Readiness check endpoint.
        Verifies that the local database answers and the scheduler is running.
        """
        core: Container = app.state.container
        db_ready = False
        try:
            await core.attendance.unsynced_count()
            db_ready = True
        except Exception as e:
            logger.warning(f"Local database not ready: {e}")

        scheduler_ready = core.scheduler.running
        all_ready = db_ready and scheduler_ready

        return {
            "status": "ready" if all_ready else "not_ready",
            "checks": {
                "database": "ok" if db_ready else "error",
                "scheduler": "ok" if scheduler_ready else "error",
                "network": "online" if core.connectivity.is_online else "offline",
            },
        }

    @app.get("/", tags=["root"])
    async def root():
        """
        Root endpoint with service information.
        """
        return {
            "service": app_settings.APP_NAME,
            "version": app_settings.APP_VERSION,
            "status": "running",
            "docs": "/docs",
        }

    return app


app = create_app()
