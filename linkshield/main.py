import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from linkshield.config import settings
from linkshield.database import init_db
from linkshield.api import routes
from linkshield.schemas import HealthResponse
from linkshield.services.container import Services, build_services

logger = logging.getLogger("linkshield")


def configure_logging():
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def create_app(services: Optional[Services] = None) -> FastAPI:
    """
    Build the API application.

    Args:
        services: Pre-built services (tests); when omitted they are built
            at startup and the denylist background sync is started.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        logger.info("🚀 Starting LinkShield...")
        owned = services is None
        if owned:
            init_db()
            app.state.services = build_services()
            app.state.services.denylist_sync.load_cached()
            if settings.DENYLIST_SYNC_ENABLED and settings.DENYLIST_URL:
                app.state.services.denylist_sync.start()
        else:
            app.state.services = services
        yield
        # Shutdown
        logger.info("👋 Shutting down LinkShield...")
        if owned:
            app.state.services.shutdown()

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.VERSION,
        lifespan=lifespan,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(routes.router, prefix=settings.API_PREFIX, tags=["Interception"])

    @app.get("/health", response_model=HealthResponse)
    def health():
        denylist = app.state.services.denylist.current()
        return HealthResponse(
            status="ok",
            version=settings.VERSION,
            protection_enabled=app.state.services.interception.protection_enabled,
            details={"denylist_version": denylist.version, "denylist_domains": len(denylist)},
        )

    @app.get("/")
    def root():
        return {
            "message": "LinkShield API",
            "version": settings.VERSION,
            "docs": "/docs",
        }

    return app


configure_logging()
app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("linkshield.main:app", host="0.0.0.0", port=8000, reload=False)
