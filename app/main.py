from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from app.core.config import get_settings
from app.core.logger import get_logger
from app.services.container import PipelineServices, create_services
from app.api import routes_transcripts, routes_cloud, routes_session, routes_sync, routes_remote, routes_health, routes_websocket

log = get_logger(__name__)


def create_app(services: Optional[PipelineServices] = None) -> FastAPI:
    """Build the API. Pass `services` to inject pre-built stores (tests)."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        svc = services or create_services(get_settings())
        app.state.services = svc
        if svc.sync is not None and svc.settings.AUTO_SYNC:
            await svc.sync.start()
        try:
            yield
        finally:
            # Shutdown
            await svc.aclose()

    app = FastAPI(
        title="Transcript Cloud API",
        description="Transcript significance ranking with tiered persistence",
        version="1.0.0",
        lifespan=lifespan,
    )

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=get_settings().CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routers
    app.include_router(routes_transcripts.router, prefix="/transcripts", tags=["Transcripts"])
    app.include_router(routes_cloud.router, prefix="/cloud", tags=["Cloud"])
    app.include_router(routes_session.router, prefix="/session", tags=["Session"])
    app.include_router(routes_sync.router, prefix="/sync", tags=["Sync"])
    app.include_router(routes_remote.router, prefix="/remote", tags=["Remote"])
    app.include_router(routes_health.router, prefix="/health", tags=["Health"])
    app.include_router(routes_websocket.router, tags=["WebSocket"])

    @app.get("/")
    def root():
        return {"status": "Transcript Cloud backend running"}

    return app


app = create_app()
