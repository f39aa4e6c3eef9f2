import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from telemed.api.routes import telemed as telemed_routes
from telemed.core.config import settings
from telemed.core.logging import configure_logging
from telemed.db.base import Base
from telemed.db.session import SessionLocal, engine
from telemed.services.call_requests import CallRequestService
from telemed.services.events import EventBroadcaster
from telemed.services.request_store import CallRequestRepository, build_repository
import telemed.models  # noqa: F401


logger = logging.getLogger(__name__)


def create_app(repository: CallRequestRepository | None = None) -> FastAPI:
    configure_logging()
    app = FastAPI(title="SmartMed Telemed API")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    use_database = repository is None and settings.call_request_store == "database"
    if repository is None:
        repository = build_repository(settings.call_request_store, SessionLocal)
    broadcaster = EventBroadcaster()
    app.state.broadcaster = broadcaster
    app.state.call_requests = CallRequestService(repository, broadcaster)

    @app.on_event("startup")
    def startup() -> None:
        if use_database:
            Base.metadata.create_all(bind=engine)
        logger.info(
            "telemed_startup store=%s environment=%s",
            type(repository).__name__,
            settings.environment,
        )

    # Routers
    app.include_router(telemed_routes.router, prefix="/api/telemed", tags=["telemed"])

    @app.get("/")
    def root() -> dict:
        return {
            "service": "SmartMed Telemed API",
            "docs": "/docs",
            "health": "/healthz",
        }

    @app.get("/healthz")
    def healthz() -> dict:
        return {"status": "ok"}

    return app


app = create_app()


def run() -> None:
    import uvicorn

    uvicorn.run("telemed.main:app", host=settings.host, port=settings.port, reload=settings.environment == "dev")


if __name__ == "__main__":
    run()
