import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from core.bootstrap import Services, build_services
from core.config_manager import get_server_settings
from web.backend.routers import data

logger = logging.getLogger("schedule_store.api")


def create_app(services: Optional[Services] = None) -> FastAPI:
    app = FastAPI(title="Schedule Store API", version="1.0")
    app.state.services = services if services is not None else build_services()

    allow_origins = get_server_settings()["allowed_origins"]
    allow_credentials = "*" not in allow_origins

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow_origins,
        allow_credentials=allow_credentials,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    async def health_check():
        return {"status": "ok", "service": "Schedule Store"}

    app.include_router(data.router, prefix="/api/v1/data", tags=["data"])

    storage = app.state.services.storage
    logger.info(
        "API ready (provider=%s, prefix=%s)", storage.store.provider_type, storage.prefix
    )
    return app
