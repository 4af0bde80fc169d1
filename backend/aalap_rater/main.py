from __future__ import annotations

import logging

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from aalap_rater.api.ratings import router as ratings_router
from aalap_rater.api.tracks import router as tracks_router
from aalap_rater.core.config import Settings, settings as default_settings
from aalap_rater.core.logging import RequestLoggingMiddleware, configure_logging
from aalap_rater.services.catalog import CatalogService
from aalap_rater.services.ratings import RatingStore
from aalap_rater.services.storage_s3 import ObjectStore, build_object_store

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None, object_store: ObjectStore | None = None) -> FastAPI:
    """
    Build the API with its own object store client.
    Pass `object_store` to run against something other than the configured store.
    """
    settings = settings or default_settings
    configure_logging(settings.log_level)

    app = FastAPI(title="Aalap Rating API", version="1.0.0")

    store = object_store if object_store is not None else build_object_store(settings)
    app.state.settings = settings
    app.state.rating_store = RatingStore(
        store,
        settings.ratings_key,
        conditional_writes=settings.ratings_conditional_writes,
    )
    app.state.catalog = CatalogService(settings)
    logger.info(
        "Rating API ready (storage=%s, ratings_key=%s)",
        settings.storage_mode,
        settings.ratings_key,
    )

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware)

    # Routers
    app.include_router(ratings_router, prefix="/api", tags=["ratings"])
    app.include_router(tracks_router, prefix="/api", tags=["tracks"])

    @app.get("/health")
    def health():
        return {"ok": True, "service": "aalap-rater"}

    return app


app = create_app()


def run() -> None:
    uvicorn.run("aalap_rater.main:app", host="0.0.0.0", port=8000)


if __name__ == "__main__":
    run()
