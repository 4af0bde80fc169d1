from __future__ import annotations

from fastapi import Request

from aalap_rater.services.catalog import CatalogService
from aalap_rater.services.ratings import RatingStore


def get_rating_store(request: Request) -> RatingStore:
    """The RatingStore built by create_app() for this application."""
    return request.app.state.rating_store


def get_catalog_service(request: Request) -> CatalogService:
    return request.app.state.catalog
