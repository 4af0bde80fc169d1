from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse

from aalap_rater.core.dependencies import get_catalog_service, get_rating_store
from aalap_rater.core.errors import CatalogFetchError
from aalap_rater.models.track import Track
from aalap_rater.services.catalog import CatalogService
from aalap_rater.services.ratings import RatingStore

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/tracks", response_model=list[Track])
def list_tracks(
    unrated: bool = Query(default=False),
    catalog: CatalogService = Depends(get_catalog_service),
    store: RatingStore = Depends(get_rating_store),
):
    """
    Every prompt that has generated audio, in catalog order.
    With ?unrated=true, tracks that already have a rating are left out.
    """
    try:
        tracks = catalog.get_tracks()
    except CatalogFetchError as e:
        logger.error("Prompt catalog unavailable: %s", e)
        return JSONResponse(status_code=status.HTTP_502_BAD_GATEWAY, content={"error": str(e)})

    if not unrated:
        return tracks

    try:
        rated = set(store.distinct_keys())
    except Exception as e:
        logger.exception("Error fetching rated keys")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Failed to fetch rated keys", "details": str(e)},
        )
    return [t for t in tracks if t.s3Key not in rated]
