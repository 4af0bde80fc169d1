from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool

from aalap_rater.core.dependencies import get_rating_store
from aalap_rater.core.errors import ConcurrentWriteError
from aalap_rater.models.rating import RatedKeysResponse, RatingsResponse, SubmitRatingRequest
from aalap_rater.services.ratings import RatingStore

logger = logging.getLogger(__name__)

router = APIRouter()


def _error(status_code: int, error: str, details=None) -> JSONResponse:
    content = {"error": error}
    if details is not None:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content)


@router.get("/get-ratings", response_model=RatedKeysResponse)
def get_rated_keys(store: RatingStore = Depends(get_rating_store)):
    """
    Distinct s3Keys that already have at least one rating.
    An absent ratings document simply means nothing is rated yet.
    """
    try:
        return RatedKeysResponse(ratedKeys=store.distinct_keys())
    except Exception as e:
        logger.exception("Error fetching rated keys")
        return _error(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Failed to fetch rated keys",
            str(e),
        )


@router.get("/ratings", response_model=RatingsResponse)
def get_ratings(store: RatingStore = Depends(get_rating_store)):
    """
    The full ratings document, in submission order.
    """
    try:
        doc = store.read_document()
    except Exception as e:
        logger.exception("Error fetching ratings")
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to fetch ratings", str(e))

    if doc is None:
        return _error(status.HTTP_404_NOT_FOUND, "No ratings found")

    items, last_modified = doc
    return RatingsResponse(
        totalRatings=len(items),
        ratings=items,
        lastUpdated=last_modified.isoformat() if last_modified else None,
    )


@router.post("/submit-rating")
async def submit_rating(request: Request, store: RatingStore = Depends(get_rating_store)):
    """
    Validate the payload, then append a server-timestamped entry.
    Nothing is written when validation fails.
    """
    try:
        payload = await request.json()
    except ValueError:  # JSONDecodeError, UnicodeDecodeError
        return _error(status.HTTP_400_BAD_REQUEST, "Invalid payload", "Body must be JSON")

    if not isinstance(payload, dict):
        return _error(status.HTTP_400_BAD_REQUEST, "Invalid payload", "Body must be a JSON object")

    try:
        req = SubmitRatingRequest.model_validate(payload)
    except ValidationError as e:
        details = [
            {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
            for err in e.errors()
        ]
        return _error(status.HTTP_400_BAD_REQUEST, "Invalid payload", details)

    entry = req.to_entry()
    try:
        await run_in_threadpool(store.append, entry)
    except ConcurrentWriteError as e:
        logger.warning("Rating for %s lost a write race: %s", entry.s3Key, e)
        return _error(status.HTTP_409_CONFLICT, str(e))
    except Exception as e:
        logger.exception("Error submitting rating for %s", entry.s3Key)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, str(e))

    return {"success": True}
