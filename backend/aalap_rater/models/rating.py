from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StrictStr, field_validator

RATING_MIN = 1
RATING_MAX = 10


def utc_timestamp() -> str:
    """ISO-8601 UTC with millisecond precision, e.g. 2025-06-01T12:00:00.000Z"""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class RatingEntry(BaseModel):
    """
    One persisted rating. Used to validate stored items and build new ones;
    stored items are written back exactly as they were read.
    """
    model_config = ConfigDict(extra="allow")

    s3Key: str
    prompt: Optional[str] = None
    rating: Union[int, float]
    timestamp: Optional[str] = None
    promptIdx: Optional[int] = None

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class SubmitRatingRequest(BaseModel):
    s3Key: StrictStr = Field(min_length=1)
    prompt: StrictStr = Field(min_length=1)
    rating: Any
    promptIdx: Any = None

    @field_validator("rating")
    @classmethod
    def _rating_is_number(cls, v: Any) -> int:
        # bool is an int subclass; JSON true/false is not a rating
        if isinstance(v, bool) or not isinstance(v, (int, float)):
            raise ValueError("rating must be a number")
        if isinstance(v, float) and not math.isfinite(v):
            raise ValueError("rating must be a finite number")
        if v != int(v):
            raise ValueError("rating must be a whole number")
        v = int(v)
        if not RATING_MIN <= v <= RATING_MAX:
            raise ValueError(f"rating must be between {RATING_MIN} and {RATING_MAX}")
        return v

    @field_validator("promptIdx")
    @classmethod
    def _keep_integer_index(cls, v: Any) -> Optional[int]:
        if isinstance(v, int) and not isinstance(v, bool):
            return v
        return None

    def to_entry(self) -> RatingEntry:
        return RatingEntry(
            s3Key=self.s3Key,
            prompt=self.prompt,
            rating=self.rating,
            timestamp=utc_timestamp(),
            promptIdx=self.promptIdx,
        )


class RatedKeysResponse(BaseModel):
    ratedKeys: list[str]


class RatingsResponse(BaseModel):
    success: bool = True
    totalRatings: int
    ratings: list[dict[str, Any]]
    lastUpdated: Optional[str] = None
