"""
Rating session state machine.

    loading -> ready -> submitting -> ready -> ... -> exhausted
       \
        -> failed (catalog or rated-keys fetch failed; load() may be retried)

The server's rated-keys list is the source of truth for what has been rated.
The local cache only remembers what was submitted during this session, so a
track does not reappear if the server list is briefly stale.
"""

from __future__ import annotations

import logging
import time
from enum import Enum
from typing import Callable, Optional, Protocol

from aalap_rater.core.errors import RaterError
from aalap_rater.models.rating import RATING_MAX, RATING_MIN
from aalap_rater.models.track import Prompt, Track
from aalap_rater.services.audio_keys import audio_key_for_prompt
from aalap_rater.services.prompts import build_tracks

logger = logging.getLogger(__name__)

BATCH_SIZE = 5
SCROLL_THRESHOLD_PX = 200
NOTICE_TTL_SEC = 2.0

SUCCESS_MESSAGE = "Rating submitted!"
SUBMIT_ERROR_MESSAGE = "Failed to submit rating. Please try again."
COMPLETION_MESSAGE = "All tracks have been rated. Thank you!"


class SessionState(str, Enum):
    LOADING = "loading"
    READY = "ready"
    SUBMITTING = "submitting"
    EXHAUSTED = "exhausted"
    FAILED = "failed"


class RatingApi(Protocol):
    def rated_keys(self) -> list[str]: ...

    def submit_rating(
        self, s3_key: str, prompt: str, rating: int, prompt_idx: Optional[int] = None
    ) -> None: ...


class RatingSession:
    def __init__(
        self,
        api: RatingApi,
        fetch_prompts: Callable[[], list[Prompt]],
        assets_url: str,
        key_for: Callable[[int], str | None] = audio_key_for_prompt,
        batch_size: int = BATCH_SIZE,
        scroll_threshold: int = SCROLL_THRESHOLD_PX,
        clock: Callable[[], float] = time.monotonic,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        self._api = api
        self._fetch_prompts = fetch_prompts
        self._assets_url = assets_url
        self._key_for = key_for
        self.batch_size = batch_size
        self.scroll_threshold = scroll_threshold
        self._clock = clock

        self.state = SessionState.LOADING
        self.candidates: list[Track] = []
        self._visible_count = 0
        self.local_rated: set[str] = set()
        self.error: Optional[str] = None
        self._notice: Optional[str] = None
        self._notice_at = 0.0

    # -------------------------
    # Views
    # -------------------------

    @property
    def visible(self) -> list[Track]:
        return self.candidates[: self._visible_count]

    @property
    def has_more(self) -> bool:
        return self._visible_count < len(self.candidates)

    @property
    def notice(self) -> Optional[str]:
        """Transient success message; clears itself after NOTICE_TTL_SEC."""
        if self._notice and self._clock() - self._notice_at >= NOTICE_TTL_SEC:
            self._notice = None
        return self._notice

    @property
    def completion_message(self) -> Optional[str]:
        return COMPLETION_MESSAGE if self.state == SessionState.EXHAUSTED else None

    # -------------------------
    # Transitions
    # -------------------------

    def load(self) -> None:
        self.state = SessionState.LOADING
        self.error = None
        try:
            tracks = build_tracks(self._fetch_prompts(), self._assets_url, key_for=self._key_for)
            rated = set(self._api.rated_keys()) | self.local_rated
        except RaterError as e:
            logger.error("Failed to load rating session: %s", e)
            self.error = str(e)
            self.state = SessionState.FAILED
            return

        self.candidates = [t for t in tracks if t.s3Key not in rated]
        self._visible_count = min(self.batch_size, len(self.candidates))
        logger.info(
            "Loaded %d tracks, %d already rated, %d to go",
            len(tracks),
            len(tracks) - len(self.candidates),
            len(self.candidates),
        )
        self._settle()

    def reveal_more(self) -> int:
        """Grow the visible prefix by one batch. Returns how many were added."""
        before = self._visible_count
        self._visible_count = min(before + self.batch_size, len(self.candidates))
        return self._visible_count - before

    def on_scroll(self, scroll_top: float, viewport_height: float, document_height: float) -> int:
        if scroll_top + viewport_height >= document_height - self.scroll_threshold:
            return self.reveal_more()
        return 0

    def submit(self, s3_key: str, rating: int) -> bool:
        """
        Submit a rating for a visible track. On failure the track stays
        visible and unrated and `error` holds a retryable message.
        """
        if isinstance(rating, bool) or not isinstance(rating, int):
            raise ValueError("rating must be an integer")
        if not RATING_MIN <= rating <= RATING_MAX:
            raise ValueError(f"rating must be between {RATING_MIN} and {RATING_MAX}")
        track = next((t for t in self.visible if t.s3Key == s3_key), None)
        if track is None:
            raise KeyError(s3_key)

        self.state = SessionState.SUBMITTING
        self.error = None
        try:
            self._api.submit_rating(track.s3Key, track.prompt, rating, prompt_idx=track.promptIdx)
        except RaterError as e:
            logger.warning("Submit failed for %s: %s", s3_key, e)
            self.error = SUBMIT_ERROR_MESSAGE
            self.state = SessionState.READY
            return False

        self._remove(track)
        self.local_rated.add(track.s3Key)
        self._notice = SUCCESS_MESSAGE
        self._notice_at = self._clock()
        if not self.visible:
            self.reveal_more()
        self._settle()
        return True

    def _remove(self, track: Track) -> None:
        idx = self.candidates.index(track)
        del self.candidates[idx]
        if idx < self._visible_count:
            self._visible_count -= 1

    def _settle(self) -> None:
        self.state = SessionState.READY if self.candidates else SessionState.EXHAUSTED
