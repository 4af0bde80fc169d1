# backend/aalap_rater/services/catalog.py
from __future__ import annotations

import time
from typing import Callable

from aalap_rater.core.config import Settings
from aalap_rater.models.track import Prompt, Track
from aalap_rater.services.prompts import build_tracks, fetch_catalog_bytes, key_mapper, parse_catalog


class _Cache:
    raw: bytes | None = None
    ts: float = 0.0


class CatalogService:
    """
    prompts.json is public and immutable between generation runs, so the
    API keeps the raw bytes for catalog_cache_ttl_sec.

    This service:
    - caches raw JSON bytes briefly
    - validates shape
    - converts prompts into Tracks via the audio key mapper
    """

    def __init__(
        self,
        settings: Settings,
        fetch: Callable[[str], bytes] = fetch_catalog_bytes,
        clock: Callable[[], float] = time.time,
    ):
        self._settings = settings
        self._fetch = fetch
        self._clock = clock
        self._cache = _Cache()

    def get_prompts(self) -> list[Prompt]:
        return parse_catalog(self._get_cached_raw())

    def get_tracks(self) -> list[Track]:
        s = self._settings
        return build_tracks(
            self.get_prompts(),
            s.public_base,
            key_for=key_mapper(s.audio_index_offset, s.audio_prefix, s.audio_extension),
        )

    def invalidate(self) -> None:
        self._cache.raw = None
        self._cache.ts = 0.0

    def _get_cached_raw(self) -> bytes:
        now = self._clock()
        if self._cache.raw is not None and (now - self._cache.ts) < self._settings.catalog_cache_ttl_sec:
            return self._cache.raw

        raw = self._fetch(self._settings.public_base)
        self._cache.raw = raw
        self._cache.ts = now
        return raw
