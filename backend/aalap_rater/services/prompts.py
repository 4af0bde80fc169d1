# backend/aalap_rater/services/prompts.py
from __future__ import annotations

import logging
import urllib.error
import urllib.request
from typing import Any, Callable, Iterable

import orjson

from aalap_rater.core.errors import CatalogFetchError
from aalap_rater.models.track import Prompt, Track
from aalap_rater.services.audio_keys import (
    AUDIO_EXTENSION,
    AUDIO_INDEX_OFFSET,
    AUDIO_PREFIX,
    audio_key_for_prompt,
)

logger = logging.getLogger(__name__)

PROMPTS_DOCUMENT = "prompts.json"
DEFAULT_TIMEOUT_SEC = 20


def fetch_catalog_bytes(base_url: str, timeout: int = DEFAULT_TIMEOUT_SEC) -> bytes:
    url = f"{base_url.rstrip('/')}/{PROMPTS_DOCUMENT}"
    logger.info("Fetching prompt catalog: %s", url)
    req = urllib.request.Request(url, method="GET", headers={"Accept": "application/json"})
    try:
        with urllib.request.urlopen(req, timeout=timeout) as resp:
            return resp.read()
    except urllib.error.HTTPError as e:
        raise CatalogFetchError(f"GET {url} failed: {e.code} {e.reason}") from e
    except (urllib.error.URLError, OSError, ValueError) as e:
        raise CatalogFetchError(f"GET {url} failed: {e}") from e


def parse_catalog(raw: bytes) -> list[Prompt]:
    """
    prompts.json must be a JSON array of {"prompt": str}. Entries that don't
    fit are skipped, but every prompt keeps its position in the array as its
    index, because audio keys are derived from that position.
    """
    try:
        data: Any = orjson.loads(raw)
    except orjson.JSONDecodeError as e:
        raise CatalogFetchError(f"{PROMPTS_DOCUMENT} is not valid JSON: {e}") from e
    if not isinstance(data, list):
        raise CatalogFetchError(f"{PROMPTS_DOCUMENT} must be a JSON array")

    prompts: list[Prompt] = []
    for i, item in enumerate(data):
        if not isinstance(item, dict) or not isinstance(item.get("prompt"), str):
            logger.warning("Skipping malformed catalog entry at index %d", i)
            continue
        prompts.append(Prompt(index=i, text=item["prompt"]))
    return prompts


def fetch_prompts(base_url: str, timeout: int = DEFAULT_TIMEOUT_SEC) -> list[Prompt]:
    return parse_catalog(fetch_catalog_bytes(base_url, timeout=timeout))


def build_tracks(
    prompts: Iterable[Prompt],
    base_url: str,
    key_for: Callable[[int], str | None] | None = None,
) -> list[Track]:
    """
    Join prompts with their audio objects; prompts without audio are dropped.
    """
    if key_for is None:
        key_for = audio_key_for_prompt
    base = base_url.rstrip("/")

    tracks: list[Track] = []
    for p in prompts:
        key = key_for(p.index)
        if not key:
            continue
        tracks.append(
            Track(s3Key=key, prompt=p.text, audioUrl=f"{base}/{key}", promptIdx=p.index)
        )
    return tracks


def key_mapper(
    offset: int = AUDIO_INDEX_OFFSET,
    prefix: str = AUDIO_PREFIX,
    extension: str = AUDIO_EXTENSION,
) -> Callable[[int], str | None]:
    """Bind configured mapping constants into a one-argument mapper."""
    def _key_for(idx: int) -> str | None:
        return audio_key_for_prompt(idx, offset=offset, prefix=prefix, extension=extension)
    return _key_for
