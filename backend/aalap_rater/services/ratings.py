# backend/aalap_rater/services/ratings.py
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Optional

import orjson
from pydantic import ValidationError

from aalap_rater.core.errors import MalformedRatingsDocument
from aalap_rater.models.rating import RatingEntry
from aalap_rater.services.storage_s3 import ObjectStore, StoredObject

logger = logging.getLogger(__name__)


def _loads(data: bytes) -> Any:
    return orjson.loads(data)


def _dumps(obj: Any) -> bytes:
    return orjson.dumps(obj, option=orjson.OPT_INDENT_2)


def _parse_items(key: str, raw: bytes) -> list[dict[str, Any]]:
    """
    The ratings document must be a JSON array of rating objects.
    Anything else is reported, never repaired. The items are returned as
    parsed so that stored entries can be written back unchanged.
    """
    try:
        data = _loads(raw)
    except orjson.JSONDecodeError as e:
        raise MalformedRatingsDocument(f"{key} is not valid JSON: {e}") from e

    if not isinstance(data, list):
        raise MalformedRatingsDocument(f"{key} must be a JSON array")

    for i, item in enumerate(data):
        if not isinstance(item, dict):
            raise MalformedRatingsDocument(f"{key}[{i}] is not an object")
        try:
            RatingEntry.model_validate(item)
        except ValidationError as e:
            raise MalformedRatingsDocument(f"{key}[{i}] is not a rating entry: {e}") from e
    return data


class RatingStore:
    """
    All ratings live in ONE JSON array at a fixed key:

    - read():          [] when the document doesn't exist yet
    - append(entry):   read the whole array, push, write the whole array back
    - distinct_keys(): unique s3Keys, used to hide already-rated tracks

    Entries already in the document are never rewritten: append() dumps
    the items exactly as parsed and adds the new one at the end.

    append() is a read-modify-write with no locking: two concurrent submits
    can lose one rating (last writer wins). With conditional_writes=True the
    write is pinned to the ETag we read and a lost race raises
    ConcurrentWriteError instead.
    """

    def __init__(self, store: ObjectStore, key: str, conditional_writes: bool = False):
        self._store = store
        self.key = key
        self.conditional_writes = conditional_writes

    # -------------------------
    # Reads
    # -------------------------

    def _fetch(self) -> tuple[list[dict[str, Any]], Optional[StoredObject]]:
        obj = self._store.get_object(self.key)
        if obj is None:
            return [], None
        return _parse_items(self.key, obj.body), obj

    def read(self) -> list[RatingEntry]:
        items, _ = self._fetch()
        return [RatingEntry.model_validate(item) for item in items]

    def read_document(self) -> tuple[list[dict[str, Any]], Optional[datetime]] | None:
        """
        Stored items as written, plus last-modified time, or None if the
        document is absent.
        """
        items, obj = self._fetch()
        if obj is None:
            return None
        return items, obj.last_modified

    def distinct_keys(self) -> list[str]:
        # dict keeps first-seen order
        items, _ = self._fetch()
        return list(dict.fromkeys(item["s3Key"] for item in items))

    # -------------------------
    # Writes
    # -------------------------

    def append(self, entry: RatingEntry) -> None:
        items, obj = self._fetch()
        items.append(entry.to_json())
        body = _dumps(items)

        if not self.conditional_writes:
            self._store.put_json_bytes(self.key, body)
        elif obj is None:
            self._store.put_json_bytes(self.key, body, if_none_match=True)
        else:
            self._store.put_json_bytes(self.key, body, if_match=obj.etag)

        logger.info("Stored rating for %s (%d total)", entry.s3Key, len(items))
