from __future__ import annotations

import http.client
import json
import urllib.error
import urllib.request
from dataclasses import dataclass
from typing import Any, Dict, Optional

from aalap_rater.core.errors import RatingApiError

DEFAULT_TIMEOUT_SEC = 20


@dataclass
class HttpResult:
    status: int
    body_text: str

    def json(self) -> Any:
        try:
            return json.loads(self.body_text)
        except ValueError:
            return None


def http_json(
    method: str,
    url: str,
    payload: Optional[Dict[str, Any]] = None,
    timeout: int = DEFAULT_TIMEOUT_SEC,
) -> HttpResult:
    data = None
    req_headers = {"Accept": "application/json"}

    if payload is not None:
        data = json.dumps(payload).encode("utf-8")
        req_headers["Content-Type"] = "application/json"

    req = urllib.request.Request(url, data=data, method=method, headers=req_headers)

    try:
        with urllib.request.urlopen(req, timeout=timeout) as resp:
            body = resp.read().decode("utf-8", errors="replace")
            return HttpResult(status=resp.status, body_text=body)
    except urllib.error.HTTPError as e:
        body = e.read().decode("utf-8", errors="replace") if e.fp else str(e)
        return HttpResult(status=e.code, body_text=body)
    except (urllib.error.URLError, http.client.HTTPException, OSError) as e:
        raise RatingApiError(f"{method} {url} failed: {e}") from e


class RatingApiClient:
    """Thin client for the rating API (see aalap_rater.api.ratings)."""

    def __init__(self, base_url: str, timeout: int = DEFAULT_TIMEOUT_SEC):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def _raise_for_status(self, r: HttpResult, fallback: str) -> Any:
        body = r.json()
        if r.status >= 400:
            message = body.get("error") if isinstance(body, dict) else None
            raise RatingApiError(message or fallback, status=r.status)
        return body

    def rated_keys(self) -> list[str]:
        r = http_json("GET", f"{self.base_url}/api/get-ratings", timeout=self.timeout)
        body = self._raise_for_status(r, "Failed to fetch rated keys")
        keys = body.get("ratedKeys") if isinstance(body, dict) else None
        if not isinstance(keys, list):
            raise RatingApiError("Failed to fetch rated keys", status=r.status)
        return keys

    def submit_rating(
        self,
        s3_key: str,
        prompt: str,
        rating: int,
        prompt_idx: Optional[int] = None,
    ) -> None:
        payload: Dict[str, Any] = {"s3Key": s3_key, "prompt": prompt, "rating": rating}
        if prompt_idx is not None:
            payload["promptIdx"] = prompt_idx
        r = http_json("POST", f"{self.base_url}/api/submit-rating", payload=payload, timeout=self.timeout)
        self._raise_for_status(r, "Failed to submit rating")
