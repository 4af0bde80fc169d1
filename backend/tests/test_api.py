"""HTTP surface of the rating API."""

from __future__ import annotations

import re

import orjson
import pytest
from fastapi.testclient import TestClient

from aalap_rater.core.config import Settings
from aalap_rater.core.errors import CatalogFetchError, StorageError
from aalap_rater.main import create_app
from aalap_rater.services.storage_s3 import S3ObjectStore

ASSETS_URL = "https://assets.example.com"
RATINGS_KEY = "musicgen-outputs/ratings.json"

VALID = {"s3Key": "musicgen-outputs/001.wav", "prompt": "calm piano", "rating": 7}


def _stored(local_store) -> list[dict]:
    obj = local_store.get_object(RATINGS_KEY)
    return orjson.loads(obj.body) if obj else []


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"ok": True, "service": "aalap-rater"}


# -------------------------
# GET /api/get-ratings
# -------------------------

def test_rated_keys_empty_when_document_absent(client):
    r = client.get("/api/get-ratings")
    assert r.status_code == 200
    assert r.json() == {"ratedKeys": []}


def test_rated_keys_are_distinct(client):
    for key in ("a.wav", "a.wav", "b.wav"):
        assert client.post("/api/submit-rating", json={**VALID, "s3Key": key}).status_code == 200
    r = client.get("/api/get-ratings")
    assert r.status_code == 200
    assert sorted(r.json()["ratedKeys"]) == ["a.wav", "b.wav"]


def test_rated_keys_malformed_document_is_server_error(client, local_store):
    local_store.put_json_bytes(RATINGS_KEY, b"not json")
    r = client.get("/api/get-ratings")
    assert r.status_code == 500
    body = r.json()
    assert body["error"] == "Failed to fetch rated keys"
    assert body["details"]


def test_rated_keys_storage_failure_is_server_error(settings, fake_s3):
    fake_s3.fail_with = "AccessDenied"
    app = create_app(settings, object_store=S3ObjectStore(fake_s3, "bucket"))
    with TestClient(app) as c:
        r = c.get("/api/get-ratings")
    assert r.status_code == 500
    assert r.json()["error"] == "Failed to fetch rated keys"


# -------------------------
# GET /api/ratings
# -------------------------

def test_full_ratings_not_found_when_absent(client):
    r = client.get("/api/ratings")
    assert r.status_code == 404
    assert "error" in r.json()


def test_full_ratings_lists_everything_in_order(client):
    client.post("/api/submit-rating", json={**VALID, "s3Key": "a.wav", "rating": 2})
    client.post("/api/submit-rating", json={**VALID, "s3Key": "b.wav", "rating": 9, "promptIdx": 4})

    r = client.get("/api/ratings")
    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    assert body["totalRatings"] == 2
    assert [x["s3Key"] for x in body["ratings"]] == ["a.wav", "b.wav"]
    assert "promptIdx" not in body["ratings"][0]
    assert body["ratings"][1]["promptIdx"] == 4
    assert body["lastUpdated"]


def test_full_ratings_returns_stored_entries_as_written(client, local_store):
    stored = [{"s3Key": "a.wav", "rating": 3, "promptIdx": None, "rater": "x"}]
    local_store.put_json_bytes(RATINGS_KEY, orjson.dumps(stored))
    r = client.get("/api/ratings")
    assert r.status_code == 200
    assert r.json()["ratings"] == stored


def test_full_ratings_malformed_document_is_server_error(client, local_store):
    local_store.put_json_bytes(RATINGS_KEY, b'{"oops": true}')
    r = client.get("/api/ratings")
    assert r.status_code == 500
    assert r.json()["error"] == "Failed to fetch ratings"


# -------------------------
# POST /api/submit-rating
# -------------------------

def test_submit_stores_timestamped_entry(client, local_store):
    r = client.post("/api/submit-rating", json={**VALID, "promptIdx": 1})
    assert r.status_code == 200
    assert r.json() == {"success": True}

    [entry] = _stored(local_store)
    assert entry["s3Key"] == VALID["s3Key"]
    assert entry["prompt"] == VALID["prompt"]
    assert entry["rating"] == 7
    assert entry["promptIdx"] == 1
    assert re.fullmatch(r"\d{4}-\d\d-\d\dT\d\d:\d\d:\d\d\.\d{3}Z", entry["timestamp"])


def test_submit_appends_last(client, local_store):
    client.post("/api/submit-rating", json={**VALID, "s3Key": "first.wav"})
    client.post("/api/submit-rating", json={**VALID, "s3Key": "second.wav"})
    assert [e["s3Key"] for e in _stored(local_store)] == ["first.wav", "second.wav"]


@pytest.mark.parametrize("prompt_idx", ["3", None, 2.5, True])
def test_non_integer_prompt_idx_is_dropped(client, local_store, prompt_idx):
    r = client.post("/api/submit-rating", json={**VALID, "promptIdx": prompt_idx})
    assert r.status_code == 200
    assert "promptIdx" not in _stored(local_store)[0]


def test_whole_float_rating_is_accepted(client, local_store):
    r = client.post("/api/submit-rating", json={**VALID, "rating": 8.0})
    assert r.status_code == 200
    assert _stored(local_store)[0]["rating"] == 8


@pytest.mark.parametrize("payload", [
    {**VALID, "rating": "7"},
    {**VALID, "rating": None},
    {**VALID, "rating": True},
    {**VALID, "rating": 0},
    {**VALID, "rating": 11},
    {**VALID, "rating": 6.5},
    {**VALID, "s3Key": ""},
    {**VALID, "prompt": ""},
    {"prompt": "x", "rating": 5},
    {"s3Key": "a.wav", "rating": 5},
    {**VALID, "s3Key": 12},
])
def test_invalid_payload_is_rejected_without_writing(client, local_store, payload):
    r = client.post("/api/submit-rating", json=payload)
    assert r.status_code == 400
    assert r.json()["error"] == "Invalid payload"
    assert local_store.get_object(RATINGS_KEY) is None


@pytest.mark.parametrize("body", [b"not json", b"[1, 2, 3]", b""])
def test_non_object_body_is_rejected(client, local_store, body):
    r = client.post(
        "/api/submit-rating", content=body, headers={"Content-Type": "application/json"}
    )
    assert r.status_code == 400
    assert local_store.get_object(RATINGS_KEY) is None


def test_submit_storage_failure_is_server_error(settings):
    class BrokenStore:
        def get_object(self, key):
            raise StorageError("bucket unreachable")

        def put_json_bytes(self, key, body, **kwargs):
            raise AssertionError("must not write")

    app = create_app(settings, object_store=BrokenStore())
    with TestClient(app) as c:
        r = c.post("/api/submit-rating", json=VALID)
    assert r.status_code == 500
    assert r.json() == {"error": "bucket unreachable"}


def test_submit_write_conflict_is_409(tmp_path, fake_s3):
    settings = Settings(
        storage_mode="local",
        local_storage_dir=str(tmp_path),
        public_base_url=ASSETS_URL,
        ratings_conditional_writes=True,
    )
    store = S3ObjectStore(fake_s3, "bucket")
    original_get = store.get_object

    def racing_get(key):
        obj = original_get(key)
        fake_s3.objects[key] = b"[]"  # another writer lands first
        return obj

    store.get_object = racing_get
    app = create_app(settings, object_store=store)
    with TestClient(app) as c:
        r = c.post("/api/submit-rating", json=VALID)
    assert r.status_code == 409
    assert "error" in r.json()


# -------------------------
# GET /api/tracks
# -------------------------

def _catalog(n: int) -> bytes:
    return orjson.dumps([{"prompt": f"prompt {i}"} for i in range(n)])


def test_tracks_lists_catalog_with_audio(client):
    client.app.state.catalog._fetch = lambda base: _catalog(3)
    r = client.get("/api/tracks")
    assert r.status_code == 200
    assert r.json() == [
        {
            "s3Key": f"musicgen-outputs/00{i}.wav",
            "prompt": f"prompt {i}",
            "audioUrl": f"{ASSETS_URL}/musicgen-outputs/00{i}.wav",
            "promptIdx": i,
        }
        for i in range(3)
    ]


def test_tracks_unrated_filters_rated_keys(client):
    client.app.state.catalog._fetch = lambda base: _catalog(3)
    client.post("/api/submit-rating", json={**VALID, "s3Key": "musicgen-outputs/001.wav"})

    r = client.get("/api/tracks", params={"unrated": "true"})
    assert [t["promptIdx"] for t in r.json()] == [0, 2]


def test_tracks_skip_prompts_without_audio(client):
    client.app.state.catalog._fetch = lambda base: _catalog(167)
    keys = {t["promptIdx"]: t["s3Key"] for t in client.get("/api/tracks").json()}
    assert 163 not in keys and 164 not in keys
    assert keys[165] == "musicgen-outputs/164.wav"
    assert len(keys) == 165


def test_tracks_catalog_failure_is_bad_gateway(client):
    def fail(base):
        raise CatalogFetchError("GET prompts.json failed: 503")

    client.app.state.catalog._fetch = fail
    r = client.get("/api/tracks")
    assert r.status_code == 502
    assert "503" in r.json()["error"]
