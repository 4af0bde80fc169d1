#!/usr/bin/env python3
"""
Terminal rating client.

Usage:
  aalap-rate --api-url http://localhost:8000 --assets-url https://bucket.s3.amazonaws.com
"""

from __future__ import annotations

import argparse
import os
import sys

from aalap_rater.client.api import RatingApiClient
from aalap_rater.client.session import BATCH_SIZE, RatingSession, SessionState
from aalap_rater.core.config import settings
from aalap_rater.core.logging import configure_logging
from aalap_rater.models.rating import RATING_MAX, RATING_MIN
from aalap_rater.services.prompts import fetch_prompts, key_mapper


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    ap = argparse.ArgumentParser(description="Rate generated audio against its prompt.")
    ap.add_argument("--api-url", default=os.getenv("AALAP_API_URL", "http://localhost:8000"))
    ap.add_argument(
        "--assets-url",
        default=settings.public_base_url,
        help="Public base URL holding prompts.json and the audio files",
    )
    ap.add_argument("--batch-size", type=int, default=BATCH_SIZE)
    ap.add_argument("--log-level", default="WARNING")
    return ap.parse_args(argv)


def _show(track, remaining: int) -> None:
    print(f"\nPrompt #{track.promptIdx} ({remaining} left to rate):")
    print(f"  {track.prompt}")
    print(f"  Audio: {track.audioUrl}")


def run(session: RatingSession, read=input) -> int:
    session.load()
    if session.state == SessionState.FAILED:
        print(f"Failed to load tracks: {session.error}")
        return 1

    skipped: set[str] = set()
    while session.state != SessionState.EXHAUSTED:
        pending = [t for t in session.visible if t.s3Key not in skipped]
        if not pending:
            if not session.reveal_more():
                print("\nNo more tracks to show.")
                return 0
            continue

        track = pending[0]
        _show(track, len(session.candidates))
        answer = read(
            f"Similarity {RATING_MIN}-{RATING_MAX} (s=skip, m=more, q=quit): "
        ).strip().lower()

        if answer == "q":
            return 0
        if answer == "s":
            skipped.add(track.s3Key)
            continue
        if answer == "m":
            added = session.reveal_more()
            print(f"Showing {added} more track(s)." if added else "Nothing more to show.")
            continue
        try:
            rating = int(answer)
            if session.submit(track.s3Key, rating):
                print(session.notice)
            else:
                print(session.error)
        except ValueError:
            print(f"Enter a number between {RATING_MIN} and {RATING_MAX}.")

    print(f"\n{session.completion_message}")
    return 0


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    configure_logging(args.log_level)
    if not args.assets_url:
        print("--assets-url (or PUBLIC_BASE_URL) is required", file=sys.stderr)
        return 2

    session = RatingSession(
        api=RatingApiClient(args.api_url),
        fetch_prompts=lambda: fetch_prompts(args.assets_url),
        assets_url=args.assets_url,
        key_for=key_mapper(settings.audio_index_offset, settings.audio_prefix, settings.audio_extension),
        batch_size=args.batch_size,
    )
    try:
        return run(session)
    except (KeyboardInterrupt, EOFError):
        print("\nBye.")
        return 0


if __name__ == "__main__":
    raise SystemExit(main())
