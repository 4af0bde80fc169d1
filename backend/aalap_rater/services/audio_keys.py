from __future__ import annotations

AUDIO_PREFIX = "musicgen-outputs/"
AUDIO_EXTENSION = ".wav"

# Prompts 0-162 map 1:1 onto 000.wav-162.wav.
LAST_ALIGNED_INDEX = 162
# No audio was generated for these prompts.
MISSING_INDICES = frozenset({163, 164})
# From 165 on, the generation job numbered its outputs one behind the prompts.
AUDIO_INDEX_OFFSET = 1


def audio_key_for_prompt(
    idx: int,
    offset: int = AUDIO_INDEX_OFFSET,
    prefix: str = AUDIO_PREFIX,
    extension: str = AUDIO_EXTENSION,
) -> str | None:
    """
    Object key of the audio generated for prompt `idx`, or None when no audio
    exists for it.
    """
    if idx < 0 or idx in MISSING_INDICES:
        return None
    n = idx if idx <= LAST_ALIGNED_INDEX else idx - offset
    return f"{prefix}{n:03d}{extension}"
