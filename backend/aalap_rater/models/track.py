from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class Prompt(BaseModel):
    model_config = ConfigDict(frozen=True)

    index: int = Field(ge=0)  # ordinal position in prompts.json
    text: str


class Track(BaseModel):
    """
    A prompt joined with its generated audio object.
    Only exists in memory; never persisted.
    """
    s3Key: str
    prompt: str
    audioUrl: str
    promptIdx: int
