"""Pydantic schemas for JSON database fields.

The lessons.transcription column stores the payload read by the
interactive transcript viewer:

    {"en": "full text", "es": "", "cues": [{"start": 0.0, "end": 1.2, "text": "..."}]}

Usage:
    from lmq.db.json_schemas import TranscriptPayload

    payload = TranscriptPayload.model_validate_json(lesson.transcription)
    print(payload.cues[0].text)
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, model_validator


class TranscriptCue(BaseModel):
    """One timed segment of a transcript."""

    model_config = ConfigDict(extra="forbid")

    start: float = Field(ge=0.0)
    end: float = Field(ge=0.0)
    text: str

    @model_validator(mode="after")
    def check_order(self) -> TranscriptCue:
        if self.end < self.start:
            raise ValueError(f"cue end {self.end} precedes start {self.start}")
        return self


class TranscriptPayload(BaseModel):
    """Root schema for lessons.transcription JSON."""

    model_config = ConfigDict(extra="allow")

    en: str = ""
    # Translation slot; filled in by the CRUD layer, never by the pipeline
    es: str = ""
    cues: list[TranscriptCue] = Field(default_factory=list)
