"""Provider request and response models.

Dataclasses describe what the pipeline hands to and gets from a provider.
The pydantic models validate raw JSON from OpenAI-compatible endpoints.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from pydantic import BaseModel, ConfigDict, Field

from lmq.db.json_schemas import TranscriptCue, TranscriptPayload


@dataclass(frozen=True)
class SourceArtifact:
    """Lesson media ready to send to a provider."""

    data: bytes
    filename: str  # e.g., "lecture-01.mp4"

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class Segment:
    """Timed span of transcribed text (seconds from start of media)."""

    start: float
    end: float
    text: str


@dataclass(frozen=True)
class TranscriptionResult:
    """Structured output of a transcription call."""

    text: str
    segments: list[Segment] = field(default_factory=list)

    def to_payload(self) -> TranscriptPayload:
        """Convert to the JSON shape stored on the lesson."""
        return TranscriptPayload(
            en=self.text,
            es="",
            cues=[
                TranscriptCue(start=s.start, end=s.end, text=s.text.strip())
                for s in self.segments
            ],
        )


# Wire formats (OpenAI-compatible)


class VerboseSegment(BaseModel):
    """Segment in a verbose_json transcription response."""

    model_config = ConfigDict(extra="ignore")

    start: float = Field(ge=0.0)
    end: float = Field(ge=0.0)
    text: str


class VerboseTranscription(BaseModel):
    """Body of POST /v1/audio/transcriptions with response_format=verbose_json."""

    model_config = ConfigDict(extra="ignore")

    text: str
    language: str | None = None
    duration: float | None = None
    segments: list[VerboseSegment] = Field(default_factory=list)

    def to_result(self) -> TranscriptionResult:
        return TranscriptionResult(
            text=self.text,
            segments=[Segment(start=s.start, end=s.end, text=s.text) for s in self.segments],
        )


class ChatMessage(BaseModel):
    model_config = ConfigDict(extra="ignore")

    role: str
    content: str | None = None


class ChatChoice(BaseModel):
    model_config = ConfigDict(extra="ignore")

    index: int = 0
    message: ChatMessage


class ChatCompletion(BaseModel):
    """Body of POST /v1/chat/completions (subset of fields)."""

    model_config = ConfigDict(extra="ignore")

    choices: list[ChatChoice] = Field(min_length=1)

    def first_content(self) -> str:
        return (self.choices[0].message.content or "").strip()
