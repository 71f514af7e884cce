"""ProviderClient interface for transcription and summarization."""

from typing import Protocol

from lmq.provider.models import SourceArtifact, TranscriptionResult


class ProviderClient(Protocol):
    """Protocol for external speech-to-text and summarization providers.

    Implementations wrap a remote API. Every failure must surface as a
    ProviderError subclass; no other exception types may escape.
    """

    async def transcribe(self, artifact: SourceArtifact) -> TranscriptionResult:
        """Transcribe lesson media.

        Args:
            artifact: Media bytes and original filename.

        Returns:
            Full text plus timed segments.

        Raises:
            ProviderError: If the provider call fails or returns garbage.
        """
        ...

    async def summarize(self, text: str) -> str:
        """Summarize a transcript for display on the course platform.

        Raises:
            ProviderError: If the provider call fails or returns garbage.
        """
        ...

    async def aclose(self) -> None:
        """Release network resources."""
        ...
