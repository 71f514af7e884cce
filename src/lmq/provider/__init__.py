"""Provider clients for transcription and summarization.

Module organization:
- interface.py: ProviderClient protocol
- models.py: Source/result dataclasses and wire-format schemas
- exceptions.py: ProviderError hierarchy
- client.py: HttpProviderClient for OpenAI-compatible APIs
"""

from lmq.config.models import ProviderConfig

from .client import SUMMARY_SYSTEM_PROMPT, HttpProviderClient
from .exceptions import (
    ProviderAuthError,
    ProviderConnectionError,
    ProviderError,
    ProviderHTTPError,
    ProviderResponseError,
)
from .interface import ProviderClient
from .models import Segment, SourceArtifact, TranscriptionResult


def create_provider_client(config: ProviderConfig) -> ProviderClient:
    """Build the provider client for the configured provider."""
    return HttpProviderClient(config)


__all__ = [
    "HttpProviderClient",
    "ProviderAuthError",
    "ProviderClient",
    "ProviderConnectionError",
    "ProviderError",
    "ProviderHTTPError",
    "ProviderResponseError",
    "SUMMARY_SYSTEM_PROMPT",
    "Segment",
    "SourceArtifact",
    "TranscriptionResult",
    "create_provider_client",
]
