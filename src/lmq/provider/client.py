"""HTTP provider client for OpenAI-compatible speech and chat APIs.

One client serves both provider modes:
- openai: api.openai.com with a bearer key (whisper-1, gpt-4o)
- local: a self-hosted Whisper server plus an Ollama server, no auth
"""

from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import ValidationError

from lmq.config.models import ProviderConfig
from lmq.provider.exceptions import (
    ProviderAuthError,
    ProviderConnectionError,
    ProviderError,
    ProviderHTTPError,
    ProviderResponseError,
)
from lmq.provider.models import (
    ChatCompletion,
    SourceArtifact,
    TranscriptionResult,
    VerboseTranscription,
)

logger = logging.getLogger(__name__)

TRANSCRIPTION_PATH = "/v1/audio/transcriptions"
CHAT_COMPLETIONS_PATH = "/v1/chat/completions"

SUMMARY_SYSTEM_PROMPT = (
    "You are a professional educational assistant. Summarize the following "
    "lesson transcription into a high-quality summary suited for a course "
    "platform. Keep it concise but informative (max 150 words). Focus on the "
    "key learning objectives."
)

# Longest error body excerpt carried into last_error
_ERROR_BODY_LIMIT = 300


class HttpProviderClient:
    """Async HTTP client implementing the ProviderClient protocol."""

    def __init__(
        self,
        config: ProviderConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            config: Provider selection, endpoints, models and timeout.
            transport: Optional transport override (used by tests).
        """
        self._config = config
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def provider(self) -> str:
        return self._config.provider

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self._config.timeout_seconds,
                transport=self._transport,
            )
        return self._client

    def _transcription_url(self) -> str:
        base = (
            self._config.openai_url
            if self._config.provider == "openai"
            else self._config.whisper_url
        )
        return base.rstrip("/") + TRANSCRIPTION_PATH

    def _chat_url(self) -> str:
        base = (
            self._config.openai_url
            if self._config.provider == "openai"
            else self._config.llm_url
        )
        return base.rstrip("/") + CHAT_COMPLETIONS_PATH

    def _headers(self) -> dict[str, str]:
        """Get request headers, with a bearer key for the openai provider.

        Raises:
            ProviderError: If the openai provider has no API key configured.
        """
        if self._config.provider != "openai":
            return {}
        if not self._config.api_key:
            raise ProviderError("OpenAI API key is not configured")
        return {"Authorization": f"Bearer {self._config.api_key}"}

    async def aclose(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _post(self, url: str, **kwargs: Any) -> httpx.Response:
        """POST and translate transport and status failures.

        Raises:
            ProviderConnectionError: Network failure or timeout.
            ProviderAuthError: 401/403 from the provider.
            ProviderHTTPError: Any other non-2xx status.
        """
        client = self._get_client()
        try:
            response = await client.post(url, headers=self._headers(), **kwargs)
        except httpx.TimeoutException as e:
            raise ProviderConnectionError(f"provider request timed out: {url}") from e
        except httpx.TransportError as e:
            raise ProviderConnectionError(f"cannot reach provider at {url}: {e}") from e

        if response.is_success:
            return response

        body = response.text[:_ERROR_BODY_LIMIT]
        if response.status_code in (401, 403):
            raise ProviderAuthError(response.status_code, body or "unauthorized")
        raise ProviderHTTPError(response.status_code, body or response.reason_phrase)

    async def transcribe(self, artifact: SourceArtifact) -> TranscriptionResult:
        """Send media to the speech-to-text endpoint.

        Args:
            artifact: Media bytes and filename.

        Returns:
            TranscriptionResult with text and timed segments.

        Raises:
            ProviderError: On any failure (see _post), or
                ProviderResponseError if the body isn't verbose_json.
        """
        url = self._transcription_url()
        model = self._config.effective_transcription_model
        logger.info(
            "Transcribing %s (%d bytes) with %s/%s",
            artifact.filename,
            artifact.size,
            self._config.provider,
            model,
        )

        response = await self._post(
            url,
            files={"file": (artifact.filename, artifact.data)},
            data={"model": model, "response_format": "verbose_json"},
        )

        try:
            parsed = VerboseTranscription.model_validate_json(response.content)
        except ValidationError as e:
            raise ProviderResponseError(
                f"malformed transcription response: {e.error_count()} error(s), "
                f"first: {e.errors()[0]['msg']}"
            ) from e

        result = parsed.to_result()
        logger.debug(
            "Transcription returned %d chars in %d segment(s)",
            len(result.text),
            len(result.segments),
        )
        return result

    async def summarize(self, text: str) -> str:
        """Summarize transcript text with the chat completions endpoint.

        Returns:
            The summary with surrounding whitespace removed.

        Raises:
            ProviderError: On any failure, or ProviderResponseError if the
                body has no usable message content.
        """
        payload = {
            "model": self._config.effective_summary_model,
            "messages": [
                {"role": "system", "content": SUMMARY_SYSTEM_PROMPT},
                {"role": "user", "content": text},
            ],
        }
        if self._config.provider == "local":
            payload["stream"] = False

        response = await self._post(self._chat_url(), json=payload)

        try:
            completion = ChatCompletion.model_validate_json(response.content)
        except ValidationError as e:
            raise ProviderResponseError(
                f"malformed chat completion response: {e.error_count()} error(s)"
            ) from e

        summary = completion.first_content()
        if not summary:
            raise ProviderResponseError("chat completion returned empty content")
        return summary
